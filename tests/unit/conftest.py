"""
Pytest configuration for unit tests.

Sets up test-wide fixtures and environment configuration.
"""
import pytest


@pytest.fixture(autouse=True)
def clean_omnibor_env(monkeypatch):
    """Keep the caller's OmniBOR settings out of every test."""
    for name in ("OMNIBOR_DIR", "GITBOM_DIR", "OMNIBOR_HASH", "OMNIBOR_DEPS_COLMAX",
                 "OMNIBOR_DEPS_PHONY", "OMNIBOR_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def dep_files(tmp_path):
    """Two dependency files whose contents are "a" and "b"."""
    a = tmp_path / "a.c"
    b = tmp_path / "b.h"
    a.write_bytes(b"a")
    b.write_bytes(b"b")
    return str(a), str(b)
