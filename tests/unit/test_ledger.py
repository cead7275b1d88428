"""
Unit tests for the dependency ledger.
"""
import io
import struct
import pytest

from omnideps.ledger import DependencyLedger, LedgerError, LedgerSnapshotError


class TestVpathRewrite:
    """Test vpath prefix stripping."""

    def test_matching_prefix_is_stripped(self):
        ledger = DependencyLedger()
        ledger.add_vpath("foo/bar")
        ledger.add_dependency("foo/bar/baz.c")

        assert ledger.deps == ["baz.c"]

    def test_parent_reference_is_not_simplified(self):
        """$(vpath)/../x must keep its prefix."""
        ledger = DependencyLedger()
        ledger.add_vpath("foo/bar")
        ledger.add_dependency("foo/bar/../x.c")

        assert ledger.deps == ["foo/bar/../x.c"]

    def test_prefix_must_end_at_separator(self):
        ledger = DependencyLedger()
        ledger.add_vpath("foo/bar")
        ledger.add_dependency("foo/barx/y.c")

        assert ledger.deps == ["foo/barx/y.c"]

    def test_newest_rule_wins(self):
        """Rules are tried in reverse registration order."""
        ledger = DependencyLedger()
        ledger.add_vpath("foo")
        ledger.add_vpath("foo/bar")
        ledger.add_dependency("foo/bar/baz.c")

        assert ledger.deps == ["baz.c"]

    def test_only_one_rule_applies(self):
        ledger = DependencyLedger()
        ledger.add_vpath("inner:outer")
        ledger.add_dependency("outer/inner/x.c")

        assert ledger.deps == ["inner/x.c"]

    def test_leading_dot_slash_removed(self):
        ledger = DependencyLedger()
        ledger.add_dependency("./src/a.c")
        ledger.add_dependency(".//.///b.c")

        assert ledger.deps == ["src/a.c", "b.c"]

    def test_dot_slash_removed_without_vpath_match(self):
        """Leading ./ removal applies even when no rule matched."""
        ledger = DependencyLedger()
        ledger.add_vpath("foo/bar")
        ledger.add_dependency("./foo/bar/../x.c")

        assert ledger.deps == ["foo/bar/../x.c"]

    def test_dotfiles_are_kept(self):
        ledger = DependencyLedger()
        ledger.add_dependency(".hidden/x.h")

        assert ledger.deps == [".hidden/x.h"]

    def test_vpath_spec_splitting(self):
        ledger = DependencyLedger()
        ledger.add_vpath("a:b::c:")

        assert ledger.vpath == ["a", "b", "", "c"]

    def test_empty_vpath_spec_adds_nothing(self):
        ledger = DependencyLedger()
        ledger.add_vpath("")

        assert ledger.vpath == []


class TestTargets:
    """Test target registration."""

    def test_quoted_targets_keep_order(self):
        ledger = DependencyLedger()
        ledger.add_target("a.o")
        ledger.add_target("b.o")

        assert ledger.targets == ["a.o", "b.o"]
        assert ledger.quote_lwm == 0

    def test_unquoted_targets_move_to_front(self):
        """Unquoted targets after quoted ones swap with the lowest quoted."""
        ledger = DependencyLedger()
        ledger.add_target("q1")
        ledger.add_target("q2")
        ledger.add_target("u1", quote=False)

        assert ledger.targets == ["u1", "q2", "q1"]
        assert ledger.quote_lwm == 1

        ledger.add_target("u2", quote=False)

        assert ledger.targets == ["u1", "u2", "q1", "q2"]
        assert ledger.quote_lwm == 2

    def test_unquoted_first_needs_no_swap(self):
        ledger = DependencyLedger()
        ledger.add_target("u1", quote=False)
        ledger.add_target("q1")

        assert ledger.targets == ["u1", "q1"]
        assert ledger.quote_lwm == 1

    def test_targets_go_through_vpath(self):
        ledger = DependencyLedger()
        ledger.add_vpath("build")
        ledger.add_target("build/x.o")

        assert ledger.targets == ["x.o"]


class TestDefaultTarget:
    """Test default target derivation."""

    def test_derived_from_source_name(self):
        ledger = DependencyLedger()
        ledger.add_default_target("src/dir/foo.c")

        assert ledger.targets == ["foo.o"]

    def test_only_last_extension_replaced(self):
        ledger = DependencyLedger()
        ledger.add_default_target("foo.tar.c")

        assert ledger.targets == ["foo.tar.o"]

    def test_no_extension(self):
        ledger = DependencyLedger()
        ledger.add_default_target("Makefile")

        assert ledger.targets == ["Makefile.o"]

    def test_empty_name_means_stdin(self):
        ledger = DependencyLedger()
        ledger.add_default_target("")

        assert ledger.targets == ["-"]

    def test_noop_when_targets_exist(self):
        ledger = DependencyLedger()
        ledger.add_target("explicit.o")
        ledger.add_default_target("foo.c")

        assert ledger.targets == ["explicit.o"]


class TestDependencies:
    """Test dependency and module registration."""

    def test_empty_dependency_is_rejected(self):
        ledger = DependencyLedger()

        with pytest.raises(LedgerError):
            ledger.add_dependency("")

    def test_insertion_order_preserved(self):
        ledger = DependencyLedger()
        for name in ["z.h", "a.h", "m.h", "a.h"]:
            ledger.add_dependency(name)

        assert ledger.deps == ["z.h", "a.h", "m.h", "a.h"]

    def test_single_module_target(self):
        ledger = DependencyLedger()
        ledger.add_module_target("foo", "foo.gcm", is_header_unit=True)

        assert ledger.module_name == "foo"
        assert ledger.cmi_name == "foo.gcm"
        assert ledger.is_header_unit is True

        with pytest.raises(LedgerError):
            ledger.add_module_target("bar", "bar.gcm")

    def test_module_deps(self):
        ledger = DependencyLedger()
        ledger.add_module_dep("std.core")
        ledger.add_module_dep("bar")

        assert ledger.modules == ["std.core", "bar"]

    def test_reset(self):
        ledger = DependencyLedger()
        ledger.add_target("x", quote=False)
        ledger.add_dependency("x.c")
        ledger.add_vpath("src")
        ledger.add_module_target("m", "m.gcm")
        ledger.reset()

        assert ledger.targets == []
        assert ledger.deps == []
        assert ledger.vpath == []
        assert ledger.module_name is None
        assert ledger.quote_lwm == 0


class TestSnapshot:
    """Test saving and restoring the dependency list."""

    def _saved(self, deps):
        ledger = DependencyLedger()
        for dep in deps:
            ledger.add_dependency(dep)
        buf = io.BytesIO()
        ledger.save(buf)
        buf.seek(0)
        return buf

    def test_layout(self):
        """Count then (length, bytes) records, as native size_t."""
        buf = self._saved(["ab", "c"])
        size = struct.calcsize("@N")

        data = buf.getvalue()
        assert struct.unpack_from("@N", data, 0)[0] == 2
        assert struct.unpack_from("@N", data, size)[0] == 2
        assert data[2 * size:2 * size + 2] == b"ab"
        assert len(data) == 3 * size + 3

    def test_restore_skips_self(self):
        buf = self._saved(["pch.h", "a.h", "b.h"])
        ledger = DependencyLedger()
        ledger.add_dependency("main.c")

        ledger.restore(buf, self_path="pch.h")

        assert ledger.deps == ["main.c", "a.h", "b.h"]

    def test_restore_without_self_only_skips_over(self):
        buf = self._saved(["a.h", "b.h"])
        ledger = DependencyLedger()

        ledger.restore(buf)

        assert ledger.deps == []
        assert buf.read() == b""

    def test_restore_applies_vpath(self):
        buf = self._saved(["inc/a.h"])
        ledger = DependencyLedger()
        ledger.add_vpath("inc")

        ledger.restore(buf, self_path="other.h")

        assert ledger.deps == ["a.h"]

    def test_truncated_snapshot(self):
        data = self._saved(["a.h", "b.h"]).getvalue()

        with pytest.raises(LedgerSnapshotError):
            DependencyLedger().restore(io.BytesIO(data[:-1]), self_path="x")

    def test_empty_stream(self):
        with pytest.raises(LedgerSnapshotError):
            DependencyLedger().restore(io.BytesIO(b""))
