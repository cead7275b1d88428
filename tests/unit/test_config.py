"""
Unit tests for OmniBOR configuration loading.
"""
import pytest
import yaml

from omnideps.config import OmniborConfig, get_config, parse_algorithms
from omnideps.gitoid import HashAlgorithm


class TestFromEnv:
    """Test configuration from environment variables."""

    def test_defaults_disabled(self):
        config = OmniborConfig.from_env({})

        assert config.enabled is False
        assert config.root_dir == ""
        assert config.algorithms == [HashAlgorithm.SHA1, HashAlgorithm.SHA256]
        assert config.colmax == 0

    def test_omnibor_dir_enables(self):
        config = OmniborConfig.from_env({"OMNIBOR_DIR": "/tmp/bom"})

        assert config.enabled is True
        assert config.root_dir == "/tmp/bom"

    def test_empty_dir_means_cwd_but_enabled(self):
        config = OmniborConfig.from_env({"OMNIBOR_DIR": ""})

        assert config.enabled is True
        assert config.root_dir == ""

    def test_gitbom_dir_fallback(self):
        config = OmniborConfig.from_env({"GITBOM_DIR": "env_gitbom_dir"})

        assert config.enabled is True
        assert config.root_dir == "env_gitbom_dir"

    def test_omnibor_dir_preferred(self):
        config = OmniborConfig.from_env({"OMNIBOR_DIR": "new", "GITBOM_DIR": "old"})

        assert config.root_dir == "new"

    def test_hash_selection(self):
        config = OmniborConfig.from_env({"OMNIBOR_HASH": "sha256", "OMNIBOR_DEPS_COLMAX": "72",
                                         "OMNIBOR_DEPS_PHONY": "yes"})

        assert config.algorithms == [HashAlgorithm.SHA256]
        assert config.colmax == 72
        assert config.phony_targets is True

    def test_get_config_reads_process_env(self, monkeypatch):
        monkeypatch.setenv("OMNIBOR_DIR", "from-env")

        assert get_config().root_dir == "from-env"


class TestFromYaml:
    """Test configuration from YAML files."""

    def test_load(self, tmp_path):
        path = tmp_path / "omnibor.yaml"
        with open(path, 'w') as f:
            yaml.dump({'root_dir': '~/bom', 'algorithms': ['sha1'], 'colmax': 80}, f)

        config = OmniborConfig.from_yaml(path)

        assert config.enabled is True
        assert not config.root_dir.startswith("~")
        assert config.root_dir.endswith("bom")
        assert config.algorithms == [HashAlgorithm.SHA1]
        assert config.colmax == 80

    def test_explicit_disable(self, tmp_path):
        path = tmp_path / "omnibor.yaml"
        path.write_text("root_dir: out\nenabled: false\n")

        assert OmniborConfig.from_yaml(path).enabled is False

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            OmniborConfig.from_yaml(tmp_path / "nope.yaml")

    def test_unknown_field(self, tmp_path):
        path = tmp_path / "omnibor.yaml"
        path.write_text("root_dir: out\nformat: spdx\n")

        with pytest.raises(ValueError, match="format"):
            OmniborConfig.from_yaml(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "omnibor.yaml"
        path.write_text("- sha1\n")

        with pytest.raises(ValueError):
            OmniborConfig.from_yaml(path)


class TestParseAlgorithms:
    """Test algorithm selection parsing."""

    def test_both(self):
        assert parse_algorithms("both") == [HashAlgorithm.SHA1, HashAlgorithm.SHA256]

    def test_comma_list_deduplicated(self):
        assert parse_algorithms("sha256, sha1,sha256") == [HashAlgorithm.SHA256, HashAlgorithm.SHA1]

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_algorithms("md5")

    def test_empty(self):
        with pytest.raises(ValueError):
            parse_algorithms("")
