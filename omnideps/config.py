"""
Configuration for OmniBOR recording.

Loads settings from environment variables or a YAML file.

Environment:
- OMNIBOR_DIR: root directory for ``objects/`` and ``metadata/``; setting it
  (even to an empty string, meaning the current directory) enables recording.
  GITBOM_DIR is honoured when OMNIBOR_DIR is not set.
- OMNIBOR_HASH: sha1, sha256 or both (default: both)
- OMNIBOR_DEPS_COLMAX: wrap column for Make rules (default: 0, no wrapping)
- OMNIBOR_DEPS_PHONY: emit phony rules for dependencies (true/false)
"""
import os
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from omnideps.gitoid import HashAlgorithm, parse_algorithm


def parse_algorithms(value: Union[str, List[str], None]) -> List[HashAlgorithm]:
    """
    Parse an algorithm selection.

    Accepts ``both``, a single name, a comma-separated list or a list.

    Raises:
        ValueError: If a name is not a supported algorithm
    """
    if value is None:
        return list(HashAlgorithm)

    if isinstance(value, str):
        if value.strip().lower() == 'both':
            return list(HashAlgorithm)
        value = [part for part in value.split(',') if part.strip()]

    algorithms = []
    for name in value:
        algorithm = parse_algorithm(name)
        if algorithm not in algorithms:
            algorithms.append(algorithm)

    if not algorithms:
        raise ValueError("At least one hash algorithm must be selected")

    return algorithms


def _parse_bool(value: Union[str, bool, None]) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


@dataclass
class OmniborConfig:
    """Settings for dependency and provenance output."""
    root_dir: str = ""
    algorithms: List[HashAlgorithm] = field(default_factory=lambda: list(HashAlgorithm))
    enabled: bool = False
    colmax: int = 0
    phony_targets: bool = False

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> 'OmniborConfig':
        """Load configuration from environment variables."""
        env = os.environ if environ is None else environ

        root_dir = env.get('OMNIBOR_DIR')
        if root_dir is None:
            root_dir = env.get('GITBOM_DIR')

        return cls(
            root_dir=root_dir or "",
            algorithms=parse_algorithms(env.get('OMNIBOR_HASH')),
            enabled=root_dir is not None,
            colmax=int(env.get('OMNIBOR_DEPS_COLMAX', '0')),
            phony_targets=_parse_bool(env.get('OMNIBOR_DEPS_PHONY'))
        )

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> 'OmniborConfig':
        """
        Load configuration from a YAML file.

        Keys: root_dir, algorithms, enabled, colmax, phony_targets. All are
        optional; ``enabled`` defaults to true when the file names a
        root_dir.

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            ValueError: If the file is not a mapping or a value is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"OmniBOR config not found: {yaml_path}")

        with open(yaml_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"OmniBOR config must be a mapping: {yaml_path}")

        unknown = sorted(set(data) - {'root_dir', 'algorithms', 'enabled', 'colmax', 'phony_targets'})
        if unknown:
            raise ValueError(f"Unknown fields in {yaml_path}: {', '.join(unknown)}")

        root_dir = data.get('root_dir')
        root_dir = str(Path(root_dir).expanduser()) if root_dir else ""

        return cls(
            root_dir=root_dir,
            algorithms=parse_algorithms(data.get('algorithms')),
            enabled=_parse_bool(data.get('enabled', 'root_dir' in data)),
            colmax=int(data.get('colmax', 0)),
            phony_targets=_parse_bool(data.get('phony_targets', False))
        )


def get_config() -> OmniborConfig:
    """Get configuration from the environment."""
    return OmniborConfig.from_env()
