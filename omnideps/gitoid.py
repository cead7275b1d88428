"""
Gitoid computation.

A gitoid is the Git blob object id of a byte sequence: the digest of
``blob <decimal length>\\0`` followed by the content. Both SHA-1 and SHA-256
gitoids are supported; they are unrelated identifiers for the same bytes.
"""
import hashlib
import logging
from enum import Enum
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class HashAlgorithm(str, Enum):
    """Hash algorithms a gitoid can be computed with."""
    SHA1 = "sha1"
    SHA256 = "sha256"

    @property
    def digest_size(self) -> int:
        return 20 if self is HashAlgorithm.SHA1 else 32

    @property
    def hex_length(self) -> int:
        return self.digest_size * 2

    @property
    def namespace(self) -> str:
        """Shard namespace under ``objects/`` and ``metadata/gnu/``."""
        return f"gitoid_blob_{self.value}"

    @property
    def header(self) -> str:
        """First line of a BOM document hashed with this algorithm."""
        return f"gitoid:blob:{self.value}\n"

    @property
    def note_type(self) -> int:
        return 1 if self is HashAlgorithm.SHA1 else 2

    def new(self):
        return hashlib.new(self.value)


def parse_algorithm(value: Union[str, HashAlgorithm]) -> HashAlgorithm:
    """
    Parse an algorithm name.

    Accepts ``sha1``, ``sha256`` and the dashed spellings, case-insensitive.

    Raises:
        ValueError: If the name is not a supported algorithm
    """
    if isinstance(value, HashAlgorithm):
        return value
    normalized = value.strip().lower().replace('-', '')
    try:
        return HashAlgorithm(normalized)
    except ValueError:
        raise ValueError(f"Unsupported gitoid hash algorithm: {value}")


def gitoid_digest(content: bytes, algorithm: HashAlgorithm) -> bytes:
    """Raw gitoid digest of ``content``."""
    h = algorithm.new()
    h.update(b"blob " + str(len(content)).encode('ascii') + b"\0")
    h.update(content)
    return h.digest()


def compute_gitoid(content: bytes, algorithm: HashAlgorithm) -> str:
    """
    Compute the gitoid of a byte sequence.

    Args:
        content: Bytes to hash
        algorithm: SHA1 or SHA256

    Returns:
        Lowercase hex digest (40 or 64 characters)
    """
    return gitoid_digest(content, algorithm).hex()


def gitoid_for_file(path: Union[str, Path], algorithm: HashAlgorithm) -> Optional[str]:
    """
    Compute the gitoid of a file's raw bytes.

    Returns None if the file cannot be read; callers skip such files.
    """
    try:
        with open(path, 'rb') as f:
            content = f.read()
    except (OSError, ValueError) as e:
        logger.debug(f"Cannot read {path} for gitoid: {e}")
        return None

    return compute_gitoid(content, algorithm)


def gitoid_uri(gitoid: str, algorithm: HashAlgorithm) -> str:
    """Render a gitoid as an OmniBOR URI (``gitoid:blob:sha1:<hex>``)."""
    return f"gitoid:blob:{algorithm.value}:{gitoid}"


def is_gitoid(value: str, algorithm: HashAlgorithm) -> bool:
    """Check that ``value`` is a lowercase hex gitoid for ``algorithm``."""
    if len(value) != algorithm.hex_length:
        return False
    return all(c in "0123456789abcdef" for c in value)
