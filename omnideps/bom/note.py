"""
OmniBOR ELF note encoding.

An object file points at its BOM documents through a ``.note.omnibor``
section holding one ELF note per algorithm:

    namesz = 8, descsz = digest size, type = 1 (SHA-1) or 2 (SHA-256)
    name   = "OMNIBOR\\0"
    desc   = raw digest of the BOM document
"""
import struct
from typing import List, Mapping, Tuple

from omnideps.gitoid import HashAlgorithm

NOTE_SECTION = ".note.omnibor"
NOTE_NAME = b"OMNIBOR\0"

_ALIGN = 4


def _pad(data: bytes) -> bytes:
    return data + b"\0" * (-len(data) % _ALIGN)


def _header(byteorder: str) -> struct.Struct:
    if byteorder not in ('little', 'big'):
        raise ValueError(f"byteorder must be 'little' or 'big', not {byteorder!r}")
    return struct.Struct('<III' if byteorder == 'little' else '>III')


def build_note(gitoid: str, algorithm: HashAlgorithm, byteorder: str = 'little') -> bytes:
    """
    Encode one OmniBOR note.

    Args:
        gitoid: Hex gitoid of the BOM document
        algorithm: Algorithm the gitoid was computed with
        byteorder: Target byte order

    Raises:
        ValueError: If the gitoid does not match the algorithm's digest size
    """
    desc = bytes.fromhex(gitoid)
    if len(desc) != algorithm.digest_size:
        raise ValueError(f"{algorithm.value} gitoid must be {algorithm.hex_length} hex characters")

    header = _header(byteorder).pack(len(NOTE_NAME), len(desc), algorithm.note_type)
    return header + _pad(NOTE_NAME) + _pad(desc)


def build_note_section(gitoids: Mapping[HashAlgorithm, str], byteorder: str = 'little') -> bytes:
    """Concatenate notes for every available gitoid, SHA-1 first."""
    section = b""
    for algorithm in (HashAlgorithm.SHA1, HashAlgorithm.SHA256):
        gitoid = gitoids.get(algorithm)
        if gitoid:
            section += build_note(gitoid, algorithm, byteorder)
    return section


def parse_notes(data: bytes, byteorder: str = 'little') -> List[Tuple[int, bytes, bytes]]:
    """
    Decode a note section into ``(type, name, desc)`` tuples.

    Raises:
        ValueError: If the section is truncated
    """
    header = _header(byteorder)
    notes = []
    offset = 0

    while offset < len(data):
        if offset + header.size > len(data):
            raise ValueError("Truncated note header")
        namesz, descsz, note_type = header.unpack_from(data, offset)
        offset += header.size

        name_end = offset + namesz
        desc_start = name_end + (-namesz % _ALIGN)
        desc_end = desc_start + descsz
        if desc_end > len(data):
            raise ValueError("Truncated note body")

        notes.append((note_type, data[offset:name_end], data[desc_start:desc_end]))
        offset = desc_end + (-descsz % _ALIGN)

    return notes
