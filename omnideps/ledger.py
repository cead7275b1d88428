"""
Dependency ledger for one build invocation.

Records the targets, dependency paths, vpath rewrite rules and module names
gathered while a translation unit is processed. The ledger is the source of
truth for "what was read"; the Make writer and the BOM builder both consume
it.
"""
import os
import struct
import logging
from typing import BinaryIO, List, Optional

logger = logging.getLogger(__name__)

# Suffix appended to a default target derived from the primary source name
TARGET_OBJECT_SUFFIX = ".o"

DIR_SEPARATORS = tuple({'/', os.sep, os.altsep or '/'})

# Native size_t, as written by the snapshot format
_SIZE = struct.Struct("@N")


class LedgerError(Exception):
    """Raised when the ledger is used in a way that indicates a caller bug."""
    pass


class LedgerSnapshotError(Exception):
    """Raised when a ledger snapshot cannot be written or read back."""
    pass


def _is_dir_separator(path: str, index: int) -> bool:
    return index < len(path) and path[index] in DIR_SEPARATORS


class DependencyLedger:
    """
    Ordered, insertion-stable registry of what a build step read.

    Targets at indices ``[0, quote_lwm)`` are written to Make without
    quoting; everything after is quoted.
    """

    def __init__(self):
        self.targets: List[str] = []
        self.deps: List[str] = []
        self.vpath: List[str] = []
        self.modules: List[str] = []
        self.module_name: Optional[str] = None
        self.cmi_name: Optional[str] = None
        self.is_header_unit = False
        self.quote_lwm = 0

    def reset(self):
        """Forget everything recorded so far."""
        self.__init__()

    def apply_vpath(self, path: str) -> str:
        """
        Rewrite a path through the vpath rules.

        Rules are tried newest first. A rule matches when it is a prefix of
        the path followed by a directory separator, unless the separator is
        followed by ``../``. Leading ``./`` segments are always removed.
        """
        for prefix in reversed(self.vpath):
            n = len(prefix)
            if path[:n] != prefix:
                continue
            if not _is_dir_separator(path, n):
                continue
            # Do not simplify $(vpath)/../whatever
            if path[n + 1:n + 3] == '..' and _is_dir_separator(path, n + 3):
                continue
            path = path[n + 1:]
            break

        while path[:1] == '.' and _is_dir_separator(path, 1):
            path = path[2:]
            while path[:1] and path[0] in DIR_SEPARATORS:
                path = path[1:]

        return path

    def add_target(self, name: str, quote: bool = True):
        """
        Add a Make target.

        Args:
            name: Target name (vpath rules apply)
            quote: Whether the name must be Make-quoted when written
        """
        name = self.apply_vpath(name)

        if not quote:
            # Unquoted names can arrive after quoted ones; swap out the
            # lowest quoted entry so the exempt range stays contiguous.
            if self.quote_lwm != len(self.targets):
                lowest = self.targets[self.quote_lwm]
                self.targets[self.quote_lwm] = name
                name = lowest
            self.quote_lwm += 1

        self.targets.append(name)

    def add_default_target(self, name: str):
        """
        Derive a target from the primary input if no target was given.

        An empty name means stdin and yields the target ``-``.
        """
        if self.targets:
            return

        if not name:
            self.targets.append('-')
            return

        base = os.path.basename(name)
        dot = base.rfind('.')
        stem = base[:dot] if dot != -1 else base
        self.add_target(stem + TARGET_OBJECT_SUFFIX, quote=True)

    def add_dependency(self, path: str):
        """
        Record a file the build step read.

        Raises:
            LedgerError: If path is empty
        """
        if not path:
            raise LedgerError("Dependency path must not be empty")

        self.deps.append(self.apply_vpath(path))

    def add_vpath(self, spec: str):
        """Add the ``:``-separated prefixes in ``spec`` as vpath rules."""
        if not spec:
            return

        elements = spec.split(':')
        if elements[-1] == '':
            elements.pop()
        self.vpath.extend(elements)

    def add_module_target(self, module: str, cmi: str, is_header_unit: bool = False):
        """
        Record the module this translation unit provides (only one).

        Raises:
            LedgerError: If a module target was already recorded
        """
        if self.module_name is not None:
            raise LedgerError(f"Module target already set to {self.module_name}")

        self.module_name = module
        self.cmi_name = cmi
        self.is_header_unit = is_header_unit

    def add_module_dep(self, module: str):
        """Record an imported module."""
        self.modules.append(module)

    def save(self, fp: BinaryIO):
        """
        Write the dependency list as a snapshot readable by ``restore``.

        Layout: count, then (length, bytes) per dependency, lengths as
        native ``size_t``.

        Raises:
            LedgerSnapshotError: If the snapshot cannot be written
        """
        try:
            fp.write(_SIZE.pack(len(self.deps)))
            for dep in self.deps:
                raw = os.fsencode(dep)
                fp.write(_SIZE.pack(len(raw)))
                fp.write(raw)
        except OSError as e:
            raise LedgerSnapshotError(f"Failed to save dependency snapshot: {e}") from e

    def restore(self, fp: BinaryIO, self_path: Optional[str] = None):
        """
        Read a snapshot written by ``save`` and append its dependencies.

        Args:
            fp: Binary stream positioned at the snapshot
            self_path: Path to leave out (the snapshot's own file). If None
                the snapshot is read but nothing is added.

        Raises:
            LedgerSnapshotError: If the snapshot is truncated or unreadable
        """
        count = self._read_size(fp)
        restored = 0

        for _ in range(count):
            size = self._read_size(fp)
            raw = self._read_exact(fp, size)
            path = os.fsdecode(raw)

            if self_path is not None and path != self_path:
                self.add_dependency(path)
                restored += 1

        logger.debug(f"Restored {restored} of {count} dependencies from snapshot")

    def _read_size(self, fp: BinaryIO) -> int:
        return _SIZE.unpack(self._read_exact(fp, _SIZE.size))[0]

    def _read_exact(self, fp: BinaryIO, size: int) -> bytes:
        try:
            data = fp.read(size)
        except OSError as e:
            raise LedgerSnapshotError(f"Failed to read dependency snapshot: {e}") from e

        if data is None or len(data) != size:
            raise LedgerSnapshotError("Dependency snapshot is truncated")

        return data
