"""
Content-addressed object store for BOM documents.

Documents are stored the way Git lays out its object database:

    <root>/objects/gitoid_blob_sha1/<first 2 hex>/<remaining hex>

The root may be relative or absolute and may not exist yet; every missing
level is created. Directories are walked one level at a time through open
directory handles, and all handles taken during a call are released on
every exit path.
"""
import os
import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple, Union

from omnideps.gitoid import HashAlgorithm, is_gitoid

logger = logging.getLogger(__name__)

OBJECTS_DIR = "objects"

DIRECTORY_MODE = 0o700
FILE_MODE = 0o644

_DIR_FLAGS = os.O_RDONLY | getattr(os, 'O_DIRECTORY', 0)
_WRITE_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_TRUNC
_USE_DIR_FD = os.open in os.supports_dir_fd and os.mkdir in os.supports_dir_fd

NAMESPACES = {algorithm.namespace: algorithm for algorithm in HashAlgorithm}


class ObjectStoreError(Exception):
    """Raised when a document cannot be written to the object store."""
    pass


def algorithm_for_namespace(namespace: str) -> HashAlgorithm:
    """
    Map a shard namespace back to its algorithm.

    Raises:
        ObjectStoreError: If the namespace is unknown
    """
    try:
        return NAMESPACES[namespace]
    except KeyError:
        raise ObjectStoreError(f"Unknown shard namespace: {namespace}")


class DirectoryHandles:
    """
    Stack of open directory handles.

    Each level is opened relative to the one below it, creating it first if
    it is missing. Use as a context manager: leaving the block closes every
    handle, whether the walk succeeded or not.
    """

    def __init__(self):
        self._handles: List[Tuple[str, int]] = []
        self.opened_total = 0

    @property
    def open_count(self) -> int:
        """Number of handles currently held."""
        return len(self._handles)

    @property
    def path(self) -> str:
        """Path of the innermost open directory."""
        if not self._handles:
            raise ObjectStoreError("No directory is open")
        return self._handles[-1][0]

    @property
    def fd(self) -> int:
        """Descriptor of the innermost open directory."""
        if not self._handles:
            raise ObjectStoreError("No directory is open")
        return self._handles[-1][1]

    def _push(self, path: str, fd: int):
        self._handles.append((path, fd))
        self.opened_total += 1

    def open_root(self, root: str):
        """
        Open every level of ``root``, creating missing ones.

        An empty root is the current working directory. Absolute roots
        start from ``/``; repeated separators collapse.

        Raises:
            OSError: If a level cannot be created or opened
        """
        if root.startswith('/'):
            self._push('/', os.open('/', _DIR_FLAGS))
        else:
            self._push('.', os.open('.', _DIR_FLAGS))

        for name in root.split('/'):
            if name:
                self.enter(name)

    def enter(self, name: str) -> int:
        """
        Open directory ``name`` inside the innermost handle.

        The directory is created if it does not exist; losing a creation
        race to another process is not an error.

        Raises:
            OSError: If the directory cannot be created or opened
        """
        parent_path, parent_fd = self.path, self.fd
        path = os.path.join(parent_path, name)

        try:
            fd = self._open_dir(name, path, parent_fd)
        except FileNotFoundError:
            try:
                if _USE_DIR_FD:
                    os.mkdir(name, DIRECTORY_MODE, dir_fd=parent_fd)
                else:
                    os.mkdir(path, DIRECTORY_MODE)
                logger.debug(f"Created directory {path}")
            except FileExistsError:
                pass
            fd = self._open_dir(name, path, parent_fd)

        self._push(path, fd)
        return fd

    def enter_all(self, names: Iterable[str]):
        for name in names:
            self.enter(name)

    def write_file(self, name: str, content: bytes) -> str:
        """Write ``name`` inside the innermost handle, truncating it first."""
        path = os.path.join(self.path, name)
        if _USE_DIR_FD:
            fd = os.open(name, _WRITE_FLAGS, FILE_MODE, dir_fd=self.fd)
        else:
            fd = os.open(path, _WRITE_FLAGS, FILE_MODE)

        with os.fdopen(fd, 'wb') as f:
            f.write(content)

        return path

    def release(self):
        """Close every handle, innermost first."""
        while self._handles:
            _, fd = self._handles.pop()
            os.close(fd)

    def _open_dir(self, name: str, path: str, parent_fd: int) -> int:
        if _USE_DIR_FD:
            return os.open(name, _DIR_FLAGS, dir_fd=parent_fd)
        return os.open(path, _DIR_FLAGS)

    def __enter__(self) -> 'DirectoryHandles':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


class ObjectStore:
    """
    Sharded store of BOM documents keyed by gitoid.

    Writing the same gitoid twice writes the same bytes to the same file, so
    concurrent builds sharing a root need no locking.
    """

    def __init__(self, root: Union[str, Path] = "",
                 handles_factory: Callable[[], DirectoryHandles] = DirectoryHandles):
        """
        Initialize object store.

        Args:
            root: Directory holding ``objects/`` (empty: current directory)
            handles_factory: Creates the handle stack used by each write
        """
        self.root = os.fspath(root) if root else ""
        self.handles_factory = handles_factory

    def object_path(self, namespace: str, gitoid: str) -> Path:
        """Location of the object for ``gitoid`` in ``namespace``."""
        return Path(self.root or '.') / OBJECTS_DIR / namespace / gitoid[:2] / gitoid[2:]

    def write(self, namespace: str, gitoid: str, content: bytes) -> Path:
        """
        Write an object, creating the shard directories as needed.

        Raises:
            ObjectStoreError: If the namespace or gitoid is invalid, or any
                directory level cannot be created or opened
        """
        algorithm = algorithm_for_namespace(namespace)
        if not is_gitoid(gitoid, algorithm):
            raise ObjectStoreError(f"Not a {algorithm.value} gitoid: {gitoid!r}")

        with self.handles_factory() as handles:
            try:
                handles.open_root(self.root)
                handles.enter_all([OBJECTS_DIR, namespace, gitoid[:2]])
                handles.write_file(gitoid[2:], content)
            except OSError as e:
                raise ObjectStoreError(
                    f"Cannot write object {gitoid} under {self.root or '.'}: {e}"
                ) from e

        return self.object_path(namespace, gitoid)

    def exists(self, namespace: str, gitoid: str) -> bool:
        """Check if an object exists."""
        return self.object_path(namespace, gitoid).is_file()

    def read(self, namespace: str, gitoid: str) -> Optional[bytes]:
        """Read an object, or None if it is not stored."""
        path = self.object_path(namespace, gitoid)
        if path.is_file():
            return path.read_bytes()
        return None


def persist(root: Union[str, Path], namespace: str, gitoid: str, content: bytes,
            handles_factory: Callable[[], DirectoryHandles] = DirectoryHandles) -> Optional[str]:
    """
    Store a document and report its gitoid.

    Failures are logged and reported as None; provenance is best-effort and
    must not fail the build that produced it.

    Returns:
        The gitoid on success, None otherwise
    """
    store = ObjectStore(root, handles_factory=handles_factory)
    try:
        path = store.write(namespace, gitoid, content)
    except ObjectStoreError as e:
        logger.warning(f"OmniBOR document not written: {e}")
        return None

    logger.info(f"Wrote OmniBOR document {path}")
    return gitoid
