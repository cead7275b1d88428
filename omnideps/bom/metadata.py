"""
Provenance metadata recorder.

Next to each BOM document a metadata record binds the build output to the
inputs it was built from:

    <root>/metadata/gnu/gitoid_blob_sha1/<output basename>.metadata

    outfile:  path: /abs/path/to/foo.o
    infile: <gitoid> path: /abs/path/to/foo.c
    ...
    build_cmd: <command>
"""
import os
import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from pydantic import BaseModel, Field

from omnideps.bom.document import DependencyRecord
from omnideps.bom.store import DirectoryHandles, algorithm_for_namespace, ObjectStoreError

logger = logging.getLogger(__name__)

METADATA_DIR = "metadata"
PRODUCER_DIR = "gnu"
METADATA_SUFFIX = ".metadata"

NOT_AVAILABLE = "not available"

# Output name a link step uses when none is given
LINK_DEFAULT_OUTPUT = "a.out"


class MetadataError(Exception):
    """Raised when a metadata record cannot be written."""
    pass


class CompileMode(str, Enum):
    """How far the build step goes, which decides its default output."""
    PREPROCESS = "preprocess"
    ASSEMBLE = "assemble"
    COMPILE = "compile"
    LINK = "link"


class BuildContext(BaseModel):
    """What the build driver knows about the step being recorded."""
    output_path: Optional[str] = Field(None, description="Explicit output file, if one was given")
    mode: CompileMode = CompileMode.COMPILE
    build_command: str = Field("", description="Command line recorded in the build_cmd field")


def resolve_output_name(context: BuildContext, first_dependency: Optional[str]) -> Optional[str]:
    """
    Work out the output file a build step produces.

    An explicit output wins. Otherwise compile and assemble steps name the
    output after the primary source (``foo.c`` -> ``foo.o`` / ``foo.s``),
    a link step produces ``a.out`` and a preprocess-only step produces no
    file at all (None).
    """
    if context.output_path:
        return context.output_path

    if context.mode is CompileMode.LINK:
        return LINK_DEFAULT_OUTPUT

    if context.mode is CompileMode.PREPROCESS or not first_dependency:
        return None

    base = os.path.basename(first_dependency)
    dot = base.rfind('.')
    stem = base[:dot] if dot != -1 else base
    suffix = ".s" if context.mode is CompileMode.ASSEMBLE else ".o"
    return stem + suffix


def _resolve_strict(path: str) -> Optional[str]:
    try:
        return str(Path(path).resolve(strict=True))
    except (OSError, RuntimeError, ValueError):
        return None


def render_metadata(output_path: str, records: Iterable[DependencyRecord], build_command: str = "") -> str:
    """
    Render a metadata record.

    The output usually does not exist yet when provenance is recorded, in
    which case its path is reported as ``not available``. Inputs that cannot
    be resolved fall back to a lexical absolute path.
    """
    outfile = _resolve_strict(output_path) or NOT_AVAILABLE
    lines = [f"outfile:  path: {outfile}\n"]

    for record in records:
        infile = _resolve_strict(record.path) or os.path.abspath(record.path)
        lines.append(f"infile: {record.gitoid} path: {infile}\n")

    lines.append(f"build_cmd: {build_command}\n")
    return ''.join(lines)


class MetadataRecorder:
    """Writes metadata records under ``<root>/metadata/gnu/<namespace>/``."""

    def __init__(self, root: Union[str, Path] = "",
                 handles_factory: Callable[[], DirectoryHandles] = DirectoryHandles):
        self.root = os.fspath(root) if root else ""
        self.handles_factory = handles_factory

    def metadata_path(self, namespace: str, output_path: str) -> Path:
        name = os.path.basename(output_path) + METADATA_SUFFIX
        return Path(self.root or '.') / METADATA_DIR / PRODUCER_DIR / namespace / name

    def write(self, namespace: str, output_path: str, records: Iterable[DependencyRecord],
              build_command: str = "") -> Path:
        """
        Write the metadata record for ``output_path``.

        Args:
            namespace: Shard namespace of the BOM the records came from
            output_path: Build output the record describes
            records: Dependency records in BOM document order
            build_command: Value of the build_cmd field

        Raises:
            MetadataError: If the namespace or output name is invalid, or the
                directory tree cannot be created
        """
        try:
            algorithm_for_namespace(namespace)
        except ObjectStoreError as e:
            raise MetadataError(str(e)) from e

        name = os.path.basename(output_path)
        if not name:
            raise MetadataError(f"Output path has no file name: {output_path!r}")

        content = render_metadata(output_path, records, build_command)

        with self.handles_factory() as handles:
            try:
                handles.open_root(self.root)
                handles.enter_all([METADATA_DIR, PRODUCER_DIR, namespace])
                handles.write_file(name + METADATA_SUFFIX, content.encode('utf-8'))
            except (OSError, ValueError) as e:
                raise MetadataError(
                    f"Cannot write metadata for {name} under {self.root or '.'}: {e}"
                ) from e

        return self.metadata_path(namespace, output_path)


def record_metadata(root: Union[str, Path], namespace: str, context: BuildContext,
                    records: Iterable[DependencyRecord],
                    primary_source: Optional[str]) -> Optional[Path]:
    """
    Record provenance for a build output, best-effort.

    Args:
        root: Directory holding ``metadata/``
        namespace: Shard namespace of the BOM document
        context: Build driver context (output, mode, command)
        records: Dependency records in BOM document order
        primary_source: First dependency the build read, in ledger order.
            Names the default output; records are sorted by gitoid so the
            first record is not necessarily the primary source.

    Returns:
        Path of the metadata file, or None if nothing was written
    """
    records = list(records)
    output = resolve_output_name(context, primary_source)

    if output is None:
        logger.debug("Build step produces no output file; no metadata recorded")
        return None

    try:
        return MetadataRecorder(root).write(namespace, output, records, context.build_command)
    except MetadataError as e:
        logger.warning(f"OmniBOR metadata not written: {e}")
        return None
