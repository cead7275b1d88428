"""
BOM document builder.

A BOM document lists the gitoids of every file a build step read, one
``blob <gitoid>`` line each, sorted by gitoid so the text does not depend on
discovery order. The document is itself identified by its gitoid.
"""
import logging
from typing import Iterable, List, Tuple

from pydantic import BaseModel, Field

from omnideps.gitoid import HashAlgorithm, compute_gitoid, gitoid_for_file

logger = logging.getLogger(__name__)


class DependencyRecord(BaseModel):
    """A dependency path and the gitoid of its contents."""
    path: str
    gitoid: str


class BomDocument(BaseModel):
    """A rendered BOM document and its own gitoid."""
    algorithm: HashAlgorithm
    records: List[DependencyRecord] = Field(default_factory=list, description="Records in document order")
    skipped: List[str] = Field(default_factory=list, description="Dependencies that could not be read")
    text: str
    gitoid: str

    @property
    def content(self) -> bytes:
        """Exact bytes the gitoid was computed over."""
        return self.text.encode('utf-8')


def hash_dependencies(paths: Iterable[str], algorithm: HashAlgorithm) -> Tuple[List[DependencyRecord], List[str]]:
    """
    Hash every dependency file.

    Returns:
        Tuple of (records in input order, paths that could not be read)
    """
    records = []
    skipped = []

    for path in paths:
        gitoid = gitoid_for_file(path, algorithm)
        if gitoid is None:
            skipped.append(path)
            continue
        records.append(DependencyRecord(path=path, gitoid=gitoid))

    return records, skipped


def render_document(gitoids: Iterable[str], algorithm: HashAlgorithm) -> str:
    """Render the document text for gitoids that are already sorted."""
    lines = [algorithm.header]
    for gitoid in gitoids:
        lines.append(f"blob {gitoid}\n")
    return ''.join(lines)


def build_document(paths: Iterable[str], algorithm: HashAlgorithm) -> BomDocument:
    """
    Build the BOM document for a set of dependency files.

    Unreadable files are left out of the document rather than failing the
    build; they are reported in ``BomDocument.skipped``.

    Args:
        paths: Dependency file paths, in any order
        algorithm: Hash algorithm for every gitoid in the document

    Returns:
        BomDocument with records sorted by gitoid
    """
    records, skipped = hash_dependencies(paths, algorithm)

    for path in skipped:
        logger.warning(f"Dependency {path} could not be read; left out of {algorithm.value} BOM")

    records.sort(key=lambda record: record.gitoid)

    text = render_document((record.gitoid for record in records), algorithm)
    gitoid = compute_gitoid(text.encode('utf-8'), algorithm)

    return BomDocument(
        algorithm=algorithm,
        records=records,
        skipped=skipped,
        text=text,
        gitoid=gitoid
    )
