"""
Build provenance recorder.

Drives the BOM pipeline for one build step:

    ledger deps -> gitoids -> BOM document -> object store -> metadata

Provenance is best-effort. Nothing here raises for I/O problems; a failed
document or metadata write shows up as None in the BuildRecord and a log
line, and the build that asked for it carries on.
"""
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from omnideps.bom.document import BomDocument, build_document
from omnideps.bom.metadata import BuildContext, record_metadata
from omnideps.bom.note import build_note_section
from omnideps.bom.store import persist
from omnideps.config import OmniborConfig
from omnideps.gitoid import HashAlgorithm, gitoid_uri
from omnideps.ledger import DependencyLedger

logger = logging.getLogger(__name__)


class BuildRecord(BaseModel):
    """Outcome of recording one build step."""
    documents: Dict[HashAlgorithm, Optional[str]] = Field(default_factory=dict, description="Document gitoid per algorithm, None if not written")
    metadata_paths: Dict[HashAlgorithm, Optional[str]] = Field(default_factory=dict, description="Metadata file per algorithm, None if not written")
    skipped: Dict[HashAlgorithm, List[str]] = Field(default_factory=dict, description="Unreadable dependencies per algorithm")

    @property
    def complete(self) -> bool:
        """True when every selected algorithm produced a stored document."""
        return bool(self.documents) and all(self.documents.values())

    def note_section(self, byteorder: str = 'little') -> bytes:
        """``.note.omnibor`` contents for the documents that were stored."""
        return build_note_section({a: g for a, g in self.documents.items() if g}, byteorder)


class BuildRecorder:
    """Records BOM documents and metadata for a build step."""

    def __init__(self, config: OmniborConfig):
        self.config = config

    def build_documents(self, ledger: DependencyLedger) -> Dict[HashAlgorithm, BomDocument]:
        """Build (without storing) one document per configured algorithm."""
        return {
            algorithm: build_document(ledger.deps, algorithm)
            for algorithm in self.config.algorithms
        }

    def record(self, ledger: DependencyLedger, context: BuildContext) -> BuildRecord:
        """
        Write BOM documents and metadata for everything in ``ledger``.

        Args:
            ledger: Dependencies the build step read
            context: Output and mode of the build step

        Returns:
            BuildRecord describing what was written
        """
        result = BuildRecord()
        root = self.config.root_dir
        primary = ledger.deps[0] if ledger.deps else None

        for algorithm, document in self.build_documents(ledger).items():
            result.skipped[algorithm] = list(document.skipped)

            gitoid = persist(root, algorithm.namespace, document.gitoid, document.content)
            result.documents[algorithm] = gitoid
            if gitoid is None:
                result.metadata_paths[algorithm] = None
                continue

            logger.info(f"Recorded {gitoid_uri(gitoid, algorithm)} for {len(document.records)} dependencies")

            path = record_metadata(root, algorithm.namespace, context, document.records, primary)
            result.metadata_paths[algorithm] = str(path) if path else None

        return result


def record_build(ledger: DependencyLedger, context: BuildContext,
                 config: Optional[OmniborConfig] = None) -> Optional[BuildRecord]:
    """
    Record provenance if it is enabled.

    Returns:
        BuildRecord, or None when recording is disabled or the environment
        configuration is invalid
    """
    if config is None:
        try:
            config = OmniborConfig.from_env()
        except ValueError as e:
            logger.warning(f"OmniBOR recording skipped, bad configuration: {e}")
            return None

    if not config.enabled:
        logger.debug("OmniBOR recording disabled")
        return None

    return BuildRecorder(config).record(ledger, context)
