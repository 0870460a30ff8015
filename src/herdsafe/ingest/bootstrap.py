"""Idempotent loading of the shared livestock-health reference document."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from herdsafe.config import EmbeddingCfg, KnowledgeBaseCfg
from herdsafe.db.models import SYSTEM, Document
from herdsafe.db.protocols import KnowledgeStore
from herdsafe.errors import EmbeddingFailed, ValidationFailed
from herdsafe.ingest.pdf import extract_text
from herdsafe.ingest.pipeline import ingest_text
from herdsafe.ingest.segmenter import TextSegmenter
from herdsafe.rag.embedder import EmbeddingClient

logger = logging.getLogger(__name__)


@dataclass
class BootstrapResult:
    """Outcome of KnowledgeBaseBootstrapper.initialize().

    Attributes:
        status: 'already_loaded', 'loaded' or 'failed'.
        document_id: The system document, when one exists.
        chunks: Chunks stored by this run (0 unless status is 'loaded').
        reason: Human-readable explanation for 'failed' and 'already_loaded'.
    """

    status: str
    document_id: str | None = None
    chunks: int = 0
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status != "failed"


class KnowledgeBaseBootstrapper:
    """Load the reference PDF into the store once, as a SYSTEM-owned document.

    Args:
        repo: Document and chunk storage.
        embedder: Embedding client (paced with ``embedding_cfg.bootstrap_delay_ms``).
        segmenter: Shared text segmenter.
        cfg: Location and metadata of the reference document.
        embedding_cfg: Pacing settings.
        base_dir: Directory that a relative ``cfg.path`` is resolved against.
    """

    def __init__(
        self,
        repo: KnowledgeStore,
        embedder: EmbeddingClient,
        segmenter: TextSegmenter,
        cfg: KnowledgeBaseCfg | None = None,
        embedding_cfg: EmbeddingCfg | None = None,
        base_dir: Path | None = None,
    ) -> None:
        self.repo = repo
        self.embedder = embedder
        self.segmenter = segmenter
        self.cfg = cfg or KnowledgeBaseCfg()
        self.embedding_cfg = embedding_cfg or EmbeddingCfg()
        self.base_dir = base_dir or Path.cwd()

    @property
    def source_path(self) -> Path:
        path = Path(self.cfg.path)
        return path if path.is_absolute() else self.base_dir / path

    def find_system_document(self) -> Document | None:
        for doc in self.repo.get_documents_by_owner(SYSTEM):
            if doc.is_system and doc.filename == self.cfg.filename:
                return doc
        return None

    def is_loaded(self) -> bool:
        return self.find_system_document() is not None

    def initialize(self, on_progress: Callable[[int], None] | None = None) -> BootstrapResult:
        """Ingest the reference document unless it is already present.

        Never raises for a missing file, empty text, total embedding failure
        or a concurrent bootstrap; those come back as a BootstrapResult.
        """
        existing = self.find_system_document()
        if existing is not None:
            logger.info("Knowledge base already loaded (%d chunks)", existing.total_chunks)
            return BootstrapResult(
                status="already_loaded",
                document_id=existing.id,
                reason="Knowledge base already initialized.",
            )

        path = self.source_path
        if not path.is_file():
            logger.error("Knowledge base file not found: %s", path)
            return BootstrapResult(
                status="failed", reason=f"Knowledge base file not found: {path}"
            )

        logger.info("Initializing knowledge base from %s", path)
        try:
            text = extract_text(path)
            result = ingest_text(
                self.repo,
                self.embedder,
                self.segmenter,
                text=text,
                owner=SYSTEM,
                filename=self.cfg.filename,
                original_name=self.cfg.title,
                file_size=path.stat().st_size,
                description=self.cfg.description,
                is_system=True,
                inter_delay_ms=self.embedding_cfg.bootstrap_delay_ms,
                on_progress=on_progress,
            )
        except (ValidationFailed, EmbeddingFailed) as exc:
            logger.error("Knowledge base initialization failed: %s", exc)
            return BootstrapResult(status="failed", reason=str(exc))
        except ValueError as exc:
            # Embedding dimension differs from the vectors already stored.
            logger.error("Knowledge base initialization failed: %s", exc)
            return BootstrapResult(status="failed", reason=f"Could not store embeddings: {exc}")
        except sqlite3.IntegrityError:
            # Another process inserted the system document first.
            existing = self.find_system_document()
            return BootstrapResult(
                status="already_loaded",
                document_id=existing.id if existing else None,
                reason="Knowledge base was initialized concurrently.",
            )

        logger.info("Knowledge base initialized with %d chunks", result.chunks_created)
        return BootstrapResult(
            status="loaded",
            document_id=result.document.id,
            chunks=result.chunks_created,
        )
