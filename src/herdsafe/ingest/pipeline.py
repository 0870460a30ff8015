"""Shared ingestion pipeline: text → segments → embeddings → Document + Chunks.

Used by user uploads (``herdsafe docs upload``) and by the knowledge-base
bootstrapper. Chunks whose embedding failed are dropped together with
their text; the survivors keep their original ``chunk_index``.
"""

from __future__ import annotations

import logging
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from herdsafe.db.models import Chunk, Document, Owner, User
from herdsafe.db.protocols import KnowledgeStore
from herdsafe.errors import EmbeddingFailed, Forbidden, NotFound, ValidationFailed
from herdsafe.ingest.pdf import extract_text, validate_upload
from herdsafe.ingest.segmenter import TextSegmenter
from herdsafe.rag.embedder import EmbeddingClient

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    document: Document
    chunks_created: int
    chunks_failed: int


def ingest_text(
    repo: KnowledgeStore,
    embedder: EmbeddingClient,
    segmenter: TextSegmenter,
    *,
    text: str,
    owner: Owner,
    filename: str,
    original_name: str,
    file_size: int,
    description: str = "",
    is_system: bool = False,
    inter_delay_ms: int = 1000,
    on_progress: Callable[[int], None] | None = None,
) -> IngestResult:
    """Segment, embed and persist *text* as one Document.

    Raises:
        ValidationFailed: The text produced no segments.
        ServiceUnavailable: No embedding credential configured.
        EmbeddingFailed: Every embedding call failed.
        sqlite3.IntegrityError: A system document with *filename* already exists.
    """
    segments = segmenter.segment(text)
    if not segments:
        raise ValidationFailed(f"No text content found in '{original_name}'.")
    logger.info("Created %d chunks from %s", len(segments), original_name)

    vectors = embedder.embed_batch(
        [s.text for s in segments], inter_delay_ms=inter_delay_ms, on_progress=on_progress
    )
    kept = [(seg, vec) for seg, vec in zip(segments, vectors) if vec is not None]
    if not kept:
        raise EmbeddingFailed(f"Failed to generate any embeddings for '{original_name}'.")

    document = Document(
        id=str(uuid.uuid4()),
        owner=owner,
        filename=filename,
        original_name=original_name,
        file_size=file_size,
        total_chunks=len(kept),
        description=description,
        is_system=is_system,
    )
    repo.create_document(document)

    chunks = [
        Chunk(
            document_id=document.id,
            chunk_index=seg.index,
            text=seg.text,
            embedding=vec,
            token_count=segmenter.estimate_tokens(seg.text),
        )
        for seg, vec in kept
    ]
    try:
        repo.create_chunks_batch(chunks, embedder.model)
    except Exception:
        repo.delete_document(document.id)
        raise

    failed = len(segments) - len(kept)
    logger.info(
        "Stored document %s with %d chunks (%d failed)", document.id, len(kept), failed
    )
    return IngestResult(document=document, chunks_created=len(kept), chunks_failed=failed)


def stored_name(original_name: str) -> str:
    """Unique on-disk name for an upload, keeping its extension."""
    suffix = Path(original_name).suffix.lower() or ".pdf"
    return f"{uuid.uuid4().hex}{suffix}"


def ingest_upload(
    repo: KnowledgeStore,
    embedder: EmbeddingClient,
    segmenter: TextSegmenter,
    *,
    path: Path,
    owner: User,
    uploads_dir: Path,
    max_bytes: int,
    description: str = "",
    inter_delay_ms: int = 1000,
    on_progress: Callable[[int], None] | None = None,
) -> IngestResult:
    """Validate a PDF upload, store a copy and ingest its text.

    The stored copy is removed again if anything after the copy fails.

    Raises:
        ValidationFailed: Rejected upload or no extractable text.
        ServiceUnavailable: No embedding credential configured.
        EmbeddingFailed: Every embedding call failed.
    """
    size = validate_upload(path, max_bytes)

    uploads_dir.mkdir(parents=True, exist_ok=True)
    target = uploads_dir / stored_name(path.name)
    shutil.copyfile(path, target)
    logger.debug("Copied upload %s to %s", path, target)

    try:
        text = extract_text(target)
        if not text.strip():
            raise ValidationFailed(f"No text content found in '{path.name}'.")
        return ingest_text(
            repo,
            embedder,
            segmenter,
            text=text,
            owner=owner,
            filename=target.name,
            original_name=path.name,
            file_size=size,
            description=description,
            is_system=False,
            inter_delay_ms=inter_delay_ms,
            on_progress=on_progress,
        )
    except Exception:
        target.unlink(missing_ok=True)
        raise


def remove_document(
    repo: KnowledgeStore,
    document_id: str,
    acting_user: User,
    uploads_dir: Path,
) -> int:
    """Delete a user's document, its chunks and its stored file.

    Returns the number of chunks deleted.

    Raises:
        NotFound: No document with *document_id*.
        Forbidden: The document belongs to someone else (or to the system).
    """
    document = repo.get_document(document_id)
    if document is None:
        raise NotFound(f"Document '{document_id}' not found.")
    if document.owner != acting_user:
        raise Forbidden(f"Document '{document_id}' is not owned by '{acting_user.id}'.")

    deleted = repo.delete_chunks_by_document(document_id)
    repo.delete_document(document_id)

    stored = uploads_dir / document.filename
    if stored.exists():
        stored.unlink()
    else:
        logger.warning("Stored file for document %s not found: %s", document_id, stored)

    logger.info("Deleted document %s (%d chunks)", document_id, deleted)
    return deleted
