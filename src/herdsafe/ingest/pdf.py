"""PDF upload validation and text extraction via pypdf.

This is the file ingestion boundary: uploads are rejected here (wrong type,
too large, unreadable) before any text reaches the segmenter.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pypdf
from pypdf.errors import PyPdfError

from herdsafe.errors import ValidationFailed

logger = logging.getLogger(__name__)

_PDF_MAGIC = b"%PDF"
_ACCEPTED_SUFFIXES = {".pdf"}


def validate_upload(path: Path, max_bytes: int) -> int:
    """Check that *path* is a PDF within the size cap. Returns the byte size.

    Raises:
        ValidationFailed: Missing file, wrong extension or signature, empty or
            oversized file.
    """
    if not path.is_file():
        raise ValidationFailed(f"No file found at '{path}'.")
    if path.suffix.lower() not in _ACCEPTED_SUFFIXES:
        raise ValidationFailed(f"Only PDF files are allowed, got '{path.name}'.")

    size = path.stat().st_size
    if size == 0:
        raise ValidationFailed(f"'{path.name}' is empty.")
    if size > max_bytes:
        raise ValidationFailed(
            f"'{path.name}' is {size / (1024 * 1024):.1f} MB; "
            f"the limit is {max_bytes / (1024 * 1024):.0f} MB."
        )

    with path.open("rb") as fh:
        if fh.read(len(_PDF_MAGIC)) != _PDF_MAGIC:
            raise ValidationFailed(f"'{path.name}' is not a valid PDF document.")
    return size


def extract_text(path: Path | str) -> str:
    """Extract all page text from the PDF at *path*.

    Pages that yield no text (scanned images, etc.) are skipped.

    Raises:
        ValidationFailed: If pypdf cannot parse the file.
    """
    logger.info("Reading PDF file: %s", path)
    try:
        reader = pypdf.PdfReader(str(path))
        parts: list[str] = []
        for page in reader.pages:
            page_text = page.extract_text() or ""
            stripped = page_text.strip()
            if stripped:
                parts.append(stripped)
    except (PyPdfError, KeyError, IndexError, TypeError, ValueError) as exc:
        raise ValidationFailed(f"Failed to extract text from PDF '{path}': {exc}") from exc

    text = "\n\n".join(parts)
    logger.info("Extracted %d characters from %s", len(text), path)
    return text
