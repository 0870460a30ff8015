"""Sentence-aware text segmenter with character overlap.

Window walk over normalised text: take ``chunk_size`` characters, prefer to
end the window just after the last ". " or newline if that point lies past
70 % of the window, then step back ``overlap`` characters for the next one.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

_WHITESPACE_RE = re.compile(r"\s+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")

# A soft break is only taken past this fraction of the window.
_MIN_BREAK_RATIO = 0.7


@dataclass(frozen=True)
class Segment:
    """One chunk of normalised text.

    Attributes:
        text: The stripped chunk text.
        index: Zero-based position in the sequence.
        start: Offset of the raw window in the normalised text.
        end: Offset just past the raw window.
    """

    text: str
    index: int
    start: int
    end: int


class TextSegmenter:
    """Split extracted document text into overlapping, sentence-aware chunks.

    Args:
        chunk_size: Target window size in characters.
        overlap: Characters shared between consecutive windows.
    """

    def __init__(self, chunk_size: int = 1500, overlap: int = 200) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        self.chunk_size = chunk_size
        self.overlap = overlap

    @staticmethod
    def normalize(text: str) -> str:
        """Collapse whitespace runs to one space and 3+ newlines to two."""
        cleaned = _WHITESPACE_RE.sub(" ", text)
        cleaned = _BLANK_LINES_RE.sub("\n\n", cleaned)
        return cleaned.strip()

    @staticmethod
    def estimate_tokens(text: str) -> int:
        """Approximate token count: ceil(characters / 4).

        Downstream consumers assume exactly this approximation; do not swap
        in a real tokenizer.
        """
        return math.ceil(len(text) / 4)

    def segment(self, text: str) -> list[Segment]:
        """Normalise *text* and return its ordered segments."""
        cleaned = self.normalize(text)
        length = len(cleaned)
        segments: list[Segment] = []
        start = 0

        while start < length:
            window_start = start
            end = min(start + self.chunk_size, length)
            window = cleaned[start:end]

            if end < length:
                break_point = max(window.rfind(". "), window.rfind("\n"))
                if break_point > self.chunk_size * _MIN_BREAK_RATIO:
                    end = start + break_point + 1
                    window = window[: break_point + 1]
            start = end

            stripped = window.strip()
            if stripped:
                segments.append(
                    Segment(text=stripped, index=len(segments), start=window_start, end=end)
                )

            if start < length:
                # Always move forward, even when overlap exceeds the soft-break advance.
                start = max(window_start + 1, start - self.overlap)

        return segments
