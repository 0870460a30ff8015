"""Cosine similarity ranking over stored chunk embeddings."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from herdsafe.db.models import Chunk


@dataclass
class ScoredChunk:
    """A retrieved chunk together with its similarity to the query.

    Attributes:
        chunk: The Chunk instance from the database.
        similarity: Cosine similarity in [-1, 1] (higher = more relevant).
    """

    chunk: Chunk
    similarity: float


def cosine_similarity(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """Standard cosine similarity; 0.0 for absent, mismatched or zero-norm vectors."""
    if not a or not b or len(a) != len(b):
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / math.sqrt(norm_a * norm_b)


def find_similar(
    query_vector: Sequence[float],
    chunks: list[Chunk],
    top_k: int,
) -> list[ScoredChunk]:
    """Rank *chunks* by similarity to *query_vector*, best-first.

    Chunks without an embedding are skipped. Equal scores keep their input
    order (sorted() is stable, including with reverse=True).
    """
    if top_k <= 0:
        return []

    scored = [
        ScoredChunk(chunk=chunk, similarity=cosine_similarity(query_vector, chunk.embedding))
        for chunk in chunks
        if chunk.embedding
    ]
    scored.sort(key=lambda s: s.similarity, reverse=True)
    return scored[:top_k]
