"""RAG answering engine: grounded Q&A and symptom-based diagnosis.

Pipeline (answer):
  1. No candidate chunks → fixed "no documents" reply, no external calls.
  2. Embed the question, rank candidates by cosine similarity, keep top-K.
  3. Build a grounded prompt and run the generation chain
     (primary model → fallback model with a simpler prompt).
  4. Return the answer with truncated source previews.

Pipeline (diagnose):
  Same retrieval with a fixed diagnostic query and K=5, a structured
  prompt, and a chain ending in a synthesised default so diagnosis never
  fails on generation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from herdsafe.config import GenerationCfg, RetrievalCfg
from herdsafe.db.models import Chunk
from herdsafe.errors import GenerationFailed, ServiceUnavailable, ValidationFailed
from herdsafe.rag import prompts
from herdsafe.rag.chain import GenerationChain, GenerationStep
from herdsafe.rag.diagnosis import (
    Diagnosis,
    parse_diagnosis,
    synthesize_response,
    unknown_diagnosis,
    wrap_fallback_output,
)
from herdsafe.rag.embedder import EmbeddingClient
from herdsafe.rag.similarity import ScoredChunk, find_similar

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 200


@dataclass
class SourceRef:
    """Provenance for one context chunk; only a preview of the text is exposed."""

    preview: str
    similarity: float
    chunk_id: int | None


@dataclass
class Answer:
    answer: str
    sources: list[SourceRef] = field(default_factory=list)
    model: str | None = None


def source_preview(text: str) -> str:
    return text[:_PREVIEW_CHARS] + "..."


class RagEngine:
    """Answer questions and diagnose symptoms from stored document chunks.

    Args:
        embedder: Client used to embed questions and diagnostic queries.
        generation: Model names and call limits for the generation chains.
        retrieval: Default top-K values.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        generation: GenerationCfg | None = None,
        retrieval: RetrievalCfg | None = None,
    ) -> None:
        self.embedder = embedder
        self.generation = generation or GenerationCfg()
        self.retrieval = retrieval or RetrievalCfg()

    # ------------------------------------------------------------------
    # Q&A
    # ------------------------------------------------------------------

    def answer(
        self,
        question: str,
        candidate_chunks: list[Chunk],
        top_k: int | None = None,
    ) -> Answer:
        """Answer *question* using only the most similar candidate chunks.

        Raises:
            ValidationFailed: Blank question.
            ServiceUnavailable: No credential for the embedding or generation model.
            EmbeddingFailed: The question could not be embedded.
            GenerationFailed: Primary and fallback models both failed.
        """
        question = (question or "").strip()
        if not question:
            raise ValidationFailed("Question is required.")

        if not candidate_chunks:
            return Answer(answer=prompts.NO_DOCUMENTS_MESSAGE)

        k = top_k if top_k is not None else self.retrieval.top_k
        logger.info("Processing question: %s", question)
        similar = self._retrieve(question, candidate_chunks, k)
        if not similar:
            return Answer(answer=prompts.INSUFFICIENT_INFORMATION_MESSAGE)

        logger.info(
            "Found %d relevant chunks (similarity scores: %s)",
            len(similar),
            ", ".join(f"{s.similarity:.3f}" for s in similar),
        )
        texts = [s.chunk.text for s in similar]
        gen = self.generation
        chain = GenerationChain(
            [
                GenerationStep(
                    name="primary",
                    model=gen.answer_model,
                    prompt=prompts.build_answer_prompt(question, texts),
                    max_tokens=500,
                    temperature=0.7,
                    top_p=0.95,
                ),
                GenerationStep(
                    name="fallback",
                    model=gen.answer_fallback_model,
                    prompt=prompts.build_answer_fallback_prompt(question, texts),
                    max_tokens=300,
                    temperature=0.7,
                ),
            ],
            tolerate=(GenerationFailed,),
            timeout=gen.timeout,
            num_retries=gen.num_retries,
        )
        result = chain.run()
        logger.info("Answer generated with %s model", result.step)

        return Answer(
            answer=result.text,
            sources=[
                SourceRef(
                    preview=source_preview(s.chunk.text),
                    similarity=s.similarity,
                    chunk_id=s.chunk.id,
                )
                for s in similar
            ],
            model=result.model,
        )

    # ------------------------------------------------------------------
    # Diagnosis
    # ------------------------------------------------------------------

    def diagnose(self, symptoms: Sequence[str], candidate_chunks: list[Chunk]) -> Diagnosis:
        """Diagnose the most likely disease for *symptoms*.

        Generation never raises: the chain ends in a deterministic
        low-confidence response built from the symptoms.

        Raises:
            ServiceUnavailable: No credential for the embedding model.
            EmbeddingFailed: The diagnostic query could not be embedded.
        """
        cleaned = [s.strip() for s in symptoms if s and s.strip()]
        if not cleaned or not candidate_chunks:
            return unknown_diagnosis()

        logger.info("Diagnosing disease from symptoms: %s", ", ".join(cleaned))
        query = prompts.build_diagnostic_query(cleaned)
        similar = self._retrieve(query, candidate_chunks, self.retrieval.diagnosis_top_k)
        if not similar:
            return unknown_diagnosis()

        logger.info("Found %d relevant knowledge chunks", len(similar))
        texts = [s.chunk.text for s in similar]
        gen = self.generation
        chain = GenerationChain(
            [
                GenerationStep(
                    name="primary",
                    model=gen.diagnosis_model,
                    prompt=prompts.build_diagnosis_prompt(cleaned, texts),
                    max_tokens=300,
                    temperature=0.3,
                    top_p=0.9,
                ),
                GenerationStep(
                    name="fallback",
                    model=gen.diagnosis_fallback_model,
                    prompt=prompts.build_diagnosis_fallback_prompt(cleaned),
                    max_tokens=100,
                    temperature=0.7,
                    shape=wrap_fallback_output,
                ),
            ],
            default=lambda: synthesize_response(cleaned),
            tolerate=(GenerationFailed, ServiceUnavailable),
            timeout=gen.timeout,
            num_retries=gen.num_retries,
        )
        result = chain.run()

        diagnosis = parse_diagnosis(result.text)
        logger.info(
            "Diagnosis: %s (%s confidence, %s)",
            diagnosis.disease,
            diagnosis.confidence.value,
            result.step,
        )
        return diagnosis

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def _retrieve(self, query: str, chunks: list[Chunk], top_k: int) -> list[ScoredChunk]:
        query_vector = self.embedder.embed(query)
        return find_similar(query_vector, chunks, top_k)
