"""Embedding client: single calls and rate-paced sequential batches."""

from __future__ import annotations

import logging
import time
from typing import Callable

from herdsafe.errors import EmbeddingFailed
from herdsafe.rag import llm_client

logger = logging.getLogger(__name__)

_PROGRESS_EVERY = 5


class EmbeddingClient:
    """Turn text into fixed-length vectors through an external model.

    Batches run strictly one call at a time with a pause in between; the
    external quota is the constraint, so do not parallelise this.

    Args:
        model: LiteLLM embedding model string.
        timeout: Seconds per call before it counts as failed.
        num_retries: LiteLLM transport retries per call.
        sleep: Pause function (seconds); injectable for tests.
    """

    def __init__(
        self,
        model: str,
        *,
        timeout: float = 30.0,
        num_retries: int = 0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.model = model
        self.timeout = timeout
        self.num_retries = num_retries
        self._sleep = sleep

    def embed(self, text: str) -> list[float]:
        """Embed one text.

        Raises:
            ServiceUnavailable: No credential configured for the model.
            EmbeddingFailed: Transport/model error or timeout.
        """
        return llm_client.embed(
            self.model, text, timeout=self.timeout, num_retries=self.num_retries
        )

    def embed_batch(
        self,
        texts: list[str],
        inter_delay_ms: int = 1000,
        on_progress: Callable[[int], None] | None = None,
    ) -> list[list[float] | None]:
        """Embed *texts* sequentially, one slot per input.

        A failed item leaves ``None`` in its slot; the rest of the batch still
        runs. Callers must drop ``None`` entries together with their source
        items.

        Raises:
            ServiceUnavailable: No credential configured (checked once, up front).
        """
        llm_client.validate_api_key(self.model)
        total = len(texts)
        logger.info("Generating embeddings for %d chunks...", total)

        embeddings: list[list[float] | None] = []
        for i, text in enumerate(texts):
            try:
                embeddings.append(self.embed(text))
            except EmbeddingFailed as exc:
                logger.warning("Failed to generate embedding for chunk %d: %s", i, exc)
                embeddings.append(None)

            if (i + 1) % _PROGRESS_EVERY == 0:
                logger.info("Progress: %d/%d embeddings generated", i + 1, total)
            if on_progress is not None:
                on_progress(i)

            if i < total - 1 and inter_delay_ms > 0:
                self._sleep(inter_delay_ms / 1000)

        succeeded = sum(1 for e in embeddings if e is not None)
        logger.info("Generated %d/%d embeddings", succeeded, total)
        return embeddings
