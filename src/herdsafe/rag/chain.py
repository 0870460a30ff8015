"""Ordered generation fallback chain.

Each step names a model, a prompt and sampling parameters. Steps are tried
in order; the first one that produces text wins. An optional default
produces the result when every step fails, otherwise GenerationFailed is
raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from herdsafe.errors import GenerationFailed, HerdsafeError
from herdsafe.rag import llm_client

logger = logging.getLogger(__name__)


def _identity(text: str) -> str:
    return text


@dataclass
class GenerationStep:
    """One model attempt in a fallback chain.

    Attributes:
        name: Label used in logs and on the result ('primary', 'fallback', ...).
        model: LiteLLM model string.
        prompt: Full prompt text.
        max_tokens: Output token bound.
        temperature: Sampling temperature.
        top_p: Nucleus sampling bound (None to leave the provider default).
        shape: Post-processing applied to the raw model output.
    """

    name: str
    model: str
    prompt: str
    max_tokens: int
    temperature: float
    top_p: float | None = None
    shape: Callable[[str], str] = _identity


@dataclass
class ChainResult:
    text: str
    step: str
    model: str | None = None


class GenerationChain:
    """Run GenerationSteps in order until one succeeds.

    Args:
        steps: Attempts, in priority order.
        default: Called when every step failed; its text is the result.
        tolerate: Errors that move the chain to the next step. Anything else
            propagates immediately.
        timeout: Seconds per call.
        num_retries: LiteLLM transport retries per call.
    """

    def __init__(
        self,
        steps: list[GenerationStep],
        *,
        default: Callable[[], str] | None = None,
        tolerate: tuple[type[HerdsafeError], ...] = (GenerationFailed,),
        timeout: float = 60.0,
        num_retries: int = 0,
    ) -> None:
        self.steps = steps
        self.default = default
        self.tolerate = tolerate
        self.timeout = timeout
        self.num_retries = num_retries

    def run(self) -> ChainResult:
        """Return the first successful step's output.

        Raises:
            GenerationFailed: Every step failed and no default was given.
        """
        errors: list[str] = []
        for step in self.steps:
            try:
                raw = llm_client.complete(
                    step.model,
                    step.prompt,
                    max_tokens=step.max_tokens,
                    temperature=step.temperature,
                    top_p=step.top_p,
                    timeout=self.timeout,
                    num_retries=self.num_retries,
                )
            except self.tolerate as exc:
                logger.warning("%s model '%s' failed: %s", step.name, step.model, exc)
                errors.append(f"{step.name}: {exc}")
                continue
            return ChainResult(text=step.shape(raw), step=step.name, model=step.model)

        if self.default is not None:
            logger.warning("All generation models failed; using default response")
            return ChainResult(text=self.default(), step="default")

        raise GenerationFailed(f"All generation models failed: {'; '.join(errors)}")
