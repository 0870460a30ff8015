"""LiteLLM client wrapper with API key validation and explicit timeouts.

All embedding and generation calls route through this module. Failures are
translated into the herdsafe error taxonomy so callers never handle provider
exceptions directly.
"""

from __future__ import annotations

import os

import litellm

from herdsafe.errors import EmbeddingFailed, GenerationFailed, ServiceUnavailable

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "huggingface": "HUGGINGFACE_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def provider_of(model: str) -> str:
    return model.split("/")[0].lower() if "/" in model else "openai"


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        ServiceUnavailable: If the required key is missing from environment.
    """
    provider = provider_of(model)
    env_var = _PROVIDER_ENV.get(provider, f"{provider.upper()}_API_KEY")

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise ServiceUnavailable(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def complete(
    model: str,
    prompt: str,
    *,
    max_tokens: int,
    temperature: float,
    top_p: float | None = None,
    timeout: float = 60.0,
    num_retries: int = 0,
) -> str:
    """Generate text for a single-turn *prompt*. Returns the stripped content.

    Raises:
        ServiceUnavailable: No credential for the model's provider.
        GenerationFailed: Any transport/model error, timeout, or empty output.
    """
    validate_api_key(model)
    params: dict = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "max_tokens": max_tokens,
        "temperature": temperature,
        "timeout": timeout,
        "num_retries": num_retries,
    }
    if top_p is not None:
        params["top_p"] = top_p

    try:
        response = litellm.completion(**params)
        content = response.choices[0].message.content or ""
    except Exception as exc:
        raise GenerationFailed(f"Generation with '{model}' failed: {exc}") from exc

    content = content.strip()
    if not content:
        raise GenerationFailed(f"Generation with '{model}' returned no text.")
    return content


def embed(model: str, text: str, *, timeout: float = 30.0, num_retries: int = 0) -> list[float]:
    """Embed *text* and return the vector.

    Raises:
        ServiceUnavailable: No credential for the model's provider.
        EmbeddingFailed: Any transport/model error, timeout, or empty vector.
    """
    validate_api_key(model)
    try:
        response = litellm.embedding(
            model=model,
            input=[text],
            timeout=timeout,
            num_retries=num_retries,
        )
        vector = [float(v) for v in response.data[0]["embedding"]]
    except Exception as exc:
        raise EmbeddingFailed(f"Failed to generate embedding: {exc}") from exc

    if not vector:
        raise EmbeddingFailed(f"Embedding model '{model}' returned an empty vector.")
    return vector
