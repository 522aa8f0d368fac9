"""LiteLLM embedding wrapper with API key validation and dimension checks.

All embedding calls (ingest and query) route through this module so chunk
vectors and query vectors always come from the same model. LiteLLM's
built-in retry is available through ``num_retries`` but is off by default:
a failed batch aborts the file and the next refresh pass retries it.
"""

from __future__ import annotations

import os
from collections.abc import Sequence

import litellm

from gnosis.config import EmbeddingCfg
from gnosis.errors import EmbeddingDimensionMismatch, EmbeddingError

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
}


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return  # No key required (e.g. ollama) or unknown provider

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def embed_batch(
    model: str,
    texts: Sequence[str],
    num_retries: int = 0,
    dimensions: int | None = None,
) -> list[list[float]]:
    """Embed *texts* in one request. Returns vectors in input order.

    Args:
        model: LiteLLM embedding model string (provider/model format).
        texts: Texts to embed; an empty sequence returns ``[]`` without a call.
        num_retries: Retries on transient errors (LiteLLM exponential backoff).
        dimensions: Expected vector length; checked when given.

    Raises:
        EmbeddingError: The provider call failed or returned a short batch.
        EmbeddingDimensionMismatch: A vector has the wrong length.
    """
    if not texts:
        return []

    try:
        response = litellm.embedding(
            model=model,
            input=list(texts),
            num_retries=num_retries,
        )
    except Exception as exc:
        raise EmbeddingError(f"Embedding request to {model} failed: {exc}") from exc

    items = sorted(response.data, key=lambda item: item["index"])
    if len(items) != len(texts):
        raise EmbeddingError(
            f"Embedding request to {model} returned {len(items)} vectors "
            f"for {len(texts)} inputs"
        )

    vectors = [list(item["embedding"]) for item in items]
    if dimensions is not None:
        for vector in vectors:
            if len(vector) != dimensions:
                raise EmbeddingDimensionMismatch(dimensions, len(vector), where=model)
    return vectors


def embed(
    model: str,
    text: str,
    num_retries: int = 0,
    dimensions: int | None = None,
) -> list[float]:
    """Embed a single text. See :func:`embed_batch`."""
    return embed_batch(model, [text], num_retries=num_retries, dimensions=dimensions)[0]


class Embedder:
    """Embedding calls bound to one :class:`EmbeddingCfg`.

    Splits large inputs into ``batch_size`` requests and checks every vector
    against the configured dimensions.
    """

    def __init__(self, cfg: EmbeddingCfg) -> None:
        self.cfg = cfg

    @property
    def model(self) -> str:
        return self.cfg.model

    @property
    def dimensions(self) -> int:
        return self.cfg.dimensions

    def embed_one(self, text: str) -> list[float]:
        return embed(
            self.cfg.model,
            text,
            num_retries=self.cfg.num_retries,
            dimensions=self.cfg.dimensions,
        )

    def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        size = max(1, self.cfg.batch_size)
        for start in range(0, len(texts), size):
            vectors.extend(
                embed_batch(
                    self.cfg.model,
                    texts[start : start + size],
                    num_retries=self.cfg.num_retries,
                    dimensions=self.cfg.dimensions,
                )
            )
        return vectors
