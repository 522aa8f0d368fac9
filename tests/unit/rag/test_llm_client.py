"""Tests for the LiteLLM embedding wrapper."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from gnosis.config import EmbeddingCfg
from gnosis.errors import EmbeddingDimensionMismatch, EmbeddingError
from gnosis.rag.llm_client import Embedder, embed, embed_batch, validate_api_key


def _response(vectors: list[list[float]], order: list[int] | None = None) -> MagicMock:
    response = MagicMock()
    indices = order if order is not None else list(range(len(vectors)))
    response.data = [{"index": i, "embedding": vectors[i]} for i in indices]
    return response


# ------------------------------------------------------------------
# validate_api_key
# ------------------------------------------------------------------


def test_validate_api_key_raises_if_missing(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(EnvironmentError, match="OPENAI_API_KEY"):
        validate_api_key("openai/text-embedding-3-large")


def test_validate_api_key_passes_if_set(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
    validate_api_key("openai/text-embedding-3-large")  # should not raise


def test_validate_api_key_cohere(monkeypatch):
    monkeypatch.delenv("COHERE_API_KEY", raising=False)
    with pytest.raises(EnvironmentError, match="COHERE_API_KEY"):
        validate_api_key("cohere/embed-english-v3.0")


def test_validate_api_key_ollama_no_key_required():
    # Ollama is local; no env var needed
    validate_api_key("ollama/nomic-embed-text")


def test_validate_api_key_bare_model_treated_as_openai(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(EnvironmentError):
        validate_api_key("text-embedding-3-large")


# ------------------------------------------------------------------
# embed_batch / embed
# ------------------------------------------------------------------


def test_embed_batch_returns_vectors_in_input_order():
    vectors = [[1.0, 0.0], [0.0, 1.0], [0.5, 0.5]]
    with patch(
        "gnosis.rag.llm_client.litellm.embedding",
        return_value=_response(vectors, order=[2, 0, 1]),
    ):
        assert embed_batch("openai/m", ["a", "b", "c"]) == vectors


def test_embed_batch_passes_params_to_litellm():
    with patch(
        "gnosis.rag.llm_client.litellm.embedding", return_value=_response([[0.1]])
    ) as mock_embed:
        embed_batch("openai/m", ["hello"], num_retries=2)
    mock_embed.assert_called_once_with(model="openai/m", input=["hello"], num_retries=2)


def test_embed_batch_default_no_retries():
    with patch(
        "gnosis.rag.llm_client.litellm.embedding", return_value=_response([[0.1]])
    ) as mock_embed:
        embed_batch("openai/m", ["hello"])
    assert mock_embed.call_args.kwargs["num_retries"] == 0


def test_embed_batch_empty_makes_no_call():
    with patch("gnosis.rag.llm_client.litellm.embedding") as mock_embed:
        assert embed_batch("openai/m", []) == []
    mock_embed.assert_not_called()


def test_embed_batch_wraps_provider_errors():
    with patch(
        "gnosis.rag.llm_client.litellm.embedding", side_effect=RuntimeError("timeout")
    ):
        with pytest.raises(EmbeddingError, match="timeout"):
            embed_batch("openai/m", ["a"])


def test_embed_batch_short_response():
    with patch("gnosis.rag.llm_client.litellm.embedding", return_value=_response([[0.1]])):
        with pytest.raises(EmbeddingError, match="1 vectors for 2 inputs"):
            embed_batch("openai/m", ["a", "b"])


def test_embed_batch_checks_dimensions():
    with patch("gnosis.rag.llm_client.litellm.embedding", return_value=_response([[0.1, 0.2]])):
        with pytest.raises(EmbeddingDimensionMismatch) as excinfo:
            embed_batch("openai/m", ["a"], dimensions=3)
    assert excinfo.value.expected == 3
    assert excinfo.value.actual == 2


def test_embed_returns_single_vector():
    with patch("gnosis.rag.llm_client.litellm.embedding", return_value=_response([[0.1, 0.2]])):
        assert embed("openai/m", "hello") == [0.1, 0.2]


# ------------------------------------------------------------------
# Embedder
# ------------------------------------------------------------------


def test_embedder_splits_into_batches():
    cfg = EmbeddingCfg(model="openai/m", dimensions=1, batch_size=2, num_retries=1)

    def _fake(model, input, num_retries):
        return _response([[float(len(t))] for t in input])

    with patch("gnosis.rag.llm_client.litellm.embedding", side_effect=_fake) as mock_embed:
        vectors = Embedder(cfg).embed_many(["a", "bb", "ccc", "dddd", "eeeee"])

    assert vectors == [[1.0], [2.0], [3.0], [4.0], [5.0]]
    assert mock_embed.call_count == 3
    assert all(c.kwargs["num_retries"] == 1 for c in mock_embed.call_args_list)


def test_embedder_embed_one_checks_dimensions():
    cfg = EmbeddingCfg(model="openai/m", dimensions=3)
    with patch("gnosis.rag.llm_client.litellm.embedding", return_value=_response([[0.1]])):
        with pytest.raises(EmbeddingDimensionMismatch):
            Embedder(cfg).embed_one("hello")
