"""Tests for the embedding provider factory."""

from unittest.mock import patch

import pytest

from mnemograph.config.models.providers import EmbeddingProviderConfig
from mnemograph.providers.embedding.factory import create_embedding_provider
from mnemograph.providers.embedding.mock import MockEmbeddingProvider
from mnemograph.providers.embedding.openai import OpenAIEmbeddingProvider
from mnemograph.providers.embedding.sentence_transformers import SentenceTransformersProvider


class TestCreateEmbeddingProvider:
    """Tests for create_embedding_provider."""

    def test_none_disables_embeddings(self) -> None:
        assert create_embedding_provider(EmbeddingProviderConfig(provider="none")) is None

    def test_mock_uses_configured_dimensions(self) -> None:
        provider = create_embedding_provider(
            EmbeddingProviderConfig(provider="mock", dimensions=16)
        )
        assert isinstance(provider, MockEmbeddingProvider)
        assert provider.dimensions == 16

    def test_openai_with_config_key(self) -> None:
        provider = create_embedding_provider(
            EmbeddingProviderConfig(provider="openai", api_key="sk-config")
        )
        assert isinstance(provider, OpenAIEmbeddingProvider)
        assert provider.model_name == "text-embedding-3-small"

    def test_explicit_openai_without_key_raises(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ValueError, match="OPENAI_API_KEY"):
                create_embedding_provider(EmbeddingProviderConfig(provider="openai"))

    def test_sentence_transformers(self) -> None:
        provider = create_embedding_provider(
            EmbeddingProviderConfig(provider="sentence_transformers", batch_size=4)
        )
        assert isinstance(provider, SentenceTransformersProvider)
        assert provider.model_name == "BAAI/bge-base-en-v1.5"

    def test_auto_prefers_openai_when_key_present(self) -> None:
        with patch.dict("os.environ", {"OPENAI_API_KEY": "sk-env"}):
            provider = create_embedding_provider(EmbeddingProviderConfig(provider="auto"))
        assert isinstance(provider, OpenAIEmbeddingProvider)

    def test_auto_falls_back_to_local_without_key(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            provider = create_embedding_provider(EmbeddingProviderConfig(provider="auto"))
        assert isinstance(provider, SentenceTransformersProvider)

    def test_auto_falls_back_to_mock_on_failure(self) -> None:
        with (
            patch.dict("os.environ", {}, clear=True),
            patch(
                "mnemograph.providers.embedding.factory._create_local",
                side_effect=ImportError("sentence_transformers not installed"),
            ),
        ):
            provider = create_embedding_provider(
                EmbeddingProviderConfig(provider="auto", dimensions=32)
            )
        assert isinstance(provider, MockEmbeddingProvider)
        assert provider.dimensions == 32
