"""EmbeddingProvider factory.

Selects the provider variant from configuration. API keys come from the
config or the OPENAI_API_KEY environment variable.
"""

import os

from mnemograph.config.models.providers import EmbeddingProviderConfig
from mnemograph.observability.logging import get_logger
from mnemograph.providers.embedding.base import EmbeddingProvider
from mnemograph.providers.embedding.mock import MockEmbeddingProvider

logger = get_logger(__name__)

MOCK_DEFAULT_DIMENSIONS = 384


def _api_key(config: EmbeddingProviderConfig) -> str | None:
    if config.api_key is not None:
        return config.api_key.get_secret_value()
    return os.environ.get("OPENAI_API_KEY")


def _create_openai(config: EmbeddingProviderConfig) -> EmbeddingProvider:
    from mnemograph.providers.embedding.openai import OpenAIEmbeddingProvider

    return OpenAIEmbeddingProvider(
        api_key=_api_key(config),
        model=config.model or "text-embedding-3-small",
        dimensions=config.dimensions,
        timeout=config.timeout,
    )


def _create_local(config: EmbeddingProviderConfig) -> EmbeddingProvider:
    from mnemograph.providers.embedding.sentence_transformers import (
        DEFAULT_MODEL,
        SentenceTransformersProvider,
    )

    return SentenceTransformersProvider(
        model_name=config.model or DEFAULT_MODEL,
        batch_size=config.batch_size,
        dimensions=config.dimensions,
    )


def _create_mock(config: EmbeddingProviderConfig) -> EmbeddingProvider:
    return MockEmbeddingProvider(dimensions=config.dimensions or MOCK_DEFAULT_DIMENSIONS)


def create_embedding_provider(config: EmbeddingProviderConfig) -> EmbeddingProvider | None:
    """Create an EmbeddingProvider based on configuration.

    Args:
        config: Embedding provider configuration from settings

    Returns:
        Configured provider, or None when embeddings are disabled

    Raises:
        ValueError: If an explicitly requested provider cannot be built
    """
    provider = config.provider

    if provider == "none":
        logger.info("embedding_provider_disabled")
        return None

    if provider == "mock":
        instance = _create_mock(config)
    elif provider == "openai":
        instance = _create_openai(config)
    elif provider == "sentence_transformers":
        instance = _create_local(config)
    elif provider == "auto":
        try:
            instance = _create_openai(config) if _api_key(config) else _create_local(config)
        except Exception as e:
            logger.error(
                "embedding_provider_init_failed",
                provider="auto",
                error=str(e),
                fallback="mock",
            )
            instance = _create_mock(config)
    else:
        raise ValueError(f"Unsupported embedding provider: {provider}")

    info = instance.provider_info()
    logger.info(
        "embedding_provider_initialized",
        provider=info.name,
        model=info.model,
        dimensions=info.dimensions,
    )
    return instance
