"""Embedding providers for text vectorization.

The OpenAI and sentence-transformers variants are imported lazily by the
factory so neither client library is loaded unless selected.
"""

from mnemograph.providers.embedding.base import (
    EmbeddingBatch,
    EmbeddingError,
    EmbeddingProvider,
    ProviderInfo,
)
from mnemograph.providers.embedding.factory import create_embedding_provider
from mnemograph.providers.embedding.mock import MockEmbeddingProvider

__all__ = [
    "EmbeddingBatch",
    "EmbeddingError",
    "EmbeddingProvider",
    "MockEmbeddingProvider",
    "ProviderInfo",
    "create_embedding_provider",
]
