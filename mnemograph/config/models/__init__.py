"""Configuration models for all mnemograph subsystems."""

from mnemograph.config.models.graph import DecayConfig, GraphConfig, SearchConfig
from mnemograph.config.models.observability import LoggingConfig, ObservabilityConfig
from mnemograph.config.models.providers import EmbeddingProviderConfig, ProvidersConfig
from mnemograph.config.models.storage import StorageConfig

__all__ = [
    "DecayConfig",
    "EmbeddingProviderConfig",
    "GraphConfig",
    "LoggingConfig",
    "ObservabilityConfig",
    "ProvidersConfig",
    "SearchConfig",
    "StorageConfig",
]
