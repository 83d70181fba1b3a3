"""Embedding provider configuration models."""

from typing import Literal

from pydantic import BaseModel, Field, SecretStr

EmbeddingProviderType = Literal["auto", "openai", "sentence_transformers", "mock", "none"]


class EmbeddingProviderConfig(BaseModel):
    """Configuration for the embedding provider."""

    provider: EmbeddingProviderType = Field(
        default="auto",
        description="Provider type; 'auto' prefers OpenAI when a key is available",
    )
    model: str | None = Field(
        default=None,
        description="Model identifier (provider default if unset)",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="API key (prefer OPENAI_API_KEY env var)",
    )
    dimensions: int | None = Field(
        default=None,
        gt=0,
        description="Embedding dimensions (provider default if unset)",
    )
    batch_size: int = Field(
        default=32,
        gt=0,
        description="Batch size for local encoding",
    )
    timeout: float = Field(
        default=60.0,
        gt=0,
        description="Request timeout in seconds for remote providers",
    )


class ProvidersConfig(BaseModel):
    """Configuration for external providers."""

    embedding: EmbeddingProviderConfig = Field(
        default_factory=EmbeddingProviderConfig,
        description="Embedding provider",
    )
