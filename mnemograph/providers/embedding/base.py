"""Embedding gateway interface.

A provider turns observation text into unit vectors of one fixed length.
The length may only become known after the first call, since local models
load lazily.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field


class EmbeddingError(Exception):
    """Raised when a provider fails to produce vectors."""

    def __init__(self, message: str, provider: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.cause = cause


class EmbeddingBatch(BaseModel):
    """Unit vectors for a batch of texts, in input order."""

    vectors: list[list[float]] = Field(..., description="One vector per input text")
    model: str = Field(..., description="Model that produced the vectors")
    tokens: int | None = Field(default=None, description="Tokens consumed, if reported")

    @property
    def dimensions(self) -> int | None:
        return len(self.vectors[0]) if self.vectors else None


class ProviderInfo(BaseModel):
    """Identity of an embedding provider, as reported in diagnostics."""

    name: str
    model: str
    dimensions: int | None = Field(
        default=None,
        description="Vector length; None until known",
    )


class EmbeddingProvider(ABC):
    """Text to fixed-length unit vector.

    Variants are chosen by configuration (see `create_embedding_provider`).
    """

    name: str

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier."""
        pass

    @property
    @abstractmethod
    def dimensions(self) -> int | None:
        """Vector length, or None while unknown."""
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> EmbeddingBatch:
        """Embed several texts in one call.

        Raises:
            EmbeddingError: If the provider fails
        """
        pass

    async def embed(self, text: str) -> list[float]:
        """Embed one text."""
        batch = await self.embed_batch([text])
        return batch.vectors[0]

    def provider_info(self) -> ProviderInfo:
        return ProviderInfo(name=self.name, model=self.model_name, dimensions=self.dimensions)

    async def close(self) -> None:
        """Release client resources."""
        return None
