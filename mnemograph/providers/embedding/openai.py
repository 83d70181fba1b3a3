"""OpenAI embeddings API provider."""

import os
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from mnemograph.observability.logging import get_logger
from mnemograph.providers.embedding.base import (
    EmbeddingBatch,
    EmbeddingError,
    EmbeddingProvider,
)

logger = get_logger(__name__)

DEFAULT_MODEL = "text-embedding-3-small"

# Native output lengths; text-embedding-3-* can be shortened on request
MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embeddings from the OpenAI API. Returned vectors are unit length."""

    name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        dimensions: int | None = None,
        timeout: float = 60.0,
    ) -> None:
        """Create the API client.

        Args:
            api_key: Falls back to OPENAI_API_KEY
            model: Embedding model
            dimensions: Requested vector length; only text-embedding-3-* honour it
            timeout: Request timeout in seconds

        Raises:
            ValueError: If no API key is available
        """
        key = api_key or os.environ.get("OPENAI_API_KEY")
        if not key:
            raise ValueError(
                "No OpenAI API key: set OPENAI_API_KEY or providers.embedding.api_key"
            )
        self._model = model
        self._dimensions = dimensions or MODEL_DIMENSIONS.get(model, 1536)
        self._shortenable = model.startswith("text-embedding-3-")
        self._client = AsyncOpenAI(api_key=key, timeout=timeout)

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed_batch(self, texts: list[str]) -> EmbeddingBatch:
        request: dict[str, Any] = {"model": self._model, "input": texts}
        if self._shortenable:
            request["dimensions"] = self._dimensions

        try:
            response = await self._client.embeddings.create(**request)
        except OpenAIError as e:
            logger.warning(
                "openai_embedding_failed",
                model=self._model,
                batch_size=len(texts),
                error=str(e),
            )
            raise EmbeddingError(
                f"OpenAI embedding request failed: {e}", provider=self.name, cause=e
            ) from e

        # Items carry their input position; order is not guaranteed
        items = sorted(response.data, key=lambda item: item.index)
        tokens = response.usage.total_tokens if response.usage else None
        logger.debug(
            "openai_embedding_batch",
            model=self._model,
            batch_size=len(texts),
            tokens=tokens,
        )
        return EmbeddingBatch(
            vectors=[item.embedding for item in items],
            model=self._model,
            tokens=tokens,
        )

    async def close(self) -> None:
        await self._client.close()
