"""Local embeddings with sentence-transformers."""

import asyncio
from functools import partial

from sentence_transformers import SentenceTransformer

from mnemograph.observability.logging import get_logger
from mnemograph.providers.embedding.base import (
    EmbeddingBatch,
    EmbeddingError,
    EmbeddingProvider,
)

logger = get_logger(__name__)

DEFAULT_MODEL = "BAAI/bge-base-en-v1.5"


class SentenceTransformersProvider(EmbeddingProvider):
    """Runs a sentence-transformers model in-process.

    The model loads on the first embed call, in the default executor. Until
    then `dimensions` is whatever was configured, possibly None.
    """

    name = "sentence_transformers"

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        batch_size: int = 32,
        dimensions: int | None = None,
    ) -> None:
        self._model_name = model_name
        self._batch_size = batch_size
        self._configured_dimensions = dimensions
        self._model: SentenceTransformer | None = None

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimensions(self) -> int | None:
        if self._model is not None:
            return self._model.get_sentence_embedding_dimension()
        return self._configured_dimensions

    def _encode(self, texts: list[str]) -> list[list[float]]:
        if self._model is None:
            logger.info("sentence_transformer_loading", model=self._model_name)
            self._model = SentenceTransformer(self._model_name)
        vectors = self._model.encode(
            texts,
            batch_size=self._batch_size,
            convert_to_numpy=True,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        return vectors.tolist()

    async def embed_batch(self, texts: list[str]) -> EmbeddingBatch:
        loop = asyncio.get_running_loop()
        try:
            vectors = await loop.run_in_executor(None, partial(self._encode, texts))
        except Exception as e:
            logger.warning(
                "sentence_transformer_failed",
                model=self._model_name,
                batch_size=len(texts),
                error=str(e),
            )
            raise EmbeddingError(
                f"Local embedding failed: {e}", provider=self.name, cause=e
            ) from e
        return EmbeddingBatch(vectors=vectors, model=self._model_name)
