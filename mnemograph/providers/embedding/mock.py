"""Deterministic embedding provider for tests and offline development."""

import hashlib

from mnemograph.providers.embedding.base import EmbeddingBatch, EmbeddingProvider
from mnemograph.utils.vector import normalize


class MockEmbeddingProvider(EmbeddingProvider):
    """Hash-derived unit vectors.

    Equal texts get equal vectors; unrelated texts land roughly orthogonal,
    so similarity only reflects exact text equality. Every batch is
    recorded in `calls`.
    """

    name = "mock"

    def __init__(self, dimensions: int = 384, model: str = "mock-embedding") -> None:
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self._dimensions = dimensions
        self._model = model
        self.calls: list[list[str]] = []

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def vector_for(self, text: str) -> list[float]:
        # One SHA-256 block per 32 components, salted with the block number
        values: list[float] = []
        block = 0
        while len(values) < self._dimensions:
            digest = hashlib.sha256(f"{block}:{text}".encode()).digest()
            values.extend(byte / 127.5 - 1.0 for byte in digest)
            block += 1
        return normalize(values[: self._dimensions])

    async def embed_batch(self, texts: list[str]) -> EmbeddingBatch:
        self.calls.append(list(texts))
        return EmbeddingBatch(
            vectors=[self.vector_for(text) for text in texts],
            model=self._model,
        )
