"""Shared test fixtures for the mnemograph test suite."""

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from mnemograph.graph.manager import KnowledgeGraphManager
from mnemograph.graph.stores.inmemory import InMemoryGraphStore
from mnemograph.providers.embedding.mock import MockEmbeddingProvider


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """Empty config directory; pass it to load_settings or load_config."""
    path = tmp_path / "config"
    path.mkdir()
    return path


@pytest.fixture
def write_config(config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Write `{filename: toml_text}` into config_dir."""

    def write(layers: dict[str, str]) -> None:
        for filename, text in layers.items():
            (config_dir / filename).write_text(text)

    return write


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Iterator[None]:
    """Reset cached settings and installed TOML layers around each test."""
    from mnemograph.config import get_settings
    from mnemograph.config.settings import set_toml_config

    get_settings.cache_clear()
    set_toml_config({})
    yield
    get_settings.cache_clear()
    set_toml_config({})


class FakeClock:
    """Deterministic clock; each call returns the current instant."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def graph_store() -> InMemoryGraphStore:
    """Fresh in-memory graph store."""
    return InMemoryGraphStore()


@pytest.fixture
def embedder() -> MockEmbeddingProvider:
    """Deterministic embedding provider."""
    return MockEmbeddingProvider(dimensions=16)


@pytest.fixture
def manager(
    graph_store: InMemoryGraphStore,
    embedder: MockEmbeddingProvider,
    clock: FakeClock,
) -> KnowledgeGraphManager:
    """Manager over the in-memory store with mock embeddings and a fake clock."""
    return KnowledgeGraphManager(graph_store, embedder, clock=clock)


@pytest.fixture
def manager_without_embeddings(
    graph_store: InMemoryGraphStore,
    clock: FakeClock,
) -> KnowledgeGraphManager:
    """Manager with no embedding provider; semantic search is lexical only."""
    return KnowledgeGraphManager(graph_store, None, clock=clock)
