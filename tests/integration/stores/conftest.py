"""Pytest fixtures for Neo4j integration tests.

Tests skip gracefully unless TEST_NEO4J_URI points at a reachable server.
The database is wiped before each test, so never point this at real data.
"""

import os
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from mnemograph.db.errors import StoreError
from mnemograph.db.neo4j import Neo4jDriver
from mnemograph.graph.manager import KnowledgeGraphManager
from mnemograph.graph.stores.neo4j import Neo4jGraphStore
from mnemograph.providers.embedding.mock import MockEmbeddingProvider

TEST_VECTOR_INDEX = "mnemograph_test_embeddings"
TEST_DIMENSIONS = 16


@pytest.fixture(scope="session")
def neo4j_uri() -> str:
    """Get the Neo4j URI for tests, or skip."""
    uri = os.environ.get("TEST_NEO4J_URI")
    if not uri:
        pytest.skip("TEST_NEO4J_URI not set (e.g. bolt://localhost:7687)")
    return uri


@pytest_asyncio.fixture(scope="function")
async def neo4j_driver(neo4j_uri: str) -> AsyncIterator[Neo4jDriver]:
    """Connected driver; skips when the server is unreachable.

    Uses function scope to avoid event loop issues across tests.
    """
    driver = Neo4jDriver(
        uri=neo4j_uri,
        username=os.environ.get("TEST_NEO4J_USERNAME", "neo4j"),
        password=os.environ.get("TEST_NEO4J_PASSWORD", "password"),
        database=os.environ.get("TEST_NEO4J_DATABASE", "neo4j"),
    )
    try:
        await driver.connect()
    except StoreError as e:
        pytest.skip(f"Neo4j not available: {e}")

    yield driver

    await driver.close()


@pytest_asyncio.fixture
async def neo4j_store(neo4j_driver: Neo4jDriver) -> AsyncIterator[Neo4jGraphStore]:
    """Empty Neo4j graph store."""
    store = Neo4jGraphStore(neo4j_driver, vector_index_name=TEST_VECTOR_INDEX)
    async with store.transaction() as tx:
        await tx.clear()

    yield store

    async with store.transaction() as tx:
        await tx.clear()


@pytest.fixture
def neo4j_manager(neo4j_store: Neo4jGraphStore, clock) -> KnowledgeGraphManager:
    """Manager over Neo4j with deterministic embeddings."""
    return KnowledgeGraphManager(
        neo4j_store,
        MockEmbeddingProvider(dimensions=TEST_DIMENSIONS),
        dimensions=TEST_DIMENSIONS,
        clock=clock,
    )
