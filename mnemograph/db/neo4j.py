"""Neo4j driver management.

Provides one async driver per process shared by the graph store, with
session and transaction helpers that translate driver errors into the
store error hierarchy.
"""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from neo4j import AsyncDriver, AsyncGraphDatabase, AsyncSession, AsyncTransaction
from neo4j.exceptions import AuthError, DriverError, Neo4jError, ServiceUnavailable

from mnemograph.db.errors import ConnectionError, TransactionError
from mnemograph.observability.logging import get_logger

logger = get_logger(__name__)


class Neo4jDriver:
    """Manages the neo4j async driver with health checks.

    Usage:
        driver = Neo4jDriver(uri="bolt://localhost:7687")
        await driver.connect()
        try:
            async with driver.transaction() as tx:
                await tx.run("CREATE (n:Entity {name: $name})", name="A")
        finally:
            await driver.close()
    """

    def __init__(
        self,
        uri: str | None = None,
        username: str | None = None,
        password: str | None = None,
        database: str | None = None,
        max_connection_pool_size: int = 50,
        max_connection_lifetime: int = 3600,
    ) -> None:
        """Initialize driver configuration.

        Args:
            uri: Bolt/neo4j URI. Falls back to NEO4J_URI.
            username: Falls back to NEO4J_USERNAME.
            password: Falls back to NEO4J_PASSWORD.
            database: Falls back to NEO4J_DATABASE.
            max_connection_pool_size: Maximum pooled connections.
            max_connection_lifetime: Seconds before a pooled connection is recycled.
        """
        self._uri = uri or os.environ.get("NEO4J_URI", "bolt://localhost:7687")
        self._username = username or os.environ.get("NEO4J_USERNAME", "neo4j")
        self._password = password or os.environ.get("NEO4J_PASSWORD", "neo4j")
        self._database = database or os.environ.get("NEO4J_DATABASE", "neo4j")
        self._max_connection_pool_size = max_connection_pool_size
        self._max_connection_lifetime = max_connection_lifetime
        self._driver: AsyncDriver | None = None

    @property
    def database(self) -> str:
        return self._database

    @property
    def is_connected(self) -> bool:
        return self._driver is not None

    async def connect(self) -> None:
        """Create the driver and verify connectivity."""
        if self._driver is not None:
            return

        driver = AsyncGraphDatabase.driver(
            self._uri,
            auth=(self._username, self._password),
            max_connection_pool_size=self._max_connection_pool_size,
            max_connection_lifetime=self._max_connection_lifetime,
        )
        try:
            await driver.verify_connectivity()
        except (DriverError, Neo4jError) as e:
            await driver.close()
            logger.error("neo4j_connection_failed", uri=self._uri, error=str(e))
            raise ConnectionError(f"Failed to connect to Neo4j: {e}", cause=e) from e

        self._driver = driver
        logger.info("neo4j_driver_connected", uri=self._uri, database=self._database)

    async def close(self) -> None:
        """Close the driver gracefully."""
        if self._driver is not None:
            await self._driver.close()
            self._driver = None
            logger.info("neo4j_driver_closed")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Open a session against the configured database.

        Note: Auto-connects if not already connected.
        """
        if self._driver is None:
            await self.connect()

        async with self._driver.session(database=self._database) as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncTransaction]:
        """Run a block inside one explicit transaction.

        Commits when the block exits normally. Any exception rolls the
        transaction back; driver errors are re-raised as TransactionError,
        everything else propagates unchanged.
        """
        async with self.session() as session:
            tx = await session.begin_transaction()
            try:
                yield tx
                await tx.commit()
            except (DriverError, Neo4jError) as e:
                await self._rollback(tx)
                logger.error("neo4j_transaction_failed", error=str(e))
                raise TransactionError(f"Neo4j transaction failed: {e}", cause=e) from e
            except Exception:
                await self._rollback(tx)
                raise

    async def _rollback(self, tx: AsyncTransaction) -> None:
        if tx.closed():
            return
        try:
            await tx.rollback()
        except (DriverError, Neo4jError) as e:
            logger.warning("neo4j_rollback_failed", error=str(e))

    async def execute_query(
        self,
        query: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Run a read query in an auto-commit transaction and return rows."""
        try:
            async with self.session() as session:
                result = await session.run(query, parameters or {})
                return await result.data()
        except (ServiceUnavailable, AuthError) as e:
            logger.error("neo4j_connection_error", error=str(e))
            raise ConnectionError(f"Neo4j unavailable: {e}", cause=e) from e

    async def health_check(self) -> bool:
        """Check the driver is connected and the server answers."""
        if self._driver is None:
            return False

        try:
            rows = await self.execute_query("RETURN 1 AS n")
            return bool(rows) and rows[0]["n"] == 1
        except Exception as e:
            logger.warning("neo4j_health_check_failed", error=str(e))
            return False
