"""Tests for Neo4jDriver with the neo4j driver mocked out."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from neo4j.exceptions import ServiceUnavailable, SessionExpired

from mnemograph.db.errors import ConnectionError, TransactionError
from mnemograph.db.neo4j import Neo4jDriver


def make_async_driver(session: MagicMock | None = None) -> MagicMock:
    driver = MagicMock()
    driver.verify_connectivity = AsyncMock()
    driver.close = AsyncMock()
    if session is not None:
        context = MagicMock()
        context.__aenter__ = AsyncMock(return_value=session)
        context.__aexit__ = AsyncMock(return_value=False)
        driver.session.return_value = context
    return driver


def make_session(rows: list[dict] | None = None) -> tuple[MagicMock, MagicMock]:
    session = MagicMock()
    result = MagicMock()
    result.data = AsyncMock(return_value=rows or [])
    session.run = AsyncMock(return_value=result)

    tx = MagicMock()
    tx.commit = AsyncMock()
    tx.rollback = AsyncMock()
    tx.closed = MagicMock(return_value=False)
    session.begin_transaction = AsyncMock(return_value=tx)
    return session, tx


class TestConfiguration:
    """Connection settings."""

    def test_env_fallbacks(self) -> None:
        env = {
            "NEO4J_URI": "neo4j://graph:7687",
            "NEO4J_USERNAME": "reader",
            "NEO4J_PASSWORD": "secret",
            "NEO4J_DATABASE": "memory",
        }
        with patch.dict("os.environ", env):
            driver = Neo4jDriver()

        assert driver._uri == "neo4j://graph:7687"
        assert driver.database == "memory"
        assert not driver.is_connected

    def test_explicit_values_win(self) -> None:
        with patch.dict("os.environ", {"NEO4J_DATABASE": "env-db"}):
            driver = Neo4jDriver(database="explicit")
        assert driver.database == "explicit"


class TestConnect:
    """Connection lifecycle."""

    @pytest.mark.asyncio
    async def test_connect_and_close(self) -> None:
        async_driver = make_async_driver()
        with patch("mnemograph.db.neo4j.AsyncGraphDatabase") as graph_db:
            graph_db.driver.return_value = async_driver
            driver = Neo4jDriver(uri="bolt://db:7687", username="neo4j", password="pw")

            await driver.connect()
            await driver.connect()

        graph_db.driver.assert_called_once()
        assert graph_db.driver.call_args.kwargs["auth"] == ("neo4j", "pw")
        assert driver.is_connected

        await driver.close()
        async_driver.close.assert_awaited_once()
        assert not driver.is_connected

    @pytest.mark.asyncio
    async def test_connect_failure(self) -> None:
        async_driver = make_async_driver()
        async_driver.verify_connectivity.side_effect = ServiceUnavailable("refused")
        with patch("mnemograph.db.neo4j.AsyncGraphDatabase") as graph_db:
            graph_db.driver.return_value = async_driver
            driver = Neo4jDriver(uri="bolt://db:7687")

            with pytest.raises(ConnectionError, match="refused"):
                await driver.connect()

        async_driver.close.assert_awaited_once()
        assert not driver.is_connected


class TestQueries:
    """Auto-commit queries and explicit transactions."""

    @pytest.fixture
    def session_and_tx(self):
        return make_session(rows=[{"n": 1}])

    @pytest.fixture
    def driver(self, session_and_tx) -> Neo4jDriver:
        session, _ = session_and_tx
        driver = Neo4jDriver(uri="bolt://db:7687", database="neo4j")
        driver._driver = make_async_driver(session)
        return driver

    @pytest.mark.asyncio
    async def test_execute_query(self, driver, session_and_tx) -> None:
        session, _ = session_and_tx

        rows = await driver.execute_query("RETURN $x AS n", {"x": 1})

        assert rows == [{"n": 1}]
        session.run.assert_awaited_once_with("RETURN $x AS n", {"x": 1})
        driver._driver.session.assert_called_with(database="neo4j")

    @pytest.mark.asyncio
    async def test_execute_query_unavailable(self, driver, session_and_tx) -> None:
        session, _ = session_and_tx
        session.run.side_effect = ServiceUnavailable("gone")

        with pytest.raises(ConnectionError):
            await driver.execute_query("RETURN 1")

    @pytest.mark.asyncio
    async def test_health_check(self, driver) -> None:
        assert await driver.health_check() is True

    @pytest.mark.asyncio
    async def test_health_check_disconnected(self) -> None:
        assert await Neo4jDriver(uri="bolt://db:7687").health_check() is False

    @pytest.mark.asyncio
    async def test_transaction_commits(self, driver, session_and_tx) -> None:
        _, tx = session_and_tx

        async with driver.transaction() as handle:
            assert handle is tx

        tx.commit.assert_awaited_once()
        tx.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_error(self, driver, session_and_tx) -> None:
        _, tx = session_and_tx

        with pytest.raises(ValueError):
            async with driver.transaction():
                raise ValueError("bad input")

        tx.commit.assert_not_awaited()
        tx.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_driver_error_becomes_transaction_error(self, driver, session_and_tx) -> None:
        _, tx = session_and_tx
        tx.commit.side_effect = SessionExpired("expired")

        with pytest.raises(TransactionError, match="expired"):
            async with driver.transaction():
                pass

        tx.rollback.assert_awaited_once()
