"""Tests for Prometheus metrics emitted by the graph engine."""

import pytest
from prometheus_client import REGISTRY

from mnemograph.graph.models import NewEntity, ObservationAddition, SearchOptions
from mnemograph.observability.metrics import (
    EMBEDDING_FAILURES,
    HARD_DELETES,
    SEARCH_FALLBACKS,
    SEARCH_LATENCY,
    SEARCH_REQUESTS,
    VERSIONS_WRITTEN,
)


def sample(name: str, **labels: str) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestMetricDefinitions:
    """Metric objects are registered with the expected labels."""

    def test_counters_accept_labels(self) -> None:
        VERSIONS_WRITTEN.labels(kind="entity", operation="create")
        HARD_DELETES.labels(kind="relation")
        SEARCH_REQUESTS.labels(strategy="lexical")
        SEARCH_FALLBACKS.labels(reason="index_unavailable")
        EMBEDDING_FAILURES.labels(operation="query")
        SEARCH_LATENCY.labels(strategy="vector")


class TestMetricEmission:
    """Engine operations move the counters."""

    @pytest.mark.asyncio
    async def test_versions_counted(self, manager) -> None:
        before = sample(
            "mnemograph_versions_written_total", kind="entity", operation="add_observations"
        )
        await manager.create_entities([NewEntity(name="A", entity_type="thing")])
        await manager.add_observations([ObservationAddition(entity_name="A", contents=["x"])])

        after = sample(
            "mnemograph_versions_written_total", kind="entity", operation="add_observations"
        )
        assert after == before + 1

    @pytest.mark.asyncio
    async def test_lexical_fallback_counted(self, manager_without_embeddings) -> None:
        before_fallbacks = sample(
            "mnemograph_search_fallbacks_total", reason="no_embedding_provider"
        )
        before_requests = sample("mnemograph_search_requests_total", strategy="lexical")

        await manager_without_embeddings.semantic_search("anything", SearchOptions())

        assert sample(
            "mnemograph_search_fallbacks_total", reason="no_embedding_provider"
        ) == before_fallbacks + 1
        assert sample(
            "mnemograph_search_requests_total", strategy="lexical"
        ) == before_requests + 1

    @pytest.mark.asyncio
    async def test_hard_deletes_counted(self, manager) -> None:
        await manager.create_entities([NewEntity(name="Gone", entity_type="thing")])
        before = sample("mnemograph_hard_deletes_total", kind="entity")

        await manager.delete_entities(["Gone"])

        assert sample("mnemograph_hard_deletes_total", kind="entity") == before + 1
