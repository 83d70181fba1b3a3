"""Hybrid retrieval over the graph store.

Per call, semantic search picks the best strategy still available:

1. an explicit query vector goes straight to the vector index,
2. otherwise the query text is embedded first,
3. otherwise (or when the index is unusable) lexical search runs.

The chosen entities are then hydrated with the current relations among
them. Read-path failures never reach the caller; they only lower the
fidelity of the result.
"""

import time
from typing import Any

from mnemograph.config.models.graph import SearchConfig
from mnemograph.db.errors import StoreError
from mnemograph.graph.models import Entity, KnowledgeGraph, SearchOptions
from mnemograph.graph.store import GraphStore
from mnemograph.observability.logging import get_logger
from mnemograph.observability.metrics import (
    EMBEDDING_FAILURES,
    SEARCH_FALLBACKS,
    SEARCH_LATENCY,
    SEARCH_REQUESTS,
)
from mnemograph.providers.embedding.base import EmbeddingProvider
from mnemograph.utils.time import utc_now

logger = get_logger(__name__)


class SearchTrace:
    """Step log for one search, kept only in debug mode."""

    def __init__(self, enabled: bool) -> None:
        self.enabled = enabled
        self.steps: list[dict[str, Any]] = []

    def record(self, step: str, status: str, **details: Any) -> None:
        if not self.enabled:
            return
        self.steps.append({
            "step": step,
            "status": status,
            "timestamp": utc_now().isoformat(),
            **details,
        })

    def diagnostics(self, strategy: str) -> dict[str, Any] | None:
        if not self.enabled:
            return None
        return {"strategy": strategy, "steps_taken": self.steps}


class GraphRetriever:
    """Chooses a search strategy and assembles the resulting subgraph."""

    def __init__(
        self,
        store: GraphStore,
        embedder: EmbeddingProvider | None = None,
        *,
        config: SearchConfig | None = None,
        dimensions: int | None = None,
        debug: bool = False,
    ) -> None:
        """Initialize retriever.

        Args:
            store: Graph store to query
            embedder: Provider used to embed query text; None disables it
            config: Search defaults (oversampling for the fallback path)
            dimensions: Vector index dimensions; taken from the query vector if None
            debug: Attach step traces to semantic search results
        """
        self._store = store
        self._embedder = embedder
        self._config = config or SearchConfig()
        self._dimensions = dimensions
        self._debug = debug

    async def search(self, query: str, options: SearchOptions | None = None) -> KnowledgeGraph:
        """Lexical search: case-insensitive substring over name, type and observations."""
        options = options or SearchOptions(
            limit=self._config.default_limit,
            min_similarity=self._config.min_similarity,
        )
        start = time.perf_counter()
        return await self._lexical(query, options, start, SearchTrace(enabled=False))

    async def semantic_search(
        self, query: str, options: SearchOptions | None = None
    ) -> KnowledgeGraph:
        """Vector search with lexical fallback."""
        options = options or SearchOptions(
            limit=self._config.default_limit,
            min_similarity=self._config.min_similarity,
        )
        start = time.perf_counter()
        trace = SearchTrace(self._debug)
        trace.record(
            "start",
            "ok",
            query=query,
            limit=options.limit,
            min_similarity=options.min_similarity,
            entity_types=options.entity_types,
        )

        vector = options.query_vector
        strategy = "vector"
        if vector is not None:
            trace.record("query_vector", "provided", dimensions=len(vector))
        elif self._embedder is None:
            trace.record("embed_query", "skipped", reason="no_embedding_provider")
            SEARCH_FALLBACKS.labels(reason="no_embedding_provider").inc()
            return await self._lexical(query, options, start, trace)
        else:
            vector = await self._embed_query(self._embedder, query, trace)
            if vector is None:
                SEARCH_FALLBACKS.labels(reason="embedding_failed").inc()
                return await self._lexical(query, options, start, trace)
            strategy = "embedded_vector"

        if not await self._ensure_index(len(vector), trace):
            SEARCH_FALLBACKS.labels(reason="index_unavailable").inc()
            return await self._lexical(query, options, start, trace)

        scored = await self._vector_candidates(vector, options, trace)
        if scored is None:
            SEARCH_FALLBACKS.labels(reason="vector_query_failed").inc()
            return await self._lexical(query, options, start, trace)

        trace.record(
            "vector_results",
            "ok",
            count=len(scored),
            scores={entity.name: round(score, 6) for entity, score in scored},
        )
        return await self._finish(strategy, [entity for entity, _ in scored], start, trace)

    async def _embed_query(
        self, embedder: EmbeddingProvider, query: str, trace: SearchTrace
    ) -> list[float] | None:
        try:
            vector = await embedder.embed(query)
        except Exception as e:
            EMBEDDING_FAILURES.labels(operation="query").inc()
            logger.warning("query_embedding_failed", error=str(e))
            trace.record("embed_query", "failed", error=str(e))
            return None
        trace.record(
            "embed_query",
            "ok",
            provider=embedder.name,
            dimensions=len(vector),
        )
        return vector

    async def _ensure_index(self, vector_dimensions: int, trace: SearchTrace) -> bool:
        """Initialize the vector index if needed; retried on the next call if it fails."""
        if self._store.vector_index_ready:
            return True
        dimensions = self._dimensions or vector_dimensions
        try:
            await self._store.ensure_vector_index(dimensions)
        except StoreError as e:
            logger.warning("vector_index_unavailable", dimensions=dimensions, error=str(e))
            trace.record("ensure_vector_index", "failed", dimensions=dimensions, error=str(e))
            return False
        trace.record("ensure_vector_index", "ok", dimensions=dimensions)
        return True

    async def _vector_candidates(
        self,
        vector: list[float],
        options: SearchOptions,
        trace: SearchTrace,
    ) -> list[tuple[Entity, float]] | None:
        """Ranked (entity, score) pairs, or None if no vector path worked."""
        try:
            scored = await self._store.vector_search(
                vector,
                limit=options.limit,
                min_score=options.min_similarity,
            )
            trace.record("vector_search", "ok", candidates=len(scored))
        except StoreError as e:
            logger.warning("vector_search_failed", error=str(e))
            trace.record("vector_search", "failed", error=str(e))
            top_k = options.limit * self._config.fallback_oversample
            try:
                raw = await self._store.nearest_neighbors(vector, limit=top_k)
            except StoreError as fallback_error:
                logger.warning("nearest_neighbors_failed", error=str(fallback_error))
                trace.record("nearest_neighbors", "failed", error=str(fallback_error))
                return None
            trace.record("nearest_neighbors", "ok", top_k=top_k, candidates=len(raw))
            scored = [
                (entity, score)
                for entity, score in raw
                if entity.is_current and score >= options.min_similarity
            ]

        if options.entity_types:
            allowed = set(options.entity_types)
            scored = [(entity, score) for entity, score in scored if entity.entity_type in allowed]

        # Stable sort keeps store order for ties
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[: options.limit]

    async def _lexical(
        self,
        query: str,
        options: SearchOptions,
        start: float,
        trace: SearchTrace,
    ) -> KnowledgeGraph:
        try:
            entities = await self._store.text_search(
                query,
                entity_types=options.entity_types,
                limit=options.limit,
            )
        except StoreError as e:
            logger.error("text_search_failed", query=query, error=str(e))
            trace.record("text_search", "failed", error=str(e))
            raise
        trace.record("text_search", "ok", count=len(entities))
        return await self._finish("lexical", entities, start, trace)

    async def _finish(
        self,
        strategy: str,
        entities: list[Entity],
        start: float,
        trace: SearchTrace,
    ) -> KnowledgeGraph:
        graph = await self.hydrate(entities)
        trace.record("hydrate_relations", "ok", relations=len(graph.relations))

        elapsed = time.perf_counter() - start
        SEARCH_REQUESTS.labels(strategy=strategy).inc()
        SEARCH_LATENCY.labels(strategy=strategy).observe(elapsed)
        logger.debug(
            "search_completed",
            strategy=strategy,
            entities=len(graph.entities),
            relations=len(graph.relations),
        )
        return graph.model_copy(
            update={
                "time_taken": elapsed * 1000,
                "diagnostics": trace.diagnostics(strategy),
            }
        )

    async def hydrate(self, entities: list[Entity]) -> KnowledgeGraph:
        """Attach every current relation whose endpoints are both in `entities`."""
        if not entities:
            return KnowledgeGraph()
        relations = await self._store.get_relations_between([entity.name for entity in entities])
        return KnowledgeGraph(entities=entities, relations=relations, total=len(entities))
