"""KnowledgeGraphManager: the caller-facing API of the graph engine.

Delegates writes and history to VersionManager, searches to
GraphRetriever, and read-time decay to ConfidenceDecay.
"""

import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

from mnemograph.config.models.graph import GraphConfig
from mnemograph.db.errors import NotFoundError, StoreError
from mnemograph.graph.decay import ConfidenceDecay
from mnemograph.graph.models import (
    Entity,
    KnowledgeGraph,
    NewEntity,
    NewRelation,
    ObservationAddition,
    ObservationDeletion,
    ObservationResult,
    Relation,
    RelationKey,
    RelationUpdate,
    SearchOptions,
)
from mnemograph.graph.retrieval import GraphRetriever
from mnemograph.graph.store import GraphStore
from mnemograph.graph.versioning import VersionManager
from mnemograph.observability.logging import get_logger
from mnemograph.providers.embedding.base import EmbeddingProvider
from mnemograph.utils.time import utc_now

logger = get_logger(__name__)


class KnowledgeGraphManager:
    """Versioned knowledge graph with decay and hybrid search.

    Usage:
        manager = KnowledgeGraphManager(InMemoryGraphStore(), MockEmbeddingProvider())
        await manager.create_entities([NewEntity(name="A", entity_type="thing")])
        graph = await manager.semantic_search("A")
    """

    def __init__(
        self,
        store: GraphStore,
        embedder: EmbeddingProvider | None = None,
        *,
        config: GraphConfig | None = None,
        dimensions: int | None = None,
        debug: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the manager.

        Args:
            store: Persistent graph store
            embedder: Embedding provider; None disables embeddings and semantic search
            config: Decay and search settings
            dimensions: Vector index dimensions, if fixed by configuration
            debug: Attach diagnostics to search and decay results
            clock: Source of "now" for writes and decay
        """
        self._store = store
        self._embedder = embedder
        self._config = config or GraphConfig()
        self._debug = debug
        self._versions = VersionManager(store, embedder, clock=clock)
        self._retriever = GraphRetriever(
            store,
            embedder,
            config=self._config.search,
            dimensions=dimensions,
            debug=debug,
        )
        self._decay = ConfidenceDecay(self._config.decay, clock=clock)

    @property
    def store(self) -> GraphStore:
        return self._store

    @property
    def embedder(self) -> EmbeddingProvider | None:
        return self._embedder

    # Writes

    async def create_entities(self, entities: list[NewEntity]) -> list[Entity]:
        return await self._versions.create_entities(entities)

    async def create_relations(self, relations: list[NewRelation]) -> list[Relation]:
        return await self._versions.create_relations(relations)

    async def add_observations(
        self, additions: list[ObservationAddition]
    ) -> list[ObservationResult]:
        return await self._versions.add_observations(additions)

    async def delete_observations(
        self, deletions: list[ObservationDeletion]
    ) -> list[ObservationResult]:
        return await self._versions.delete_observations(deletions)

    async def update_relation(self, update: RelationUpdate) -> Relation | None:
        return await self._versions.update_relation(update)

    async def delete_entities(self, names: list[str]) -> int:
        return await self._versions.delete_entities(names)

    async def delete_relations(self, keys: list[RelationKey]) -> int:
        return await self._versions.delete_relations(keys)

    async def save_graph(self, graph: KnowledgeGraph) -> None:
        """Replace the stored graph with `graph`. Destroys existing history."""
        await self._versions.replace_graph(graph)

    # Reads

    async def load_graph(self) -> KnowledgeGraph:
        """Every current entity and relation."""
        start = time.perf_counter()
        entities = await self._store.get_all_current_entities()
        relations = await self._store.get_all_current_relations()
        return KnowledgeGraph(
            entities=entities,
            relations=relations,
            total=len(entities),
            time_taken=(time.perf_counter() - start) * 1000,
        )

    async def open_nodes(self, names: list[str]) -> KnowledgeGraph:
        """Current entities by exact name, with the relations among them."""
        start = time.perf_counter()
        entities = await self._store.get_current_entities(names)
        graph = await self._retriever.hydrate(entities)
        return graph.model_copy(update={"time_taken": (time.perf_counter() - start) * 1000})

    async def get_entity(self, name: str) -> Entity | None:
        entities = await self._store.get_current_entities([name])
        return entities[0] if entities else None

    async def get_relation(
        self, from_entity: str, to_entity: str, relation_type: str
    ) -> Relation | None:
        return await self._store.get_current_relation(from_entity, to_entity, relation_type)

    async def get_entity_history(self, name: str) -> list[Entity]:
        return await self._versions.get_entity_history(name)

    async def get_relation_history(
        self, from_entity: str, to_entity: str, relation_type: str
    ) -> list[Relation]:
        return await self._versions.get_relation_history(from_entity, to_entity, relation_type)

    async def graph_at_time(self, instant: datetime) -> KnowledgeGraph:
        return await self._versions.graph_at_time(instant)

    async def decayed_graph(self, now: datetime | None = None) -> KnowledgeGraph:
        """Current graph with relation confidence decayed to `now`."""
        graph = self._decay.apply(await self.load_graph(), now=now)
        if self._debug:
            graph = graph.model_copy(update={"diagnostics": {"decay_info": self._decay.describe()}})
        return graph

    # Search

    async def search(self, query: str, options: SearchOptions | None = None) -> KnowledgeGraph:
        return await self._retriever.search(query, options)

    async def semantic_search(
        self, query: str, options: SearchOptions | None = None
    ) -> KnowledgeGraph:
        return await self._retriever.semantic_search(query, options)

    # Embeddings

    async def update_entity_embedding(self, name: str, embedding: list[float]) -> Entity:
        """Store an externally computed embedding on the current version.

        Raises:
            NotFoundError: If the entity has no current version
            ValueError: If the embedding is empty
        """
        if not embedding:
            raise ValueError("embedding cannot be empty")
        entity = await self.get_entity(name)
        if entity is None or not await self._store.set_entity_embedding(entity.id, embedding):
            raise NotFoundError(f"Entity not found: {name}")
        entity.embedding = list(embedding)
        logger.info("entity_embedding_updated", entity_name=name, dimensions=len(embedding))
        return entity

    async def get_entity_embedding(self, name: str) -> list[float] | None:
        entity = await self.get_entity(name)
        return entity.embedding if entity is not None else None

    async def diagnose_vector_search(self) -> dict[str, Any]:
        """Report vector index state, embedding coverage and provider identity.

        Never raises; store errors are reported in the result.
        """
        report: dict[str, Any] = {
            "embedding_provider": (
                self._embedder.provider_info().model_dump() if self._embedder else None
            ),
            "debug": self._debug,
        }
        try:
            report["store"] = await self._store.vector_index_info()
        except StoreError as e:
            logger.warning("vector_diagnostics_failed", error=str(e))
            report["store"] = None
            report["error"] = str(e)
        return report

    async def close(self) -> None:
        """Release store and provider resources."""
        await self._store.close()
        if self._embedder is not None:
            await self._embedder.close()

    async def __aenter__(self) -> "KnowledgeGraphManager":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
