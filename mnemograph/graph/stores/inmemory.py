"""In-memory implementation of GraphStore."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from mnemograph.db.errors import IndexUnavailableError, NotFoundError
from mnemograph.graph.models import Entity, Relation, RelationKey
from mnemograph.graph.store import GraphStore, GraphTransaction
from mnemograph.utils.time import utc_now
from mnemograph.utils.vector import cosine_similarity


class _Rows:
    """Entity and relation rows in insertion order."""

    def __init__(
        self,
        entities: list[Entity] | None = None,
        relations: list[Relation] | None = None,
    ) -> None:
        self.entities: list[Entity] = entities or []
        self.relations: list[Relation] = relations or []

    def copy(self) -> "_Rows":
        # Rows are replaced, never mutated in place, so a shallow copy isolates a transaction.
        return _Rows(list(self.entities), list(self.relations))


class InMemoryGraphTransaction(GraphTransaction):
    """Transaction staged against a private copy of the rows."""

    def __init__(self, rows: _Rows) -> None:
        self._rows = rows

    async def get_current_entity(self, name: str) -> Entity | None:
        for entity in self._rows.entities:
            if entity.name == name and entity.is_current:
                return entity.model_copy(deep=True)
        return None

    async def insert_entity(self, entity: Entity) -> Entity:
        self._rows.entities.append(entity.model_copy(deep=True))
        return entity

    async def close_entity(self, entity_id: str, valid_to: datetime) -> None:
        for i, entity in enumerate(self._rows.entities):
            if entity.id == entity_id:
                self._rows.entities[i] = entity.model_copy(
                    update={"valid_to": valid_to, "embedding": None}
                )
                return
        raise NotFoundError(f"Entity row not found: {entity_id}")

    async def get_current_relations(self, entity_name: str) -> list[Relation]:
        return [
            rel.model_copy(deep=True)
            for rel in self._rows.relations
            if rel.is_current and rel.touches(entity_name)
        ]

    async def get_current_relation(
        self, from_entity: str, to_entity: str, relation_type: str
    ) -> Relation | None:
        return _find_current_relation(self._rows.relations, from_entity, to_entity, relation_type)

    async def insert_relation(self, relation: Relation) -> Relation:
        ids = {entity.id for entity in self._rows.entities}
        if relation.from_entity_id not in ids or relation.to_entity_id not in ids:
            raise NotFoundError(
                f"Relation endpoints not found: {relation.from_entity} -> {relation.to_entity}"
            )
        self._rows.relations.append(relation.model_copy(deep=True))
        return relation

    async def close_relation(self, relation_id: str, valid_to: datetime) -> None:
        for i, rel in enumerate(self._rows.relations):
            if rel.id == relation_id:
                self._rows.relations[i] = rel.model_copy(update={"valid_to": valid_to})
                return
        raise NotFoundError(f"Relation row not found: {relation_id}")

    async def delete_entities(self, names: list[str]) -> int:
        targets = set(names)
        before = len(self._rows.entities)
        self._rows.entities = [e for e in self._rows.entities if e.name not in targets]
        self._rows.relations = [
            rel
            for rel in self._rows.relations
            if rel.from_entity not in targets and rel.to_entity not in targets
        ]
        return before - len(self._rows.entities)

    async def delete_relations(self, keys: list[RelationKey]) -> int:
        targets = set(keys)
        before = len(self._rows.relations)
        self._rows.relations = [rel for rel in self._rows.relations if rel.key not in targets]
        return before - len(self._rows.relations)

    async def clear(self) -> None:
        self._rows.entities = []
        self._rows.relations = []


class InMemoryGraphStore(GraphStore):
    """In-memory implementation of GraphStore for testing and development.

    Uses list storage with linear scans. Transactions are serialized with
    a lock and staged on a copy that replaces the committed rows on exit.
    Not suitable for production use.
    """

    def __init__(self) -> None:
        self._rows = _Rows()
        self._lock = asyncio.Lock()
        self._vector_dimensions: int | None = None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[GraphTransaction]:
        async with self._lock:
            staged = self._rows.copy()
            yield InMemoryGraphTransaction(staged)
            self._rows = staged

    # Current-state reads
    async def get_current_entities(self, names: list[str]) -> list[Entity]:
        wanted = set(names)
        return [
            e.model_copy(deep=True)
            for e in self._rows.entities
            if e.is_current and e.name in wanted
        ]

    async def get_all_current_entities(self) -> list[Entity]:
        return [e.model_copy(deep=True) for e in self._rows.entities if e.is_current]

    async def get_relations_between(self, names: list[str]) -> list[Relation]:
        wanted = set(names)
        return [
            rel.model_copy(deep=True)
            for rel in self._rows.relations
            if rel.is_current and rel.from_entity in wanted and rel.to_entity in wanted
        ]

    async def get_all_current_relations(self) -> list[Relation]:
        return [rel.model_copy(deep=True) for rel in self._rows.relations if rel.is_current]

    async def get_current_relation(
        self, from_entity: str, to_entity: str, relation_type: str
    ) -> Relation | None:
        return _find_current_relation(self._rows.relations, from_entity, to_entity, relation_type)

    # History reads
    async def get_entity_history(self, name: str) -> list[Entity]:
        history = [e.model_copy(deep=True) for e in self._rows.entities if e.name == name]
        history.sort(key=lambda e: (e.valid_from, e.version))
        return history

    async def get_relation_history(
        self, from_entity: str, to_entity: str, relation_type: str
    ) -> list[Relation]:
        key = RelationKey(
            from_entity=from_entity,
            to_entity=to_entity,
            relation_type=relation_type,
        )
        history = [rel.model_copy(deep=True) for rel in self._rows.relations if rel.key == key]
        history.sort(key=lambda rel: (rel.valid_from, rel.version))
        return history

    async def get_entities_at(self, instant: datetime) -> list[Entity]:
        return [e.model_copy(deep=True) for e in self._rows.entities if e.valid_at(instant)]

    async def get_relations_at(self, instant: datetime) -> list[Relation]:
        return [rel.model_copy(deep=True) for rel in self._rows.relations if rel.valid_at(instant)]

    # Search
    async def text_search(
        self,
        query: str,
        *,
        entity_types: list[str] | None = None,
        limit: int = 10,
    ) -> list[Entity]:
        """Search current entities by substring (case-insensitive)."""
        needle = query.lower()
        results: list[Entity] = []
        for entity in self._rows.entities:
            if not entity.is_current:
                continue
            if entity_types and entity.entity_type not in entity_types:
                continue
            haystacks = (entity.name, entity.entity_type, *entity.observations)
            if any(needle in text.lower() for text in haystacks):
                results.append(entity.model_copy(deep=True))
                if len(results) >= limit:
                    break
        return results

    @property
    def vector_index_ready(self) -> bool:
        return self._vector_dimensions is not None

    async def ensure_vector_index(self, dimensions: int) -> None:
        if self._vector_dimensions is None:
            self._vector_dimensions = dimensions

    async def vector_search(
        self,
        query_vector: list[float],
        *,
        limit: int = 10,
        min_score: float = 0.0,
    ) -> list[tuple[Entity, float]]:
        scored = [
            (entity, score)
            for entity, score in self._score_rows(query_vector)
            if entity.is_current and score >= min_score
        ]
        return scored[:limit]

    async def nearest_neighbors(
        self,
        query_vector: list[float],
        *,
        limit: int = 10,
    ) -> list[tuple[Entity, float]]:
        return self._score_rows(query_vector)[:limit]

    def _score_rows(self, query_vector: list[float]) -> list[tuple[Entity, float]]:
        if self._vector_dimensions is None:
            raise IndexUnavailableError("Vector index has not been initialized")
        if len(query_vector) != self._vector_dimensions:
            raise IndexUnavailableError(
                f"Query vector has {len(query_vector)} dimensions, "
                f"index expects {self._vector_dimensions}"
            )

        results: list[tuple[Entity, float]] = []
        for entity in self._rows.entities:
            if entity.embedding is None or len(entity.embedding) != self._vector_dimensions:
                continue
            # Same score space as the Neo4j cosine vector index: (1 + cos) / 2
            score = (1.0 + cosine_similarity(query_vector, entity.embedding)) / 2.0
            results.append((entity.model_copy(deep=True), score))

        results.sort(key=lambda x: x[1], reverse=True)
        return results

    # Embeddings
    async def set_entity_embedding(self, entity_id: str, embedding: list[float]) -> bool:
        async with self._lock:
            for i, entity in enumerate(self._rows.entities):
                if entity.id == entity_id and entity.is_current:
                    self._rows.entities[i] = entity.model_copy(
                        update={"embedding": list(embedding), "updated_at": utc_now()}
                    )
                    return True
        return False

    async def vector_index_info(self) -> dict[str, Any]:
        current = [e for e in self._rows.entities if e.is_current]
        return {
            "backend": "inmemory",
            "index_ready": self.vector_index_ready,
            "dimensions": self._vector_dimensions,
            "current_entities": len(current),
            "current_entities_with_embedding": sum(1 for e in current if e.embedding),
            "rows_with_embedding": sum(1 for e in self._rows.entities if e.embedding),
        }


def _find_current_relation(
    relations: list[Relation],
    from_entity: str,
    to_entity: str,
    relation_type: str,
) -> Relation | None:
    for rel in relations:
        if (
            rel.is_current
            and rel.from_entity == from_entity
            and rel.to_entity == to_entity
            and rel.relation_type == relation_type
        ):
            return rel.model_copy(deep=True)
    return None
