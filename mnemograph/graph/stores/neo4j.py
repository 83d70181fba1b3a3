"""Neo4j implementation of GraphStore.

Entities are `:Entity` nodes, one node per version. Relations are
`:RELATES_TO` relationships, one per version, attached to the entity
version nodes that were current when the relation row was written.
Instants are stored as epoch milliseconds, observations and metadata as
JSON strings.
"""

import json
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from neo4j import AsyncTransaction
from neo4j.exceptions import DriverError, Neo4jError

from mnemograph.db.errors import IndexUnavailableError, NotFoundError, StoreError
from mnemograph.db.neo4j import Neo4jDriver
from mnemograph.graph.models import Entity, Relation, RelationKey
from mnemograph.graph.store import GraphStore, GraphTransaction
from mnemograph.observability.logging import get_logger
from mnemograph.utils.time import from_epoch_ms, to_epoch_ms, utc_now

logger = get_logger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_ENTITY_PROPERTIES = """
    id: $id,
    name: $name,
    entityType: $entityType,
    observations: $observations,
    version: $version,
    createdAt: $createdAt,
    updatedAt: $updatedAt,
    validFrom: $validFrom,
    validTo: $validTo,
    changedBy: $changedBy,
    embedding: $embedding
"""

_RELATION_PROPERTIES = """
    id: $id,
    relationType: $relationType,
    strength: $strength,
    confidence: $confidence,
    metadata: $metadata,
    version: $version,
    createdAt: $createdAt,
    updatedAt: $updatedAt,
    validFrom: $validFrom,
    validTo: $validTo,
    changedBy: $changedBy
"""

_RELATION_RETURN = """
    RETURN properties(r) AS rel,
           from.name AS fromName,
           to.name AS toName,
           from.id AS fromId,
           to.id AS toId
"""


def json_fragment(text: str) -> str:
    """`text` as it appears inside a JSON string literal."""
    return json.dumps(text, ensure_ascii=False)[1:-1]


def _optional_ms(value: datetime | None) -> int | None:
    return to_epoch_ms(value) if value is not None else None


def _optional_datetime(value: Any) -> datetime | None:
    return from_epoch_ms(value) if value is not None else None


def entity_to_params(entity: Entity) -> dict[str, Any]:
    """Flatten an entity into Cypher parameters."""
    return {
        "id": entity.id,
        "name": entity.name,
        "entityType": entity.entity_type,
        "observations": json.dumps(entity.observations, ensure_ascii=False),
        "version": entity.version,
        "createdAt": to_epoch_ms(entity.created_at),
        "updatedAt": to_epoch_ms(entity.updated_at),
        "validFrom": to_epoch_ms(entity.valid_from),
        "validTo": _optional_ms(entity.valid_to),
        "changedBy": entity.changed_by,
        "embedding": entity.embedding,
    }


def node_to_entity(node: dict[str, Any]) -> Entity:
    """Convert `:Entity` node properties into an Entity."""
    observations = node.get("observations")
    now_ms = to_epoch_ms(utc_now())
    return Entity(
        id=node["id"],
        name=node["name"],
        entity_type=node.get("entityType") or "",
        observations=json.loads(observations) if isinstance(observations, str) else [],
        version=node.get("version") or 1,
        created_at=from_epoch_ms(node.get("createdAt") or now_ms),
        updated_at=from_epoch_ms(node.get("updatedAt") or now_ms),
        valid_from=from_epoch_ms(node.get("validFrom") or node.get("createdAt") or now_ms),
        valid_to=_optional_datetime(node.get("validTo")),
        changed_by=node.get("changedBy"),
        embedding=node.get("embedding"),
    )


def relation_to_params(relation: Relation) -> dict[str, Any]:
    """Flatten a relation into Cypher parameters."""
    return {
        "id": relation.id,
        "fromId": relation.from_entity_id,
        "toId": relation.to_entity_id,
        "relationType": relation.relation_type,
        "strength": relation.strength,
        "confidence": relation.confidence,
        "metadata": json.dumps(relation.metadata, ensure_ascii=False) if relation.metadata else None,
        "version": relation.version,
        "createdAt": to_epoch_ms(relation.created_at),
        "updatedAt": to_epoch_ms(relation.updated_at),
        "validFrom": to_epoch_ms(relation.valid_from),
        "validTo": _optional_ms(relation.valid_to),
        "changedBy": relation.changed_by,
    }


def row_to_relation(row: dict[str, Any]) -> Relation:
    """Convert a `_RELATION_RETURN` row into a Relation."""
    rel = row["rel"]
    metadata: dict[str, Any] = {}
    raw_metadata = rel.get("metadata")
    if isinstance(raw_metadata, str) and raw_metadata:
        try:
            metadata = json.loads(raw_metadata)
        except json.JSONDecodeError:
            logger.warning(
                "relation_metadata_unparseable",
                from_entity=row["fromName"],
                to_entity=row["toName"],
            )
    now_ms = to_epoch_ms(utc_now())
    return Relation(
        id=rel["id"],
        from_entity=row["fromName"],
        to_entity=row["toName"],
        relation_type=rel["relationType"],
        strength=rel.get("strength"),
        confidence=rel.get("confidence"),
        metadata=metadata,
        version=rel.get("version") or 1,
        created_at=from_epoch_ms(rel.get("createdAt") or now_ms),
        updated_at=from_epoch_ms(rel.get("updatedAt") or now_ms),
        valid_from=from_epoch_ms(rel.get("validFrom") or rel.get("createdAt") or now_ms),
        valid_to=_optional_datetime(rel.get("validTo")),
        changed_by=rel.get("changedBy"),
        from_entity_id=row.get("fromId"),
        to_entity_id=row.get("toId"),
    )


class Neo4jGraphTransaction(GraphTransaction):
    """GraphTransaction backed by an explicit neo4j transaction."""

    def __init__(self, tx: AsyncTransaction) -> None:
        self._tx = tx

    async def _fetch(self, query: str, **params: Any) -> list[dict[str, Any]]:
        result = await self._tx.run(query, params)
        return await result.data()

    async def get_current_entity(self, name: str) -> Entity | None:
        rows = await self._fetch(
            """
            MATCH (e:Entity {name: $name})
            WHERE e.validTo IS NULL
            RETURN e
            LIMIT 1
            """,
            name=name,
        )
        return node_to_entity(rows[0]["e"]) if rows else None

    async def insert_entity(self, entity: Entity) -> Entity:
        await self._fetch(
            f"CREATE (e:Entity {{{_ENTITY_PROPERTIES}}}) RETURN e.id AS id",
            **entity_to_params(entity),
        )
        return entity

    async def close_entity(self, entity_id: str, valid_to: datetime) -> None:
        rows = await self._fetch(
            """
            MATCH (e:Entity {id: $id})
            SET e.validTo = $validTo
            REMOVE e.embedding
            RETURN count(e) AS closed
            """,
            id=entity_id,
            validTo=to_epoch_ms(valid_to),
        )
        if not rows or rows[0]["closed"] == 0:
            raise NotFoundError(f"Entity row not found: {entity_id}")

    async def get_current_relations(self, entity_name: str) -> list[Relation]:
        rows = await self._fetch(
            f"""
            MATCH (e:Entity {{name: $name}})
            WHERE e.validTo IS NULL
            MATCH (e)-[r:RELATES_TO]-(:Entity)
            WHERE r.validTo IS NULL
            WITH DISTINCT r
            MATCH (from:Entity)-[r]->(to:Entity)
            {_RELATION_RETURN}
            """,
            name=entity_name,
        )
        return [row_to_relation(row) for row in rows]

    async def get_current_relation(
        self, from_entity: str, to_entity: str, relation_type: str
    ) -> Relation | None:
        rows = await self._fetch(
            f"""
            MATCH (from:Entity {{name: $fromName}})-[r:RELATES_TO]->(to:Entity {{name: $toName}})
            WHERE r.relationType = $relationType
              AND r.validTo IS NULL
            {_RELATION_RETURN}
            LIMIT 1
            """,
            fromName=from_entity,
            toName=to_entity,
            relationType=relation_type,
        )
        return row_to_relation(rows[0]) if rows else None

    async def insert_relation(self, relation: Relation) -> Relation:
        rows = await self._fetch(
            f"""
            MATCH (from:Entity {{id: $fromId}})
            MATCH (to:Entity {{id: $toId}})
            CREATE (from)-[r:RELATES_TO {{{_RELATION_PROPERTIES}}}]->(to)
            {_RELATION_RETURN}
            """,
            **relation_to_params(relation),
        )
        if not rows:
            raise NotFoundError(
                f"Relation endpoints not found: {relation.from_entity} -> {relation.to_entity}"
            )
        return relation

    async def close_relation(self, relation_id: str, valid_to: datetime) -> None:
        rows = await self._fetch(
            """
            MATCH (:Entity)-[r:RELATES_TO {id: $id}]->(:Entity)
            SET r.validTo = $validTo
            RETURN count(r) AS closed
            """,
            id=relation_id,
            validTo=to_epoch_ms(valid_to),
        )
        if not rows or rows[0]["closed"] == 0:
            raise NotFoundError(f"Relation row not found: {relation_id}")

    async def delete_entities(self, names: list[str]) -> int:
        rows = await self._fetch(
            """
            MATCH (e:Entity)
            WHERE e.name IN $names
            DETACH DELETE e
            RETURN count(e) AS deleted
            """,
            names=names,
        )
        return rows[0]["deleted"] if rows else 0

    async def delete_relations(self, keys: list[RelationKey]) -> int:
        deleted = 0
        for key in keys:
            rows = await self._fetch(
                """
                MATCH (:Entity {name: $fromName})-[r:RELATES_TO]->(:Entity {name: $toName})
                WHERE r.relationType = $relationType
                DELETE r
                RETURN count(r) AS deleted
                """,
                fromName=key.from_entity,
                toName=key.to_entity,
                relationType=key.relation_type,
            )
            deleted += rows[0]["deleted"] if rows else 0
        return deleted

    async def clear(self) -> None:
        await self._fetch("MATCH (e:Entity) DETACH DELETE e")


class Neo4jGraphStore(GraphStore):
    """Neo4j-backed graph store.

    Uses the native vector index (`db.index.vector.queryNodes`) over
    `Entity.embedding`. Schema and vector index creation are lazy and
    idempotent.
    """

    def __init__(
        self,
        driver: Neo4jDriver,
        *,
        vector_index_name: str = "entity_embeddings",
        similarity_function: str = "cosine",
    ) -> None:
        """Initialize with a driver.

        Args:
            driver: Connected (or lazily connecting) Neo4j driver
            vector_index_name: Name of the vector index over Entity.embedding
            similarity_function: "cosine" or "euclidean"
        """
        if not _IDENTIFIER.match(vector_index_name):
            raise ValueError(f"Invalid vector index name: {vector_index_name!r}")
        if similarity_function not in ("cosine", "euclidean"):
            raise ValueError(f"Unsupported similarity function: {similarity_function!r}")
        self._driver = driver
        self._vector_index_name = vector_index_name
        self._similarity_function = similarity_function
        self._schema_ready = False
        self._vector_index_ready = False

    @property
    def vector_index_name(self) -> str:
        return self._vector_index_name

    async def initialize_schema(self) -> None:
        """Create the id constraint and name index if missing."""
        if self._schema_ready:
            return
        try:
            await self._driver.execute_query(
                "CREATE CONSTRAINT entity_id_unique IF NOT EXISTS "
                "FOR (e:Entity) REQUIRE e.id IS UNIQUE"
            )
            await self._driver.execute_query(
                "CREATE INDEX entity_name IF NOT EXISTS FOR (e:Entity) ON (e.name)"
            )
        except (DriverError, Neo4jError) as e:
            logger.error("neo4j_schema_init_failed", error=str(e))
            raise StoreError(f"Failed to initialize Neo4j schema: {e}", cause=e) from e
        self._schema_ready = True
        logger.info("neo4j_schema_initialized")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[GraphTransaction]:
        await self.initialize_schema()
        async with self._driver.transaction() as tx:
            yield Neo4jGraphTransaction(tx)

    async def _query(self, operation: str, query: str, /, **params: Any) -> list[dict[str, Any]]:
        try:
            return await self._driver.execute_query(query, params)
        except StoreError:
            raise
        except (DriverError, Neo4jError) as e:
            logger.error("neo4j_query_failed", operation=operation, error=str(e))
            raise StoreError(f"Neo4j {operation} failed: {e}", cause=e) from e

    # Current-state reads
    async def get_current_entities(self, names: list[str]) -> list[Entity]:
        if not names:
            return []
        rows = await self._query(
            "get_current_entities",
            """
            MATCH (e:Entity)
            WHERE e.name IN $names
              AND e.validTo IS NULL
            RETURN e
            """,
            names=names,
        )
        return [node_to_entity(row["e"]) for row in rows]

    async def get_all_current_entities(self) -> list[Entity]:
        rows = await self._query(
            "get_all_current_entities",
            """
            MATCH (e:Entity)
            WHERE e.validTo IS NULL
            RETURN e
            """,
        )
        return [node_to_entity(row["e"]) for row in rows]

    async def get_relations_between(self, names: list[str]) -> list[Relation]:
        if not names:
            return []
        rows = await self._query(
            "get_relations_between",
            f"""
            MATCH (from:Entity)-[r:RELATES_TO]->(to:Entity)
            WHERE from.name IN $names
              AND to.name IN $names
              AND r.validTo IS NULL
            {_RELATION_RETURN}
            """,
            names=names,
        )
        return [row_to_relation(row) for row in rows]

    async def get_all_current_relations(self) -> list[Relation]:
        rows = await self._query(
            "get_all_current_relations",
            f"""
            MATCH (from:Entity)-[r:RELATES_TO]->(to:Entity)
            WHERE r.validTo IS NULL
            {_RELATION_RETURN}
            """,
        )
        return [row_to_relation(row) for row in rows]

    async def get_current_relation(
        self, from_entity: str, to_entity: str, relation_type: str
    ) -> Relation | None:
        rows = await self._query(
            "get_current_relation",
            f"""
            MATCH (from:Entity {{name: $fromName}})-[r:RELATES_TO]->(to:Entity {{name: $toName}})
            WHERE r.relationType = $relationType
              AND r.validTo IS NULL
            {_RELATION_RETURN}
            LIMIT 1
            """,
            fromName=from_entity,
            toName=to_entity,
            relationType=relation_type,
        )
        return row_to_relation(rows[0]) if rows else None

    # History reads
    async def get_entity_history(self, name: str) -> list[Entity]:
        rows = await self._query(
            "get_entity_history",
            """
            MATCH (e:Entity {name: $name})
            RETURN e
            ORDER BY e.validFrom ASC, e.version ASC
            """,
            name=name,
        )
        return [node_to_entity(row["e"]) for row in rows]

    async def get_relation_history(
        self, from_entity: str, to_entity: str, relation_type: str
    ) -> list[Relation]:
        rows = await self._query(
            "get_relation_history",
            f"""
            MATCH (from:Entity {{name: $fromName}})-[r:RELATES_TO]->(to:Entity {{name: $toName}})
            WHERE r.relationType = $relationType
            {_RELATION_RETURN}
            ORDER BY rel.validFrom ASC, rel.version ASC
            """,
            fromName=from_entity,
            toName=to_entity,
            relationType=relation_type,
        )
        return [row_to_relation(row) for row in rows]

    async def get_entities_at(self, instant: datetime) -> list[Entity]:
        rows = await self._query(
            "get_entities_at",
            """
            MATCH (e:Entity)
            WHERE e.validFrom <= $timestamp
              AND (e.validTo IS NULL OR e.validTo > $timestamp)
            RETURN e
            """,
            timestamp=to_epoch_ms(instant),
        )
        return [node_to_entity(row["e"]) for row in rows]

    async def get_relations_at(self, instant: datetime) -> list[Relation]:
        rows = await self._query(
            "get_relations_at",
            f"""
            MATCH (from:Entity)-[r:RELATES_TO]->(to:Entity)
            WHERE r.validFrom <= $timestamp
              AND (r.validTo IS NULL OR r.validTo > $timestamp)
            {_RELATION_RETURN}
            """,
            timestamp=to_epoch_ms(instant),
        )
        return [row_to_relation(row) for row in rows]

    # Search
    async def text_search(
        self,
        query: str,
        *,
        entity_types: list[str] | None = None,
        limit: int = 10,
    ) -> list[Entity]:
        """Case-insensitive substring match.

        Observations are stored as JSON text, so they are matched against the
        query escaped the same way.
        """
        needle = query.lower()
        params: dict[str, Any] = {
            "query": needle,
            "escapedQuery": json_fragment(needle),
            "limit": int(limit),
        }
        type_filter = ""
        if entity_types:
            type_filter = "AND e.entityType IN $entityTypes"
            params["entityTypes"] = entity_types

        rows = await self._query(
            "text_search",
            f"""
            MATCH (e:Entity)
            WHERE (toLower(e.name) CONTAINS $query
                   OR toLower(e.entityType) CONTAINS $query
                   OR toLower(e.observations) CONTAINS $escapedQuery)
              {type_filter}
              AND e.validTo IS NULL
            RETURN e
            LIMIT $limit
            """,
            **params,
        )
        return [node_to_entity(row["e"]) for row in rows]

    @property
    def vector_index_ready(self) -> bool:
        return self._vector_index_ready

    async def ensure_vector_index(self, dimensions: int) -> None:
        if self._vector_index_ready:
            return
        if dimensions <= 0:
            raise IndexUnavailableError(f"Invalid vector dimensions: {dimensions}")

        try:
            await self.initialize_schema()
            await self._driver.execute_query(
                f"CREATE VECTOR INDEX {self._vector_index_name} IF NOT EXISTS "
                "FOR (e:Entity) ON (e.embedding) "
                "OPTIONS {indexConfig: {"
                f"`vector.dimensions`: {int(dimensions)}, "
                f"`vector.similarity_function`: '{self._similarity_function}'"
                "}}"
            )
            await self._driver.execute_query(
                "CALL db.awaitIndex($name, 300)",
                {"name": self._vector_index_name},
            )
        except (StoreError, DriverError, Neo4jError) as e:
            logger.error(
                "vector_index_init_failed",
                index=self._vector_index_name,
                dimensions=dimensions,
                error=str(e),
            )
            raise IndexUnavailableError(f"Vector index unavailable: {e}", cause=e) from e

        # Concurrent initializers may both get here; IF NOT EXISTS makes that harmless.
        self._vector_index_ready = True
        logger.info(
            "vector_index_ready",
            index=self._vector_index_name,
            dimensions=dimensions,
            similarity=self._similarity_function,
        )

    async def _query_index(
        self,
        query: str,
        **params: Any,
    ) -> list[tuple[Entity, float]]:
        try:
            rows = await self._driver.execute_query(query, params)
        except (StoreError, DriverError, Neo4jError) as e:
            logger.warning("vector_query_failed", index=self._vector_index_name, error=str(e))
            raise IndexUnavailableError(f"Vector query failed: {e}", cause=e) from e
        return [(node_to_entity(row["e"]), float(row["score"])) for row in rows]

    async def vector_search(
        self,
        query_vector: list[float],
        *,
        limit: int = 10,
        min_score: float = 0.0,
    ) -> list[tuple[Entity, float]]:
        return await self._query_index(
            """
            CALL db.index.vector.queryNodes($indexName, $limit, $embedding)
            YIELD node, score
            WHERE node.validTo IS NULL AND score >= $minScore
            RETURN node AS e, score
            ORDER BY score DESC
            """,
            indexName=self._vector_index_name,
            limit=int(limit),
            embedding=query_vector,
            minScore=min_score,
        )

    async def nearest_neighbors(
        self,
        query_vector: list[float],
        *,
        limit: int = 10,
    ) -> list[tuple[Entity, float]]:
        return await self._query_index(
            """
            CALL db.index.vector.queryNodes($indexName, $limit, $embedding)
            YIELD node, score
            RETURN node AS e, score
            ORDER BY score DESC
            """,
            indexName=self._vector_index_name,
            limit=int(limit),
            embedding=query_vector,
        )

    # Embeddings
    async def set_entity_embedding(self, entity_id: str, embedding: list[float]) -> bool:
        rows = await self._query(
            "set_entity_embedding",
            """
            MATCH (e:Entity {id: $id})
            WHERE e.validTo IS NULL
            SET e.embedding = $embedding,
                e.updatedAt = $now
            RETURN count(e) AS updated
            """,
            id=entity_id,
            embedding=embedding,
            now=to_epoch_ms(utc_now()),
        )
        return bool(rows) and rows[0]["updated"] > 0

    async def vector_index_info(self) -> dict[str, Any]:
        coverage = await self._query(
            "vector_index_info",
            """
            MATCH (e:Entity)
            WHERE e.validTo IS NULL
            RETURN count(e) AS current, count(e.embedding) AS embedded
            """,
        )
        indexes = await self._query(
            "vector_index_info",
            """
            SHOW INDEXES
            YIELD name, type, state, populationPercent
            WHERE name = $name
            RETURN name, type, state, populationPercent
            """,
            name=self._vector_index_name,
        )
        return {
            "backend": "neo4j",
            "database": self._driver.database,
            "index_name": self._vector_index_name,
            "index_ready": self._vector_index_ready,
            "index": indexes[0] if indexes else None,
            "current_entities": coverage[0]["current"] if coverage else 0,
            "current_entities_with_embedding": coverage[0]["embedded"] if coverage else 0,
        }

    async def close(self) -> None:
        await self._driver.close()
