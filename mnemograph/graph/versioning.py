"""Copy-on-write versioning of entities and relations.

Every logical entity (keyed by name) and relation (keyed by from, to and
type) has at most one current row, the one with `valid_to=None`. A
mutation closes the current row and inserts its successor inside a single
store transaction. When an entity is superseded, every current relation
touching it is superseded too, so current relations always point at
current entity versions.

Embeddings are generated outside of store transactions.
"""

import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

from mnemograph.db.errors import StoreError, TransactionError
from mnemograph.graph.models import (
    DEFAULT_CONFIDENCE,
    DEFAULT_STRENGTH,
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
)
from mnemograph.graph.store import GraphStore, GraphTransaction
from mnemograph.observability.logging import get_logger
from mnemograph.observability.metrics import (
    EMBEDDING_FAILURES,
    HARD_DELETES,
    VERSIONS_WRITTEN,
)
from mnemograph.providers.embedding.base import EmbeddingProvider
from mnemograph.utils.time import utc_now

logger = get_logger(__name__)


def _dedupe(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


class VersionManager:
    """Applies versioned writes and serves history reads.

    Concurrent updates to the same entity are not serialized here; two
    writers that read the same current row can race (last commit wins).
    """

    def __init__(
        self,
        store: GraphStore,
        embedder: EmbeddingProvider | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._clock = clock

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[GraphTransaction]:
        try:
            async with self._store.transaction() as tx:
                yield tx
        except TransactionError as e:
            logger.error("graph_transaction_failed", operation=operation, error=str(e))
            raise
        except StoreError as e:
            logger.error("graph_transaction_failed", operation=operation, error=str(e))
            raise TransactionError(f"{operation} failed: {e}", cause=e) from e

    # Embeddings

    async def _embed_texts(self, texts: list[str], operation: str) -> list[list[float]] | None:
        """Embed texts, or return None if no provider or the provider fails."""
        if self._embedder is None or not texts:
            return None
        try:
            batch = await self._embedder.embed_batch(texts)
        except Exception as e:
            EMBEDDING_FAILURES.labels(operation=operation).inc()
            logger.warning(
                "embedding_generation_failed",
                operation=operation,
                num_texts=len(texts),
                error=str(e),
            )
            return None
        return batch.vectors

    async def refresh_embedding(self, entity: Entity, operation: str = "refresh") -> bool:
        """Re-embed a current entity version from its observations.

        Failures are logged and absorbed. Returns True if a vector was stored.
        """
        text = entity.embedding_text()
        if not text:
            return False
        vectors = await self._embed_texts([text], operation)
        if not vectors:
            return False
        try:
            stored = await self._store.set_entity_embedding(entity.id, vectors[0])
        except StoreError as e:
            EMBEDDING_FAILURES.labels(operation=operation).inc()
            logger.warning(
                "embedding_store_failed",
                entity_name=entity.name,
                operation=operation,
                error=str(e),
            )
            return False
        if stored:
            entity.embedding = vectors[0]
        else:
            logger.debug("embedding_target_superseded", entity_name=entity.name, entity_id=entity.id)
        return stored

    # Entity writes

    async def create_entities(self, entities: list[NewEntity]) -> list[Entity]:
        """Insert version-1 rows for names that have no current version.

        Names that already exist, and repeats within the batch, are skipped.
        """
        if not entities:
            return []

        batch: dict[str, NewEntity] = {}
        for new in entities:
            if new.name in batch:
                logger.warning("entity_duplicate_in_batch", entity_name=new.name)
                continue
            batch[new.name] = new

        existing = {e.name for e in await self._store.get_current_entities(list(batch))}
        candidates = [new for name, new in batch.items() if name not in existing]

        embeddable = [new for new in candidates if new.observations]
        vectors = await self._embed_texts(
            ["\n".join(_dedupe(new.observations)) for new in embeddable],
            "create_entities",
        )
        embeddings: dict[str, list[float]] = {}
        if vectors:
            embeddings = {new.name: vector for new, vector in zip(embeddable, vectors)}

        now = self._clock()
        created: list[Entity] = []
        async with self._transaction("create_entities") as tx:
            for new in batch.values():
                if new.name in existing or await tx.get_current_entity(new.name) is not None:
                    logger.warning("entity_already_exists", entity_name=new.name)
                    continue
                entity = Entity(
                    name=new.name,
                    entity_type=new.entity_type,
                    observations=_dedupe(new.observations),
                    version=1,
                    created_at=now,
                    updated_at=now,
                    valid_from=now,
                    changed_by=new.changed_by,
                    embedding=embeddings.get(new.name),
                )
                await tx.insert_entity(entity)
                created.append(entity)

        VERSIONS_WRITTEN.labels(kind="entity", operation="create").inc(len(created))
        logger.info("entities_created", requested=len(entities), created=len(created))
        return created

    async def _supersede_entity(
        self,
        tx: GraphTransaction,
        current: Entity,
        observations: list[str],
        now: datetime,
        operation: str,
    ) -> Entity:
        """Close `current`, insert its successor and re-point adjacent relations."""
        adjacent = await tx.get_current_relations(current.name)

        await tx.close_entity(current.id, now)
        successor = Entity(
            name=current.name,
            entity_type=current.entity_type,
            observations=observations,
            version=current.version + 1,
            created_at=current.created_at,
            updated_at=now,
            valid_from=now,
            changed_by=None,
            # A version without observations has nothing to embed
            embedding=current.embedding if observations else None,
        )
        await tx.insert_entity(successor)

        for relation in adjacent:
            await tx.close_relation(relation.id, now)
            await tx.insert_relation(_carry_forward(relation, successor, now))

        VERSIONS_WRITTEN.labels(kind="entity", operation=operation).inc()
        VERSIONS_WRITTEN.labels(kind="relation", operation=operation).inc(len(adjacent))
        logger.debug(
            "entity_superseded",
            entity_name=current.name,
            version=successor.version,
            relations_repointed=len(adjacent),
        )
        return successor

    async def add_observations(
        self, additions: list[ObservationAddition]
    ) -> list[ObservationResult]:
        """Append new observations, one transaction per entity.

        Contents already present are ignored; if nothing is new, no version
        is written. Unknown entities are skipped.
        """
        results: list[ObservationResult] = []
        for addition in additions:
            successor: Entity | None = None
            async with self._transaction("add_observations") as tx:
                current = await tx.get_current_entity(addition.entity_name)
                if current is None:
                    logger.warning(
                        "entity_not_found",
                        entity_name=addition.entity_name,
                        operation="add_observations",
                    )
                    continue

                present = set(current.observations)
                added = [c for c in _dedupe(addition.contents) if c not in present]
                if added:
                    successor = await self._supersede_entity(
                        tx, current, current.observations + added, self._clock(), "add_observations"
                    )

            results.append(ObservationResult(entity_name=addition.entity_name, added_observations=added))
            if successor is not None:
                await self.refresh_embedding(successor, "add_observations")
        return results

    async def delete_observations(
        self, deletions: list[ObservationDeletion]
    ) -> list[ObservationResult]:
        """Remove observations, one transaction per entity.

        If none of the given observations are present, no version is written.
        """
        results: list[ObservationResult] = []
        for deletion in deletions:
            successor: Entity | None = None
            async with self._transaction("delete_observations") as tx:
                current = await tx.get_current_entity(deletion.entity_name)
                if current is None:
                    logger.warning(
                        "entity_not_found",
                        entity_name=deletion.entity_name,
                        operation="delete_observations",
                    )
                    continue

                targets = set(deletion.observations)
                removed = [o for o in current.observations if o in targets]
                if removed:
                    remaining = [o for o in current.observations if o not in targets]
                    successor = await self._supersede_entity(
                        tx, current, remaining, self._clock(), "delete_observations"
                    )

            results.append(
                ObservationResult(entity_name=deletion.entity_name, removed_observations=removed)
            )
            if successor is not None:
                await self.refresh_embedding(successor, "delete_observations")
        return results

    # Relation writes

    async def create_relations(self, relations: list[NewRelation]) -> list[Relation]:
        """Insert version-1 relations in one transaction.

        A relation whose endpoints are not both current entities, or whose
        key already has a current version, is skipped.
        """
        if not relations:
            return []

        now = self._clock()
        created: list[Relation] = []
        async with self._transaction("create_relations") as tx:
            for new in relations:
                source = await tx.get_current_entity(new.from_entity)
                target = (
                    source
                    if new.to_entity == new.from_entity
                    else await tx.get_current_entity(new.to_entity)
                )
                if source is None or target is None:
                    logger.warning(
                        "relation_endpoint_missing",
                        from_entity=new.from_entity,
                        to_entity=new.to_entity,
                        relation_type=new.relation_type,
                    )
                    continue

                if await tx.get_current_relation(
                    new.from_entity, new.to_entity, new.relation_type
                ) is not None:
                    logger.warning(
                        "relation_already_exists",
                        from_entity=new.from_entity,
                        to_entity=new.to_entity,
                        relation_type=new.relation_type,
                    )
                    continue

                relation = Relation(
                    from_entity=new.from_entity,
                    to_entity=new.to_entity,
                    relation_type=new.relation_type,
                    strength=new.strength,
                    confidence=new.confidence,
                    metadata=dict(new.metadata),
                    version=1,
                    created_at=now,
                    updated_at=now,
                    valid_from=now,
                    changed_by=new.changed_by,
                    from_entity_id=source.id,
                    to_entity_id=target.id,
                )
                await tx.insert_relation(relation)
                created.append(relation)

        VERSIONS_WRITTEN.labels(kind="relation", operation="create").inc(len(created))
        logger.info("relations_created", requested=len(relations), created=len(created))
        return created

    async def update_relation(self, update: RelationUpdate) -> Relation | None:
        """Supersede a relation, carrying forward fields left as None.

        Returns the new version, or None if the relation does not exist.
        """
        now = self._clock()
        async with self._transaction("update_relation") as tx:
            current = await tx.get_current_relation(
                update.from_entity, update.to_entity, update.relation_type
            )
            if current is None:
                logger.warning(
                    "relation_not_found",
                    from_entity=update.from_entity,
                    to_entity=update.to_entity,
                    relation_type=update.relation_type,
                )
                return None

            source = await tx.get_current_entity(update.from_entity)
            target = await tx.get_current_entity(update.to_entity)
            if source is None or target is None:
                logger.warning(
                    "relation_endpoint_missing",
                    from_entity=update.from_entity,
                    to_entity=update.to_entity,
                    relation_type=update.relation_type,
                )
                return None

            successor = Relation(
                from_entity=current.from_entity,
                to_entity=current.to_entity,
                relation_type=current.relation_type,
                strength=update.strength if update.strength is not None else current.strength,
                confidence=(
                    update.confidence if update.confidence is not None else current.confidence
                ),
                metadata=update.metadata if update.metadata is not None else dict(current.metadata),
                version=current.version + 1,
                created_at=current.created_at,
                updated_at=now,
                valid_from=now,
                changed_by=update.changed_by,
                from_entity_id=source.id,
                to_entity_id=target.id,
            )
            await tx.close_relation(current.id, now)
            await tx.insert_relation(successor)

        VERSIONS_WRITTEN.labels(kind="relation", operation="update").inc()
        logger.info(
            "relation_updated",
            from_entity=successor.from_entity,
            to_entity=successor.to_entity,
            relation_type=successor.relation_type,
            version=successor.version,
        )
        return successor

    # Hard deletes

    async def delete_entities(self, names: list[str]) -> int:
        """Remove every version of the named entities and their relations.

        History is not kept.
        """
        if not names:
            return 0
        async with self._transaction("delete_entities") as tx:
            deleted = await tx.delete_entities(names)
        HARD_DELETES.labels(kind="entity").inc(deleted)
        logger.info("entities_deleted", names=names, rows=deleted)
        return deleted

    async def delete_relations(self, keys: list[RelationKey]) -> int:
        """Remove every version of the given relations. History is not kept."""
        if not keys:
            return 0
        async with self._transaction("delete_relations") as tx:
            deleted = await tx.delete_relations(keys)
        HARD_DELETES.labels(kind="relation").inc(deleted)
        logger.info("relations_deleted", keys=len(keys), rows=deleted)
        return deleted

    async def replace_graph(self, graph: KnowledgeGraph) -> None:
        """Replace the whole store with `graph` in one transaction.

        Rows are written as given. Relations without valid entity version ids
        are attached to the current entity of the same name, or dropped if
        there is none.

        Raises:
            ValueError: If the graph holds two current rows for one name or key
        """
        current_ids: dict[str, str] = {}
        for entity in graph.entities:
            if entity.is_current:
                if entity.name in current_ids:
                    raise ValueError(f"Multiple current versions for entity: {entity.name}")
                current_ids[entity.name] = entity.id

        current_keys: set[RelationKey] = set()
        for relation in graph.relations:
            if relation.is_current:
                if relation.key in current_keys:
                    raise ValueError(f"Multiple current versions for relation: {relation.key}")
                current_keys.add(relation.key)

        known_ids = {entity.id for entity in graph.entities}
        async with self._transaction("save_graph") as tx:
            await tx.clear()
            for entity in graph.entities:
                await tx.insert_entity(entity)
            written = 0
            for relation in graph.relations:
                from_id = relation.from_entity_id
                to_id = relation.to_entity_id
                if from_id not in known_ids:
                    from_id = current_ids.get(relation.from_entity)
                if to_id not in known_ids:
                    to_id = current_ids.get(relation.to_entity)
                if from_id is None or to_id is None:
                    logger.warning(
                        "relation_endpoint_missing",
                        from_entity=relation.from_entity,
                        to_entity=relation.to_entity,
                        relation_type=relation.relation_type,
                    )
                    continue
                await tx.insert_relation(
                    relation.model_copy(update={"from_entity_id": from_id, "to_entity_id": to_id})
                )
                written += 1

        logger.info("graph_saved", entities=len(graph.entities), relations=written)

    # History reads

    async def get_entity_history(self, name: str) -> list[Entity]:
        return await self._store.get_entity_history(name)

    async def get_relation_history(
        self, from_entity: str, to_entity: str, relation_type: str
    ) -> list[Relation]:
        return await self._store.get_relation_history(from_entity, to_entity, relation_type)

    async def graph_at_time(self, instant: datetime) -> KnowledgeGraph:
        """Reconstruct the graph as it was at `instant`."""
        start = time.perf_counter()
        entities = await self._store.get_entities_at(instant)
        relations = await self._store.get_relations_at(instant)
        return KnowledgeGraph(
            entities=entities,
            relations=relations,
            total=len(entities),
            time_taken=(time.perf_counter() - start) * 1000,
        )


def _carry_forward(relation: Relation, successor: Entity, now: datetime) -> Relation:
    """Next version of `relation` attached to the entity `successor`."""
    from_id = successor.id if relation.from_entity == successor.name else relation.from_entity_id
    to_id = successor.id if relation.to_entity == successor.name else relation.to_entity_id
    return Relation(
        from_entity=relation.from_entity,
        to_entity=relation.to_entity,
        relation_type=relation.relation_type,
        strength=relation.strength if relation.strength is not None else DEFAULT_STRENGTH,
        confidence=relation.confidence if relation.confidence is not None else DEFAULT_CONFIDENCE,
        metadata=dict(relation.metadata),
        version=relation.version + 1,
        created_at=relation.created_at,
        updated_at=now,
        valid_from=now,
        changed_by=None,
        from_entity_id=from_id,
        to_entity_id=to_id,
    )
