"""GraphStore abstract interface.

The versioning rules live above this layer; stores only provide row-level
primitives inside a transaction plus read queries over current and
historical rows.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Any

from mnemograph.graph.models import Entity, Relation, RelationKey


class GraphTransaction(ABC):
    """Row-level operations executed inside one store transaction.

    Everything done through a transaction commits together or not at all.
    """

    @abstractmethod
    async def get_current_entity(self, name: str) -> Entity | None:
        """Get the current version of an entity."""
        pass

    @abstractmethod
    async def insert_entity(self, entity: Entity) -> Entity:
        """Insert an entity row exactly as given."""
        pass

    @abstractmethod
    async def close_entity(self, entity_id: str, valid_to: datetime) -> None:
        """End the validity of an entity row.

        The closed row drops its embedding, so only current rows are in the
        vector index.
        """
        pass

    @abstractmethod
    async def get_current_relations(self, entity_name: str) -> list[Relation]:
        """Get current relations touching an entity (incoming and outgoing).

        A self-referencing relation is returned once.
        """
        pass

    @abstractmethod
    async def get_current_relation(
        self, from_entity: str, to_entity: str, relation_type: str
    ) -> Relation | None:
        """Get the current version of a relation by its logical key."""
        pass

    @abstractmethod
    async def insert_relation(self, relation: Relation) -> Relation:
        """Insert a relation row attached to the entity versions it names.

        `from_entity_id` and `to_entity_id` must reference existing rows.
        """
        pass

    @abstractmethod
    async def close_relation(self, relation_id: str, valid_to: datetime) -> None:
        """End the validity of a relation row."""
        pass

    @abstractmethod
    async def delete_entities(self, names: list[str]) -> int:
        """Remove every version of the named entities and their relations.

        Returns count of entity rows removed.
        """
        pass

    @abstractmethod
    async def delete_relations(self, keys: list[RelationKey]) -> int:
        """Remove every version of the given relations.

        Returns count of relation rows removed.
        """
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove all rows."""
        pass


class GraphStore(ABC):
    """Abstract interface for the persistent graph store.

    Reads outside a transaction observe committed state only.
    """

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[GraphTransaction]:
        """Open a write transaction.

        Commits when the block exits normally; any exception rolls back.
        """
        pass

    # Current-state reads
    @abstractmethod
    async def get_current_entities(self, names: list[str]) -> list[Entity]:
        """Get current entities by exact name."""
        pass

    @abstractmethod
    async def get_all_current_entities(self) -> list[Entity]:
        """Get every current entity."""
        pass

    @abstractmethod
    async def get_relations_between(self, names: list[str]) -> list[Relation]:
        """Get current relations whose both endpoints are in `names`."""
        pass

    @abstractmethod
    async def get_all_current_relations(self) -> list[Relation]:
        """Get every current relation."""
        pass

    @abstractmethod
    async def get_current_relation(
        self, from_entity: str, to_entity: str, relation_type: str
    ) -> Relation | None:
        """Get the current version of a relation by its logical key."""
        pass

    # History reads
    @abstractmethod
    async def get_entity_history(self, name: str) -> list[Entity]:
        """Get every version of an entity ordered by valid_from."""
        pass

    @abstractmethod
    async def get_relation_history(
        self, from_entity: str, to_entity: str, relation_type: str
    ) -> list[Relation]:
        """Get every version of a relation ordered by valid_from."""
        pass

    @abstractmethod
    async def get_entities_at(self, instant: datetime) -> list[Entity]:
        """Get entity rows with valid_from <= instant < valid_to."""
        pass

    @abstractmethod
    async def get_relations_at(self, instant: datetime) -> list[Relation]:
        """Get relation rows with valid_from <= instant < valid_to."""
        pass

    # Search
    @abstractmethod
    async def text_search(
        self,
        query: str,
        *,
        entity_types: list[str] | None = None,
        limit: int = 10,
    ) -> list[Entity]:
        """Case-insensitive substring match over name, type and observations."""
        pass

    @property
    @abstractmethod
    def vector_index_ready(self) -> bool:
        """Whether the native vector index has been initialized."""
        pass

    @abstractmethod
    async def ensure_vector_index(self, dimensions: int) -> None:
        """Create the vector index if it does not exist. Idempotent.

        Raises:
            IndexUnavailableError: If the index cannot be created
        """
        pass

    @abstractmethod
    async def vector_search(
        self,
        query_vector: list[float],
        *,
        limit: int = 10,
        min_score: float = 0.0,
    ) -> list[tuple[Entity, float]]:
        """Query the vector index for current entities scoring >= min_score.

        Results are ordered by descending score.

        Raises:
            IndexUnavailableError: If the index is missing or unusable
        """
        pass

    @abstractmethod
    async def nearest_neighbors(
        self,
        query_vector: list[float],
        *,
        limit: int = 10,
    ) -> list[tuple[Entity, float]]:
        """Raw top-K lookup over every row carrying an embedding.

        No currency or score filtering is applied.

        Raises:
            IndexUnavailableError: If the index is missing or unusable
        """
        pass

    # Embeddings
    @abstractmethod
    async def set_entity_embedding(self, entity_id: str, embedding: list[float]) -> bool:
        """Attach an embedding to one current entity row.

        Returns False if the row does not exist or is no longer current.
        """
        pass

    @abstractmethod
    async def vector_index_info(self) -> dict[str, Any]:
        """Describe the vector index and embedding coverage."""
        pass

    async def close(self) -> None:
        """Release backend resources."""
        return None
