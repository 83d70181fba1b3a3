"""Request and result shapes for knowledge graph operations."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from mnemograph.graph.models.entity import Entity
from mnemograph.graph.models.relation import Relation


class NewEntity(BaseModel):
    """Input for create_entities."""

    name: str = Field(..., min_length=1)
    entity_type: str = Field(..., min_length=1)
    observations: list[str] = Field(default_factory=list)
    changed_by: str | None = None


class NewRelation(BaseModel):
    """Input for create_relations."""

    from_entity: str = Field(..., min_length=1)
    to_entity: str = Field(..., min_length=1)
    relation_type: str = Field(..., min_length=1)
    strength: float | None = Field(default=None, ge=0.0, le=1.0)
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    metadata: dict[str, Any] = Field(default_factory=dict)
    changed_by: str | None = None


class RelationUpdate(BaseModel):
    """Input for update_relation.

    Fields left as None are carried forward from the current version.
    """

    from_entity: str
    to_entity: str
    relation_type: str
    strength: float | None = Field(default=None, ge=0.0, le=1.0)
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    metadata: dict[str, Any] | None = None
    changed_by: str | None = None


class ObservationAddition(BaseModel):
    """Observations to append to one entity."""

    entity_name: str
    contents: list[str] = Field(default_factory=list)


class ObservationDeletion(BaseModel):
    """Observations to remove from one entity."""

    entity_name: str
    observations: list[str] = Field(default_factory=list)


class ObservationResult(BaseModel):
    """Per-entity outcome of an observation update."""

    entity_name: str
    added_observations: list[str] = Field(default_factory=list)
    removed_observations: list[str] = Field(default_factory=list)


class SearchOptions(BaseModel):
    """Options shared by lexical and semantic search."""

    limit: int = Field(default=10, ge=1, description="Maximum entities returned")
    entity_types: list[str] | None = Field(
        default=None,
        description="Allow-list of entity types",
    )
    min_similarity: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Similarity floor for vector search",
    )
    query_vector: list[float] | None = Field(
        default=None,
        description="Precomputed query vector; skips query embedding",
    )

    @field_validator("query_vector")
    @classmethod
    def _non_empty_vector(cls, value: list[float] | None) -> list[float] | None:
        if value is not None and len(value) == 0:
            raise ValueError("query_vector cannot be empty")
        return value


class KnowledgeGraph(BaseModel):
    """Read-only projection returned by queries. Never persisted as such."""

    entities: list[Entity] = Field(default_factory=list)
    relations: list[Relation] = Field(default_factory=list)
    total: int = Field(default=0, description="Number of entities returned")
    time_taken: float = Field(default=0.0, description="Milliseconds spent on the query")
    diagnostics: dict[str, Any] | None = Field(
        default=None,
        description="Step trace, attached only in debug mode",
    )

    @property
    def entity_names(self) -> list[str]:
        return [entity.name for entity in self.entities]
