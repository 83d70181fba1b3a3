"""Relation model for the knowledge graph."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mnemograph.graph.models.entity import new_version_id
from mnemograph.utils.time import utc_now

DEFAULT_STRENGTH = 0.9
DEFAULT_CONFIDENCE = 0.95


class RelationKey(BaseModel):
    """Logical key of a relation: (from, to, type)."""

    model_config = ConfigDict(frozen=True)

    from_entity: str = Field(..., description="Source entity name")
    to_entity: str = Field(..., description="Target entity name")
    relation_type: str = Field(..., description="Relation type in active voice")


class Relation(BaseModel):
    """One version of a directed, typed edge between two entities.

    Endpoints are addressed by entity name. `from_entity_id`/`to_entity_id`
    pin the entity versions this row was attached to.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    id: str = Field(default_factory=new_version_id, description="Identity of this version")
    from_entity: str = Field(..., description="Source entity name")
    to_entity: str = Field(..., description="Target entity name")
    relation_type: str = Field(..., description="Type: relates_to, depends_on, etc.")
    strength: float | None = Field(default=None, ge=0.0, le=1.0, description="Edge weight")
    confidence: float | None = Field(default=None, ge=0.0, le=1.0, description="Trust score")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Opaque properties")
    version: int = Field(default=1, ge=1, description="Monotonic per logical key")
    created_at: datetime = Field(default_factory=utc_now, description="First version creation")
    updated_at: datetime = Field(default_factory=utc_now, description="This version's write time")
    valid_from: datetime = Field(default_factory=utc_now, description="Start of validity")
    valid_to: datetime | None = Field(default=None, description="End of validity; None if current")
    changed_by: str | None = Field(default=None, description="Actor tag")
    from_entity_id: str | None = Field(default=None, description="Source entity version id")
    to_entity_id: str | None = Field(default=None, description="Target entity version id")

    @property
    def is_current(self) -> bool:
        return self.valid_to is None

    @property
    def key(self) -> RelationKey:
        return RelationKey(
            from_entity=self.from_entity,
            to_entity=self.to_entity,
            relation_type=self.relation_type,
        )

    def touches(self, entity_name: str) -> bool:
        return entity_name in (self.from_entity, self.to_entity)

    def valid_at(self, instant: datetime) -> bool:
        if self.valid_from > instant:
            return False
        return self.valid_to is None or self.valid_to > instant
