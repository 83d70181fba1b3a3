"""Entity model for the knowledge graph."""

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from mnemograph.utils.time import utc_now


def new_version_id() -> str:
    """Return a fresh opaque identity for a row version."""
    return str(uuid4())


class Entity(BaseModel):
    """One version of a named, typed thing.

    `name` is the logical key shared by all versions; `id` identifies this
    particular version. A row with `valid_to=None` is the current version.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    id: str = Field(default_factory=new_version_id, description="Identity of this version")
    name: str = Field(..., min_length=1, description="Logical key, stable across versions")
    entity_type: str = Field(..., description="Type: person, project, programming_language, etc.")
    observations: list[str] = Field(
        default_factory=list,
        description="Free-text facts, insertion order significant",
    )
    version: int = Field(default=1, ge=1, description="Monotonic per logical name")
    created_at: datetime = Field(default_factory=utc_now, description="First version creation")
    updated_at: datetime = Field(default_factory=utc_now, description="This version's write time")
    valid_from: datetime = Field(default_factory=utc_now, description="Start of validity")
    valid_to: datetime | None = Field(default=None, description="End of validity; None if current")
    changed_by: str | None = Field(default=None, description="Actor tag")
    embedding: list[float] | None = Field(default=None, description="Unit vector")

    @property
    def is_current(self) -> bool:
        return self.valid_to is None

    def embedding_text(self) -> str:
        """Text used to embed this entity."""
        return "\n".join(self.observations)

    def valid_at(self, instant: datetime) -> bool:
        """Whether this version was the one in force at `instant`."""
        if self.valid_from > instant:
            return False
        return self.valid_to is None or self.valid_to > instant
