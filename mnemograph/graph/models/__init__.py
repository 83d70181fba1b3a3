"""Knowledge graph domain models.

- Entities: versioned, named nodes carrying observations
- Relations: versioned, typed edges between entities by name
- Graph shapes: operation inputs and the KnowledgeGraph projection
"""

from mnemograph.graph.models.entity import Entity
from mnemograph.graph.models.graph import (
    KnowledgeGraph,
    NewEntity,
    NewRelation,
    ObservationAddition,
    ObservationDeletion,
    ObservationResult,
    RelationUpdate,
    SearchOptions,
)
from mnemograph.graph.models.relation import (
    DEFAULT_CONFIDENCE,
    DEFAULT_STRENGTH,
    Relation,
    RelationKey,
)

__all__ = [
    "DEFAULT_CONFIDENCE",
    "DEFAULT_STRENGTH",
    "Entity",
    "KnowledgeGraph",
    "NewEntity",
    "NewRelation",
    "ObservationAddition",
    "ObservationDeletion",
    "ObservationResult",
    "Relation",
    "RelationKey",
    "RelationUpdate",
    "SearchOptions",
]
