"""Read-time confidence decay for relations.

Confidence halves every `half_life_days` and never drops below
`min_confidence`. Stored rows are never touched: decay reshapes copies of
already-loaded relations, so two reads at the same instant agree.
"""

import math
from collections.abc import Callable
from datetime import datetime
from typing import Any

from mnemograph.config.models.graph import DecayConfig
from mnemograph.graph.models import KnowledgeGraph, Relation
from mnemograph.utils.time import MS_PER_DAY, to_epoch_ms, utc_now


class ConfidenceDecay:
    """Exponential half-life decay of relation confidence."""

    def __init__(
        self,
        config: DecayConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._config = config or DecayConfig()
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def half_life_days(self) -> float:
        return self._config.half_life_days

    @property
    def min_confidence(self) -> float:
        return self._config.min_confidence

    @property
    def decay_factor(self) -> float:
        """Rate constant k per millisecond; always negative."""
        return math.log(0.5) / (self._config.half_life_days * MS_PER_DAY)

    def confidence_at_age(self, base_confidence: float, age_ms: float) -> float:
        """c(age) = max(min_confidence, c0 * e^(k * age)).

        Negative ages count as zero.
        """
        age_ms = max(0.0, age_ms)
        decayed = base_confidence * math.exp(self.decay_factor * age_ms)
        return max(self._config.min_confidence, decayed)

    def decay_relation(self, relation: Relation, now: datetime) -> Relation:
        """Return a copy of the relation with confidence decayed to `now`."""
        if relation.confidence is None:
            return relation.model_copy()
        age_ms = to_epoch_ms(now) - to_epoch_ms(relation.valid_from)
        return relation.model_copy(
            update={"confidence": self.confidence_at_age(relation.confidence, age_ms)}
        )

    def apply(self, graph: KnowledgeGraph, now: datetime | None = None) -> KnowledgeGraph:
        """Return a graph whose relation confidences are decayed to `now`.

        When disabled, the graph is returned unchanged.
        """
        if not self._config.enabled:
            return graph

        instant = now or self._clock()
        return graph.model_copy(
            update={
                "relations": [self.decay_relation(rel, instant) for rel in graph.relations],
            }
        )

    def describe(self) -> dict[str, Any]:
        """Decay parameters for diagnostics."""
        return {
            "enabled": self._config.enabled,
            "half_life_days": self._config.half_life_days,
            "min_confidence": self._config.min_confidence,
            "decay_factor": self.decay_factor,
        }
