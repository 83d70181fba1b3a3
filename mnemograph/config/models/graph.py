"""Knowledge graph engine configuration models."""

from pydantic import BaseModel, Field


class DecayConfig(BaseModel):
    """Read-time confidence decay settings."""

    enabled: bool = Field(default=True, description="Apply decay in decayed_graph()")
    half_life_days: float = Field(
        default=30.0,
        gt=0,
        description="Days for relation confidence to halve",
    )
    min_confidence: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Floor below which confidence never decays",
    )


class SearchConfig(BaseModel):
    """Retrieval defaults."""

    default_limit: int = Field(default=10, ge=1, description="Default result limit")
    min_similarity: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Similarity floor for vector search",
    )
    fallback_oversample: int = Field(
        default=2,
        ge=1,
        description="top-K multiplier used by the nearest-neighbour fallback path",
    )


class GraphConfig(BaseModel):
    """Configuration for the versioned graph engine."""

    decay: DecayConfig = Field(default_factory=DecayConfig, description="Decay settings")
    search: SearchConfig = Field(default_factory=SearchConfig, description="Search settings")
