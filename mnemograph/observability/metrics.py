"""Prometheus metrics for the knowledge graph engine.

Tracks version churn, which retrieval strategy actually served a search,
and how often the engine had to degrade.
"""

from prometheus_client import Counter, Histogram

# Versioning metrics
VERSIONS_WRITTEN = Counter(
    "mnemograph_versions_written_total",
    "Number of entity/relation rows written, including superseding versions",
    labelnames=["kind", "operation"],
)

HARD_DELETES = Counter(
    "mnemograph_hard_deletes_total",
    "Number of rows removed outright, bypassing version history",
    labelnames=["kind"],
)

# Retrieval metrics
SEARCH_REQUESTS = Counter(
    "mnemograph_search_requests_total",
    "Search requests by the strategy that produced the result",
    labelnames=["strategy"],
)

SEARCH_FALLBACKS = Counter(
    "mnemograph_search_fallbacks_total",
    "Times a search degraded to a lower-fidelity strategy",
    labelnames=["reason"],
)

SEARCH_LATENCY = Histogram(
    "mnemograph_search_latency_seconds",
    "End-to-end search latency in seconds",
    labelnames=["strategy"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# Embedding metrics
EMBEDDING_FAILURES = Counter(
    "mnemograph_embedding_failures_total",
    "Embedding generation failures absorbed by the engine",
    labelnames=["operation"],
)
