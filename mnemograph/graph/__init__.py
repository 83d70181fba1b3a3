"""Versioned knowledge graph engine.

- VersionManager: copy-on-write entity/relation versions and history
- ConfidenceDecay: read-time relation confidence decay
- GraphRetriever: vector search with lexical fallback and relation hydration
- KnowledgeGraphManager: caller-facing API composing the above
"""

from mnemograph.graph.decay import ConfidenceDecay
from mnemograph.graph.manager import KnowledgeGraphManager
from mnemograph.graph.retrieval import GraphRetriever
from mnemograph.graph.versioning import VersionManager

__all__ = [
    "ConfidenceDecay",
    "GraphRetriever",
    "KnowledgeGraphManager",
    "VersionManager",
]
