"""Graph store implementations."""

from mnemograph.graph.store import GraphStore, GraphTransaction
from mnemograph.graph.stores.inmemory import InMemoryGraphStore
from mnemograph.graph.stores.neo4j import Neo4jGraphStore

__all__ = [
    "GraphStore",
    "GraphTransaction",
    "InMemoryGraphStore",
    "Neo4jGraphStore",
]
