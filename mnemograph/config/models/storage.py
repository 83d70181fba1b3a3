"""Storage backend configuration models."""

from typing import Literal

from pydantic import BaseModel, Field, SecretStr

BackendType = Literal["inmemory", "neo4j"]
SimilarityFunction = Literal["cosine", "euclidean"]


class StorageConfig(BaseModel):
    """Configuration for the persistent graph store.

    Note: the password should come from the NEO4J_PASSWORD environment
    variable, not from config files.
    """

    backend: BackendType = Field(
        default="neo4j",
        description="Graph store backend type",
    )
    uri: str = Field(
        default="bolt://localhost:7687",
        description="Neo4j connection URI",
    )
    username: str = Field(default="neo4j", description="Neo4j user")
    password: SecretStr | None = Field(
        default=None,
        description="Neo4j password (prefer NEO4J_PASSWORD env var)",
    )
    database: str = Field(default="neo4j", description="Neo4j database name")
    vector_index_name: str = Field(
        default="entity_embeddings",
        description="Name of the native vector index over Entity.embedding",
    )
    dimensions: int | None = Field(
        default=None,
        gt=0,
        description="Vector dimensions; None defers to the embedding provider",
    )
    similarity_function: SimilarityFunction = Field(
        default="cosine",
        description="Similarity function of the vector index",
    )
    max_connection_pool_size: int = Field(
        default=50,
        gt=0,
        description="Driver connection pool size",
    )
    max_connection_lifetime: int = Field(
        default=3600,
        gt=0,
        description="Maximum connection lifetime in seconds",
    )
