"""Build a KnowledgeGraphManager from settings.

Connection secrets come from settings or the environment (NEO4J_PASSWORD,
OPENAI_API_KEY); everything else comes from TOML configuration.
"""

from mnemograph.config import get_settings
from mnemograph.config.models.storage import StorageConfig
from mnemograph.config.settings import Settings
from mnemograph.db.neo4j import Neo4jDriver
from mnemograph.graph.manager import KnowledgeGraphManager
from mnemograph.graph.store import GraphStore
from mnemograph.graph.stores.inmemory import InMemoryGraphStore
from mnemograph.graph.stores.neo4j import Neo4jGraphStore
from mnemograph.observability.logging import get_logger, setup_logging
from mnemograph.providers.embedding.factory import create_embedding_provider

logger = get_logger(__name__)


def create_graph_store(config: StorageConfig) -> GraphStore:
    """Create a GraphStore instance based on configuration.

    Raises:
        ValueError: If backend type is not supported
    """
    backend = config.backend

    if backend == "inmemory":
        logger.info("creating_graph_store", backend="inmemory")
        return InMemoryGraphStore()

    elif backend == "neo4j":
        driver = Neo4jDriver(
            uri=config.uri,
            username=config.username,
            password=config.password.get_secret_value() if config.password else None,
            database=config.database,
            max_connection_pool_size=config.max_connection_pool_size,
            max_connection_lifetime=config.max_connection_lifetime,
        )
        logger.info(
            "creating_graph_store",
            backend="neo4j",
            uri=config.uri,
            database=config.database,
            vector_index=config.vector_index_name,
        )
        return Neo4jGraphStore(
            driver,
            vector_index_name=config.vector_index_name,
            similarity_function=config.similarity_function,
        )

    else:
        raise ValueError(f"Unsupported graph store backend: {backend}")


def create_knowledge_graph(settings: Settings | None = None) -> KnowledgeGraphManager:
    """Configure logging and assemble store, embedding provider and manager.

    The Neo4j driver connects lazily on first use.
    """
    settings = settings or get_settings()

    log_config = settings.observability.logging
    setup_logging(
        level=log_config.level,
        format=log_config.format,
        redact_pii=log_config.redact_pii,
    )

    store = create_graph_store(settings.storage)
    embedder = create_embedding_provider(settings.providers.embedding)

    dimensions = settings.storage.dimensions
    if dimensions is None and embedder is not None:
        dimensions = embedder.provider_info().dimensions

    logger.info(
        "knowledge_graph_ready",
        backend=settings.storage.backend,
        embedding_provider=embedder.name if embedder else None,
        dimensions=dimensions,
        debug=settings.debug,
    )
    return KnowledgeGraphManager(
        store,
        embedder,
        config=settings.graph,
        dimensions=dimensions,
        debug=settings.debug,
    )
