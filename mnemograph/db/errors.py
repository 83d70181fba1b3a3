"""Store error hierarchy.

All graph store implementations raise these errors so the engine can tell
write failures (always surfaced) from read-path degradations (absorbed).
"""


class StoreError(Exception):
    """Base exception for all store errors.

    Backend-specific errors are wrapped in one of the StoreError subclasses.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConnectionError(StoreError):
    """Raised when the store cannot be reached.

    Examples:
        - Neo4j server unavailable
        - Authentication failure
    """

    pass


class NotFoundError(StoreError):
    """Raised when a specific entity or relation lookup fails.

    Not raised for empty search results.
    """

    pass


class TransactionError(StoreError):
    """Raised when a write transaction failed and was rolled back.

    No partial state from the failed unit of work is visible afterwards.
    """

    pass


class IndexUnavailableError(StoreError):
    """Raised when the native vector index cannot be created or queried."""

    pass
