"""Database connectivity and store error types."""

from mnemograph.db.errors import (
    ConnectionError,
    IndexUnavailableError,
    NotFoundError,
    StoreError,
    TransactionError,
)

__all__ = [
    "ConnectionError",
    "IndexUnavailableError",
    "NotFoundError",
    "StoreError",
    "TransactionError",
]
