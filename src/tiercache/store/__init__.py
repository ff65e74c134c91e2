"""
Persistent store contract and the bundled SQLite implementation.
"""

from .base import (
    BatchLimitExceededError,
    PersistentStore,
    ReadOnlyTransactionError,
    StoreConnectionError,
    StoreError,
    TransactionConflictError,
    TransactionOptions,
)
from .sqlite import SQLiteStore, SQLiteTransaction

__all__ = [
    "BatchLimitExceededError",
    "PersistentStore",
    "ReadOnlyTransactionError",
    "SQLiteStore",
    "SQLiteTransaction",
    "StoreConnectionError",
    "StoreError",
    "TransactionConflictError",
    "TransactionOptions",
]
