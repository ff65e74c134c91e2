"""
Persistence layer components: sessions, batch planning and transactions.
"""

from .batching import BatchPlanner, chunk_bounds
from .session import Session
from .transaction import TransactionCoordinator, TransactionalSession, TransactionState

__all__ = [
    "BatchPlanner",
    "Session",
    "TransactionCoordinator",
    "TransactionState",
    "TransactionalSession",
    "chunk_bounds",
]
