"""
Persistent store protocol consumed by the session layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Protocol, Sequence

from ..core.identity import Identity
from ..errors import ConfigurationError, TierCacheError


class StoreError(TierCacheError):
    """Base error for store failures that affect a whole call."""


class StoreConnectionError(StoreError):
    """Raised when opening or using the store connection fails."""


class BatchLimitExceededError(StoreError):
    """Raised when a single call carries more items than the store accepts."""


class TransactionConflictError(StoreError):
    """Raised when a transaction lost against a concurrent one; retryable."""


class ReadOnlyTransactionError(StoreError):
    """Raised when a read-only transaction attempts a write."""


@dataclass
class TransactionOptions:
    """
    Options for :meth:`PersistentStore.run_in_transaction`.

    ``attempts`` bounds how many times the unit of work may run when the
    store reports contention.
    """

    attempts: int = 3
    read_only: bool = False

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ConfigurationError(f"attempts must be at least 1, got {self.attempts}")


class PersistentStore(Protocol):
    """
    Authoritative store with batched operations and per-item errors.
    """

    max_get_batch: int
    max_put_batch: int
    max_delete_batch: int

    @property
    def in_transaction(self) -> bool: ...

    def get_multi(self, identities: Sequence[Identity], entities: Sequence[Any]) -> None:
        """
        Load each stored entity into the matching destination.

        Raises :class:`~tiercache.errors.MultiError` with per-item outcomes
        (missing items carry :class:`~tiercache.errors.EntityNotFoundError`),
        or :class:`StoreError` when the whole call failed.
        """

    def put_multi(self, identities: Sequence[Identity], entities: Sequence[Any]) -> List[Identity]:
        """
        Write the entities and return their complete identities, allocating
        ids for incomplete ones. Entities are not modified.
        """

    def delete_multi(self, identities: Sequence[Identity]) -> None:
        """Delete the entities; missing identities are ignored."""

    def run_in_transaction(
        self, func: Callable[["PersistentStore"], None], options: TransactionOptions | None = None
    ) -> None:
        """
        Call ``func`` with a store bound to a new transaction and commit it.

        ``func`` may be called several times when the transaction conflicts
        with another one.
        """
