"""
Transactional sessions and the coordinator that commits their buffered
cache mutations.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from ..core.identity import Identity
from ..errors import MultiError, TransactionError
from ..store.base import PersistentStore, TransactionOptions
from ..utils import get_logger
from .session import Session


class TransactionState(Enum):
    ACTIVE = "active"
    COMMITTED = "committed"
    ABORTED = "aborted"


class TransactionalSession(Session):
    """
    Session bound to one attempt of a store transaction.

    Every operation goes straight to the transactional store. Instead of
    touching a cache, writes and deletes are recorded in ``pending_sets`` and
    ``pending_deletes``; the coordinator applies them to the parent's memory
    cache after a successful commit.
    """

    in_transaction = True

    def __init__(self, parent: Session, store: PersistentStore) -> None:
        self.parent = parent
        self.store = store
        self.config = parent.config
        self.codec = parent.codec
        self.key_resolver = parent.key_resolver
        self.logger = parent.logger
        self.stats = parent.stats
        self.latency = parent.latency
        self.memory_cache = None
        self.cache = None
        self.batches = self._make_planner(store)
        self.pending_sets: Dict[str, Any] = {}
        self.pending_deletes: Set[str] = set()

    def close(self) -> None:
        self.pending_sets.clear()
        self.pending_deletes.clear()

    def _get_multi(self, entities: List[Any], identities: List[Identity]) -> None:
        try:
            outcomes = self.batches.get(identities, entities)
        except Exception as exc:
            self._log_error(exc)
            raise
        if any(outcome is not None for outcome in outcomes):
            errors = MultiError(outcomes)
            self._log_error(errors)
            raise errors

    def _record_write(self, identity: Identity, entity: Any) -> None:
        self.pending_sets[identity.encode()] = entity

    def _after_put(
        self, confirmed: List[Identity], written: Optional[List[Identity]], entities: Sequence[Any]
    ) -> None:
        return None

    def _delete_multi(self, identities: List[Identity]) -> None:
        def on_chunk(lo: int, hi: int, deleted: List[Identity]) -> None:
            self.pending_deletes.update(identity.encode() for identity in deleted)

        try:
            self.batches.delete(identities, on_chunk)
        except Exception as exc:
            self._log_error(exc)
            raise

    def run_in_transaction(
        self,
        func: Callable[["TransactionalSession"], None],
        options: Optional[TransactionOptions] = None,
    ) -> None:
        raise self._fail(TransactionError("nested transactions are not supported"))


class TransactionCoordinator:
    """
    Drives one ``run_in_transaction`` call through ACTIVE to COMMITTED or ABORTED.

    Each attempt of the store transaction gets a fresh
    :class:`TransactionalSession`, so buffers of an attempt that was retried
    never leak into the commit.
    """

    def __init__(self, parent: Session) -> None:
        if parent.in_transaction:
            raise TransactionError("nested transactions are not supported")
        self.parent = parent
        self.state: Optional[TransactionState] = None
        self.session: Optional[TransactionalSession] = None
        self.attempts = 0
        self.logger = get_logger("persistence.transaction")

    def begin(self, store: PersistentStore) -> TransactionalSession:
        if self.state in (TransactionState.COMMITTED, TransactionState.ABORTED):
            raise TransactionError(f"transaction already {self.state.value}")
        self.session = TransactionalSession(self.parent, store)
        self.state = TransactionState.ACTIVE
        self.attempts += 1
        return self.session

    def run(
        self,
        func: Callable[[TransactionalSession], None],
        options: Optional[TransactionOptions] = None,
    ) -> None:
        def unit_of_work(store: PersistentStore) -> None:
            func(self.begin(store))

        try:
            self.parent.store.run_in_transaction(unit_of_work, options)
        except Exception as exc:
            self.abort(exc)
            raise
        self.commit()

    def commit(self) -> None:
        if self.state is not TransactionState.ACTIVE or self.session is None:
            raise TransactionError("no active transaction to commit")
        memory, _ = self.parent._require_tiers()
        for key, entity in self.session.pending_sets.items():
            memory.put(key, entity)
        for key in self.session.pending_deletes:
            memory.invalidate(key)
        self.logger.debug(
            "Transaction committed after %s attempt(s): %s written, %s deleted",
            self.attempts,
            len(self.session.pending_sets),
            len(self.session.pending_deletes),
        )
        self.state = TransactionState.COMMITTED
        self.session = None

    def abort(self, error: BaseException) -> None:
        if self.session is not None:
            self.session.close()
        self.session = None
        self.state = TransactionState.ABORTED
        self.parent._log_error(error)
