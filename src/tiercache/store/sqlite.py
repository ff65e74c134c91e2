"""
SQLite implementation of the persistent store.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from threading import RLock
from typing import Any, Callable, Dict, Iterator, List, Sequence

from ..core.codec import Codec, JSONCodec
from ..core.identity import Identity
from ..errors import CodecError, EntityNotFoundError, IncompleteIdentityError, MultiError, TransactionError
from ..utils import get_logger, time_call
from .base import (
    BatchLimitExceededError,
    PersistentStore,
    ReadOnlyTransactionError,
    StoreConnectionError,
    StoreError,
    TransactionConflictError,
    TransactionOptions,
)

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS entities ("
    "identity TEXT PRIMARY KEY, kind TEXT NOT NULL, payload BLOB NOT NULL)",
    "CREATE TABLE IF NOT EXISTS id_sequences (kind TEXT PRIMARY KEY, next_id INTEGER NOT NULL)",
)

# Stay below SQLITE_MAX_VARIABLE_NUMBER on older builds.
_IN_CLAUSE_LIMIT = 500


def _is_lock_error(exc: sqlite3.Error) -> bool:
    message = str(exc).lower()
    return isinstance(exc, sqlite3.OperationalError) and ("locked" in message or "busy" in message)


def _normalize_path(url: str) -> str:
    if url == "sqlite:///:memory:":
        return ":memory:"
    prefix = "sqlite:///"
    if url.startswith(prefix):
        return url[len(prefix) :]
    return url


class _SQLiteOperations:
    """
    Batched operations shared by the store and its transaction views.
    Subclasses provide ``_scope`` which yields a connection inside a
    transaction.
    """

    codec: Codec
    max_get_batch: int
    max_put_batch: int
    max_delete_batch: int
    read_only: bool = False

    def _scope(self):  # pragma: no cover - overridden
        raise NotImplementedError

    @property
    def in_transaction(self) -> bool:
        return False

    @staticmethod
    def _check_limit(name: str, size: int, limit: int) -> None:
        if size > limit:
            raise BatchLimitExceededError(f"{name} accepts at most {limit} items per call, got {size}")

    def _translate(self, exc: sqlite3.Error) -> StoreError:
        if _is_lock_error(exc):
            return TransactionConflictError(f"store is locked by a concurrent writer: {exc}")
        return StoreError(f"SQLite operation failed: {exc}")

    # ------------------------------------------------------------------ #
    def get_multi(self, identities: Sequence[Identity], entities: Sequence[Any]) -> None:
        if len(identities) != len(entities):
            raise StoreError("get_multi requires one destination per identity")
        self._check_limit("get_multi", len(identities), self.max_get_batch)
        rows: Dict[str, bytes] = {}
        encoded = [identity.encode() for identity in identities if identity.complete]
        try:
            with self._scope() as connection:
                for lo in range(0, len(encoded), _IN_CLAUSE_LIMIT):
                    batch = encoded[lo : lo + _IN_CLAUSE_LIMIT]
                    placeholders = ", ".join("?" for _ in batch)
                    cursor = connection.execute(
                        f"SELECT identity, payload FROM entities WHERE identity IN ({placeholders})", batch
                    )
                    rows.update({row[0]: row[1] for row in cursor.fetchall()})
        except sqlite3.Error as exc:
            raise self._translate(exc) from exc

        errors = MultiError.empty(len(identities))
        for idx, (identity, entity) in enumerate(zip(identities, entities)):
            if identity.incomplete:
                errors.errors[idx] = IncompleteIdentityError(f"cannot get incomplete identity {identity}", index=idx)
                continue
            payload = rows.get(identity.encode())
            if payload is None:
                errors.errors[idx] = EntityNotFoundError(identity)
                continue
            try:
                self.codec.decode(payload, entity)
            except CodecError as exc:
                errors.errors[idx] = exc
        if errors.has_errors():
            errors.refresh()
            raise errors

    def put_multi(self, identities: Sequence[Identity], entities: Sequence[Any]) -> List[Identity]:
        if len(identities) != len(entities):
            raise StoreError("put_multi requires one source per identity")
        if self.read_only:
            raise ReadOnlyTransactionError("cannot write inside a read-only transaction")
        self._check_limit("put_multi", len(identities), self.max_put_batch)
        try:
            payloads = [bytes(self.codec.encode(entity)) for entity in entities]
        except CodecError as exc:
            raise StoreError(f"cannot serialize entity: {exc}") from exc

        result: List[Identity] = []
        try:
            with self._scope() as connection:
                # Explicit ids of the whole chunk are reserved before any allocation.
                for identity in identities:
                    if identity.int_id is not None:
                        self._reserve_id(connection, identity.kind, identity.int_id)
                for identity, payload in zip(identities, payloads):
                    if identity.incomplete:
                        identity = identity.with_int_id(self._allocate_id(connection, identity.kind))
                    connection.execute(
                        "INSERT OR REPLACE INTO entities (identity, kind, payload) VALUES (?, ?, ?)",
                        (identity.encode(), identity.kind, sqlite3.Binary(payload)),
                    )
                    result.append(identity)
        except sqlite3.Error as exc:
            raise self._translate(exc) from exc
        return result

    def delete_multi(self, identities: Sequence[Identity]) -> None:
        if self.read_only:
            raise ReadOnlyTransactionError("cannot delete inside a read-only transaction")
        self._check_limit("delete_multi", len(identities), self.max_delete_batch)
        encoded = [identity.encode() for identity in identities if identity.complete]
        try:
            with self._scope() as connection:
                for lo in range(0, len(encoded), _IN_CLAUSE_LIMIT):
                    batch = encoded[lo : lo + _IN_CLAUSE_LIMIT]
                    placeholders = ", ".join("?" for _ in batch)
                    connection.execute(f"DELETE FROM entities WHERE identity IN ({placeholders})", batch)
        except sqlite3.Error as exc:
            raise self._translate(exc) from exc

    # ------------------------------------------------------------------ #
    @staticmethod
    def _allocate_id(connection: sqlite3.Connection, kind: str) -> int:
        row = connection.execute("SELECT next_id FROM id_sequences WHERE kind = ?", (kind,)).fetchone()
        next_id = row[0] if row else 1
        connection.execute(
            "INSERT OR REPLACE INTO id_sequences (kind, next_id) VALUES (?, ?)", (kind, next_id + 1)
        )
        return next_id

    @staticmethod
    def _reserve_id(connection: sqlite3.Connection, kind: str, int_id: int) -> None:
        connection.execute(
            "INSERT INTO id_sequences (kind, next_id) VALUES (?, ?) "
            "ON CONFLICT(kind) DO UPDATE SET next_id = MAX(next_id, excluded.next_id)",
            (kind, int_id + 1),
        )


class SQLiteStore(_SQLiteOperations):
    """
    Persistent store on a SQLite database file.

    Each non-transactional call runs in its own transaction. A single
    connection is shared and guarded by a lock, so one store instance may be
    used by several sessions on different threads.
    """

    def __init__(
        self,
        url: str = "sqlite:///:memory:",
        *,
        codec: Codec | None = None,
        timeout: float = 5.0,
        max_get_batch: int = 1000,
        max_put_batch: int = 500,
        max_delete_batch: int = 500,
        slow_call_ms: int = 200,
    ) -> None:
        self.url = url
        self.codec = codec if codec is not None else JSONCodec()
        self.max_get_batch = max_get_batch
        self.max_put_batch = max_put_batch
        self.max_delete_batch = max_delete_batch
        self.slow_call_ms = slow_call_ms
        self.logger = get_logger("store.sqlite")
        self._lock = RLock()
        self._connection: sqlite3.Connection | None = None
        self._connect(timeout)

    # ------------------------------------------------------------------ #
    # Connection management
    # ------------------------------------------------------------------ #
    def _connect(self, timeout: float) -> None:
        path = _normalize_path(self.url)
        try:
            connection = sqlite3.connect(path, isolation_level=None, timeout=timeout, check_same_thread=False)
            for statement in _SCHEMA:
                connection.execute(statement)
        except sqlite3.Error as exc:
            raise StoreConnectionError(f"Failed to open SQLite store at {self.url}") from exc
        self._connection = connection
        self.logger.debug("Opened SQLite store %s", self.url)

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def _ensure_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise StoreConnectionError("SQLiteStore is closed.")
        return self._connection

    @contextmanager
    def _scope(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            connection = self._ensure_connection()
            with time_call("sqlite.batch", self.logger, tier="store", threshold_ms=self.slow_call_ms):
                connection.execute("BEGIN IMMEDIATE")
                try:
                    yield connection
                except BaseException:
                    connection.execute("ROLLBACK")
                    raise
                else:
                    connection.execute("COMMIT")

    def count(self, kind: str | None = None) -> int:
        with self._lock:
            connection = self._ensure_connection()
            if kind is None:
                return connection.execute("SELECT COUNT(*) FROM entities").fetchone()[0]
            return connection.execute("SELECT COUNT(*) FROM entities WHERE kind = ?", (kind,)).fetchone()[0]

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def run_in_transaction(
        self, func: Callable[[PersistentStore], None], options: TransactionOptions | None = None
    ) -> None:
        if options is None:
            options = TransactionOptions()
        with self._lock:
            connection = self._ensure_connection()
            for attempt in range(1, options.attempts + 1):
                transaction = SQLiteTransaction(self, connection, read_only=options.read_only)
                try:
                    connection.execute("BEGIN" if options.read_only else "BEGIN IMMEDIATE")
                    try:
                        func(transaction)
                        connection.execute("COMMIT")
                    except BaseException:
                        if connection.in_transaction:
                            connection.execute("ROLLBACK")
                        raise
                except TransactionConflictError as exc:
                    self.logger.info("Transaction attempt %s/%s conflicted: %s", attempt, options.attempts, exc)
                    continue
                except sqlite3.Error as exc:
                    if not _is_lock_error(exc):
                        raise StoreError(f"SQLite transaction failed: {exc}") from exc
                    self.logger.info("Transaction attempt %s/%s conflicted: %s", attempt, options.attempts, exc)
                    continue
                finally:
                    transaction.active = False
                return
        raise TransactionConflictError(
            f"transaction failed after {options.attempts} attempts due to concurrent modification"
        )


class SQLiteTransaction(_SQLiteOperations):
    """
    Store view bound to one open transaction of a :class:`SQLiteStore`.
    """

    def __init__(self, store: SQLiteStore, connection: sqlite3.Connection, *, read_only: bool = False) -> None:
        self.store = store
        self.codec = store.codec
        self.max_get_batch = store.max_get_batch
        self.max_put_batch = store.max_put_batch
        self.max_delete_batch = store.max_delete_batch
        self.read_only = read_only
        self.active = True
        self._connection = connection

    @property
    def in_transaction(self) -> bool:
        return True

    @contextmanager
    def _scope(self) -> Iterator[sqlite3.Connection]:
        if not self.active:
            raise TransactionError("transaction is no longer active")
        yield self._connection

    def run_in_transaction(
        self, func: Callable[[PersistentStore], None], options: TransactionOptions | None = None
    ) -> None:
        raise TransactionError("nested transactions are not supported")
