"""
Session orchestrating the memory cache, the distributed cache and the
persistent store.
"""

from __future__ import annotations

from collections.abc import Mapping, MutableSequence, Sequence
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Tuple

from ..cache import CacheBackend, DistributedCache, MemoryCache, NoOpCacheBackend
from ..config import SessionConfig
from ..core.codec import Codec, JSONCodec
from ..core.identity import Identity
from ..core.keys import EntityKeyResolver, KeyResolver
from ..errors import (
    CodecError,
    IncompleteIdentityError,
    InvalidArgumentError,
    MultiError,
    TierCacheError,
    TransactionError,
)
from ..store.base import PersistentStore, TransactionOptions
from ..utils import LatencySimulator, TierStats, get_logger, set_correlation_id
from .batching import BatchPlanner

if TYPE_CHECKING:
    from .transaction import TransactionalSession


class Session:
    """
    Entry point for batched get/put/delete across the three tiers.

    A session owns its memory cache and must not be shared between
    concurrent requests. The store and the cache backend are shared.

    Reads consult the memory cache (when ``serve_reads_from_memory`` is on),
    then the distributed cache, then the store. Writes go to the store first
    and only then invalidate the distributed cache and refresh the memory
    cache. Writes never place values in the distributed cache; only reads
    do, with add-if-absent semantics.
    """

    in_transaction = False

    def __init__(
        self,
        store: PersistentStore,
        *,
        cache_backend: Optional[CacheBackend] = None,
        codec: Optional[Codec] = None,
        key_resolver: Optional[KeyResolver] = None,
        config: Optional[SessionConfig] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        self.store = store
        self.config = config if config is not None else SessionConfig()
        self.codec = codec if codec is not None else JSONCodec()
        self.key_resolver = key_resolver if key_resolver is not None else EntityKeyResolver()
        self.logger = get_logger("persistence.session")
        self.stats = TierStats()
        self.latency = LatencySimulator(self.config.simulate_latency)
        self.memory_cache: Optional[MemoryCache] = MemoryCache()
        self.cache: Optional[DistributedCache] = DistributedCache(
            cache_backend if cache_backend is not None else NoOpCacheBackend(),
            self.codec,
            logger=get_logger("cache.distributed"),
            stats=self.stats,
            log_errors=self.config.log_errors,
            latency=self.latency,
            slow_call_ms=self.config.slow_call_ms,
        )
        self.batches = self._make_planner(store)
        if correlation_id is not None:
            set_correlation_id(correlation_id)

    def _make_planner(self, store: PersistentStore) -> BatchPlanner:
        return BatchPlanner(
            store,
            get_limit=self.config.get_batch_limit,
            put_limit=self.config.put_batch_limit,
            delete_limit=self.config.delete_batch_limit,
            logger=get_logger("persistence.batching"),
            stats=self.stats,
            latency=self.latency,
            slow_call_ms=self.config.slow_call_ms,
        )

    # ------------------------------------------------------------------ #
    # Context management
    # ------------------------------------------------------------------ #
    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self.memory_cache is not None:
            self.memory_cache.clear()

    # ------------------------------------------------------------------ #
    # Keys
    # ------------------------------------------------------------------ #
    def key(self, entity: Any) -> Optional[Identity]:
        """Return the complete identity of ``entity``, or ``None``."""
        try:
            identity = self.key_error(entity)
        except TierCacheError:
            return None
        return identity if identity.complete else None

    def key_error(self, entity: Any) -> Identity:
        """Return the identity of ``entity``, raising if it cannot be derived."""
        return self.key_resolver.resolve(entity)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #
    def get(self, entity: Any) -> Any:
        """
        Load ``entity`` by its identity.

        Returns the loaded entity: ``entity`` itself, or the instance already
        held by the memory cache when memory reads are enabled. Raises
        :class:`~tiercache.errors.EntityNotFoundError` when it does not exist.
        """
        self._require_single(entity, "get")
        batch = [entity]
        try:
            self.get_multi(batch)
        except MultiError as exc:
            raise exc.errors[0] from None
        return batch[0]

    def get_multi(self, entities: List[Any]) -> None:
        """
        Load every entity in ``entities`` by identity.

        Items are filled in place; with ``serve_reads_from_memory`` a slot may
        instead be replaced by the cached instance. Raises a
        :class:`~tiercache.errors.MultiError` aligned with ``entities`` when
        any item failed; successful slots are ``None``.
        """
        self._require_sequence(entities, "get_multi", mutable=True)
        identities = self._resolve_all(entities, allow_incomplete=False)
        if not entities:
            return
        self._get_multi(entities, identities)

    def _get_multi(self, entities: List[Any], identities: List[Identity]) -> None:
        memory_cache, cache = self._require_tiers()
        pending: List[int] = []
        for idx, identity in enumerate(identities):
            cached = memory_cache.get(identity) if self.config.serve_reads_from_memory else None
            if cached is not None:
                entities[idx] = cached
                self.stats.record("memory_hits")
            else:
                pending.append(idx)
        if not pending:
            return

        hits = cache.fetch_multi(identities[idx] for idx in pending)
        misses: List[int] = []
        for idx in pending:
            identity = identities[idx]
            data = hits.get(identity.encode())
            if data is None:
                self.stats.record("cache_misses")
                misses.append(idx)
                continue
            try:
                self.codec.decode(data, entities[idx])
            except CodecError as exc:
                self.stats.record("cache_errors")
                self._log_error(exc)
                misses.append(idx)
                continue
            self.stats.record("cache_hits")
            memory_cache.put(identity, entities[idx])
        if not misses:
            return

        try:
            outcomes = self.batches.get([identities[idx] for idx in misses], [entities[idx] for idx in misses])
        except Exception as exc:
            self._log_error(exc)
            raise

        errors = MultiError.empty(len(entities))
        loaded = []
        for idx, outcome in zip(misses, outcomes):
            if outcome is None:
                loaded.append((identities[idx], entities[idx]))
                memory_cache.put(identities[idx], entities[idx])
            else:
                errors.errors[idx] = outcome
        if loaded:
            cache.populate(loaded)
        if errors.has_errors():
            errors.refresh()
            self._log_error(errors)
            raise errors

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #
    def put(self, entity: Any) -> Identity:
        """
        Save ``entity``. An incomplete identity is completed by the store and
        written back into ``entity``.
        """
        self._require_single(entity, "put")
        return self.put_multi([entity])[0]

    def put_many(self, *entities: Any) -> List[Identity]:
        return self.put_multi(list(entities))

    def put_multi(self, entities: Sequence[Any]) -> List[Identity]:
        """
        Batch version of :meth:`put`.

        Entities are written in chunks of ``put_batch_limit``. If a chunk
        fails the remaining chunks are skipped and the error is raised, but
        entities of earlier chunks stay written and keep the identities the
        store assigned to them.
        """
        self._require_sequence(entities, "put_multi")
        identities = self._resolve_all(entities, allow_incomplete=True)
        if not entities:
            return []
        return self._put_multi(entities, identities)

    def put_complete(self, entity: Any) -> Identity:
        """Like :meth:`put`, but refuses entities whose identity is incomplete."""
        self._require_single(entity, "put_complete")
        return self.put_multi_complete([entity])[0]

    def put_multi_complete(self, entities: Sequence[Any]) -> List[Identity]:
        """Like :meth:`put_multi`, but nothing is written if any identity is incomplete."""
        self._require_sequence(entities, "put_multi_complete")
        identities = self._resolve_all(entities, allow_incomplete=False)
        if not entities:
            return []
        return self._put_multi(entities, identities)

    def _put_multi(self, entities: Sequence[Any], identities: List[Identity]) -> List[Identity]:
        confirmed: List[Identity] = []

        def on_chunk(lo: int, hi: int, assigned: List[Identity]) -> None:
            for offset, identity in enumerate(assigned):
                entity = entities[lo + offset]
                if identities[lo + offset].incomplete:
                    self.key_resolver.assign(entity, identity)
                else:
                    confirmed.append(identity)
                self._record_write(identity, entity)

        try:
            written = self.batches.put(identities, entities, on_chunk)
        except Exception as exc:
            self._log_error(exc)
            self._after_put(confirmed, None, entities)
            raise
        self._after_put(confirmed, written, entities)
        return written

    def _record_write(self, identity: Identity, entity: Any) -> None:
        return None

    def _after_put(
        self, confirmed: List[Identity], written: Optional[List[Identity]], entities: Sequence[Any]
    ) -> None:
        memory_cache, cache = self._require_tiers()
        # Only identities whose store write was confirmed are invalidated.
        cache.invalidate_multi(confirmed)
        if written is None:
            return
        for identity, entity in zip(written, entities):
            memory_cache.put(identity, entity)

    # ------------------------------------------------------------------ #
    # Deletes
    # ------------------------------------------------------------------ #
    def delete(self, identity: Identity) -> None:
        self.delete_multi([identity])

    def delete_multi(self, identities: Sequence[Identity]) -> None:
        """
        Delete the entities for ``identities``.

        The store is updated first; the memory cache and the distributed
        cache are invalidated afterwards for every requested identity, even
        when a chunk failed.
        """
        self._require_sequence(identities, "delete_multi")
        identities = self._check_identities(identities)
        if not identities:
            return
        self._delete_multi(identities)

    def _delete_multi(self, identities: List[Identity]) -> None:
        memory_cache, cache = self._require_tiers()
        try:
            self.batches.delete(identities)
        except Exception as exc:
            self._log_error(exc)
            raise
        finally:
            for identity in identities:
                memory_cache.invalidate(identity)
            cache.invalidate_multi(identities)

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def run_in_transaction(
        self,
        func: Callable[["TransactionalSession"], None],
        options: Optional[TransactionOptions] = None,
    ) -> None:
        """
        Run ``func`` inside a store transaction.

        ``func`` receives a transactional session that talks to the store
        only; neither cache tier is read or written during the transaction.
        On commit the memory cache of this session is updated with what
        ``func`` wrote and deleted. The distributed cache is left untouched,
        so other sessions may keep seeing cached copies of entities written
        here until a later non-transactional write invalidates them.

        The store may call ``func`` more than once when the transaction
        conflicts, so ``func`` must be safe to repeat.
        """
        from .transaction import TransactionCoordinator

        TransactionCoordinator(self).run(func, options)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _log_error(self, error: BaseException) -> None:
        if self.config.log_errors:
            self.logger.error("tiercache: %s", error)

    def _require_tiers(self) -> Tuple[MemoryCache, DistributedCache]:
        if self.memory_cache is None or self.cache is None:
            raise TransactionError("cache tiers are not available inside a transaction")
        return self.memory_cache, self.cache

    def _fail(self, error: TierCacheError) -> TierCacheError:
        self._log_error(error)
        return error

    def _require_single(self, entity: Any, operation: str) -> None:
        if entity is None or isinstance(entity, (list, tuple, set, Mapping, str, bytes)):
            raise self._fail(
                InvalidArgumentError(f"{operation} expects a single entity, got {type(entity).__name__}")
            )

    def _require_sequence(self, values: Any, operation: str, *, mutable: bool = False) -> None:
        if isinstance(values, (str, bytes, bytearray)) or not isinstance(values, Sequence):
            raise self._fail(
                InvalidArgumentError(f"{operation} expects a list, got {type(values).__name__}")
            )
        if mutable and not isinstance(values, MutableSequence):
            raise self._fail(
                InvalidArgumentError(f"{operation} needs a mutable list, got {type(values).__name__}")
            )

    def _resolve_all(self, entities: Sequence[Any], *, allow_incomplete: bool) -> List[Identity]:
        identities: List[Identity] = []
        for idx, entity in enumerate(entities):
            try:
                identity = self.key_resolver.resolve(entity)
            except TierCacheError as exc:
                self._log_error(exc)
                raise
            if not allow_incomplete and identity.incomplete:
                raise self._fail(
                    IncompleteIdentityError(f"incomplete identity (index {idx}): {identity}", index=idx)
                )
            identities.append(identity)
        return identities

    def _check_identities(self, identities: Sequence[Any]) -> List[Identity]:
        checked: List[Identity] = []
        for idx, identity in enumerate(identities):
            if not isinstance(identity, Identity):
                raise self._fail(
                    InvalidArgumentError(f"expected Identity at index {idx}, got {type(identity).__name__}")
                )
            if identity.incomplete:
                raise self._fail(
                    IncompleteIdentityError(f"cannot delete incomplete identity (index {idx}): {identity}", index=idx)
                )
            checked.append(identity)
        return checked
