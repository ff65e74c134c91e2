"""
Batch planning: splitting store calls into bounded chunks and merging the
per-chunk outcomes back into one positional result.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

from ..core.identity import Identity
from ..errors import MultiError, rebase_multi_error
from ..store.base import PersistentStore
from ..utils import LatencySimulator, TierStats, time_call

ChunkCallback = Callable[[int, int, List[Identity]], None]


def chunk_bounds(total: int, limit: int) -> Iterator[Tuple[int, int]]:
    """
    Yield consecutive ``(lo, hi)`` windows covering ``range(total)``.

    No window is empty and none is larger than ``limit``.
    """
    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")
    for lo in range(0, total, limit):
        yield lo, min(lo + limit, total)


class BatchPlanner:
    """
    Runs store calls chunk by chunk.

    A chunk that fails as a whole stops the remaining chunks and the error is
    raised. Effects of chunks that already succeeded are kept: written
    entities stay written and their callbacks have already run.
    """

    def __init__(
        self,
        store: PersistentStore,
        *,
        get_limit: int,
        put_limit: int,
        delete_limit: int,
        logger: logging.Logger,
        stats: TierStats,
        latency: Optional[LatencySimulator] = None,
        slow_call_ms: int = 200,
    ) -> None:
        self.store = store
        self.get_limit = get_limit
        self.put_limit = put_limit
        self.delete_limit = delete_limit
        self.logger = logger
        self.stats = stats
        self.latency = latency if latency is not None else LatencySimulator()
        self.slow_call_ms = slow_call_ms

    def get(self, identities: Sequence[Identity], entities: Sequence[Any]) -> List[Optional[BaseException]]:
        """
        Load ``entities`` and return one outcome per index (``None`` on success).
        """
        outcomes: List[Optional[BaseException]] = [None] * len(identities)
        for lo, hi in chunk_bounds(len(identities), self.get_limit):
            try:
                with time_call("store.get_multi", self.logger, tier="store", items=hi - lo, threshold_ms=self.slow_call_ms):
                    self.store.get_multi(identities[lo:hi], entities[lo:hi])
            except MultiError as chunk_error:
                for offset, error in enumerate(chunk_error):
                    if offset < hi - lo:
                        outcomes[lo + offset] = error
            finally:
                self.latency.delay(10)
            self.stats.record("store_reads", hi - lo)
        return outcomes

    def put(
        self,
        identities: Sequence[Identity],
        entities: Sequence[Any],
        on_chunk: Optional[ChunkCallback] = None,
    ) -> List[Identity]:
        """
        Write ``entities`` and return the complete identity of each one.

        ``on_chunk(lo, hi, assigned)`` runs after every successful chunk,
        before the next chunk is sent.
        """
        result: List[Identity] = list(identities)
        for lo, hi in chunk_bounds(len(identities), self.put_limit):
            try:
                with time_call("store.put_multi", self.logger, tier="store", items=hi - lo, threshold_ms=self.slow_call_ms):
                    assigned = self.store.put_multi(identities[lo:hi], entities[lo:hi])
            except MultiError as chunk_error:
                raise rebase_multi_error(chunk_error, range(lo, hi), len(identities)) from chunk_error
            finally:
                self.latency.delay(15)
            self.stats.record("store_writes", hi - lo)
            result[lo:hi] = assigned
            if on_chunk is not None:
                on_chunk(lo, hi, list(assigned))
        return result

    def delete(self, identities: Sequence[Identity], on_chunk: Optional[ChunkCallback] = None) -> None:
        for lo, hi in chunk_bounds(len(identities), self.delete_limit):
            try:
                with time_call("store.delete_multi", self.logger, tier="store", items=hi - lo, threshold_ms=self.slow_call_ms):
                    self.store.delete_multi(identities[lo:hi])
            finally:
                self.latency.delay(5)
            self.stats.record("store_deletes", hi - lo)
            if on_chunk is not None:
                on_chunk(lo, hi, list(identities[lo:hi]))
