"""
Distributed cache coordination: read-repair with add-if-absent and
post-write invalidation.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Sequence, Tuple

from ..core.codec import Codec
from ..core.identity import Identity
from ..errors import CodecError
from ..utils import LatencySimulator, TierStats, time_call
from .backends import CacheBackend, CacheBackendError


class DistributedCache:
    """
    Session-side view of a shared :class:`CacheBackend`.

    The cache is an optimization only: no method here raises for backend
    failures. Errors are logged and counted on ``stats`` instead.
    """

    def __init__(
        self,
        backend: CacheBackend,
        codec: Codec,
        *,
        logger: logging.Logger,
        stats: TierStats,
        log_errors: bool = True,
        latency: LatencySimulator | None = None,
        slow_call_ms: int = 200,
    ) -> None:
        self.backend = backend
        self.codec = codec
        self.logger = logger
        self.stats = stats
        self.log_errors = log_errors
        self.latency = latency if latency is not None else LatencySimulator()
        self.slow_call_ms = slow_call_ms

    def _log_error(self, message: str, *args: Any, level: int = logging.ERROR) -> None:
        if self.log_errors:
            self.logger.log(level, "tiercache: " + message, *args)

    def populate(self, items: Sequence[Tuple[Identity, Any]]) -> None:
        """
        Add freshly read entities with add-if-absent semantics.

        A key that already holds a value lost a race against another
        populate; the stored value wins and the loss is only logged.
        """
        encoded: Dict[str, bytes] = {}
        for identity, entity in items:
            try:
                encoded[identity.encode()] = self.codec.encode(entity)
            except CodecError as exc:
                self.stats.record("cache_errors")
                self._log_error("cannot cache %s: %s", identity, exc)
        if not encoded:
            return
        try:
            with time_call("cache.add_multi", self.logger, tier="cache", items=len(encoded), threshold_ms=self.slow_call_ms):
                not_stored = self.backend.add_multi(encoded)
        except CacheBackendError as exc:
            self.stats.record("cache_errors")
            self._log_error("cache populate failed: %s", exc)
            return
        finally:
            self.latency.delay(3)
        if not_stored:
            self.stats.record("populate_races", len(not_stored))
            self._log_error(
                "race condition detected, %s entities were cached concurrently by another request",
                len(not_stored),
                level=logging.INFO,
            )

    def fetch_multi(self, identities: Iterable[Identity]) -> Dict[str, bytes]:
        keys = [identity.encode() for identity in identities]
        if not keys:
            return {}
        try:
            with time_call("cache.get_multi", self.logger, tier="cache", items=len(keys), threshold_ms=self.slow_call_ms):
                hits = self.backend.get_multi(keys)
        except CacheBackendError as exc:
            self.stats.record("cache_errors")
            self._log_error("cache lookup failed, falling back to the store: %s", exc)
            return {}
        finally:
            self.latency.delay(2)
        return hits

    def invalidate_multi(self, identities: Iterable[Identity]) -> None:
        """
        Remove cached copies after a confirmed store mutation.

        Failures leave possibly stale entries behind; they are logged at
        WARNING and counted, never raised into the surrounding write.
        """
        keys = [identity.encode() for identity in identities if identity.complete]
        if not keys:
            return
        try:
            with time_call("cache.delete_multi", self.logger, tier="cache", items=len(keys), threshold_ms=self.slow_call_ms):
                self.backend.delete_multi(keys)
        except CacheBackendError as exc:
            self.stats.record("invalidation_failures", len(keys))
            self._log_error("cache invalidation failed, %s entries may be stale: %s", len(keys), exc, level=logging.WARNING)
        finally:
            self.latency.delay(2)
