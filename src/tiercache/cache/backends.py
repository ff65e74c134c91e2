"""Distributed cache backend protocol and in-process implementations."""

from __future__ import annotations

import time
from threading import RLock
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

from ..errors import TierCacheError


class CacheBackendError(TierCacheError):
    """Raised when a cache backend call fails outright (connectivity, protocol)."""


class CacheBackend(Protocol):
    def add_multi(self, items: Mapping[str, bytes]) -> List[str]:
        """
        Store each item only if its key is absent.

        Returns the keys that were *not* stored because a value already existed.
        """

    def get_multi(self, keys: Iterable[str]) -> Dict[str, bytes]:
        """Return the hits; missing keys are simply absent."""

    def delete_multi(self, keys: Iterable[str]) -> None:
        """Remove the keys; absent keys are ignored."""

    def clear(self) -> None: ...


class NoOpCacheBackend:
    """Backend that never stores anything; disables the distributed tier."""

    def add_multi(self, items: Mapping[str, bytes]) -> List[str]:
        return []

    def get_multi(self, keys: Iterable[str]) -> Dict[str, bytes]:
        return {}

    def delete_multi(self, keys: Iterable[str]) -> None:
        return None

    def clear(self) -> None:
        return None


class InMemoryCacheBackend:
    """
    Process-local backend shared by every session that receives it.

    Honours add-if-absent atomically under a lock, with an optional TTL.
    """

    def __init__(self, *, ttl_seconds: Optional[float] = None) -> None:
        self._store: Dict[str, Tuple[bytes, Optional[float]]] = {}
        self._lock = RLock()
        self.ttl_seconds = ttl_seconds

    def _expires_at(self) -> Optional[float]:
        if self.ttl_seconds is None:
            return None
        return time.monotonic() + self.ttl_seconds

    def _live(self, key: str) -> Optional[bytes]:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._store[key]
            return None
        return value

    def add_multi(self, items: Mapping[str, bytes]) -> List[str]:
        not_stored: List[str] = []
        with self._lock:
            for key, value in items.items():
                if self._live(key) is not None:
                    not_stored.append(key)
                    continue
                self._store[key] = (bytes(value), self._expires_at())
        return not_stored

    def get_multi(self, keys: Iterable[str]) -> Dict[str, bytes]:
        hits: Dict[str, bytes] = {}
        with self._lock:
            for key in keys:
                value = self._live(key)
                if value is not None:
                    hits[key] = value
        return hits

    def delete_multi(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
