"""
Per-session memory cache keyed by encoded identity.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..core.identity import Identity


class MemoryCache:
    """
    Identity map owned by exactly one root session.

    Not synchronized; a session and its cache are never shared between threads.
    """

    def __init__(self) -> None:
        self._store: Dict[str, Any] = {}

    @staticmethod
    def _make_key(identity: Identity | str) -> str:
        if isinstance(identity, Identity):
            return identity.encode()
        return identity

    def get(self, identity: Identity | str) -> Optional[Any]:
        return self._store.get(self._make_key(identity))

    def put(self, identity: Identity | str, entity: Any) -> None:
        self._store[self._make_key(identity)] = entity

    def invalidate(self, identity: Identity | str) -> None:
        self._store.pop(self._make_key(identity), None)

    def clear(self) -> None:
        self._store.clear()

    def keys(self) -> List[str]:
        return list(self._store)

    def __contains__(self, identity: Identity | str) -> bool:
        return self._make_key(identity) in self._store

    def __len__(self) -> int:
        return len(self._store)
