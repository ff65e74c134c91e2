"""
Redis-backed distributed cache.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlparse

import redis

from ..utils import get_logger
from .backends import CacheBackendError


def _redact_url(url: str) -> str:
    parsed = urlparse(url)
    if not parsed.password:
        return url
    netloc = parsed.hostname or ""
    if parsed.username:
        netloc = f"{parsed.username}:***@{netloc}"
    else:
        netloc = f":***@{netloc}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return parsed._replace(netloc=netloc).geturl()


class RedisCacheBackend:
    """
    Cache backend on a Redis server.

    Add-if-absent uses ``SET key value NX`` for every item inside one
    non-transactional pipeline, so each key is decided independently.

    Args:
        client: A ``redis.Redis`` compatible client returning bytes.
        key_prefix: Namespace prepended to every key.
        ttl_seconds: Optional expiry applied to populated entries.
    """

    def __init__(
        self,
        client: Any,
        *,
        key_prefix: str = "tiercache",
        ttl_seconds: Optional[int] = None,
    ) -> None:
        self._client = client
        self._key_prefix = key_prefix.rstrip(":")
        self.ttl_seconds = ttl_seconds
        self.logger = get_logger("cache.redis")

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RedisCacheBackend":
        client_options = kwargs.pop("client_options", None) or {}
        try:
            client = redis.from_url(url, **client_options)
        except (redis.RedisError, ValueError) as exc:
            raise CacheBackendError(f"Failed to create Redis client for {_redact_url(url)}") from exc
        backend = cls(client, **kwargs)
        backend.logger.info("Using Redis distributed cache at %s", _redact_url(url))
        return backend

    def _key(self, key: str) -> str:
        return f"{self._key_prefix}:{key}"

    def _strip(self, full_key: Any) -> str:
        if isinstance(full_key, bytes):
            full_key = full_key.decode("utf-8")
        return full_key[len(self._key_prefix) + 1 :]

    def add_multi(self, items: Mapping[str, bytes]) -> List[str]:
        if not items:
            return []
        keys = list(items)
        try:
            pipe = self._client.pipeline(transaction=False)
            for key in keys:
                pipe.set(self._key(key), items[key], nx=True, ex=self.ttl_seconds)
            results = pipe.execute()
        except redis.RedisError as exc:
            raise CacheBackendError(f"Redis add_multi failed: {exc}") from exc
        return [key for key, stored in zip(keys, results) if not stored]

    def get_multi(self, keys: Iterable[str]) -> Dict[str, bytes]:
        keys = list(keys)
        if not keys:
            return {}
        try:
            values = self._client.mget([self._key(key) for key in keys])
        except redis.RedisError as exc:
            raise CacheBackendError(f"Redis get_multi failed: {exc}") from exc
        return {key: value for key, value in zip(keys, values) if value is not None}

    def delete_multi(self, keys: Iterable[str]) -> None:
        full_keys = [self._key(key) for key in keys]
        if not full_keys:
            return
        try:
            self._client.delete(*full_keys)
        except redis.RedisError as exc:
            raise CacheBackendError(f"Redis delete_multi failed: {exc}") from exc

    def clear(self) -> None:
        try:
            keys = list(self._client.scan_iter(match=f"{self._key_prefix}:*"))
            if keys:
                self._client.delete(*keys)
        except redis.RedisError as exc:
            raise CacheBackendError(f"Redis clear failed: {exc}") from exc
        self.logger.info("Cleared %s cached entities", len(keys))

    def keys(self) -> List[str]:
        return [self._strip(key) for key in self._client.scan_iter(match=f"{self._key_prefix}:*")]
