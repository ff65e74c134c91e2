"""Memory and distributed cache tiers for TierCache."""

from .backends import CacheBackend, CacheBackendError, InMemoryCacheBackend, NoOpCacheBackend
from .distributed import DistributedCache
from .memory import MemoryCache
from .redis_backend import RedisCacheBackend

__all__ = [
    "CacheBackend",
    "CacheBackendError",
    "DistributedCache",
    "InMemoryCacheBackend",
    "MemoryCache",
    "NoOpCacheBackend",
    "RedisCacheBackend",
]
