"""
TierCache public package initialization.

A three-tier caching coordinator: per-session memory cache, shared
distributed cache, and an authoritative persistent store.
"""

from .errors import (  # noqa: F401
    CodecError,
    ConfigurationError,
    EntityNotFoundError,
    IncompleteIdentityError,
    InvalidArgumentError,
    InvalidEntityError,
    MultiError,
    TierCacheError,
    TransactionError,
    is_not_found,
)
from .config import SessionConfig  # noqa: F401
from .core import (  # noqa: F401
    BooleanField,
    DateTimeField,
    Entity,
    EntityKeyResolver,
    FloatField,
    Identity,
    IntegerField,
    JSONCodec,
    ParentField,
    StringField,
)
from .cache import InMemoryCacheBackend, NoOpCacheBackend, RedisCacheBackend  # noqa: F401
from .store import SQLiteStore, StoreError, TransactionConflictError, TransactionOptions  # noqa: F401
from .persistence import Session, TransactionalSession  # noqa: F401

__all__ = [
    "BooleanField",
    "CodecError",
    "ConfigurationError",
    "DateTimeField",
    "Entity",
    "EntityKeyResolver",
    "EntityNotFoundError",
    "FloatField",
    "Identity",
    "IncompleteIdentityError",
    "InMemoryCacheBackend",
    "IntegerField",
    "InvalidArgumentError",
    "InvalidEntityError",
    "JSONCodec",
    "MultiError",
    "NoOpCacheBackend",
    "ParentField",
    "RedisCacheBackend",
    "SQLiteStore",
    "Session",
    "SessionConfig",
    "StoreError",
    "StringField",
    "TierCacheError",
    "TransactionConflictError",
    "TransactionError",
    "TransactionOptions",
    "TransactionalSession",
    "is_not_found",
]
