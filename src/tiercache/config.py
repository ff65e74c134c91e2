"""
Session configuration and environment parsing.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from .errors import ConfigurationError

GET_MULTI_LIMIT = 1000
PUT_MULTI_LIMIT = 500
DELETE_MULTI_LIMIT = 500

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(value: str, *, key: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean value for '{key}': {value!r}")


def _parse_int(value: str, *, key: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid integer value for '{key}': {value!r}") from exc


@dataclass
class SessionConfig:
    """
    Behaviour switches owned by a single :class:`~tiercache.persistence.Session`.

    ``serve_reads_from_memory`` controls whether the read path returns
    entities straight from the session's memory cache. It is off by default:
    reads then always consult the distributed cache and the store.
    """

    log_errors: bool = True
    serve_reads_from_memory: bool = False
    get_batch_limit: int = GET_MULTI_LIMIT
    put_batch_limit: int = PUT_MULTI_LIMIT
    delete_batch_limit: int = DELETE_MULTI_LIMIT
    simulate_latency: bool = False
    slow_call_ms: int = 200

    def __post_init__(self) -> None:
        for name in ("get_batch_limit", "put_batch_limit", "delete_batch_limit"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        if self.slow_call_ms < 0:
            raise ConfigurationError(f"slow_call_ms must not be negative, got {self.slow_call_ms}")

    @classmethod
    def from_env(
        cls, prefix: str = "TIERCACHE_", environ: Optional[Mapping[str, str]] = None, **overrides: Any
    ) -> "SessionConfig":
        """
        Build a config from ``<prefix><FIELD>`` environment variables.

        Explicit keyword overrides win over the environment.
        """

        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            key = f"{prefix}{f.name.upper()}"
            if key not in env:
                continue
            raw = env[key]
            if f.type in ("bool", bool):
                values[f.name] = _parse_bool(raw, key=key)
            else:
                values[f.name] = _parse_int(raw, key=key)
        values.update(overrides)
        return cls(**values)
