"""
Logging for TierCache: one ``tiercache`` handler, correlation ids per
request, and timing of every backing round trip.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import IO, Iterator, Optional

ROOT_LOGGER = "tiercache"
DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | cid=%(correlation_id)s | %(name)s | %(message)s"

_correlation_id: ContextVar[str | None] = ContextVar("tiercache_correlation_id", default=None)


class CorrelationIdFilter(logging.Filter):
    """Stamps ``record.correlation_id`` with the id of the current request."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def configure_logging(
    level: int = logging.INFO,
    *,
    stream: Optional[IO[str]] = None,
    fmt: str = DEFAULT_FORMAT,
    force: bool = False,
) -> logging.Logger:
    """
    Install the ``tiercache`` handler once and return the root package logger.

    Later calls are no-ops unless ``force`` replaces the existing handler,
    e.g. to point output at another stream or raise verbosity.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    if logger.handlers and not force:
        return logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(fmt))
    handler.addFilter(CorrelationIdFilter())
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def set_correlation_id(value: Optional[str] = None) -> str:
    """Bind ``value`` (or a fresh ``tc-`` id) to the current context."""
    cid = value or f"tc-{uuid.uuid4().hex[:12]}"
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str:
    cid = _correlation_id.get()
    if cid is None:
        cid = set_correlation_id()
    return cid


@contextmanager
def correlation_scope(value: Optional[str] = None) -> Iterator[str]:
    """Use a correlation id for the duration of a block, then restore the previous one."""
    token = _correlation_id.set(value or f"tc-{uuid.uuid4().hex[:12]}")
    try:
        yield _correlation_id.get() or ""
    finally:
        _correlation_id.reset(token)


def time_call(
    name: str,
    logger: logging.Logger,
    *,
    tier: str | None = None,
    items: int | None = None,
    threshold_ms: int = 100,
):
    """
    Log how long the wrapped round trip took.

    Calls slower than ``threshold_ms`` are logged at WARNING, others at DEBUG.
    """
    start = time.monotonic()

    class Timer:
        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            elapsed_ms = (time.monotonic() - start) * 1000
            level = logging.WARNING if elapsed_ms >= threshold_ms else logging.DEBUG
            extra = {"tier": tier, "items": items, "elapsed_ms": elapsed_ms, "failed": exc_type is not None}
            logger.log(level, "%s (%s items) took %.2fms", name, items, elapsed_ms, extra=extra)

    return Timer()
