"""
Error hierarchy shared by every TierCache layer.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List, Optional, Sequence


class TierCacheError(Exception):
    """Base class for all TierCache errors."""


class ConfigurationError(TierCacheError):
    """Raised when session or backend configuration is invalid."""


class InvalidArgumentError(TierCacheError, TypeError):
    """
    Raised when a caller passes a value of the wrong shape.

    Raised before any I/O is performed.
    """


class InvalidEntityError(InvalidArgumentError):
    """Raised when an identity cannot be derived from an entity."""


class IncompleteIdentityError(TierCacheError):
    """Raised when an operation requires a complete identity and got an incomplete one."""

    def __init__(self, message: str, *, index: Optional[int] = None) -> None:
        super().__init__(message)
        self.index = index


class EntityNotFoundError(TierCacheError):
    """Raised (or stored in a :class:`MultiError` slot) when no entity exists for an identity."""

    def __init__(self, identity: object = None) -> None:
        message = "no such entity" if identity is None else f"no such entity: {identity}"
        super().__init__(message)
        self.identity = identity


class CodecError(TierCacheError):
    """Raised when an entity cannot be encoded or decoded."""


class TransactionError(TierCacheError):
    """Raised for misuse of the transaction API."""


class MultiError(TierCacheError):
    """
    Positional error aligned with the input of a batch call.

    Each slot is ``None`` for a successful item or the exception describing
    why that item failed.
    """

    def __init__(self, errors: Iterable[Optional[BaseException]]) -> None:
        self.errors: List[Optional[BaseException]] = list(errors)
        super().__init__(self._format_message())

    @classmethod
    def empty(cls, size: int) -> "MultiError":
        return cls([None] * size)

    def _format_message(self) -> str:
        failed = [(idx, err) for idx, err in enumerate(self.errors) if err is not None]
        if not failed:
            return "(0 errors)"
        idx, first = failed[0]
        if len(failed) == 1:
            return f"[{idx}] {first}"
        return f"[{idx}] {first} (and {len(failed) - 1} other errors)"

    def refresh(self) -> None:
        """Rebuild the message after slots were assigned."""
        self.args = (self._format_message(),)

    def failed_indexes(self) -> List[int]:
        return [idx for idx, err in enumerate(self.errors) if err is not None]

    def has_errors(self) -> bool:
        return any(err is not None for err in self.errors)

    def __len__(self) -> int:
        return len(self.errors)

    def __getitem__(self, index: int) -> Optional[BaseException]:
        return self.errors[index]

    def __iter__(self) -> Iterator[Optional[BaseException]]:
        return iter(self.errors)


def rebase_multi_error(
    chunk_error: MultiError, positions: Sequence[int], total: int
) -> MultiError:
    """
    Spread the slots of a per-chunk :class:`MultiError` onto ``positions``
    of a result covering ``total`` items.
    """

    merged = MultiError.empty(total)
    for slot, position in enumerate(positions):
        if slot < len(chunk_error):
            merged.errors[position] = chunk_error[slot]
    merged.refresh()
    return merged


def is_not_found(error: Optional[BaseException], index: int) -> bool:
    """
    Return ``True`` when ``error`` is a :class:`MultiError` whose slot
    ``index`` reports a missing entity.
    """

    if not isinstance(error, MultiError):
        return False
    return 0 <= index < len(error) and isinstance(error[index], EntityNotFoundError)
