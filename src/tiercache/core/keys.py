"""
Key resolution: deriving identities from entities and writing them back.
"""

from __future__ import annotations

from typing import Any, Protocol

from ..errors import InvalidEntityError
from .identity import Identity


class KeyResolver(Protocol):
    def resolve(self, entity: Any) -> Identity:
        """
        Return the identity of ``entity``; may be incomplete.

        Raises :class:`InvalidEntityError` when no identity can be derived.
        """

    def assign(self, entity: Any, identity: Identity) -> None:
        """
        Store a store-assigned ``identity`` on ``entity``.
        """


class EntityKeyResolver:
    """
    Resolver for objects exposing ``get_identity``/``set_identity``,
    such as :class:`tiercache.core.Entity` subclasses.
    """

    def resolve(self, entity: Any) -> Identity:
        getter = getattr(entity, "get_identity", None)
        if getter is None:
            raise InvalidEntityError(
                f"{type(entity).__name__} does not provide get_identity(); supply a custom KeyResolver"
            )
        identity = getter()
        if not isinstance(identity, Identity):
            raise InvalidEntityError(f"get_identity() returned {identity!r}, expected Identity")
        return identity

    def assign(self, entity: Any, identity: Identity) -> None:
        setter = getattr(entity, "set_identity", None)
        if setter is None:
            raise InvalidEntityError(
                f"{type(entity).__name__} does not provide set_identity(); supply a custom KeyResolver"
            )
        setter(identity)
