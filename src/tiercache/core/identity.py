"""
Structured entity identities and their opaque string encoding.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

from ..errors import InvalidArgumentError

IdValue = Union[int, str, None]


@dataclass(frozen=True)
class Identity:
    """
    Structured key of an entity: kind, optional ancestor, and an id.

    An identity without ``int_id`` or ``string_id`` is *incomplete*; the
    persistent store assigns a numeric id on first write.
    """

    kind: str
    int_id: Optional[int] = None
    string_id: Optional[str] = None
    parent: Optional["Identity"] = None

    def __post_init__(self) -> None:
        if not self.kind:
            raise InvalidArgumentError("Identity kind must be a non-empty string.")
        if self.int_id is not None and self.string_id is not None:
            raise InvalidArgumentError("Identity cannot carry both an int_id and a string_id.")
        if self.int_id is not None and (isinstance(self.int_id, bool) or self.int_id <= 0):
            raise InvalidArgumentError(f"Identity int_id must be a positive integer, got {self.int_id!r}.")
        if self.string_id == "":
            raise InvalidArgumentError("Identity string_id must not be empty.")
        if self.parent is not None and self.parent.incomplete:
            raise InvalidArgumentError("Identity parent must be complete.")

    @classmethod
    def of(cls, kind: str, id_value: IdValue = None, *, parent: Optional["Identity"] = None) -> "Identity":
        if isinstance(id_value, str):
            return cls(kind, string_id=id_value, parent=parent)
        return cls(kind, int_id=id_value, parent=parent)

    @property
    def id(self) -> IdValue:
        return self.int_id if self.int_id is not None else self.string_id

    @property
    def incomplete(self) -> bool:
        return self.int_id is None and self.string_id is None

    @property
    def complete(self) -> bool:
        return not self.incomplete

    def with_int_id(self, int_id: int) -> "Identity":
        return Identity(self.kind, int_id=int_id, parent=self.parent)

    def path(self) -> List[Tuple[str, IdValue]]:
        segments: List[Tuple[str, IdValue]] = []
        node: Optional[Identity] = self
        while node is not None:
            segments.append((node.kind, node.id))
            node = node.parent
        segments.reverse()
        return segments

    # Encoding --------------------------------------------------------------
    def encode(self) -> str:
        payload = json.dumps(self.path(), separators=(",", ":"), ensure_ascii=False)
        token = base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")
        return token.rstrip("=")

    @classmethod
    def decode(cls, token: str) -> "Identity":
        padded = token + "=" * (-len(token) % 4)
        try:
            segments: Any = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        except (binascii.Error, UnicodeError, ValueError) as exc:
            raise InvalidArgumentError(f"Invalid identity token {token!r}") from exc
        if not isinstance(segments, list) or not segments:
            raise InvalidArgumentError(f"Invalid identity token {token!r}")
        identity: Optional[Identity] = None
        for segment in segments:
            if not isinstance(segment, list) or len(segment) != 2:
                raise InvalidArgumentError(f"Invalid identity token {token!r}")
            kind, id_value = segment
            identity = cls.of(kind, id_value, parent=identity)
        if identity is None:
            raise InvalidArgumentError(f"Invalid identity token {token!r}")
        return identity

    def __str__(self) -> str:
        return "/".join(f"{kind},{'<incomplete>' if value is None else value}" for kind, value in self.path())
