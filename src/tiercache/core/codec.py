"""
Codecs turning entities into bytes for the distributed cache and the store.
"""

from __future__ import annotations

import json
from typing import Any, Protocol

from ..errors import CodecError


class Codec(Protocol):
    def encode(self, entity: Any) -> bytes: ...

    def decode(self, data: bytes, entity: Any) -> None: ...


class JSONCodec:
    """
    Serializes the payload fields of an entity as compact UTF-8 JSON.

    ``decode`` loads the values into an existing entity; the identity parts
    are never part of the body.
    """

    def encode(self, entity: Any) -> bytes:
        try:
            payload = entity.to_payload()
            return json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
        except (AttributeError, TypeError, ValueError) as exc:
            raise CodecError(f"Cannot encode {type(entity).__name__}: {exc}") from exc

    def decode(self, data: bytes, entity: Any) -> None:
        try:
            payload = json.loads(data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data)
        except (UnicodeError, ValueError) as exc:
            raise CodecError(f"Cannot decode payload for {type(entity).__name__}: {exc}") from exc
        if not isinstance(payload, dict):
            raise CodecError(f"Expected an object payload for {type(entity).__name__}, got {type(payload).__name__}")
        try:
            entity.load(payload)
        except (AttributeError, TypeError, ValueError) as exc:
            raise CodecError(f"Cannot load payload into {type(entity).__name__}: {exc}") from exc
