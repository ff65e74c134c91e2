"""
Field descriptors for TierCache entities.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional, Sequence, cast

from .identity import Identity

if TYPE_CHECKING:
    from .entity import Entity


class FieldError(Exception):
    """Internal exception for field configuration issues."""


class Field:
    """
    Base class for entity field descriptors.

    Fields manage attribute storage on entity instances and convert values
    to and from the primitive form used by codecs.
    """

    _creation_counter = 0

    def __init__(
        self,
        *,
        primary_key: bool = False,
        nullable: bool = True,
        default: Any = None,
        choices: Optional[Sequence[Any]] = None,
    ) -> None:
        self.primary_key = primary_key
        self.nullable = nullable
        self.default = default
        self.choices = tuple(choices) if choices is not None else None

        self.entity: type["Entity"] | None = None
        self.name: str | None = None
        self.creation_counter = Field._creation_counter
        Field._creation_counter += 1

    # Descriptor protocol -------------------------------------------------
    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self

        entity = cast("Entity", instance)
        name = self.require_name()
        if name not in entity._field_values:
            default = self.get_default()
            if default is not None:
                entity._field_values[name] = default
            return default
        return entity._field_values[name]

    def __set__(self, instance: object, value: Any) -> None:
        entity = cast("Entity", instance)
        name = self.require_name()
        if value is None:
            if not self.nullable and not self.primary_key:
                raise ValueError(f"Field '{name}' cannot be None")
            entity._field_values[name] = None
            return

        if self.choices and value not in self.choices:
            raise ValueError(f"Value '{value}' for field '{name}' not in choices {self.choices}")

        entity._field_values[name] = self.to_python(value)

    # Metadata helpers ----------------------------------------------------
    def contribute_to_class(self, entity: type["Entity"], name: str) -> None:
        self.entity = entity
        self.name = name
        setattr(entity, name, self)

    def require_name(self) -> str:
        if self.name is None:
            raise FieldError("Field name is not set.")
        return self.name

    # Conversion ----------------------------------------------------------
    def get_default(self) -> Any:
        if callable(self.default):
            return self.default()
        return self.default

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def to_python(self, value: Any) -> Any:
        return value

    def to_primitive(self, value: Any) -> Any:
        """Return a JSON-compatible representation of ``value``."""
        return value


class IntegerField(Field):
    def to_python(self, value: Any) -> int | None:
        if value is None:
            return value
        if isinstance(value, bool):
            raise ValueError(f"Invalid integer value '{value}'")
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid integer value '{value}'") from exc


class AutoField(IntegerField):
    """
    Numeric id field added when an entity declares no primary key.

    Left unset, it makes the entity's identity incomplete until the store
    allocates an id.
    """

    def __init__(self) -> None:
        super().__init__(primary_key=True, nullable=True)


class FloatField(Field):
    def to_python(self, value: Any) -> float | None:
        if value is None:
            return value
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid float value '{value}'") from exc


class BooleanField(Field):
    def __init__(self, *, default: Any = False, **kwargs: Any) -> None:
        kwargs.setdefault("nullable", False)
        super().__init__(default=default, **kwargs)

    @property
    def has_default(self) -> bool:
        return True

    def to_python(self, value: Any) -> bool | None:
        if value is None:
            return value
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.lower()
            if lowered in {"true", "t", "1"}:
                return True
            if lowered in {"false", "f", "0"}:
                return False
        if isinstance(value, (int, float)):
            return bool(value)
        raise ValueError(f"Invalid boolean value '{value}'")


class StringField(Field):
    def __init__(self, *, max_length: int = 1500, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.max_length = max_length

    def to_python(self, value: Any) -> str | None:
        if value is None:
            return value
        result = str(value)
        if self.max_length and len(result) > self.max_length:
            raise ValueError(f"Value for field '{self.require_name()}' exceeds max_length {self.max_length}")
        return result


class DateTimeField(Field):
    def __init__(self, *, auto_now_add: bool = False, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.auto_now_add = auto_now_add

    def get_default(self) -> Any:
        if self.auto_now_add:
            return datetime.now(timezone.utc)
        return super().get_default()

    @property
    def has_default(self) -> bool:
        return self.auto_now_add or super().has_default

    def to_python(self, value: Any) -> datetime | None:
        if value is None:
            return value
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value)
            except ValueError as exc:
                raise ValueError(f"Invalid datetime for field '{self.name}': {value!r}") from exc
        raise ValueError(f"Expected datetime for field '{self.name}', received {value!r}")

    def to_primitive(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        return value


class ParentField(Field):
    """
    Holds the ancestor :class:`Identity` of an entity.
    """

    def to_python(self, value: Any) -> Identity | None:
        if value is None or isinstance(value, Identity):
            return value
        if isinstance(value, str):
            return Identity.decode(value)
        raise ValueError(f"Expected Identity for field '{self.name}', received {value!r}")

    def to_primitive(self, value: Any) -> Any:
        if isinstance(value, Identity):
            return value.encode()
        return value
