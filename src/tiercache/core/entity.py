"""
Entity base class and metadata collected from field declarations.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Type

from ..errors import InvalidEntityError
from .fields import AutoField, Field, IntegerField, ParentField, StringField
from .identity import Identity


class EntityConfigurationError(Exception):
    """Raised when an entity class is misconfigured."""


@dataclass
class EntityOptions:
    """
    Container for entity metadata calculated by :class:`EntityMeta`.
    """

    entity: Type["Entity"]
    kind: str = ""
    fields: "OrderedDict[str, Field]" = field(default_factory=OrderedDict)
    primary_key: Optional[Field] = None
    parent_field: Optional[ParentField] = None

    def add_field(self, field_obj: Field) -> None:
        if field_obj.name in self.fields:
            raise EntityConfigurationError(
                f"Duplicate field name '{field_obj.name}' on entity '{self.entity.__name__}'"
            )
        self.fields[field_obj.name] = field_obj
        if field_obj.primary_key:
            if self.primary_key and self.primary_key is not field_obj:
                raise EntityConfigurationError(
                    f"Multiple primary keys defined on entity '{self.entity.__name__}'"
                )
            if not isinstance(field_obj, (IntegerField, StringField)):
                raise EntityConfigurationError(
                    f"Primary key of '{self.entity.__name__}' must be an IntegerField or StringField"
                )
            self.primary_key = field_obj
        if isinstance(field_obj, ParentField):
            if self.parent_field is not None:
                raise EntityConfigurationError(
                    f"Multiple parent fields defined on entity '{self.entity.__name__}'"
                )
            self.parent_field = field_obj

    def require_primary_key(self) -> Field:
        if self.primary_key is None:
            raise EntityConfigurationError(f"Entity '{self.entity.__name__}' has no primary key")
        return self.primary_key

    def get_fields(self) -> Iterable[Field]:
        return self.fields.values()

    def payload_fields(self) -> Iterable[Field]:
        """Fields stored in the serialized body, i.e. everything except the key parts."""
        return [f for f in self.fields.values() if f is not self.primary_key and f is not self.parent_field]


class EntityMeta(type):
    """
    Metaclass collecting field descriptors and the entity kind.
    """

    def __new__(mcls, name: str, bases: tuple[type, ...], attrs: Dict[str, Any]) -> "EntityMeta":
        if name == "Entity" and bases == (object,):
            return super().__new__(mcls, name, bases, attrs)

        declared_fields: Dict[str, Field] = {}
        for attr_name, value in list(attrs.items()):
            if isinstance(value, Field):
                declared_fields[attr_name] = attrs.pop(attr_name)

        cls = super().__new__(mcls, name, bases, attrs)

        meta = getattr(cls, "Meta", None)
        kind = getattr(meta, "kind", name) if meta else name
        cls._meta = EntityOptions(entity=cls, kind=kind)

        sorted_fields = sorted(declared_fields.items(), key=lambda item: item[1].creation_counter)
        for attr_name, field_obj in sorted_fields:
            field_obj.contribute_to_class(cls, attr_name)
            cls._meta.add_field(field_obj)

        if not cls._meta.primary_key:
            if "id" in cls._meta.fields:
                raise EntityConfigurationError(
                    f"Entity '{cls.__name__}' defines a field named 'id' but no primary key."
                )
            auto_field = AutoField()
            auto_field.contribute_to_class(cls, "id")
            cls._meta.add_field(auto_field)
            cls._meta.fields.move_to_end("id", last=False)

        return cls


class Entity(metaclass=EntityMeta):
    """
    Base entity: a field container that knows how to derive and accept its identity.
    """

    _meta: EntityOptions

    def __init__(self, **kwargs: Any) -> None:
        self._field_values: Dict[str, Any] = {}
        unknown = set(kwargs) - set(self._meta.fields)
        if unknown:
            raise TypeError(f"Unknown fields for {self.__class__.__name__}: {sorted(unknown)}")

        for field_obj in self._meta.get_fields():
            if field_obj.name in kwargs:
                setattr(self, field_obj.name, kwargs[field_obj.name])
            elif field_obj.has_default:
                setattr(self, field_obj.name, field_obj.get_default())

    def __repr__(self) -> str:
        field_parts = ", ".join(
            f"{name}={value!r}" for name, value in self._field_values.items()
        )
        return f"<{self.__class__.__name__} {field_parts}>"

    @property
    def pk(self) -> Any:
        return getattr(self, self._meta.require_primary_key().require_name())

    # Identity capability -------------------------------------------------
    def get_identity(self) -> Identity:
        parent = None
        if self._meta.parent_field is not None:
            parent = getattr(self, self._meta.parent_field.require_name())
        pk_value = self.pk
        try:
            return Identity.of(self._meta.kind, pk_value, parent=parent)
        except (TypeError, ValueError) as exc:
            raise InvalidEntityError(f"Cannot build identity for {self!r}: {exc}") from exc

    def set_identity(self, identity: Identity) -> None:
        if identity.kind != self._meta.kind:
            raise InvalidEntityError(
                f"Identity kind '{identity.kind}' does not match entity kind '{self._meta.kind}'"
            )
        pk_field = self._meta.require_primary_key()
        if isinstance(pk_field, StringField) and identity.string_id is None:
            raise InvalidEntityError(
                f"Entity '{self.__class__.__name__}' uses string ids and cannot accept {identity}"
            )
        if isinstance(pk_field, IntegerField) and identity.int_id is None:
            raise InvalidEntityError(
                f"Entity '{self.__class__.__name__}' uses numeric ids and cannot accept {identity}"
            )
        setattr(self, pk_field.require_name(), identity.id)
        if self._meta.parent_field is not None:
            setattr(self, self._meta.parent_field.require_name(), identity.parent)

    # Serialization helpers -----------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        return {f.require_name(): getattr(self, f.require_name()) for f in self._meta.get_fields()}

    def to_payload(self) -> Dict[str, Any]:
        return {
            f.require_name(): f.to_primitive(getattr(self, f.require_name()))
            for f in self._meta.payload_fields()
        }

    def load(self, payload: Mapping[str, Any]) -> None:
        """
        Replace every non-key field with the values in ``payload``.

        Fields missing from the payload fall back to their defaults.
        """
        for f in self._meta.payload_fields():
            name = f.require_name()
            if name in payload:
                setattr(self, name, payload[name])
            else:
                self._field_values.pop(name, None)
                if f.has_default:
                    setattr(self, name, f.get_default())
