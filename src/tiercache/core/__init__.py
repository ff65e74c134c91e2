"""
Core building blocks: identities, entities, key resolution and codecs.
"""

from .codec import Codec, JSONCodec
from .entity import Entity, EntityConfigurationError, EntityMeta, EntityOptions
from .fields import (
    AutoField,
    BooleanField,
    DateTimeField,
    Field,
    FloatField,
    IntegerField,
    ParentField,
    StringField,
)
from .identity import Identity
from .keys import EntityKeyResolver, KeyResolver

__all__ = [
    "AutoField",
    "BooleanField",
    "Codec",
    "DateTimeField",
    "Entity",
    "EntityConfigurationError",
    "EntityKeyResolver",
    "EntityMeta",
    "EntityOptions",
    "Field",
    "FloatField",
    "Identity",
    "IntegerField",
    "JSONCodec",
    "KeyResolver",
    "ParentField",
    "StringField",
]
