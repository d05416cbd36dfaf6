"""Data models shared across the parser and geometry layers."""

from aecmesh.models.entity import (
    DERIVED,
    AttributeValue,
    DecodedEntity,
    EntityRef,
    EnumValue,
    RawEntity,
    TypedValue,
)
from aecmesh.models.header import HeaderInfo
from aecmesh.models.properties import PropertySet, PropertyValue, QuantityValue
from aecmesh.models.spatial import ParentConflict, SpatialNode

__all__ = [
    "DERIVED",
    "AttributeValue",
    "DecodedEntity",
    "EntityRef",
    "EnumValue",
    "HeaderInfo",
    "ParentConflict",
    "PropertySet",
    "PropertyValue",
    "QuantityValue",
    "RawEntity",
    "SpatialNode",
    "TypedValue",
]
