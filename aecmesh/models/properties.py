"""Property and quantity set records attached to elements."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

PropertyKind = Literal["single", "enumerated", "bounded", "list", "table", "reference", "other"]

QuantityKind = Literal["length", "area", "volume", "count", "weight", "time", "unknown"]


class PropertyValue(BaseModel):
    """A named property with its scalar (or list of scalars) value."""

    name: str
    kind: PropertyKind = "single"
    value: Any = None
    unit: str | None = None


class QuantityValue(BaseModel):
    """A named quantity.

    ``kind`` follows the quantity entity's own type; entities of an
    unrecognised quantity type keep ``kind="unknown"`` and their raw scalar.
    """

    name: str
    kind: QuantityKind
    value: float | int | None = None
    unit: str = ""
    type_name: str = ""


class ElementIdentity(BaseModel):
    """Root attributes shared by every IfcRoot/IfcProduct entity."""

    id: int
    type_name: str
    global_id: str | None = None
    name: str | None = None
    description: str | None = None
    object_type: str | None = None
    tag: str | None = None


class PropertySet(BaseModel):
    """A property set or element quantity set as attached to an element."""

    id: int
    name: str
    is_quantity_set: bool = False
    properties: list[PropertyValue] = Field(default_factory=list)
    quantities: list[QuantityValue] = Field(default_factory=list)

    def get(self, name: str) -> Any:
        """Return the value of the property or quantity called *name*."""
        for prop in self.properties:
            if prop.name == name:
                return prop.value
        for qty in self.quantities:
            if qty.name == name:
                return qty.value
        return None

    def to_dict(self) -> dict[str, Any]:
        """Flatten to ``{name: value}`` in declaration order."""
        out: dict[str, Any] = {p.name: p.value for p in self.properties}
        out.update({q.name: q.value for q in self.quantities})
        return out
