"""Attach property sets and element quantities to the elements they define."""

from __future__ import annotations

import logging
from typing import Any

from aecmesh.config import SPATIAL_TYPES
from aecmesh.errors import AecMeshError
from aecmesh.models.entity import (
    DERIVED,
    DecodedEntity,
    EntityRef,
    EnumValue,
    TypedValue,
    as_bool,
)
from aecmesh.models.properties import (
    ElementIdentity,
    PropertySet,
    PropertyValue,
    QuantityValue,
)
from aecmesh.parser.resolver import EntityResolver
from aecmesh.parser.units import unit_symbol

logger = logging.getLogger(__name__)

# Quantity entity -> (kind, default unit symbol); the value sits at index 3
QUANTITY_TYPES = {
    "IFCQUANTITYLENGTH": ("length", "m"),
    "IFCQUANTITYAREA": ("area", "m²"),
    "IFCQUANTITYVOLUME": ("volume", "m³"),
    "IFCQUANTITYCOUNT": ("count", ""),
    "IFCQUANTITYWEIGHT": ("weight", "kg"),
    "IFCQUANTITYTIME": ("time", "s"),
}

PROPERTY_KINDS = {
    "IFCPROPERTYSINGLEVALUE": "single",
    "IFCPROPERTYENUMERATEDVALUE": "enumerated",
    "IFCPROPERTYBOUNDEDVALUE": "bounded",
    "IFCPROPERTYLISTVALUE": "list",
    "IFCPROPERTYTABLEVALUE": "table",
    "IFCPROPERTYREFERENCEVALUE": "reference",
}


def scalar(value: Any) -> Any:
    """Unwrap an attribute value into a plain Python scalar or list."""
    if isinstance(value, TypedValue):
        if value.name in ("IFCBOOLEAN", "IFCLOGICAL"):
            return as_bool(value.value)
        return scalar(value.value)
    if isinstance(value, EnumValue):
        flag = as_bool(value)
        return flag if flag is not None else value.value
    if isinstance(value, EntityRef):
        return str(value)
    if isinstance(value, tuple):
        return [scalar(v) for v in value]
    if value is DERIVED:
        return None
    return value


def _first_number(entity: DecodedEntity, start: int = 0) -> float | int | None:
    for value in entity.attributes[start:]:
        if isinstance(value, TypedValue):
            value = value.value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
    return None


class PropertyReader:
    """Read property and quantity definitions through a resolver.

    Each definition entity is read once and the resulting
    :class:`PropertySet` is shared by every element it is attached to.
    """

    def __init__(self, resolver: EntityResolver) -> None:
        self.resolver = resolver
        self._sets: dict[int, PropertySet | None] = {}

    def _unit(self, value: Any) -> str | None:
        if isinstance(value, EntityRef):
            return unit_symbol(self.resolver.get(value.id))
        return None

    def read_property(self, prop: DecodedEntity) -> PropertyValue | None:
        name = prop.get_string(0)
        if name is None:
            return None
        kind = PROPERTY_KINDS.get(prop.type_name, "other")

        if kind == "single":
            return PropertyValue(
                name=name, kind=kind, value=scalar(prop.get(2)), unit=self._unit(prop.get(3))
            )
        if kind == "enumerated":
            values = prop.get_list(2) or ()
            return PropertyValue(name=name, kind=kind, value=[scalar(v) for v in values])
        if kind == "bounded":
            bounds = {"upper": scalar(prop.get(2)), "lower": scalar(prop.get(3))}
            return PropertyValue(name=name, kind=kind, value=bounds, unit=self._unit(prop.get(4)))
        if kind == "list":
            values = prop.get_list(2) or ()
            return PropertyValue(
                name=name, kind=kind, value=[scalar(v) for v in values], unit=self._unit(prop.get(3))
            )
        if kind == "table":
            defining = prop.get_list(2) or ()
            defined = prop.get_list(3) or ()
            table = [[scalar(a), scalar(b)] for a, b in zip(defining, defined)]
            return PropertyValue(name=name, kind=kind, value=table)
        if kind == "reference":
            return PropertyValue(name=name, kind=kind, value=scalar(prop.get(3)))
        return PropertyValue(name=name, kind="other", value=scalar(prop.get(2)))

    def read_quantity(self, qty: DecodedEntity) -> QuantityValue | None:
        name = qty.get_string(0)
        if name is None:
            return None
        known = QUANTITY_TYPES.get(qty.type_name)
        if known is None:
            # Unrecognised quantity type: keep its first number as-is
            return QuantityValue(
                name=name,
                kind="unknown",
                value=_first_number(qty, 3),
                unit=self._unit(qty.get(2)) or "",
                type_name=qty.type_name,
            )
        kind, default_unit = known
        value: float | int | None = qty.get_float(3)
        if kind == "count" and value is not None and float(value).is_integer():
            value = int(value)
        return QuantityValue(
            name=name,
            kind=kind,
            value=value,
            unit=self._unit(qty.get(2)) or default_unit,
            type_name=qty.type_name,
        )

    def read_set(self, definition_id: int) -> PropertySet | None:
        """Return the property or quantity set *definition_id*, cached."""
        if definition_id in self._sets:
            return self._sets[definition_id]

        result: PropertySet | None = None
        definition = self.resolver.resolve(definition_id)
        name = definition.get_string(2) or ""
        if definition.type_name == "IFCPROPERTYSET":
            result = PropertySet(id=definition_id, name=name)
            for prop_id in definition.get_refs(4):
                prop = self._member(definition_id, prop_id)
                value = self.read_property(prop) if prop is not None else None
                if value is not None:
                    result.properties.append(value)
        elif definition.type_name == "IFCELEMENTQUANTITY":
            result = PropertySet(id=definition_id, name=name, is_quantity_set=True)
            for qty_id in definition.get_refs(5):
                qty = self._member(definition_id, qty_id)
                value = self.read_quantity(qty) if qty is not None else None
                if value is not None:
                    result.quantities.append(value)

        self._sets[definition_id] = result
        return result

    def _member(self, owner_id: int, member_id: int) -> DecodedEntity | None:
        try:
            return self.resolver.resolve(member_id)
        except AecMeshError:
            logger.warning("Skipping member #%d of set #%d", member_id, owner_id, exc_info=True)
            return None


class PropertyIndex:
    """Element id -> ordered property and quantity sets."""

    def __init__(self, sets: dict[int, list[PropertySet]]) -> None:
        self._sets = sets

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._sets

    def __len__(self) -> int:
        return len(self._sets)

    def element_ids(self) -> list[int]:
        return list(self._sets)

    def sets_for(self, entity_id: int) -> list[PropertySet]:
        return list(self._sets.get(entity_id, ()))

    def property_sets(self, entity_id: int) -> list[PropertySet]:
        return [s for s in self._sets.get(entity_id, ()) if not s.is_quantity_set]

    def quantity_sets(self, entity_id: int) -> list[PropertySet]:
        return [s for s in self._sets.get(entity_id, ()) if s.is_quantity_set]

    def get_value(self, entity_id: int, set_name: str, name: str) -> Any:
        for pset in self._sets.get(entity_id, ()):
            if pset.name == set_name:
                return pset.get(name)
        return None

    def flatten(self, entity_id: int) -> dict[str, Any]:
        """Flatten into ``{"Pset_WallCommon.IsExternal": value}``."""
        flat: dict[str, Any] = {}
        for pset in self._sets.get(entity_id, ()):
            for key, value in pset.to_dict().items():
                flat[f"{pset.name}.{key}"] = value
        return flat


def build_property_index(resolver: EntityResolver) -> PropertyIndex:
    """Walk IFCRELDEFINESBYPROPERTIES in file order and collect the sets."""
    reader = PropertyReader(resolver)
    sets: dict[int, list[PropertySet]] = {}

    for rel_id in resolver.find_by_type_name("IFCRELDEFINESBYPROPERTIES"):
        try:
            rel = resolver.resolve(rel_id)
            definition_id = rel.get_ref(5)
            if definition_id is None:
                continue
            pset = reader.read_set(definition_id)
        except AecMeshError:
            logger.warning("Skipping property relationship #%d", rel_id, exc_info=True)
            continue
        if pset is None:
            continue
        for element_id in rel.get_refs(4):
            sets.setdefault(element_id, []).append(pset)

    logger.info("Property sets attached to %d elements", len(sets))
    return PropertyIndex(sets)


def element_identity(resolver: EntityResolver, entity_id: int) -> ElementIdentity:
    """GlobalId, Name, Description, ObjectType and Tag of a product."""
    entity = resolver.resolve(entity_id)
    # Attribute 7 is Tag on elements but LongName on spatial structures
    tag = None if entity.type_name in SPATIAL_TYPES else entity.get_string(7)
    return ElementIdentity(
        id=entity.id,
        type_name=entity.type_name,
        global_id=entity.get_string(0),
        name=entity.get_string(2),
        description=entity.get_string(3),
        object_type=entity.get_string(4),
        tag=tag,
    )
