"""Project length and plane angle units, and unit symbols."""

from __future__ import annotations

import logging
from collections.abc import Callable

from aecmesh.errors import AecMeshError
from aecmesh.models.entity import DecodedEntity, as_float
from aecmesh.parser.resolver import EntityResolver

logger = logging.getLogger(__name__)

SI_PREFIX_SCALE = {
    "EXA": 1e18,
    "PETA": 1e15,
    "TERA": 1e12,
    "GIGA": 1e9,
    "MEGA": 1e6,
    "KILO": 1e3,
    "HECTO": 1e2,
    "DECA": 1e1,
    "DECI": 1e-1,
    "CENTI": 1e-2,
    "MILLI": 1e-3,
    "MICRO": 1e-6,
    "NANO": 1e-9,
    "PICO": 1e-12,
    "FEMTO": 1e-15,
    "ATTO": 1e-18,
}

SI_PREFIX_SYMBOL = {
    "EXA": "E", "PETA": "P", "TERA": "T", "GIGA": "G", "MEGA": "M",
    "KILO": "k", "HECTO": "h", "DECA": "da", "DECI": "d", "CENTI": "c",
    "MILLI": "m", "MICRO": "µ", "NANO": "n", "PICO": "p", "FEMTO": "f",
    "ATTO": "a",
}

SI_NAME_SYMBOL = {
    "METRE": "m",
    "SQUARE_METRE": "m²",
    "CUBIC_METRE": "m³",
    "GRAM": "g",
    "SECOND": "s",
    "AMPERE": "A",
    "KELVIN": "K",
    "DEGREE_CELSIUS": "°C",
    "MOLE": "mol",
    "CANDELA": "cd",
    "RADIAN": "rad",
    "STERADIAN": "sr",
    "HERTZ": "Hz",
    "NEWTON": "N",
    "PASCAL": "Pa",
    "JOULE": "J",
    "WATT": "W",
    "COULOMB": "C",
    "VOLT": "V",
    "FARAD": "F",
    "OHM": "Ω",
    "SIEMENS": "S",
    "WEBER": "Wb",
    "TESLA": "T",
    "HENRY": "H",
    "LUMEN": "lm",
    "LUX": "lx",
    "BECQUEREL": "Bq",
    "GRAY": "Gy",
    "SIEVERT": "Sv",
}

# Length conversion factors to metres for common non-SI units
METRE = 1.0
MILLIMETRE = 0.001
CENTIMETRE = 0.01
KILOMETRE = 1000.0
INCH = 0.0254
FOOT = 0.3048
YARD = 0.9144
MILE = 1609.344


def _assigned_units(resolver: EntityResolver) -> list[DecodedEntity]:
    """Units of the first IFCPROJECT's unit assignment (attribute 8)."""
    projects = resolver.find_by_type_name("IFCPROJECT")
    if not projects:
        return []
    project = resolver.resolve(projects[0])
    assignment_id = project.get_ref(8)
    if assignment_id is None:
        return []
    assignment = resolver.resolve(assignment_id)
    units = (resolver.get(unit_id) for unit_id in assignment.get_refs(0))
    return [unit for unit in units if unit is not None]


def extract_unit_scale(resolver: EntityResolver) -> float:
    """Return the factor converting project length units to metres.

    Follows the first IFCPROJECT's unit assignment to its length unit.
    Returns 1.0 when no length unit can be determined.
    """
    try:
        for unit in _assigned_units(resolver):
            scale = length_unit_scale(unit, resolver)
            if scale is not None:
                logger.info("Project length unit scale: %g", scale)
                return scale
    except AecMeshError:
        logger.warning("Could not read project units, assuming metres", exc_info=True)
    return 1.0


def extract_angle_scale(resolver: EntityResolver) -> float | None:
    """Return the factor converting project plane angles to radians.

    ``None`` when the project declares no plane angle unit.
    """
    try:
        for unit in _assigned_units(resolver):
            scale = angle_unit_scale(unit, resolver)
            if scale is not None:
                logger.info("Project plane angle scale: %g", scale)
                return scale
    except AecMeshError:
        logger.warning("Could not read project angle unit", exc_info=True)
    return None


def _conversion_factor(
    unit: DecodedEntity,
    resolver: EntityResolver,
    base_scale_of: Callable[..., float | None],
    seen: frozenset[int],
) -> float | None:
    # IFCCONVERSIONBASEDUNIT: attribute 3 is an IFCMEASUREWITHUNIT (value, base unit)
    factor_id = unit.get_ref(3)
    factor = resolver.get(factor_id) if factor_id is not None else None
    if factor is None or factor.type_name != "IFCMEASUREWITHUNIT":
        return None
    value = as_float(factor.get(0))
    if value is None:
        return None
    base_id = factor.get_ref(1)
    base = resolver.get(base_id) if base_id is not None else None
    base_scale = None
    if base is not None:
        base_scale = base_scale_of(base, resolver, seen | {unit.id})
    return value * (base_scale if base_scale is not None else 1.0)


def length_unit_scale(
    unit: DecodedEntity, resolver: EntityResolver, _seen: frozenset[int] = frozenset()
) -> float | None:
    """Scale to metres of an IFCSIUNIT or IFCCONVERSIONBASEDUNIT length unit."""
    if unit.id in _seen or unit.get_enum(1) != "LENGTHUNIT":
        return None

    if unit.type_name == "IFCSIUNIT":
        if unit.get_enum(3) != "METRE":
            return None
        prefix = unit.get_enum(2)
        return SI_PREFIX_SCALE.get(prefix, 1.0) if prefix else 1.0

    if unit.type_name == "IFCCONVERSIONBASEDUNIT":
        return _conversion_factor(unit, resolver, length_unit_scale, _seen)

    return None


def angle_unit_scale(
    unit: DecodedEntity, resolver: EntityResolver, _seen: frozenset[int] = frozenset()
) -> float | None:
    """Scale to radians of a plane angle unit, e.g. pi/180 for DEGREE."""
    if unit.id in _seen or unit.get_enum(1) != "PLANEANGLEUNIT":
        return None

    if unit.type_name == "IFCSIUNIT":
        if unit.get_enum(3) != "RADIAN":
            return None
        prefix = unit.get_enum(2)
        return SI_PREFIX_SCALE.get(prefix, 1.0) if prefix else 1.0

    if unit.type_name == "IFCCONVERSIONBASEDUNIT":
        return _conversion_factor(unit, resolver, angle_unit_scale, _seen)

    return None


def unit_symbol(unit: DecodedEntity | None) -> str | None:
    """Short symbol for a unit entity, e.g. ``mm`` or ``m²``."""
    if unit is None:
        return None
    if unit.type_name == "IFCSIUNIT":
        name = unit.get_enum(3)
        if name is None:
            return None
        prefix = SI_PREFIX_SYMBOL.get(unit.get_enum(2) or "", "")
        return prefix + SI_NAME_SYMBOL.get(name, name.lower())
    if unit.type_name in ("IFCCONVERSIONBASEDUNIT", "IFCCONTEXTDEPENDENTUNIT"):
        return unit.get_string(2)
    return None
