"""Entity records and the attribute value variants they carry.

Attribute values map onto plain Python where the STEP form has an obvious
counterpart and onto small frozen records otherwise:

=================  ==========================
STEP form          Python value
=================  ==========================
``#12``            :class:`EntityRef`
``'text'``         ``str``
``42``             ``int``
``4.2``            ``float``
``.TRUE.``         :class:`EnumValue`
``(a, b)``         ``tuple``
``IFCLABEL('x')``  :class:`TypedValue`
``$``              ``None``
``*``              :data:`DERIVED`
=================  ==========================

Attributes never hold another decoded entity, only its id, so reference
cycles in the file are ordinary data.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from aecmesh.errors import InvalidAttribute


@dataclass(frozen=True)
class EntityRef:
    """Reference to another entity by id."""

    id: int

    def __str__(self) -> str:
        return f"#{self.id}"


@dataclass(frozen=True)
class EnumValue:
    """Enumeration literal, stored without the surrounding dots."""

    value: str

    def __str__(self) -> str:
        return f".{self.value}."


@dataclass(frozen=True)
class TypedValue:
    """Inline typed value such as ``IFCLENGTHMEASURE(2.5)``."""

    name: str
    args: tuple[Any, ...] = ()

    @property
    def value(self) -> Any:
        """First argument, which is the wrapped value for measure types."""
        return self.args[0] if self.args else None


class _Derived:
    """Marker for the ``*`` derived-attribute placeholder."""

    _instance: _Derived | None = None

    def __new__(cls) -> _Derived:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DERIVED"

    def __reduce__(self) -> str:
        return "DERIVED"


DERIVED = _Derived()

AttributeValue = Union[
    EntityRef, str, int, float, EnumValue, tuple, TypedValue, _Derived, None
]


# ---------------------------------------------------------------------------
# Value coercion helpers
# ---------------------------------------------------------------------------

def as_ref(value: Any) -> int | None:
    """Return the referenced id, or None when *value* is not a reference."""
    if isinstance(value, EntityRef):
        return value.id
    return None


def as_float(value: Any) -> float | None:
    """Return a float for numbers and numeric typed values."""
    if isinstance(value, TypedValue):
        value = value.value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def as_int(value: Any) -> int | None:
    if isinstance(value, TypedValue):
        value = value.value
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def as_string(value: Any) -> str | None:
    """Return the text of a string, looking through typed wrappers."""
    if isinstance(value, TypedValue):
        value = value.value
    if isinstance(value, str):
        return value
    return None


def as_bool(value: Any) -> bool | None:
    """Return True/False for boolean enums, None for UNKNOWN or non-booleans."""
    if isinstance(value, TypedValue):
        value = value.value
    if isinstance(value, EnumValue):
        if value.value in ("T", "TRUE"):
            return True
        if value.value in ("F", "FALSE"):
            return False
    return None


def as_enum(value: Any) -> str | None:
    if isinstance(value, TypedValue):
        value = value.value
    if isinstance(value, EnumValue):
        return value.value
    return None


# ---------------------------------------------------------------------------
# Entity records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RawEntity:
    """A located but undecoded entity record.

    ``args_start``/``args_end`` delimit the text between the outer
    parentheses of the constructor; ``offset`` is where ``#`` starts.
    """

    id: int
    type_name: str
    offset: int
    args_start: int
    args_end: int


@dataclass(frozen=True)
class DecodedEntity:
    """An entity with its attribute list decoded into Python values."""

    id: int
    type_name: str
    attributes: tuple[Any, ...]

    def __len__(self) -> int:
        return len(self.attributes)

    def get(self, index: int) -> Any:
        """Return attribute *index*, or None when it is out of range."""
        if 0 <= index < len(self.attributes):
            return self.attributes[index]
        return None

    def get_ref(self, index: int) -> int | None:
        return as_ref(self.get(index))

    def get_refs(self, index: int) -> list[int]:
        """Return the ids in a list attribute, skipping non-references."""
        value = self.get(index)
        if not isinstance(value, tuple):
            return []
        return [item.id for item in value if isinstance(item, EntityRef)]

    def get_string(self, index: int) -> str | None:
        return as_string(self.get(index))

    def get_float(self, index: int) -> float | None:
        return as_float(self.get(index))

    def get_int(self, index: int) -> int | None:
        return as_int(self.get(index))

    def get_bool(self, index: int) -> bool | None:
        return as_bool(self.get(index))

    def get_enum(self, index: int) -> str | None:
        return as_enum(self.get(index))

    def get_list(self, index: int) -> tuple[Any, ...] | None:
        value = self.get(index)
        if isinstance(value, tuple):
            return value
        return None

    # Strict accessors used by the geometry processors -----------------------

    def ref(self, index: int) -> int:
        """Return the id at *index* or raise :class:`InvalidAttribute`."""
        ref = self.get_ref(index)
        if ref is None:
            raise InvalidAttribute(index, f"{self.type_name} #{self.id}: expected entity reference")
        return ref

    def float_at(self, index: int) -> float:
        value = self.get_float(index)
        if value is None:
            raise InvalidAttribute(index, f"{self.type_name} #{self.id}: expected number")
        return value

    def list_at(self, index: int) -> tuple[Any, ...]:
        value = self.get_list(index)
        if value is None:
            raise InvalidAttribute(index, f"{self.type_name} #{self.id}: expected list")
        return value
