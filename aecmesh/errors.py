"""Exception hierarchy shared by the parser and the geometry pipeline.

Every error raised by aecmesh derives from :class:`AecMeshError` so callers
can catch the whole family in one place, or pick the specific kind they know
how to recover from (for instance skipping an entity on ``GeometryError``
while still aborting on ``StructuralError``).
"""

from __future__ import annotations


class AecMeshError(Exception):
    """Base class for all aecmesh errors."""


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class ParseError(AecMeshError):
    """A STEP syntax problem tied to a byte offset in the input."""

    def __init__(self, message: str, offset: int) -> None:
        self.message = message
        self.offset = offset
        super().__init__(f"{message} (at byte {offset})")


class StructuralError(ParseError):
    """An entity record whose ``#id = TYPE(`` prefix cannot be read."""


class TokenError(ParseError):
    """A token inside an argument list that matches no STEP value form."""


class EntityParseError(ParseError):
    """A token error attributed to the entity whose arguments failed."""

    def __init__(self, entity_id: int, message: str, offset: int) -> None:
        self.entity_id = entity_id
        super().__init__(f"#{entity_id}: {message}", offset)


# ---------------------------------------------------------------------------
# Model access
# ---------------------------------------------------------------------------

class EntityNotFound(AecMeshError):
    """A reference points at an id that is not present in the file."""

    def __init__(self, entity_id: int) -> None:
        self.entity_id = entity_id
        super().__init__(f"Entity #{entity_id} not found")


class InvalidAttribute(AecMeshError):
    """An attribute is missing or has the wrong shape for its consumer."""

    def __init__(self, index: int, message: str) -> None:
        self.index = index
        self.message = message
        super().__init__(f"Invalid attribute at index {index}: {message}")


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

class GeometryError(AecMeshError):
    """Base class for failures while building a mesh."""


class ProfileError(GeometryError):
    """A 2D profile cannot be built or swept."""


class TriangulationError(GeometryError):
    """A polygon cannot be triangulated (too few points, zero area...)."""


class CsgError(GeometryError):
    """A void subtraction cannot be applied to its host solid."""


class UnsupportedType(AecMeshError):
    """No geometry processor exists for the given entity type."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"Unsupported geometry type: {type_name}")
