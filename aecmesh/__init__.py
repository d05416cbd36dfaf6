"""aecmesh: STEP/IFC parsing and tessellation."""

__version__ = "0.1.0"

from aecmesh.config import ParserSettings, load_settings
from aecmesh.errors import (
    AecMeshError,
    CsgError,
    EntityNotFound,
    EntityParseError,
    GeometryError,
    InvalidAttribute,
    ParseError,
    ProfileError,
    StructuralError,
    TokenError,
    TriangulationError,
    UnsupportedType,
)
from aecmesh.geometry import GeometryRouter, Mesh, MeshData, Profile2D, tessellate
from aecmesh.parser import ParsedModel, StepParser, parse, parse_file, parse_with_progress

__all__ = [
    "AecMeshError",
    "CsgError",
    "EntityNotFound",
    "EntityParseError",
    "GeometryError",
    "GeometryRouter",
    "InvalidAttribute",
    "Mesh",
    "MeshData",
    "ParseError",
    "ParsedModel",
    "ParserSettings",
    "Profile2D",
    "ProfileError",
    "StepParser",
    "StructuralError",
    "TokenError",
    "TriangulationError",
    "UnsupportedType",
    "__version__",
    "load_settings",
    "parse",
    "parse_file",
    "parse_with_progress",
    "tessellate",
]
