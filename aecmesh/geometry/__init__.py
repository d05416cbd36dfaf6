"""Tessellation: profiles, extrusion, triangulation and the geometry router."""

from aecmesh.geometry.extrusion import extrude_profile, extrude_profile_with_voids
from aecmesh.geometry.mesh import Mesh, MeshData
from aecmesh.geometry.processors import (
    ExtrudedAreaSolidProcessor,
    FacetedBrepProcessor,
    GeometryProcessor,
    RevolvedAreaSolidProcessor,
    SweptDiskSolidProcessor,
    TriangulatedFaceSetProcessor,
)
from aecmesh.geometry.profile import (
    Profile2D,
    Profile2DWithVoids,
    VoidInfo,
    calculate_circle_segments,
)
from aecmesh.geometry.router import (
    GeometryBatch,
    GeometryRouter,
    product_ids_with_geometry,
    tessellate,
)
from aecmesh.geometry.triangulation import (
    calculate_polygon_normal,
    project_to_2d,
    project_to_2d_with_basis,
    triangulate_polygon,
    triangulate_polygon_with_holes,
)

__all__ = [
    "ExtrudedAreaSolidProcessor",
    "FacetedBrepProcessor",
    "GeometryBatch",
    "GeometryProcessor",
    "GeometryRouter",
    "Mesh",
    "MeshData",
    "Profile2D",
    "Profile2DWithVoids",
    "RevolvedAreaSolidProcessor",
    "SweptDiskSolidProcessor",
    "TriangulatedFaceSetProcessor",
    "VoidInfo",
    "calculate_circle_segments",
    "calculate_polygon_normal",
    "extrude_profile",
    "extrude_profile_with_voids",
    "product_ids_with_geometry",
    "project_to_2d",
    "project_to_2d_with_basis",
    "tessellate",
    "triangulate_polygon",
    "triangulate_polygon_with_holes",
]
