"""Geometry processors: one class per supported solid representation.

Each processor turns a decoded entity into a :class:`Mesh` in the entity's
own coordinate frame, following references through the resolver one level
at a time.  The router picks the processor by type name.
"""

from __future__ import annotations

import abc
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

from aecmesh.config import EPSILON, FULL_REVOLUTION_SEGMENTS, SWEPT_DISK_SEGMENTS
from aecmesh.errors import InvalidAttribute, ProfileError, TriangulationError, UnsupportedType
from aecmesh.geometry.extrusion import extrude_profile
from aecmesh.geometry.mesh import Mesh
from aecmesh.geometry.profile import Profile2D
from aecmesh.geometry.readers import (
    read_axis1_placement,
    read_curve_points,
    read_direction,
    read_placement,
    read_point_3d,
    read_point_list,
    read_profile,
)
from aecmesh.geometry.triangulation import calculate_polygon_normal, triangulate_polygon_with_holes
from aecmesh.geometry.vectors import (
    Matrix,
    Vec3,
    Z_AXIS,
    add,
    cross,
    dot,
    identity,
    normalize,
    perpendicular,
    rotate_about_axis,
    scale,
    sub,
)
from aecmesh.models.entity import DecodedEntity, as_float, as_int
from aecmesh.parser.resolver import EntityResolver

logger = logging.getLogger(__name__)

Triangle = tuple[Vec3, Vec3, Vec3]


class GeometryProcessor(abc.ABC):
    """Base class for all geometry processors."""

    @property
    @abc.abstractmethod
    def type_name(self) -> str:
        """Entity type handled by this processor."""

    @abc.abstractmethod
    def process(self, entity: DecodedEntity, resolver: EntityResolver) -> Mesh:
        """Build the mesh for *entity*.

        Parameters
        ----------
        entity:
            Decoded entity of :attr:`type_name`.
        resolver:
            Used to dereference every attribute that points at another entity.

        Raises a :class:`~aecmesh.errors.GeometryError` or
        :class:`~aecmesh.errors.InvalidAttribute` when no mesh can be built.
        """


def _position(resolver: EntityResolver, entity: DecodedEntity, index: int) -> Matrix:
    ref = entity.get_ref(index)
    return read_placement(resolver, ref) if ref is not None else identity()


def _oriented_mesh(triangles: Sequence[Triangle]) -> Mesh:
    """Flat-shaded mesh, flipped if needed so the enclosed volume is positive."""
    mesh = Mesh.from_triangles(triangles)
    if mesh.volume() < 0:
        mesh = Mesh.from_triangles([(a, c, b) for a, b, c in triangles])
    return mesh


def _band(lower: Sequence[Vec3], upper: Sequence[Vec3], triangles: list[Triangle]) -> None:
    """Two triangles per edge between two rings of equal length."""
    count = len(lower)
    for i in range(count):
        j = (i + 1) % count
        triangles.append((lower[i], lower[j], upper[j]))
        triangles.append((lower[i], upper[j], upper[i]))


# ---------------------------------------------------------------------------
# Extruded area solid
# ---------------------------------------------------------------------------

@dataclass
class ExtrusionParams:
    """Decoded inputs of an IFCEXTRUDEDAREASOLID."""

    profile: Profile2D
    depth: float
    direction: Vec3
    # Position of the solid in its parent frame
    matrix: Matrix


class ExtrudedAreaSolidProcessor(GeometryProcessor):
    """SweptArea (0), Position (1), ExtrudedDirection (2), Depth (3)."""

    @property
    def type_name(self) -> str:
        return "IFCEXTRUDEDAREASOLID"

    def read(self, entity: DecodedEntity, resolver: EntityResolver) -> ExtrusionParams:
        profile = _read_swept_area(resolver, entity)
        matrix = _position(resolver, entity, 1)
        direction_ref = entity.get_ref(2)
        direction = read_direction(resolver, direction_ref) if direction_ref is not None else Z_AXIS
        return ExtrusionParams(profile, entity.float_at(3), direction, matrix)

    def process(self, entity: DecodedEntity, resolver: EntityResolver) -> Mesh:
        params = self.read(entity, resolver)
        mesh = extrude_profile(params.profile, params.depth, params.direction)
        return mesh.transformed(params.matrix)


def _read_swept_area(resolver: EntityResolver, entity: DecodedEntity) -> Profile2D:
    return read_profile(resolver, entity.ref(0))


# ---------------------------------------------------------------------------
# Revolved area solid
# ---------------------------------------------------------------------------

class RevolvedAreaSolidProcessor(GeometryProcessor):
    """SweptArea (0), Position (1), Axis (2), Angle (3).

    The profile is rotated around the axis in the profile plane.  The angle
    is converted with *angle_scale*, the project's plane angle unit in
    radians.  Without one, angles larger than a full turn are taken to be
    degrees and smaller ones radians.
    """

    def __init__(self, angle_scale: float | None = None) -> None:
        self.angle_scale = angle_scale

    @property
    def type_name(self) -> str:
        return "IFCREVOLVEDAREASOLID"

    def process(self, entity: DecodedEntity, resolver: EntityResolver) -> Mesh:
        profile = _read_swept_area(resolver, entity)
        matrix = _position(resolver, entity, 1)
        centre, axis = read_axis1_placement(resolver, entity.ref(2))
        angle = entity.float_at(3)
        if self.angle_scale is not None:
            angle *= self.angle_scale
        elif angle > 2.0 * math.pi + 1e-6:
            angle = math.radians(angle)
        if angle <= EPSILON:
            raise ProfileError(f"revolution angle must be positive, got {angle}")

        full = angle >= 2.0 * math.pi - 1e-6
        if full:
            steps = FULL_REVOLUTION_SEGMENTS
        else:
            steps = max(4, math.ceil(angle / math.pi * 12))

        def ring(loop: Sequence[tuple[float, float]], k: int) -> list[Vec3]:
            theta = angle * k / steps
            return [
                add(centre, rotate_about_axis(sub((p[0], p[1], 0.0), centre), axis, theta))
                for p in loop
            ]

        triangles: list[Triangle] = []
        for loop in (profile.points, *profile.holes):
            rings = [ring(loop, k) for k in range(steps + 1)]
            if full:
                rings[-1] = rings[0]
            for k in range(steps):
                _band(rings[k], rings[k + 1], triangles)

        if not full:
            indices = profile.triangulate()
            points = profile.all_points()
            start, end = ring(points, 0), ring(points, steps)
            for t in range(0, len(indices), 3):
                a, b, c = indices[t:t + 3]
                triangles.append((start[a], start[c], start[b]))
                triangles.append((end[a], end[b], end[c]))

        mesh = _oriented_mesh(triangles)
        if mesh.is_empty():
            raise ProfileError(f"revolution #{entity.id} produced no faces")
        return mesh.transformed(matrix)


# ---------------------------------------------------------------------------
# Swept disk solid
# ---------------------------------------------------------------------------

def _transport_frames(points: Sequence[Vec3]) -> list[tuple[Vec3, Vec3, Vec3]]:
    """``(tangent, normal, binormal)`` per point with a twist-free normal."""
    count = len(points)
    tangents: list[Vec3] = []
    for i in range(count):
        t = normalize(sub(points[min(i + 1, count - 1)], points[max(i - 1, 0)]))
        tangents.append(t or (tangents[-1] if tangents else Z_AXIS))

    frames = []
    normal = perpendicular(tangents[0])
    for t in tangents:
        normal = normalize(sub(normal, scale(t, dot(normal, t)))) or perpendicular(t)
        frames.append((t, normal, cross(t, normal)))
    return frames


class SweptDiskSolidProcessor(GeometryProcessor):
    """Directrix (0), Radius (1); a circular tube capped at both ends."""

    @property
    def type_name(self) -> str:
        return "IFCSWEPTDISKSOLID"

    def process(self, entity: DecodedEntity, resolver: EntityResolver) -> Mesh:
        radius = entity.float_at(1)
        if radius <= 0:
            raise InvalidAttribute(1, f"{self.type_name} #{entity.id}: radius must be positive")
        if entity.get_float(2):
            logger.debug("Inner radius of swept disk #%d ignored", entity.id)

        path: list[Vec3] = []
        for p in read_curve_points(resolver, entity.ref(0)):
            point = (p[0], p[1], p[2] if len(p) > 2 else 0.0)
            if not path or normalize(sub(point, path[-1])) is not None:
                path.append(point)
        if len(path) < 2:
            raise ProfileError(f"directrix of #{entity.id} needs at least two distinct points")

        rings: list[list[Vec3]] = []
        for point, (_, normal, binormal) in zip(path, _transport_frames(path)):
            ring = []
            for j in range(SWEPT_DISK_SEGMENTS):
                theta = 2.0 * math.pi * j / SWEPT_DISK_SEGMENTS
                offset = add(scale(normal, radius * math.cos(theta)), scale(binormal, radius * math.sin(theta)))
                ring.append(add(point, offset))
            rings.append(ring)

        triangles: list[Triangle] = []
        for lower, upper in zip(rings, rings[1:]):
            _band(lower, upper, triangles)
        first, last = rings[0], rings[-1]
        for j in range(SWEPT_DISK_SEGMENTS):
            k = (j + 1) % SWEPT_DISK_SEGMENTS
            triangles.append((path[0], first[k], first[j]))
            triangles.append((path[-1], last[j], last[k]))
        return _oriented_mesh(triangles)


# ---------------------------------------------------------------------------
# Faceted brep
# ---------------------------------------------------------------------------

class FacetedBrepProcessor(GeometryProcessor):
    """Outer (0): closed shell -> faces -> bounds -> poly loops.

    Faces are triangulated in their own plane with any inner bounds as
    holes.  Faces bounded by anything but a poly loop, and faces that
    cannot be triangulated, are skipped.
    """

    @property
    def type_name(self) -> str:
        return "IFCFACETEDBREP"

    def _face_loops(
        self, resolver: EntityResolver, face: DecodedEntity
    ) -> tuple[list[Vec3] | None, list[list[Vec3]]]:
        outer: list[Vec3] | None = None
        holes: list[list[Vec3]] = []
        for bound in resolver.resolve_ref_list(face.list_at(0)):
            loop = resolver.resolve(bound.ref(0))
            if loop.type_name != "IFCPOLYLOOP":
                raise UnsupportedType(loop.type_name)
            points = [read_point_3d(resolver, p) for p in loop.get_refs(0)]
            if bound.get_bool(1) is False:
                points.reverse()
            if bound.type_name == "IFCFACEOUTERBOUND" and outer is None:
                outer = points
            else:
                holes.append(points)
        if outer is None and holes:
            outer = holes.pop(0)
        return outer, holes

    def process(self, entity: DecodedEntity, resolver: EntityResolver) -> Mesh:
        shell = resolver.resolve(entity.ref(0))
        mesh = Mesh()
        skipped = 0
        for face in resolver.resolve_ref_list(shell.list_at(0)):
            try:
                outer, holes = self._face_loops(resolver, face)
                if outer is None:
                    skipped += 1
                    continue
                normal = calculate_polygon_normal(outer)
                indices = triangulate_polygon_with_holes(outer, holes)
            except (UnsupportedType, TriangulationError) as exc:
                logger.debug("Skipping face #%d: %s", face.id, exc)
                skipped += 1
                continue
            base = mesh.vertex_count
            for loop in (outer, *holes):
                for p in loop:
                    mesh.add_vertex(p, normal)
            for t in range(0, len(indices), 3):
                mesh.add_triangle(base + indices[t], base + indices[t + 1], base + indices[t + 2])

        if skipped:
            logger.debug("Brep #%d: %d face(s) skipped", entity.id, skipped)
        if mesh.is_empty():
            raise TriangulationError(f"brep #{entity.id} has no usable faces")
        return mesh


# ---------------------------------------------------------------------------
# Triangulated face set
# ---------------------------------------------------------------------------

class TriangulatedFaceSetProcessor(GeometryProcessor):
    """Coordinates (0), Normals (1), CoordIndex (3), PnIndex (4).

    Indices are 1-based.  Explicit normals are used when there is one per
    coordinate, otherwise smooth normals are computed.
    """

    @property
    def type_name(self) -> str:
        return "IFCTRIANGULATEDFACESET"

    def process(self, entity: DecodedEntity, resolver: EntityResolver) -> Mesh:
        coords = [
            (c[0], c[1], c[2] if len(c) > 2 else 0.0)
            for c in read_point_list(resolver, entity.ref(0))
        ]
        count = len(coords)

        point_index = entity.get_list(4)
        remap: list[int] | None = None
        if point_index:
            remap = []
            for value in point_index:
                i = as_int(value)
                if i is None or not 1 <= i <= count:
                    raise InvalidAttribute(4, f"point index {value!r} out of range")
                remap.append(i - 1)

        mesh = Mesh()
        for c in coords:
            mesh.add_vertex(c)

        limit = len(remap) if remap is not None else count
        for triangle in entity.list_at(3):
            if not isinstance(triangle, tuple) or len(triangle) != 3:
                raise InvalidAttribute(3, f"{self.type_name} #{entity.id}: expected index triples")
            corners = []
            for value in triangle:
                i = as_int(value)
                if i is None or not 1 <= i <= limit:
                    raise InvalidAttribute(3, f"{self.type_name} #{entity.id}: index {value!r} out of range")
                corners.append(remap[i - 1] if remap is not None else i - 1)
            mesh.add_triangle(*corners)

        if mesh.is_empty():
            raise TriangulationError(f"face set #{entity.id} has no triangles")

        normals = entity.get_list(1)
        if normals and remap is None and len(normals) == count:
            flat: list[float] = []
            for n in normals:
                values = tuple(as_float(v) or 0.0 for v in n) if isinstance(n, tuple) and len(n) == 3 else (0.0, 0.0, 0.0)
                flat.extend(normalize(values) or (0.0, 0.0, 1.0))
            mesh.normals = flat
        else:
            mesh.compute_smooth_normals()
        return mesh
