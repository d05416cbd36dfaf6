"""Read geometric resource entities: points, directions, placements, curves, profiles."""

from __future__ import annotations

import logging
from typing import Any

from aecmesh.errors import InvalidAttribute, ProfileError, UnsupportedType
from aecmesh.geometry.profile import Profile2D
from aecmesh.geometry.vectors import (
    Matrix,
    Vec2,
    Vec3,
    Y_AXIS,
    cross,
    dot,
    identity,
    multiply,
    normalize,
    placement,
    sub,
)
from aecmesh.models.entity import DecodedEntity, TypedValue, as_float, as_int
from aecmesh.parser.resolver import EntityResolver

logger = logging.getLogger(__name__)


def _coords(values: Any, index: int = 0) -> tuple[float, ...]:
    if not isinstance(values, tuple) or not values:
        raise InvalidAttribute(index, "expected a coordinate list")
    out = []
    for v in values:
        f = as_float(v)
        if f is None:
            raise InvalidAttribute(index, f"non-numeric coordinate {v!r}")
        out.append(f)
    return tuple(out)


def _as_3d(c: tuple[float, ...]) -> Vec3:
    if len(c) >= 3:
        return (c[0], c[1], c[2])
    if len(c) == 2:
        return (c[0], c[1], 0.0)
    return (c[0], 0.0, 0.0)


def read_point(resolver: EntityResolver, point_id: int) -> tuple[float, ...]:
    """Coordinates of an IFCCARTESIANPOINT, as given (2 or 3 values)."""
    point = resolver.resolve(point_id)
    return _coords(point.get(0))


def read_point_3d(resolver: EntityResolver, point_id: int) -> Vec3:
    return _as_3d(read_point(resolver, point_id))


def read_direction(resolver: EntityResolver, direction_id: int) -> Vec3:
    """Direction ratios of an IFCDIRECTION, padded to 3D."""
    direction = resolver.resolve(direction_id)
    return _as_3d(_coords(direction.get(0)))


def _optional_direction(resolver: EntityResolver, entity: DecodedEntity, index: int) -> Vec3 | None:
    ref = entity.get_ref(index)
    return read_direction(resolver, ref) if ref is not None else None


# ---------------------------------------------------------------------------
# Placements
# ---------------------------------------------------------------------------

def read_axis2_placement_2d(resolver: EntityResolver, placement_id: int) -> tuple[Vec2, Vec2]:
    """``(origin, x_axis)`` of an IFCAXIS2PLACEMENT2D."""
    entity = resolver.resolve(placement_id)
    location = read_point(resolver, entity.ref(0))
    ref_dir = _optional_direction(resolver, entity, 1)
    x_axis = (ref_dir[0], ref_dir[1]) if ref_dir is not None else (1.0, 0.0)
    return (location[0], location[1]), x_axis


def read_placement(resolver: EntityResolver, placement_id: int) -> Matrix:
    """Matrix of an IFCAXIS2PLACEMENT3D (or 2D, lifted into XY)."""
    entity = resolver.resolve(placement_id)
    if entity.type_name == "IFCAXIS2PLACEMENT2D":
        origin, x_axis = read_axis2_placement_2d(resolver, placement_id)
        return placement((origin[0], origin[1], 0.0), None, (x_axis[0], x_axis[1], 0.0))
    if entity.type_name != "IFCAXIS2PLACEMENT3D":
        raise InvalidAttribute(0, f"expected an axis placement, got {entity.type_name}")
    location = read_point_3d(resolver, entity.ref(0))
    axis = _optional_direction(resolver, entity, 1)
    ref_dir = _optional_direction(resolver, entity, 2)
    return placement(location, axis, ref_dir)


def read_axis1_placement(resolver: EntityResolver, placement_id: int) -> tuple[Vec3, Vec3]:
    """``(location, unit direction)`` of an IFCAXIS1PLACEMENT, default +Y."""
    entity = resolver.resolve(placement_id)
    location = read_point_3d(resolver, entity.ref(0))
    axis = _optional_direction(resolver, entity, 1)
    return location, (normalize(axis) if axis is not None else None) or Y_AXIS


def read_transform_operator(resolver: EntityResolver, operator_id: int) -> Matrix:
    """Matrix of an IFCCARTESIANTRANSFORMATIONOPERATOR3D (uniform or not)."""
    entity = resolver.resolve(operator_id)
    axis1 = _optional_direction(resolver, entity, 0)
    origin = read_point_3d(resolver, entity.ref(2))
    factor = entity.get_float(3)
    axis3 = _optional_direction(resolver, entity, 4)

    frame = placement(origin, axis3, axis1)
    sx = factor if factor is not None else 1.0
    sy = sz = sx
    if entity.type_name == "IFCCARTESIANTRANSFORMATIONOPERATOR3DNONUNIFORM":
        s2 = entity.get_float(5)
        s3 = entity.get_float(6)
        sy = s2 if s2 is not None else sx
        sz = s3 if s3 is not None else sx
    scaling = (
        (sx, 0.0, 0.0, 0.0),
        (0.0, sy, 0.0, 0.0),
        (0.0, 0.0, sz, 0.0),
        (0.0, 0.0, 0.0, 1.0),
    )
    return multiply(frame, scaling)


class PlacementCache:
    """World matrices of IFCLOCALPLACEMENT chains, memoized per id.

    Entries are write-once, so concurrent callers at worst compute the same
    matrix twice.
    """

    def __init__(self, resolver: EntityResolver) -> None:
        self.resolver = resolver
        self._cache: dict[int, Matrix] = {}

    def world_matrix(self, placement_id: int | None) -> Matrix:
        if placement_id is None:
            return identity()
        cached = self._cache.get(placement_id)
        if cached is not None:
            return cached

        # Walk up PlacementRelTo, then compose from the top down
        chain: list[DecodedEntity] = []
        seen: set[int] = set()
        current: int | None = placement_id
        base = identity()
        while current is not None and current not in seen:
            if current in self._cache:
                base = self._cache[current]
                break
            seen.add(current)
            entity = self.resolver.resolve(current)
            if entity.type_name != "IFCLOCALPLACEMENT":
                logger.debug("Unsupported placement %s #%d", entity.type_name, entity.id)
                break
            chain.append(entity)
            current = entity.get_ref(0)

        matrix = base
        for entity in reversed(chain):
            relative = entity.get_ref(1)
            local = read_placement(self.resolver, relative) if relative is not None else identity()
            matrix = multiply(matrix, local)
            self._cache.setdefault(entity.id, matrix)
        return self._cache.get(placement_id, matrix)


# ---------------------------------------------------------------------------
# Curves
# ---------------------------------------------------------------------------

def read_point_list(resolver: EntityResolver, list_id: int) -> list[tuple[float, ...]]:
    """CoordList of an IFCCARTESIANPOINTLIST2D/3D."""
    entity = resolver.resolve(list_id)
    return [_coords(c) for c in entity.list_at(0)]


def _indexed_segments(segments: tuple[Any, ...], count: int) -> list[int]:
    order: list[int] = []
    for segment in segments:
        if not isinstance(segment, TypedValue) or not segment.args:
            continue
        # IFCLINEINDEX / IFCARCINDEX wrap a list of 1-based indices;
        # arcs keep only their three defining points.
        for value in segment.args[0] if isinstance(segment.args[0], tuple) else segment.args:
            i = as_int(value)
            if i is None or not 1 <= i <= count:
                raise InvalidAttribute(1, f"segment index {value!r} out of range")
            if not order or order[-1] != i - 1:
                order.append(i - 1)
    return order


def read_curve_points(resolver: EntityResolver, curve_id: int) -> list[tuple[float, ...]]:
    """Polyline approximation of a bounded curve.

    Handles IFCPOLYLINE, IFCINDEXEDPOLYCURVE and IFCCOMPOSITECURVE made of
    those.  Other curve types raise :class:`UnsupportedType`.
    """
    curve = resolver.resolve(curve_id)
    if curve.type_name == "IFCPOLYLINE":
        return [read_point(resolver, p) for p in curve.get_refs(0)]

    if curve.type_name == "IFCINDEXEDPOLYCURVE":
        points = read_point_list(resolver, curve.ref(0))
        segments = curve.get_list(1)
        if not segments:
            return points
        return [points[i] for i in _indexed_segments(segments, len(points))]

    if curve.type_name == "IFCCOMPOSITECURVE":
        out: list[tuple[float, ...]] = []
        for segment in resolver.resolve_ref_list(curve.list_at(0)):
            parent = segment.ref(2)
            points = read_curve_points(resolver, parent)
            if segment.get_bool(1) is False:
                points.reverse()
            for p in points:
                if not out or out[-1] != p:
                    out.append(p)
        return out

    raise UnsupportedType(curve.type_name)


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

def _dimension(entity: DecodedEntity, index: int) -> float:
    value = entity.float_at(index)
    if value <= 0:
        raise InvalidAttribute(index, f"{entity.type_name} #{entity.id}: dimension must be positive")
    return value


def _loop_2d(points: list[tuple[float, ...]]) -> list[Vec2]:
    return [(p[0], p[1]) for p in points]


def read_profile(resolver: EntityResolver, profile_id: int) -> Profile2D:
    """Build a :class:`Profile2D` from an IfcProfileDef subtype.

    Parameterised profiles are placed by their optional Position
    (IFCAXIS2PLACEMENT2D at index 2).
    """
    entity = resolver.resolve(profile_id)
    kind = entity.type_name

    if kind == "IFCARBITRARYCLOSEDPROFILEDEF":
        return Profile2D.from_points(_loop_2d(read_curve_points(resolver, entity.ref(2))))

    if kind == "IFCARBITRARYPROFILEDEFWITHVOIDS":
        outer = _loop_2d(read_curve_points(resolver, entity.ref(2)))
        inner = [_loop_2d(read_curve_points(resolver, ref)) for ref in entity.get_refs(3)]
        return Profile2D.from_points(outer, inner)

    if kind == "IFCRECTANGLEPROFILEDEF":
        profile = Profile2D.rectangle(_dimension(entity, 3), _dimension(entity, 4))
    elif kind == "IFCRECTANGLEHOLLOWPROFILEDEF":
        profile = Profile2D.hollow_rectangle(
            _dimension(entity, 3), _dimension(entity, 4), _dimension(entity, 5)
        )
    elif kind == "IFCCIRCLEPROFILEDEF":
        profile = Profile2D.circle(_dimension(entity, 3))
    elif kind == "IFCCIRCLEHOLLOWPROFILEDEF":
        profile = Profile2D.hollow_circle(_dimension(entity, 3), _dimension(entity, 4))
    elif kind == "IFCISHAPEPROFILEDEF":
        profile = Profile2D.i_shape(
            _dimension(entity, 3), _dimension(entity, 4), _dimension(entity, 5), _dimension(entity, 6)
        )
    elif kind == "IFCLSHAPEPROFILEDEF":
        depth = _dimension(entity, 3)
        width = entity.get_float(4) or depth
        profile = Profile2D.l_shape(depth, width, _dimension(entity, 5))
    elif kind == "IFCTSHAPEPROFILEDEF":
        profile = Profile2D.t_shape(
            _dimension(entity, 3), _dimension(entity, 4), _dimension(entity, 5), _dimension(entity, 6)
        )
    else:
        raise ProfileError(f"unsupported profile type {kind}")

    position = entity.get_ref(2)
    if position is not None:
        origin, x_axis = read_axis2_placement_2d(resolver, position)
        profile = profile.transformed(origin, x_axis)
    return profile


def frame_axes(matrix: Matrix) -> tuple[Vec3, Vec3, Vec3, Vec3]:
    """``(origin, x, y, z)`` columns of a placement matrix."""
    return (
        (matrix[0][3], matrix[1][3], matrix[2][3]),
        (matrix[0][0], matrix[1][0], matrix[2][0]),
        (matrix[0][1], matrix[1][1], matrix[2][1]),
        (matrix[0][2], matrix[1][2], matrix[2][2]),
    )


def to_local(matrix: Matrix, point: Vec3) -> Vec3:
    """Coordinates of *point* in the orthonormal frame *matrix*."""
    origin, x, y, z = frame_axes(matrix)
    d = sub(point, origin)
    return (dot(d, x), dot(d, y), dot(d, z))


def is_parallel(a: Vec3, b: Vec3, tolerance: float = 1e-6) -> bool:
    na, nb = normalize(a), normalize(b)
    if na is None or nb is None:
        return False
    c = cross(na, nb)
    return dot(c, c) <= tolerance
