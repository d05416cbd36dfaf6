"""2D cross-sections swept into solids."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from aecmesh.config import EPSILON, MAX_CIRCLE_SEGMENTS, MIN_CIRCLE_SEGMENTS
from aecmesh.errors import ProfileError
from aecmesh.geometry.triangulation import polygon_area, triangulate_polygon_with_holes
from aecmesh.geometry.vectors import Vec2

ProfileKind = Literal["rectangle", "circle", "arbitrary"]


def calculate_circle_segments(radius: float) -> int:
    """Segments used to approximate a circle of *radius*.

    ``ceil(8 * sqrt(radius))`` clamped to [8, 32]: monotonic in the radius,
    so larger circles never get fewer segments.
    """
    if radius <= 0:
        return MIN_CIRCLE_SEGMENTS
    segments = math.ceil(math.sqrt(radius) * 8.0)
    return max(MIN_CIRCLE_SEGMENTS, min(MAX_CIRCLE_SEGMENTS, segments))


def circle_points(radius: float, segments: int, clockwise: bool = False) -> list[Vec2]:
    points = [
        (radius * math.cos(2.0 * math.pi * i / segments), radius * math.sin(2.0 * math.pi * i / segments))
        for i in range(segments)
    ]
    if clockwise:
        points.reverse()
    return points


def _clean_loop(points: Sequence[Sequence[float]]) -> list[Vec2]:
    """Drop a closing point equal to the first and consecutive duplicates."""
    loop: list[Vec2] = []
    for p in points:
        pt = (float(p[0]), float(p[1]))
        if loop and abs(pt[0] - loop[-1][0]) <= EPSILON and abs(pt[1] - loop[-1][1]) <= EPSILON:
            continue
        loop.append(pt)
    if len(loop) > 1 and abs(loop[0][0] - loop[-1][0]) <= EPSILON and abs(loop[0][1] - loop[-1][1]) <= EPSILON:
        loop.pop()
    return loop


def _oriented(loop: list[Vec2], ccw: bool) -> list[Vec2]:
    area = polygon_area(loop)
    if (area > 0) != ccw:
        return list(reversed(loop))
    return loop


@dataclass
class Profile2D:
    """Outer loop (counter-clockwise) plus optional holes (clockwise).

    The outer loop is assumed not to self-intersect; triangulation of a
    self-intersecting loop gives unspecified triangles.
    """

    kind: ProfileKind
    points: list[Vec2]
    holes: list[list[Vec2]] = field(default_factory=list)

    @classmethod
    def rectangle(cls, width: float, height: float) -> Profile2D:
        """Rectangle centred on the origin."""
        if width <= 0 or height <= 0:
            raise ProfileError(f"rectangle needs positive dimensions, got {width} x {height}")
        hw, hh = width / 2.0, height / 2.0
        return cls("rectangle", [(-hw, -hh), (hw, -hh), (hw, hh), (-hw, hh)])

    @classmethod
    def circle(cls, radius: float, segments: int | None = None) -> Profile2D:
        """Circle centred on the origin, see :func:`calculate_circle_segments`."""
        if radius <= 0:
            raise ProfileError(f"circle needs a positive radius, got {radius}")
        segments = segments or calculate_circle_segments(radius)
        if segments < 3:
            raise ProfileError("circle needs at least 3 segments")
        return cls("circle", circle_points(radius, segments))

    @classmethod
    def hollow_circle(cls, radius: float, wall_thickness: float) -> Profile2D:
        inner = radius - wall_thickness
        if wall_thickness <= 0 or inner <= 0:
            raise ProfileError(f"invalid wall thickness {wall_thickness} for radius {radius}")
        profile = cls.circle(radius)
        profile.holes.append(circle_points(inner, calculate_circle_segments(inner), clockwise=True))
        return profile

    @classmethod
    def hollow_rectangle(cls, width: float, height: float, wall_thickness: float) -> Profile2D:
        profile = cls.rectangle(width, height)
        iw, ih = width - 2 * wall_thickness, height - 2 * wall_thickness
        if wall_thickness <= 0 or iw <= 0 or ih <= 0:
            raise ProfileError(f"invalid wall thickness {wall_thickness} for {width} x {height}")
        hw, hh = iw / 2.0, ih / 2.0
        profile.holes.append([(-hw, -hh), (-hw, hh), (hw, hh), (hw, -hh)])
        return profile

    @classmethod
    def from_points(
        cls,
        points: Sequence[Sequence[float]],
        holes: Sequence[Sequence[Sequence[float]]] = (),
    ) -> Profile2D:
        """Arbitrary profile from point loops in any orientation."""
        outer = _clean_loop(points)
        if len(outer) < 3:
            raise ProfileError(f"profile needs at least 3 distinct points, got {len(outer)}")
        if abs(polygon_area(outer)) <= EPSILON:
            raise ProfileError("profile outline has zero area")
        profile = cls("arbitrary", _oriented(outer, ccw=True))
        for hole in holes:
            loop = _clean_loop(hole)
            if len(loop) >= 3:
                profile.holes.append(_oriented(loop, ccw=False))
        return profile

    # Parameterised structural shapes, centred on their bounding box

    @classmethod
    def i_shape(cls, width: float, depth: float, web: float, flange: float) -> Profile2D:
        if min(width, depth, web, flange) <= 0 or web >= width or 2 * flange >= depth:
            raise ProfileError("invalid I-shape dimensions")
        w, d, tw, tf = width / 2, depth / 2, web / 2, flange
        return cls.from_points([
            (-w, -d), (w, -d), (w, -d + tf), (tw, -d + tf), (tw, d - tf), (w, d - tf),
            (w, d), (-w, d), (-w, d - tf), (-tw, d - tf), (-tw, -d + tf), (-w, -d + tf),
        ])

    @classmethod
    def l_shape(cls, depth: float, width: float, thickness: float) -> Profile2D:
        if min(depth, width, thickness) <= 0 or thickness >= min(depth, width):
            raise ProfileError("invalid L-shape dimensions")
        ox, oy = width / 2, depth / 2
        pts = [(0, 0), (width, 0), (width, thickness), (thickness, thickness), (thickness, depth), (0, depth)]
        return cls.from_points([(x - ox, y - oy) for x, y in pts])

    @classmethod
    def t_shape(cls, depth: float, flange_width: float, web: float, flange: float) -> Profile2D:
        if min(depth, flange_width, web, flange) <= 0 or web >= flange_width or flange >= depth:
            raise ProfileError("invalid T-shape dimensions")
        d, w, tw, tf = depth / 2, flange_width / 2, web / 2, flange
        return cls.from_points([
            (-tw, -d), (tw, -d), (tw, d - tf), (w, d - tf), (w, d), (-w, d), (-w, d - tf), (-tw, d - tf),
        ])

    # Queries -----------------------------------------------------------------

    def all_points(self) -> list[Vec2]:
        """Outer loop followed by each hole, matching triangulation indices."""
        out = list(self.points)
        for hole in self.holes:
            out.extend(hole)
        return out

    def area(self) -> float:
        return polygon_area(self.points) + sum(polygon_area(h) for h in self.holes)

    def triangulate(self) -> list[int]:
        return triangulate_polygon_with_holes(self.points, self.holes)

    def transformed(self, origin: Vec2, x_axis: Vec2 = (1.0, 0.0)) -> Profile2D:
        """Profile placed by a 2D origin and X direction (rotation only)."""
        length = math.hypot(x_axis[0], x_axis[1])
        if length <= EPSILON:
            x_axis, length = (1.0, 0.0), 1.0
        cx, sx = x_axis[0] / length, x_axis[1] / length

        def _map(p: Vec2) -> Vec2:
            return (origin[0] + p[0] * cx - p[1] * sx, origin[1] + p[0] * sx + p[1] * cx)

        return Profile2D(
            self.kind,
            [_map(p) for p in self.points],
            [[_map(p) for p in hole] for hole in self.holes],
        )


@dataclass
class VoidInfo:
    """An opening projected onto the profile plane.

    ``depth_start``/``depth_end`` measure along the extrusion; a through
    void spans the whole solid and becomes a plain hole in both caps.
    """

    contour: list[Vec2]
    depth_start: float
    depth_end: float
    is_through: bool = False

    def __post_init__(self) -> None:
        loop = _clean_loop(self.contour)
        if len(loop) < 3:
            raise ProfileError("void contour needs at least 3 points")
        self.contour = _oriented(loop, ccw=False)
        if self.depth_end < self.depth_start:
            self.depth_start, self.depth_end = self.depth_end, self.depth_start

    @classmethod
    def through(cls, contour: Sequence[Sequence[float]], depth: float) -> VoidInfo:
        return cls([(p[0], p[1]) for p in contour], 0.0, depth, True)


@dataclass
class Profile2DWithVoids:
    profile: Profile2D
    voids: list[VoidInfo] = field(default_factory=list)

    def add_void(self, void: VoidInfo) -> None:
        self.voids.append(void)

    def through_voids(self) -> list[VoidInfo]:
        return [v for v in self.voids if v.is_through]

    def partial_voids(self) -> list[VoidInfo]:
        return [v for v in self.voids if not v.is_through]

    def has_voids(self) -> bool:
        return bool(self.voids)

    def profile_with_through_holes(self) -> Profile2D:
        """The profile with every through void merged in as a hole."""
        return Profile2D(
            self.profile.kind,
            list(self.profile.points),
            [list(h) for h in self.profile.holes] + [list(v.contour) for v in self.through_voids()],
        )
