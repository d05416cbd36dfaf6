"""Polygon triangulation by ear clipping, with holes joined in by bridge edges.

3D polygons are projected onto the plane of their Newell normal first.
Returned triangles index into the caller's points (outer loop first, then
each hole in order) and are counter-clockwise in the polygon's plane as seen
from the side its normal points to.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from aecmesh.config import EPSILON
from aecmesh.errors import TriangulationError
from aecmesh.geometry.vectors import Vec2, Vec3, cross, dot, normalize, sub

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Normals and projection
# ---------------------------------------------------------------------------

def calculate_polygon_normal(points: Sequence[Vec3]) -> Vec3:
    """Unit normal of a 3D polygon by Newell's method.

    Counter-clockwise loops get the normal pointing towards the viewer.
    Raises :class:`TriangulationError` for fewer than three points or a
    loop with no area.
    """
    if len(points) < 3:
        raise TriangulationError(f"polygon needs at least 3 points, got {len(points)}")
    nx = ny = nz = 0.0
    count = len(points)
    for i in range(count):
        x0, y0, z0 = points[i]
        x1, y1, z1 = points[(i + 1) % count]
        nx += (y0 - y1) * (z0 + z1)
        ny += (z0 - z1) * (x0 + x1)
        nz += (x0 - x1) * (y0 + y1)
    normal = normalize((nx, ny, nz))
    if normal is None:
        raise TriangulationError("polygon has zero area")
    return normal


def plane_basis(normal: Vec3) -> tuple[Vec3, Vec3]:
    """Orthonormal ``(u, v)`` spanning the plane, with ``u x v == normal``."""
    ax, ay, az = abs(normal[0]), abs(normal[1]), abs(normal[2])
    # Build from the world axis least aligned with the normal
    if ax <= ay and ax <= az:
        helper = (1.0, 0.0, 0.0)
    elif ay <= az:
        helper = (0.0, 1.0, 0.0)
    else:
        helper = (0.0, 0.0, 1.0)
    u = normalize(cross(helper, normal))
    if u is None:
        raise TriangulationError("cannot build a basis for a zero normal")
    v = cross(normal, u)
    return u, v


def project_to_2d_with_basis(
    points: Sequence[Vec3], normal: Vec3
) -> tuple[list[Vec2], Vec3, Vec3, Vec3]:
    """Project onto the plane through the first point, perpendicular to *normal*.

    Returns ``(points_2d, u, v, origin)`` so callers can map back with
    ``origin + x*u + y*v``.
    """
    u, v = plane_basis(normal)
    origin = points[0]
    out: list[Vec2] = []
    for p in points:
        d = sub(p, origin)
        out.append((dot(d, u), dot(d, v)))
    return out, u, v, origin


def project_to_2d(points: Sequence[Vec3], normal: Vec3) -> list[Vec2]:
    return project_to_2d_with_basis(points, normal)[0]


def polygon_area(points: Sequence[Vec2]) -> float:
    """Signed shoelace area; positive for counter-clockwise loops."""
    total = 0.0
    count = len(points)
    for i in range(count):
        x0, y0 = points[i][0], points[i][1]
        x1, y1 = points[(i + 1) % count][0], points[(i + 1) % count][1]
        total += x0 * y1 - x1 * y0
    return total / 2.0


def triangle_area(a: Vec2, b: Vec2, c: Vec2) -> float:
    return abs(_orient(a, b, c)) / 2.0


# ---------------------------------------------------------------------------
# Ear clipping
# ---------------------------------------------------------------------------

def _orient(a: Vec2, b: Vec2, c: Vec2) -> float:
    """Twice the signed area of abc; positive for a left turn."""
    return (b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0])


def _same(a: Vec2, b: Vec2) -> bool:
    return a[0] == b[0] and a[1] == b[1]


def _in_triangle(a: Vec2, b: Vec2, c: Vec2, p: Vec2) -> bool:
    """Inclusive point-in-triangle test for either winding."""
    d1 = _orient(a, b, p)
    d2 = _orient(b, c, p)
    d3 = _orient(c, a, p)
    has_neg = d1 < 0 or d2 < 0 or d3 < 0
    has_pos = d1 > 0 or d2 > 0 or d3 > 0
    return not (has_neg and has_pos)


class _EarClipper:
    def __init__(self, pts: list[Vec2], tolerance: float) -> None:
        self.pts = pts
        self.tol = tolerance

    # Ring helpers -----------------------------------------------------------

    def _corner(self, ring: list[int], i: int) -> tuple[Vec2, Vec2, Vec2]:
        n = len(ring)
        p = self.pts
        return p[ring[(i - 1) % n]], p[ring[i]], p[ring[(i + 1) % n]]

    def _locally_inside(self, ring: list[int], i: int, target: Vec2) -> bool:
        """Whether the diagonal from ring vertex *i* to *target* starts inside."""
        prev, a, nxt = self._corner(ring, i)
        if _orient(prev, a, nxt) > 0:
            return _orient(a, target, nxt) <= 0 and _orient(a, prev, target) <= 0
        return _orient(a, target, prev) > 0 or _orient(a, nxt, target) > 0

    # Hole bridging ----------------------------------------------------------

    def _find_bridge(self, ring: list[int], hole_point: Vec2) -> int | None:
        """Ring position to connect *hole_point* to, or None if none is visible."""
        hx, hy = hole_point
        pts = self.pts
        n = len(ring)
        qx = -math.inf
        m: int | None = None

        # Cast a ray to the left and find the nearest edge it crosses
        for i in range(n):
            a = pts[ring[i]]
            b = pts[ring[(i + 1) % n]]
            if a[1] >= hy >= b[1] and a[1] != b[1]:
                x = a[0] + (hy - a[1]) * (b[0] - a[0]) / (b[1] - a[1])
                if hx >= x > qx:
                    qx = x
                    m = i if a[0] < b[0] else (i + 1) % n
                    if x == hx:
                        return m
        if m is None:
            return None

        # A vertex inside the triangle (hole point, hit point, m) may block the
        # view to m; take the blocking vertex closest in angle to the ray.
        mx, my = pts[ring[m]]
        best = m
        tan_min = math.inf
        hit = (qx, hy)
        for i in range(n):
            px, py = pts[ring[i]]
            if hx >= px >= mx and hx != px and _in_triangle(hole_point, hit, (mx, my), (px, py)):
                tan = abs(hy - py) / (hx - px)
                if self._locally_inside(ring, i, hole_point) and (
                    tan < tan_min or (tan == tan_min and px > pts[ring[best]][0])
                ):
                    best = i
                    tan_min = tan
        return best

    def eliminate_holes(self, ring: list[int], holes: list[list[int]]) -> list[int]:
        pts = self.pts
        # Leftmost vertex of each hole, processed left to right
        entries = []
        for hole in holes:
            start = min(range(len(hole)), key=lambda k: (pts[hole[k]][0], pts[hole[k]][1]))
            entries.append((pts[hole[start]][0], start, hole))
        entries.sort(key=lambda e: e[0])

        for _, start, hole in entries:
            rotated = hole[start:] + hole[:start]
            m = self._find_bridge(ring, pts[rotated[0]])
            if m is None:
                logger.debug("No bridge found for hole, skipping it")
                continue
            ring = ring[:m + 1] + rotated + [rotated[0], ring[m]] + ring[m + 1:]
        return ring

    # Clipping ---------------------------------------------------------------

    def _is_ear(self, ring: list[int], i: int) -> bool:
        a, b, c = self._corner(ring, i)
        if _orient(a, b, c) <= self.tol:
            return False
        n = len(ring)
        pts = self.pts
        for k in range(n):
            if k == i or k == (i - 1) % n or k == (i + 1) % n:
                continue
            p = pts[ring[k]]
            if _same(p, a) or _same(p, b) or _same(p, c):
                continue
            if _in_triangle(a, b, c, p):
                prev = pts[ring[(k - 1) % n]]
                nxt = pts[ring[(k + 1) % n]]
                if _orient(prev, p, nxt) <= 0:
                    return False
        return True

    def _drop_degenerate(self, ring: list[int]) -> bool:
        for i in range(len(ring)):
            a, b, c = self._corner(ring, i)
            if _same(a, b) or abs(_orient(a, b, c)) <= self.tol:
                del ring[i]
                return True
        return False

    def clip(self, ring: list[int]) -> list[int]:
        out: list[int] = []
        i = 0
        stalled = 0
        while len(ring) > 3:
            n = len(ring)
            i %= n
            if self._is_ear(ring, i):
                out.extend((ring[(i - 1) % n], ring[i], ring[(i + 1) % n]))
                del ring[i]
                stalled = 0
                continue
            i += 1
            stalled += 1
            if stalled < n:
                continue
            # A full lap found no ear: drop a degenerate vertex, else force
            # the most convex corner.
            stalled = 0
            if self._drop_degenerate(ring):
                continue
            i = max(range(n), key=lambda k: _orient(*self._corner(ring, k)))
            if _orient(*self._corner(ring, i)) <= self.tol:
                break
            out.extend((ring[(i - 1) % n], ring[i], ring[(i + 1) % n]))
            del ring[i]

        if len(ring) == 3 and _orient(*(self.pts[k] for k in ring)) > self.tol:
            out.extend(ring)
        return out


def _as_2d(loops: list[Sequence[Sequence[float]]]) -> list[list[Vec2]]:
    """Project every loop with the outer loop's plane when input is 3D."""
    if len(loops[0][0]) == 2:
        return [[(float(p[0]), float(p[1])) for p in loop] for loop in loops]
    outer = [tuple(float(c) for c in p) for p in loops[0]]
    normal = calculate_polygon_normal(outer)
    u, v = plane_basis(normal)
    origin = outer[0]
    out: list[list[Vec2]] = []
    for loop in loops:
        projected = []
        for p in loop:
            d = (p[0] - origin[0], p[1] - origin[1], p[2] - origin[2])
            projected.append((dot(d, u), dot(d, v)))
        out.append(projected)
    return out


def triangulate_polygon_with_holes(
    outer: Sequence[Sequence[float]],
    holes: Sequence[Sequence[Sequence[float]]] = (),
) -> list[int]:
    """Triangulate a polygon with holes; returns a flat index list.

    Points are 2D or 3D tuples.  Indices number the outer loop first, then
    the points of each hole in order.  Holes with fewer than three points or
    no area are ignored.  Raises :class:`TriangulationError` when the outer
    loop has fewer than three points or no area.
    """
    if len(outer) < 3:
        raise TriangulationError(f"polygon needs at least 3 points, got {len(outer)}")
    loops = _as_2d([outer, *holes])
    pts = [p for loop in loops for p in loop]

    xs = [p[0] for p in pts]
    ys = [p[1] for p in pts]
    extent = max(max(xs) - min(xs), max(ys) - min(ys))
    tolerance = EPSILON * extent * extent

    outer_area = polygon_area(loops[0])
    if abs(outer_area) <= tolerance or extent == 0:
        raise TriangulationError("polygon has zero area")

    ring = list(range(len(loops[0])))
    if outer_area < 0:
        ring.reverse()
    if len(ring) == 3 and not holes:
        return ring

    hole_rings: list[list[int]] = []
    start = len(loops[0])
    for loop in loops[1:]:
        indices = list(range(start, start + len(loop)))
        start += len(loop)
        if len(loop) < 3:
            continue
        area = polygon_area(loop)
        if abs(area) <= tolerance:
            continue
        # Holes run opposite to the outer loop
        if area > 0:
            indices.reverse()
        hole_rings.append(indices)

    clipper = _EarClipper(pts, tolerance)
    if hole_rings:
        ring = clipper.eliminate_holes(ring, hole_rings)
    triangles = clipper.clip(ring)
    if not triangles:
        raise TriangulationError("ear clipping produced no triangles")
    return triangles


def triangulate_polygon(points: Sequence[Sequence[float]]) -> list[int]:
    """Triangulate a simple polygon; returns a flat index list."""
    return triangulate_polygon_with_holes(points, ())
