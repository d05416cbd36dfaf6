"""Linear extrusion of 2D profiles into closed triangle meshes.

The profile lies in the local XY plane and is swept by ``depth`` along a
direction with a non-zero Z component.  An oblique direction shears the
solid (caps stay parallel to XY).  Every face gets its own vertices with a
flat normal, and all triangles wind counter-clockwise seen from outside.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from aecmesh.config import EPSILON
from aecmesh.errors import ProfileError
from aecmesh.geometry.mesh import Mesh
from aecmesh.geometry.profile import Profile2D, Profile2DWithVoids
from aecmesh.geometry.triangulation import triangulate_polygon_with_holes
from aecmesh.geometry.vectors import Vec2, Vec3, Z_AXIS, cross, normalize, sub

logger = logging.getLogger(__name__)


class _Sweep:
    """Positions along one extrusion; ``t`` is the distance along the direction."""

    def __init__(self, direction: Vec3) -> None:
        self.direction = direction
        # +1 when the sweep moves towards +Z
        self.sign = 1.0 if direction[2] > 0 else -1.0

    def lift(self, p: Vec2, t: float) -> Vec3:
        d = self.direction
        return (p[0] + d[0] * t, p[1] + d[1] * t, d[2] * t)

    def cap(
        self,
        mesh: Mesh,
        outer: Sequence[Vec2],
        holes: Sequence[Sequence[Vec2]],
        t: float,
        facing_up: bool,
    ) -> None:
        """Flat cap at distance *t*, facing +Z when *facing_up*."""
        indices = triangulate_polygon_with_holes(outer, holes)
        normal = (0.0, 0.0, 1.0) if facing_up else (0.0, 0.0, -1.0)
        base = mesh.vertex_count
        for loop in (outer, *holes):
            for p in loop:
                mesh.add_vertex(self.lift(p, t), normal)
        for i in range(0, len(indices), 3):
            a, b, c = indices[i], indices[i + 1], indices[i + 2]
            if facing_up:
                mesh.add_triangle(base + a, base + b, base + c)
            else:
                mesh.add_triangle(base + a, base + c, base + b)

    def walls(self, mesh: Mesh, loop: Sequence[Vec2], t0: float, t1: float) -> None:
        """One quad per loop edge between distances *t0* and *t1*.

        A counter-clockwise loop gets walls facing away from its interior,
        a clockwise (hole) loop gets walls facing into the hole.
        """
        count = len(loop)
        for i in range(count):
            p, q = loop[i], loop[(i + 1) % count]
            b0, b1 = self.lift(p, t0), self.lift(q, t0)
            u0, u1 = self.lift(p, t1), self.lift(q, t1)
            if self.sign > 0:
                quad = (b0, b1, u1, u0)
            else:
                quad = (b0, u0, u1, b1)
            normal = normalize(cross(sub(quad[1], quad[0]), sub(quad[3], quad[0])))
            if normal is None:
                continue
            base = mesh.vertex_count
            for v in quad:
                mesh.add_vertex(v, normal)
            mesh.add_triangle(base, base + 1, base + 2)
            mesh.add_triangle(base, base + 2, base + 3)


def _sweep_for(depth: float, direction: Vec3 | None) -> _Sweep:
    if depth <= 0:
        raise ProfileError(f"extrusion depth must be positive, got {depth}")
    d = normalize(direction) if direction is not None else Z_AXIS
    if d is None:
        raise ProfileError("extrusion direction is a zero vector")
    if abs(d[2]) <= EPSILON:
        raise ProfileError("extrusion direction lies in the profile plane")
    return _Sweep(d)


def extrude_profile(profile: Profile2D, depth: float, direction: Vec3 | None = None) -> Mesh:
    """Sweep *profile* by *depth* along *direction* (default +Z).

    Builds the bottom cap, the top cap and one wall quad (two triangles) per
    boundary edge, including the edges of profile holes.
    """
    sweep = _sweep_for(depth, direction)
    mesh = Mesh()
    up = sweep.sign > 0
    sweep.cap(mesh, profile.points, profile.holes, 0.0, facing_up=not up)
    sweep.cap(mesh, profile.points, profile.holes, depth, facing_up=up)
    sweep.walls(mesh, profile.points, 0.0, depth)
    for hole in profile.holes:
        sweep.walls(mesh, hole, 0.0, depth)
    return mesh


def extrude_profile_with_voids(
    profile: Profile2DWithVoids, depth: float, direction: Vec3 | None = None
) -> Mesh:
    """Extrude a profile with openings cut out of the solid.

    Through voids become holes in both caps with walls along the full depth.
    A partial void is cut from the cap it touches (if any), gets walls over
    its own depth range and a closing cap at each end inside the solid.
    """
    sweep = _sweep_for(depth, direction)
    up = sweep.sign > 0
    base = profile.profile
    bottom_holes = [list(h) for h in base.holes]
    top_holes = [list(h) for h in base.holes]
    mesh = Mesh()

    for void in profile.voids:
        start = max(0.0, void.depth_start)
        end = min(depth, void.depth_end)
        if end - start <= EPSILON:
            logger.debug("Void outside the extrusion range, ignored")
            continue
        opens_bottom = void.is_through or start <= EPSILON
        opens_top = void.is_through or end >= depth - EPSILON
        if opens_bottom:
            bottom_holes.append(void.contour)
        if opens_top:
            top_holes.append(void.contour)
        sweep.walls(mesh, void.contour, 0.0 if opens_bottom else start, depth if opens_top else end)
        # Closing faces look into the void
        if not opens_bottom:
            sweep.cap(mesh, void.contour, (), start, facing_up=up)
        if not opens_top:
            sweep.cap(mesh, void.contour, (), end, facing_up=not up)

    sweep.cap(mesh, base.points, bottom_holes, 0.0, facing_up=not up)
    sweep.cap(mesh, base.points, top_holes, depth, facing_up=up)
    sweep.walls(mesh, base.points, 0.0, depth)
    for hole in base.holes:
        sweep.walls(mesh, hole, 0.0, depth)
    return mesh
