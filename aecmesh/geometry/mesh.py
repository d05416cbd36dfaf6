"""Triangle mesh containers: the build-time Mesh and the packed MeshData."""

from __future__ import annotations

import math
from array import array
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from aecmesh.geometry.vectors import (
    Matrix,
    Vec3,
    cross,
    determinant3,
    normal_matrix,
    normalize,
    sub,
    transform_direction,
    transform_point,
    uniform_scale,
)

DEFAULT_COLOR = "#CCCCCC"


@dataclass
class Mesh:
    """Flat vertex/normal/index buffers.

    ``positions`` and ``normals`` hold three floats per vertex and always have
    the same length; ``indices`` holds three vertex indices per triangle,
    counter-clockwise when seen from outside the solid.  Processors build a
    mesh once and hand it on; the transform methods return new meshes.
    """

    positions: list[float] = field(default_factory=list)
    normals: list[float] = field(default_factory=list)
    indices: list[int] = field(default_factory=list)

    @classmethod
    def from_triangles(cls, triangles: Iterable[tuple[Vec3, Vec3, Vec3]]) -> Mesh:
        """Mesh with three vertices and a flat normal per triangle.

        Degenerate triangles are dropped.
        """
        mesh = cls()
        for a, b, c in triangles:
            n = normalize(cross(sub(b, a), sub(c, a)))
            if n is None:
                continue
            base = mesh.vertex_count
            for p in (a, b, c):
                mesh.add_vertex(p, n)
            mesh.add_triangle(base, base + 1, base + 2)
        return mesh

    @property
    def vertex_count(self) -> int:
        return len(self.positions) // 3

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    def is_empty(self) -> bool:
        return not self.indices

    def add_vertex(self, position: Vec3, normal: Vec3 = (0.0, 0.0, 1.0)) -> int:
        self.positions.extend(position)
        self.normals.extend(normal)
        return len(self.positions) // 3 - 1

    def add_triangle(self, a: int, b: int, c: int) -> None:
        self.indices.extend((a, b, c))

    def vertex(self, i: int) -> Vec3:
        p = self.positions
        return (p[3 * i], p[3 * i + 1], p[3 * i + 2])

    def normal(self, i: int) -> Vec3:
        n = self.normals
        return (n[3 * i], n[3 * i + 1], n[3 * i + 2])

    def triangles(self) -> Iterator[tuple[Vec3, Vec3, Vec3]]:
        idx = self.indices
        for t in range(0, len(idx), 3):
            yield self.vertex(idx[t]), self.vertex(idx[t + 1]), self.vertex(idx[t + 2])

    def merge(self, other: Mesh) -> None:
        """Append *other*'s geometry, re-basing its indices."""
        offset = self.vertex_count
        self.positions.extend(other.positions)
        self.normals.extend(other.normals)
        self.indices.extend(i + offset for i in other.indices)

    def transformed(self, matrix: Matrix) -> Mesh:
        """New mesh with positions and normals mapped through *matrix*.

        A mirroring transform flips every triangle so the winding stays
        counter-clockwise from outside.
        """
        out = Mesh()
        nm = normal_matrix(matrix)
        for i in range(self.vertex_count):
            out.positions.extend(transform_point(matrix, self.vertex(i)))
            n = normalize(transform_direction(nm, self.normal(i))) or self.normal(i)
            out.normals.extend(n)
        if determinant3(matrix) < 0:
            for t in range(0, len(self.indices), 3):
                a, b, c = self.indices[t:t + 3]
                out.indices.extend((a, c, b))
        else:
            out.indices = list(self.indices)
        return out

    def scaled(self, factor: float) -> Mesh:
        if factor == 1.0:
            return Mesh(list(self.positions), list(self.normals), list(self.indices))
        return self.transformed(uniform_scale(factor))

    def bounds(self) -> tuple[Vec3, Vec3] | None:
        """Axis-aligned ``(min, max)`` corners, or None for an empty mesh."""
        if not self.positions:
            return None
        xs = self.positions[0::3]
        ys = self.positions[1::3]
        zs = self.positions[2::3]
        return (min(xs), min(ys), min(zs)), (max(xs), max(ys), max(zs))

    def surface_area(self) -> float:
        total = 0.0
        for a, b, c in self.triangles():
            n = cross(sub(b, a), sub(c, a))
            total += math.sqrt(n[0] * n[0] + n[1] * n[1] + n[2] * n[2]) / 2
        return total

    def volume(self) -> float:
        """Signed enclosed volume; positive for a closed, outward-wound mesh."""
        total = 0.0
        for a, b, c in self.triangles():
            total += (
                a[0] * (b[1] * c[2] - b[2] * c[1])
                - a[1] * (b[0] * c[2] - b[2] * c[0])
                + a[2] * (b[0] * c[1] - b[1] * c[0])
            )
        return total / 6.0

    def compute_smooth_normals(self) -> None:
        """Replace normals with area-weighted averages of adjacent faces."""
        acc = [0.0] * len(self.positions)
        idx = self.indices
        for t in range(0, len(idx), 3):
            a, b, c = idx[t], idx[t + 1], idx[t + 2]
            n = cross(sub(self.vertex(b), self.vertex(a)), sub(self.vertex(c), self.vertex(a)))
            for v in (a, b, c):
                acc[3 * v] += n[0]
                acc[3 * v + 1] += n[1]
                acc[3 * v + 2] += n[2]
        normals: list[float] = []
        for i in range(self.vertex_count):
            n = normalize((acc[3 * i], acc[3 * i + 1], acc[3 * i + 2])) or (0.0, 0.0, 1.0)
            normals.extend(n)
        self.normals = normals

    def to_mesh_data(self, name: str = "", color: str = DEFAULT_COLOR) -> MeshData:
        """Pack into typed arrays for upload; lengths are preserved exactly."""
        return MeshData(
            positions=array("f", self.positions),
            normals=array("f", self.normals),
            indices=array("I", self.indices),
            name=name,
            color=color,
        )


@dataclass
class MeshData:
    """Packed float32/uint32 buffers handed to a renderer or exporter."""

    positions: array
    normals: array
    indices: array
    name: str = ""
    color: str = DEFAULT_COLOR

    @property
    def vertex_count(self) -> int:
        return len(self.positions) // 3

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    def vertices(self) -> list[tuple[float, float, float]]:
        p = self.positions
        return [(p[i], p[i + 1], p[i + 2]) for i in range(0, len(p), 3)]

    def faces(self) -> list[tuple[int, int, int]]:
        f = self.indices
        return [(f[i], f[i + 1], f[i + 2]) for i in range(0, len(f), 3)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "color": self.color,
            "positions": list(self.positions),
            "normals": list(self.normals),
            "indices": list(self.indices),
        }
