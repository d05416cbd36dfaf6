"""Scene model: named meshes and a framing camera for export."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any

from aecmesh.geometry.mesh import DEFAULT_COLOR, Mesh, MeshData

# Display colours per IFC class
TYPE_COLORS: dict[str, str] = {
    "IFCWALL": "#D9D9D9",
    "IFCWALLSTANDARDCASE": "#D9D9D9",
    "IFCSLAB": "#A6A6A6",
    "IFCROOF": "#8B4513",
    "IFCCOLUMN": "#808080",
    "IFCBEAM": "#808080",
    "IFCMEMBER": "#C0C0C0",
    "IFCPLATE": "#C0C0C0",
    "IFCWINDOW": "#ADD8E6",
    "IFCDOOR": "#DEB887",
    "IFCSTAIR": "#CD853F",
    "IFCSTAIRFLIGHT": "#CD853F",
    "IFCRAILING": "#696969",
    "IFCFURNISHINGELEMENT": "#B87333",
    "IFCFLOWSEGMENT": "#4682B4",
    "IFCPIPESEGMENT": "#4682B4",
    "IFCDUCTSEGMENT": "#B0C4DE",
    "IFCSPACE": "#F5F5DC",
}


def color_for(type_name: str) -> str:
    return TYPE_COLORS.get(type_name.upper(), DEFAULT_COLOR)


@dataclass
class Camera:
    """Camera settings for the scene."""

    position: tuple[float, float, float] = (10.0, 10.0, 10.0)
    target: tuple[float, float, float] = (0.0, 0.0, 0.0)
    up: tuple[float, float, float] = (0.0, 0.0, 1.0)
    fov: float = 45.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": list(self.position),
            "target": list(self.target),
            "up": list(self.up),
            "fov": self.fov,
        }


@dataclass
class Scene:
    """Meshes ready for export, with a camera framing all of them."""

    meshes: list[MeshData] = field(default_factory=list)
    camera: Camera = field(default_factory=Camera)
    source: str = ""
    schema: str = ""

    @property
    def triangle_count(self) -> int:
        return sum(m.triangle_count for m in self.meshes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "schema": self.schema,
            "meshes": [m.to_dict() for m in self.meshes],
            "camera": self.camera.to_dict(),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_meshes(
        cls,
        meshes: dict[int, Mesh],
        type_names: dict[int, str] | None = None,
        source: str = "",
        schema: str = "",
    ) -> Scene:
        """Build a scene from meshes keyed by entity id.

        Meshes are named ``TYPE#id`` and coloured by their IFC class when
        *type_names* is given.  Empty meshes are left out.
        """
        type_names = type_names or {}
        packed: list[MeshData] = []
        for entity_id in sorted(meshes):
            mesh = meshes[entity_id]
            if mesh.is_empty():
                continue
            type_name = type_names.get(entity_id, "")
            name = f"{type_name}#{entity_id}" if type_name else f"mesh_{entity_id}"
            packed.append(mesh.to_mesh_data(name=name, color=color_for(type_name)))
        return cls(
            meshes=packed,
            camera=_compute_isometric_camera(_scene_bounds(meshes.values())),
            source=source,
            schema=schema,
        )


def _scene_bounds(
    meshes: Any,
) -> tuple[tuple[float, float, float], tuple[float, float, float]] | None:
    lo = [math.inf] * 3
    hi = [-math.inf] * 3
    found = False
    for mesh in meshes:
        bounds = mesh.bounds()
        if bounds is None:
            continue
        found = True
        for k in range(3):
            lo[k] = min(lo[k], bounds[0][k])
            hi[k] = max(hi[k], bounds[1][k])
    if not found:
        return None
    return (lo[0], lo[1], lo[2]), (hi[0], hi[1], hi[2])


def _compute_isometric_camera(
    bounds: tuple[tuple[float, float, float], tuple[float, float, float]] | None,
) -> Camera:
    """Compute an isometric camera position framing the bounds."""
    if bounds is None:
        return Camera()

    (min_x, min_y, min_z), (max_x, max_y, max_z) = bounds
    cx = (min_x + max_x) / 2
    cy = (min_y + max_y) / 2
    cz = (min_z + max_z) / 2

    # Distance based on diagonal
    dx = max_x - min_x
    dy = max_y - min_y
    dz = max_z - min_z
    diagonal = math.sqrt(dx * dx + dy * dy + dz * dz)
    distance = max(diagonal * 1.5, 2.0)

    offset = distance / math.sqrt(3)
    return Camera(
        position=(
            round(cx + offset, 4),
            round(cy + offset, 4),
            round(cz + offset, 4),
        ),
        target=(round(cx, 4), round(cy, 4), round(cz, 4)),
    )
