"""OBJ exporter: Wavefront .obj + .mtl, zero external dependencies."""

from __future__ import annotations

from pathlib import Path

from aecmesh.export.base import Exporter
from aecmesh.export.scene import Scene


class OBJExporter(Exporter):
    """Export scene as Wavefront OBJ + MTL files, with vertex normals.

    Pure Python string formatting, no libraries needed.
    """

    @property
    def format_name(self) -> str:
        return "obj"

    def write(self, scene: Scene, output_dir: Path) -> list[Path]:
        obj_path = output_dir / "model.obj"
        mtl_path = output_dir / "model.mtl"

        mtl_lines: list[str] = []
        obj_lines: list[str] = [f"mtllib {mtl_path.name}"]
        materials: dict[str, str] = {}

        vertex_offset = 0

        for i, mesh in enumerate(scene.meshes):
            # One material per distinct colour
            mat_name = materials.get(mesh.color)
            if mat_name is None:
                mat_name = f"material_{len(materials)}"
                materials[mesh.color] = mat_name
                r, g, b = hex_to_rgb(mesh.color)
                mtl_lines.append(f"newmtl {mat_name}")
                mtl_lines.append(f"Kd {r:.4f} {g:.4f} {b:.4f}")
                mtl_lines.append(f"Ka {r * 0.3:.4f} {g * 0.3:.4f} {b * 0.3:.4f}")
                mtl_lines.append("Ks 0.1000 0.1000 0.1000")
                mtl_lines.append("Ns 50.0")
                mtl_lines.append("d 1.0")
                mtl_lines.append("")

            obj_lines.append(f"o {mesh.name or f'mesh_{i}'}")
            obj_lines.append(f"usemtl {mat_name}")

            p = mesh.positions
            n = mesh.normals
            for k in range(0, len(p), 3):
                obj_lines.append(f"v {p[k]:.6f} {p[k + 1]:.6f} {p[k + 2]:.6f}")
            for k in range(0, len(n), 3):
                obj_lines.append(f"vn {n[k]:.6f} {n[k + 1]:.6f} {n[k + 2]:.6f}")

            for f0, f1, f2 in mesh.faces():
                # OBJ indices are 1-based; normals share the vertex index
                a = f0 + 1 + vertex_offset
                b = f1 + 1 + vertex_offset
                c = f2 + 1 + vertex_offset
                obj_lines.append(f"f {a}//{a} {b}//{b} {c}//{c}")

            vertex_offset += mesh.vertex_count

        mtl_path.write_text("\n".join(mtl_lines) + "\n", encoding="utf-8")
        obj_path.write_text("\n".join(obj_lines) + "\n", encoding="utf-8")
        return [obj_path, mtl_path]


def hex_to_rgb(hex_color: str) -> tuple[float, float, float]:
    """Convert hex color string to (r, g, b) floats in 0-1 range."""
    hex_color = hex_color.lstrip("#")
    if len(hex_color) != 6:
        return (0.8, 0.8, 0.8)
    r = int(hex_color[0:2], 16) / 255.0
    g = int(hex_color[2:4], 16) / 255.0
    b = int(hex_color[4:6], 16) / 255.0
    return (r, g, b)
