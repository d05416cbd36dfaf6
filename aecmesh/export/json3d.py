"""JSON scene exporter: always available, zero external dependencies."""

from __future__ import annotations

from pathlib import Path

from aecmesh.export.base import Exporter
from aecmesh.export.scene import Scene


class JSONSceneExporter(Exporter):
    """Export scene as a JSON document.

    Format: ``{source, schema, meshes: [{name, color, positions, normals,
    indices}], camera: {...}}`` with flat buffers exactly as meshed.
    """

    @property
    def format_name(self) -> str:
        return "json"

    def write(self, scene: Scene, output_dir: Path) -> list[Path]:
        output_path = output_dir / "scene.json"
        output_path.write_text(scene.to_json(), encoding="utf-8")
        return [output_path]
