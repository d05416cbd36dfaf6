"""Exporter interface shared by the mesh writers."""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from aecmesh.export.scene import Scene

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """Files written for one scene, or why nothing was written."""

    file_path: Path | None
    format: str
    mesh_count: int = 0
    triangle_count: int = 0
    extra_files: list[Path] = field(default_factory=list)
    success: bool = True
    message: str = ""

    @classmethod
    def failed(cls, format: str, message: str) -> ExportResult:
        return cls(file_path=None, format=format, success=False, message=message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": str(self.file_path) if self.file_path else None,
            "format": self.format,
            "mesh_count": self.mesh_count,
            "triangle_count": self.triangle_count,
            "extra_files": [str(p) for p in self.extra_files],
            "success": self.success,
            "message": self.message,
        }


class Exporter(abc.ABC):
    """Writes a :class:`Scene` in one file format.

    Subclasses implement :meth:`write`; :meth:`export` creates the output
    directory and wraps the written paths in an :class:`ExportResult`.
    """

    @property
    @abc.abstractmethod
    def format_name(self) -> str:
        """Registry key, e.g. ``json``, ``obj`` or ``gltf``."""

    @abc.abstractmethod
    def write(self, scene: Scene, output_dir: Path) -> list[Path]:
        """Write *scene* into *output_dir*, returning the main file first."""

    def export(self, scene: Scene, output_dir: Path) -> ExportResult:
        output_dir.mkdir(parents=True, exist_ok=True)
        main, *extra = self.write(scene, output_dir)
        logger.info("Wrote %d meshes to %s", len(scene.meshes), main)
        return ExportResult(
            file_path=main,
            format=self.format_name,
            mesh_count=len(scene.meshes),
            triangle_count=scene.triangle_count,
            extra_files=extra,
            message=f"Wrote {main.name}.",
        )
