"""Mesh export: OBJ, JSON scene and glTF writers behind one interface."""

from __future__ import annotations

import logging

from aecmesh.export.base import ExportResult, Exporter
from aecmesh.export.gltf import GLTFExporter
from aecmesh.export.json3d import JSONSceneExporter
from aecmesh.export.obj import OBJExporter
from aecmesh.export.scene import Camera, Scene, color_for

logger = logging.getLogger(__name__)

EXPORTERS: dict[str, type[Exporter]] = {
    "json": JSONSceneExporter,
    "obj": OBJExporter,
    "gltf": GLTFExporter,
}


def get_exporter(format: str) -> Exporter:
    """Instantiate the exporter for *format*, JSON for unknown names."""
    exporter_cls = EXPORTERS.get(format)
    if exporter_cls is None:
        logger.warning("Unknown format '%s', using json", format)
        exporter_cls = JSONSceneExporter
    return exporter_cls()


__all__ = [
    "EXPORTERS",
    "Camera",
    "ExportResult",
    "Exporter",
    "GLTFExporter",
    "JSONSceneExporter",
    "OBJExporter",
    "Scene",
    "color_for",
    "get_exporter",
]
