"""glTF/GLB exporter: optional, requires pygltflib."""

from __future__ import annotations

import importlib.util
import logging
import sys
from array import array
from pathlib import Path

from aecmesh.export.base import ExportResult, Exporter
from aecmesh.export.obj import hex_to_rgb
from aecmesh.export.scene import Scene

logger = logging.getLogger(__name__)


def _little_endian(values: array) -> bytes:
    if sys.byteorder == "big":
        values = array(values.typecode, values)
        values.byteswap()
    return values.tobytes()


def _pad(blob: bytearray) -> None:
    # Buffer views start on 4-byte boundaries
    while len(blob) % 4 != 0:
        blob.append(0)


class GLTFExporter(Exporter):
    """Export scene as a binary glTF 2.0 file (``model.glb``).

    Positions, normals and indices are written straight from the packed
    mesh buffers.  Reports a failed result when pygltflib is missing.
    """

    @property
    def format_name(self) -> str:
        return "gltf"

    def is_available(self) -> bool:
        return importlib.util.find_spec("pygltflib") is not None

    def export(self, scene: Scene, output_dir: Path) -> ExportResult:
        if not self.is_available():
            logger.warning("pygltflib not available, glTF export skipped")
            return ExportResult.failed(
                self.format_name, "pygltflib is not installed (pip install aecmesh[gltf])."
            )
        return super().export(scene, output_dir)

    def write(self, scene: Scene, output_dir: Path) -> list[Path]:
        import pygltflib

        output_path = output_dir / "model.glb"

        gltf = pygltflib.GLTF2(
            scene=0,
            scenes=[pygltflib.Scene(nodes=list(range(len(scene.meshes))))],
            nodes=[],
            meshes=[],
            accessors=[],
            bufferViews=[],
            buffers=[],
            materials=[],
        )
        binary_blob = bytearray()

        def _view(data: bytes, target: int) -> int:
            offset = len(binary_blob)
            binary_blob.extend(data)
            _pad(binary_blob)
            gltf.bufferViews.append(
                pygltflib.BufferView(
                    buffer=0, byteOffset=offset, byteLength=len(data), target=target
                )
            )
            return len(gltf.bufferViews) - 1

        for i, mesh_data in enumerate(scene.meshes):
            r, g, b = hex_to_rgb(mesh_data.color)
            mat_idx = len(gltf.materials)
            gltf.materials.append(
                pygltflib.Material(
                    pbrMetallicRoughness=pygltflib.PbrMetallicRoughness(
                        baseColorFactor=[r, g, b, 1.0],
                        metallicFactor=0.1,
                        roughnessFactor=0.8,
                    ),
                    name=f"material_{i}",
                )
            )

            p = mesh_data.positions
            min_pos = [min(p[k::3]) for k in range(3)]
            max_pos = [max(p[k::3]) for k in range(3)]

            pos_view = _view(_little_endian(p), pygltflib.ARRAY_BUFFER)
            gltf.accessors.append(
                pygltflib.Accessor(
                    bufferView=pos_view,
                    componentType=pygltflib.FLOAT,
                    count=mesh_data.vertex_count,
                    type=pygltflib.VEC3,
                    max=max_pos,
                    min=min_pos,
                )
            )
            pos_acc = len(gltf.accessors) - 1

            normal_view = _view(_little_endian(mesh_data.normals), pygltflib.ARRAY_BUFFER)
            gltf.accessors.append(
                pygltflib.Accessor(
                    bufferView=normal_view,
                    componentType=pygltflib.FLOAT,
                    count=mesh_data.vertex_count,
                    type=pygltflib.VEC3,
                )
            )
            normal_acc = len(gltf.accessors) - 1

            index_view = _view(_little_endian(mesh_data.indices), pygltflib.ELEMENT_ARRAY_BUFFER)
            gltf.accessors.append(
                pygltflib.Accessor(
                    bufferView=index_view,
                    componentType=pygltflib.UNSIGNED_INT,
                    count=len(mesh_data.indices),
                    type=pygltflib.SCALAR,
                    max=[max(mesh_data.indices)],
                    min=[min(mesh_data.indices)],
                )
            )
            index_acc = len(gltf.accessors) - 1

            name = mesh_data.name or f"mesh_{i}"
            gltf.nodes.append(pygltflib.Node(mesh=i, name=name))
            gltf.meshes.append(
                pygltflib.Mesh(
                    primitives=[
                        pygltflib.Primitive(
                            attributes=pygltflib.Attributes(POSITION=pos_acc, NORMAL=normal_acc),
                            indices=index_acc,
                            material=mat_idx,
                        )
                    ],
                    name=name,
                )
            )

        gltf.buffers = [pygltflib.Buffer(byteLength=len(binary_blob))]
        gltf.set_binary_blob(bytes(binary_blob))
        gltf.save(str(output_path))
        return [output_path]
