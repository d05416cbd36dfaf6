"""Command line entry point: ``aecmesh info|tree|mesh FILE``."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from aecmesh import __version__
from aecmesh.config import ParserSettings, load_settings
from aecmesh.errors import AecMeshError
from aecmesh.export import EXPORTERS, Scene, get_exporter
from aecmesh.geometry.router import tessellate
from aecmesh.parser.model import ParsedModel, parse_file
from aecmesh.parser.spatial import SpatialTree

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aecmesh", description="Parse STEP/IFC files and tessellate their geometry"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        dest="config_file",
        default=None,
        help="JSON settings file (AECMESH_* environment variables still win)",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default=None,
        help="Logging level (default: AECMESH_LOG_LEVEL or INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    info = sub.add_parser("info", help="Print header, entity counts and storeys")
    info.add_argument("file", type=Path)
    info.add_argument("--top", type=int, default=15, help="Entity types to list (default: %(default)s)")
    info.add_argument("--json", dest="as_json", action="store_true", help="Print a JSON summary")

    tree = sub.add_parser("tree", help="Print the spatial structure")
    tree.add_argument("file", type=Path)

    mesh = sub.add_parser("mesh", help="Tessellate every product and export the meshes")
    mesh.add_argument("file", type=Path)
    mesh.add_argument(
        "--format",
        dest="format",
        choices=sorted(EXPORTERS),
        default="obj",
        help="Output format (default: %(default)s)",
    )
    mesh.add_argument("--out", dest="output_dir", type=Path, default=Path("out"))
    mesh.add_argument("--workers", type=int, default=None, help="Geometry worker threads")
    return parser


def _print_info(model: ParsedModel, top: int) -> None:
    header = model.header
    print(f"Schema:       {header.schema_identifier or '-'}")
    print(f"Name:         {header.name or '-'}")
    print(f"Application:  {header.originating_system or header.preprocessor or '-'}")
    print(f"Entities:     {len(model)}")
    print(f"Unit scale:   {model.unit_scale:g} m")
    if model.errors:
        print(f"Errors:       {len(model.errors)}")
        for err in model.errors[:10]:
            print(f"  offset {err.offset}: {err.message}")

    counts = sorted(model.count_by_type().items(), key=lambda kv: (-kv[1], kv[0]))
    print("\nTypes:")
    for type_name, count in counts[:top]:
        print(f"  {type_name:<40} {count:>8}")
    if len(counts) > top:
        print(f"  ... {len(counts) - top} more")

    if model.spatial is not None:
        storeys = model.spatial.storeys()
        if storeys:
            print("\nStoreys:")
            for storey in storeys:
                elevation = f"{storey.elevation:g}" if storey.elevation is not None else "-"
                count = len(model.spatial.elements_in_storey(storey.id))
                print(f"  #{storey.id} {storey.name or '(unnamed)'}  elevation {elevation}  elements {count}")


def _print_tree(tree: SpatialTree) -> None:
    seen: set[int] = set()

    def _walk(entity_id: int, depth: int) -> None:
        node = tree.node(entity_id)
        if node is None or entity_id in seen:
            return
        seen.add(entity_id)
        print(f"{'  ' * depth}{node.type_name} #{node.id} {node.name or ''}".rstrip())
        for child in node.children:
            _walk(child, depth + 1)

    for root in tree.roots:
        _walk(root.id, 0)


def _run_mesh(model: ParsedModel, args: argparse.Namespace, settings: ParserSettings) -> int:
    if args.workers is not None:
        settings = settings.model_copy(update={"workers": max(1, args.workers)})
    batch = tessellate(model, settings)
    type_names = {i: model.resolver.type_name_of(i) or "" for i in batch.meshes}
    scene = Scene.from_meshes(
        batch.meshes,
        type_names,
        source=str(args.file),
        schema=model.header.schema_identifier or "",
    )
    result = get_exporter(args.format).export(scene, args.output_dir)
    print(
        f"{result.mesh_count} meshes, {scene.triangle_count} triangles, "
        f"{len(batch.errors)} skipped -> {result.file_path or '-'}"
    )
    if not result.success:
        print(result.message, file=sys.stderr)
        return 1
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(args.config_file)
    level = (args.log_level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "tree":
        settings = settings.model_copy(update={"extract_properties": False, "build_spatial_tree": True})
    try:
        model = parse_file(args.file, settings)
    except (OSError, AecMeshError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.command == "info":
        if args.as_json:
            print(json.dumps(model.summary(), indent=2))
        else:
            _print_info(model, args.top)
        return 0
    if args.command == "tree":
        if model.spatial is not None:
            _print_tree(model.spatial)
        return 0
    return _run_mesh(model, args, settings)


if __name__ == "__main__":
    sys.exit(main())
