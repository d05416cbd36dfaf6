"""GeometryRouter: dispatch geometric entities to their processor."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from aecmesh.config import BODY_REPRESENTATIONS, EPSILON, ParserSettings
from aecmesh.errors import AecMeshError, CsgError, InvalidAttribute, UnsupportedType
from aecmesh.geometry.extrusion import extrude_profile_with_voids
from aecmesh.geometry.mesh import Mesh
from aecmesh.geometry.processors import (
    ExtrudedAreaSolidProcessor,
    ExtrusionParams,
    FacetedBrepProcessor,
    GeometryProcessor,
    RevolvedAreaSolidProcessor,
    SweptDiskSolidProcessor,
    TriangulatedFaceSetProcessor,
)
from aecmesh.geometry.profile import Profile2DWithVoids, VoidInfo
from aecmesh.geometry.readers import (
    PlacementCache,
    frame_axes,
    is_parallel,
    read_placement,
    read_transform_operator,
    to_local,
)
from aecmesh.geometry.vectors import (
    Matrix,
    Vec2,
    dot,
    identity,
    multiply,
    normalize,
    transform_direction,
    transform_point,
)
from aecmesh.models.entity import DecodedEntity
from aecmesh.parser.resolver import EntityResolver

if TYPE_CHECKING:
    from aecmesh.parser.model import ParsedModel

logger = logging.getLogger(__name__)

# Type-name prefixes of resource entities that never carry a product shape
_NON_PRODUCT_PREFIXES = (
    "IFCREL",
    "IFCPROPERTY",
    "IFCQUANTITY",
    "IFCCARTESIAN",
    "IFCDIRECTION",
    "IFCAXIS",
    "IFCPOLY",
    "IFCFACE",
    "IFCINDEXED",
    "IFCSHAPE",
    "IFCPRODUCTDEFINITIONSHAPE",
    "IFCLOCALPLACEMENT",
)

# Openings are subtracted from their host, never drawn
_OPENING_TYPES = ("IFCOPENINGELEMENT", "IFCOPENINGSTANDARDCASE")

# Mapped items and boolean operands followed before giving up
_MAX_NESTING = 8


@dataclass
class GeometryBatch:
    """Meshes of a batch run, with the failures that were skipped."""

    meshes: dict[int, Mesh] = field(default_factory=dict)
    errors: dict[int, AecMeshError] = field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return len(self.meshes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "meshes": len(self.meshes),
            "triangles": sum(m.triangle_count for m in self.meshes.values()),
            "errors": {str(k): str(v) for k, v in self.errors.items()},
        }


def _is_body(representation: DecodedEntity) -> bool:
    if representation.type_name != "IFCSHAPEREPRESENTATION":
        return False
    identifier = representation.get_string(1)
    return identifier is None or identifier in BODY_REPRESENTATIONS


def _point_in_polygon(point: Vec2, polygon: list[Vec2]) -> bool:
    x, y = point
    inside = False
    count = len(polygon)
    for i in range(count):
        x0, y0 = polygon[i]
        x1, y1 = polygon[(i + 1) % count]
        if (y0 > y) != (y1 > y):
            cross_x = x0 + (y - y0) * (x1 - x0) / (y1 - y0)
            if x < cross_x:
                inside = not inside
    return inside


def opening_map(resolver: EntityResolver) -> dict[int, list[int]]:
    """Host element id -> opening element ids, from IFCRELVOIDSELEMENT."""
    openings: dict[int, list[int]] = {}
    for rel in resolver.entities_by_type("IFCRELVOIDSELEMENT"):
        host = rel.get_ref(4)
        opening = rel.get_ref(5)
        if host is not None and opening is not None:
            openings.setdefault(host, []).append(opening)
    return openings


def product_ids_with_geometry(resolver: EntityResolver) -> list[int]:
    """Ids of products whose Representation is an IFCPRODUCTDEFINITIONSHAPE.

    Opening elements are left out; they only matter as voids of their host.
    """
    shapes = set(resolver.find_by_type_name("IFCPRODUCTDEFINITIONSHAPE"))
    if not shapes:
        return []
    ids: list[int] = []
    for type_name in resolver.type_names():
        if type_name.startswith(_NON_PRODUCT_PREFIXES) or type_name in _OPENING_TYPES:
            continue
        for entity_id in resolver.find_by_type_name(type_name):
            try:
                entity = resolver.resolve(entity_id)
            except AecMeshError as exc:
                logger.warning("Skipping #%d: %s", entity_id, exc)
                continue
            if entity.get_ref(6) in shapes:
                ids.append(entity_id)
    return sorted(ids)


class GeometryRouter:
    """Closed dispatch from entity type name to geometry processor.

    Parameters
    ----------
    unit_scale:
        Factor applied to every mesh produced, usually the model's length
        unit in metres.
    angle_scale:
        The model's plane angle unit in radians, or ``None`` when the file
        declares none.
    """

    def __init__(self, unit_scale: float = 1.0, angle_scale: float | None = None) -> None:
        self.unit_scale = unit_scale
        self._extruder = ExtrudedAreaSolidProcessor()
        processors: list[GeometryProcessor] = [
            self._extruder,
            RevolvedAreaSolidProcessor(angle_scale),
            SweptDiskSolidProcessor(),
            FacetedBrepProcessor(),
            TriangulatedFaceSetProcessor(),
        ]
        self._processors: dict[str, GeometryProcessor] = {p.type_name: p for p in processors}

    @property
    def supported_types(self) -> list[str]:
        return sorted(self._processors)

    def supports(self, type_name: str) -> bool:
        return type_name in self._processors

    # Single geometric entity ----------------------------------------------

    def _process_local(self, entity: DecodedEntity, resolver: EntityResolver) -> Mesh:
        processor = self._processors.get(entity.type_name)
        if processor is None:
            raise UnsupportedType(entity.type_name)
        return processor.process(entity, resolver)

    def process(self, entity_id: int, resolver: EntityResolver) -> Mesh:
        """Mesh of one geometric representation item, scaled to model units.

        Raises :class:`UnsupportedType` for types without a processor; any
        other failure of the processor propagates to the caller.
        """
        entity = resolver.resolve(entity_id)
        mesh = self._process_local(entity, resolver)
        logger.debug(
            "%s #%d -> %d triangles", entity.type_name, entity_id, mesh.triangle_count
        )
        return mesh.scaled(self.unit_scale)

    # Items inside a representation -----------------------------------------

    def _item_mesh(self, item_id: int, resolver: EntityResolver, depth: int = 0) -> Mesh:
        if depth > _MAX_NESTING:
            raise InvalidAttribute(0, f"representation item #{item_id} nests too deeply")
        item = resolver.resolve(item_id)
        if item.type_name == "IFCMAPPEDITEM":
            source = resolver.resolve(item.ref(0))
            origin_ref = source.get_ref(0)
            origin = read_placement(resolver, origin_ref) if origin_ref is not None else identity()
            target_ref = item.get_ref(1)
            target = read_transform_operator(resolver, target_ref) if target_ref is not None else identity()
            matrix = multiply(target, origin)
            mesh = Mesh()
            representation = resolver.resolve(source.ref(1))
            for sub_item in representation.get_refs(3):
                mesh.merge(self._item_mesh(sub_item, resolver, depth + 1))
            return mesh.transformed(matrix)

        if item.type_name in ("IFCBOOLEANRESULT", "IFCBOOLEANCLIPPINGRESULT"):
            logger.debug("Boolean #%d: using the first operand only", item_id)
            return self._item_mesh(item.ref(1), resolver, depth + 1)

        return self._process_local(item, resolver)

    def body_items(self, product: DecodedEntity, resolver: EntityResolver) -> list[int]:
        """Representation items of the product's Body/Facetation representations."""
        shape_ref = product.get_ref(6)
        if shape_ref is None:
            return []
        shape = resolver.resolve(shape_ref)
        if shape.type_name != "IFCPRODUCTDEFINITIONSHAPE":
            return []
        items: list[int] = []
        for representation in resolver.resolve_ref_list(shape.get_list(2) or ()):
            if _is_body(representation):
                items.extend(representation.get_refs(3))
        return items

    # Opening voids ----------------------------------------------------------

    def _host_frame(
        self, product: DecodedEntity, params: ExtrusionParams, placements: PlacementCache
    ) -> Matrix:
        return multiply(placements.world_matrix(product.get_ref(5)), params.matrix)

    def _voids_of(
        self,
        opening_id: int,
        host: ExtrusionParams,
        host_frame: Matrix,
        resolver: EntityResolver,
        placements: PlacementCache,
    ) -> list[VoidInfo]:
        """Project an opening's extrusions into the host's profile plane.

        Raises :class:`CsgError` unless every opening solid is an extrusion
        whose profile plane and direction match the host's and whose
        outline lies inside the host profile.
        """
        opening = resolver.resolve(opening_id)
        solids = [resolver.resolve(i) for i in self.body_items(opening, resolver)]
        if not solids:
            raise CsgError(f"opening #{opening_id} has no body geometry")

        host_dir = normalize(host.direction)
        _, x_axis, y_axis, z_axis = frame_axes(host_frame)
        depth_tol = 1e-6 * max(1.0, host.depth)
        voids: list[VoidInfo] = []

        for solid in solids:
            if solid.type_name != self._extruder.type_name:
                raise CsgError(f"opening #{opening_id}: cannot subtract {solid.type_name}")
            params = self._extruder.read(solid, resolver)
            frame = multiply(placements.world_matrix(opening.get_ref(5)), params.matrix)
            world_dir = normalize(transform_direction(frame, params.direction))
            if world_dir is None or host_dir is None:
                raise CsgError(f"opening #{opening_id}: zero extrusion direction")
            local_dir = (dot(world_dir, x_axis), dot(world_dir, y_axis), dot(world_dir, z_axis))
            if not is_parallel(local_dir, host_dir):
                raise CsgError(f"opening #{opening_id} is not parallel to its host extrusion")

            contour: list[Vec2] = []
            distances: list[float] = []
            for p in params.profile.points:
                lx, ly, lz = to_local(host_frame, transform_point(frame, (p[0], p[1], 0.0)))
                t = lz / host_dir[2]
                contour.append((lx - host_dir[0] * t, ly - host_dir[1] * t))
                distances.append(t)
            if max(distances) - min(distances) > depth_tol:
                raise CsgError(f"opening #{opening_id} profile is not coplanar with the host profile")

            host_outline = host.profile.points
            for point in contour:
                if not _point_in_polygon(point, host_outline) or any(
                    _point_in_polygon(point, hole) for hole in host.profile.holes
                ):
                    raise CsgError(f"opening #{opening_id} is not inside the host profile")

            start = distances[0]
            end = start + params.depth * local_dir[2] / host_dir[2]
            low, high = min(start, end), max(start, end)
            through = low <= EPSILON and high >= host.depth - EPSILON
            voids.append(VoidInfo(contour, low, high, through))
        return voids

    def _mesh_with_openings(
        self,
        product: DecodedEntity,
        item_id: int,
        openings: list[int],
        resolver: EntityResolver,
        placements: PlacementCache,
    ) -> Mesh:
        item = resolver.resolve(item_id)
        if item.type_name != self._extruder.type_name:
            logger.warning(
                "Openings of #%d ignored: cannot subtract from %s", product.id, item.type_name
            )
            return self._item_mesh(item_id, resolver)

        params = self._extruder.read(item, resolver)
        host_frame = self._host_frame(product, params, placements)
        cut = Profile2DWithVoids(params.profile)
        for opening_id in openings:
            try:
                for void in self._voids_of(opening_id, params, host_frame, resolver, placements):
                    cut.add_void(void)
            except AecMeshError as exc:
                logger.warning("Skipping opening #%d of #%d: %s", opening_id, product.id, exc)
        if not cut.has_voids():
            return self._extruder.process(item, resolver)
        mesh = extrude_profile_with_voids(cut, params.depth, params.direction)
        return mesh.transformed(params.matrix)

    # Products ---------------------------------------------------------------

    def process_element(
        self,
        element_id: int,
        resolver: EntityResolver,
        placements: PlacementCache | None = None,
        openings: dict[int, list[int]] | None = None,
    ) -> Mesh:
        """World-space mesh of a product's body representation.

        Items that fail are skipped and logged; if every item fails the last
        error is raised.  Openings are cut out of a single-extrusion body.
        """
        element = resolver.resolve(element_id)
        placements = placements or PlacementCache(resolver)
        if openings is None:
            openings = opening_map(resolver)
        items = self.body_items(element, resolver)
        if not items:
            raise InvalidAttribute(6, f"{element.type_name} #{element_id} has no body representation")

        element_openings = openings.get(element_id, [])
        mesh = Mesh()
        last_error: AecMeshError | None = None
        for item_id in items:
            try:
                if element_openings and len(items) == 1:
                    part = self._mesh_with_openings(element, item_id, element_openings, resolver, placements)
                else:
                    part = self._item_mesh(item_id, resolver)
            except AecMeshError as exc:
                logger.warning("Skipping item #%d of #%d: %s", item_id, element_id, exc)
                last_error = exc
                continue
            mesh.merge(part)

        if element_openings and len(items) > 1:
            logger.warning(
                "Openings of #%d ignored: body has %d items", element_id, len(items)
            )
        if mesh.is_empty() and last_error is not None:
            raise last_error

        world = placements.world_matrix(element.get_ref(5))
        return mesh.transformed(world).scaled(self.unit_scale)

    # Batches ----------------------------------------------------------------

    def _run_batch(
        self,
        ids: list[int],
        work: Callable[[int], Mesh],
        workers: int,
    ) -> GeometryBatch:
        def _one(entity_id: int) -> tuple[int, Mesh | None, AecMeshError | None]:
            try:
                return entity_id, work(entity_id), None
            except AecMeshError as exc:
                return entity_id, None, exc

        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(_one, ids))
        else:
            results = [_one(i) for i in ids]

        batch = GeometryBatch()
        for entity_id, mesh, exc in results:
            if exc is not None:
                logger.warning("Skipping #%d: %s", entity_id, exc)
                batch.errors[entity_id] = exc
            elif mesh is not None:
                batch.meshes[entity_id] = mesh
        logger.info(
            "Geometry batch: %d meshes, %d skipped", len(batch.meshes), len(batch.errors)
        )
        return batch

    def process_many(
        self, entity_ids: Iterable[int], resolver: EntityResolver, workers: int = 1
    ) -> GeometryBatch:
        """Run :meth:`process` over many ids, skipping the ones that fail."""
        return self._run_batch(list(entity_ids), lambda i: self.process(i, resolver), workers)

    def process_elements(
        self,
        resolver: EntityResolver,
        element_ids: Iterable[int] | None = None,
        workers: int = 1,
    ) -> GeometryBatch:
        """Run :meth:`process_element` over products (all of them by default)."""
        ids = list(element_ids) if element_ids is not None else product_ids_with_geometry(resolver)
        placements = PlacementCache(resolver)
        openings = opening_map(resolver)
        return self._run_batch(
            ids,
            lambda i: self.process_element(i, resolver, placements, openings),
            workers,
        )


def tessellate(
    model: ParsedModel,
    settings: ParserSettings | None = None,
    element_ids: Iterable[int] | None = None,
) -> GeometryBatch:
    """Mesh every product of a parsed model (or only *element_ids*).

    Meshes are in metres when ``settings.apply_unit_scale`` is set, in the
    file's own length unit otherwise.
    """
    settings = settings or ParserSettings()
    scale = model.unit_scale if settings.apply_unit_scale else 1.0
    router = GeometryRouter(unit_scale=scale, angle_scale=model.angle_scale)
    return router.process_elements(model.resolver, element_ids, workers=settings.workers)
