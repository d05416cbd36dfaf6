"""Build the spatial tree from aggregation and containment relationships."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from aecmesh.config import SPATIAL_TYPES
from aecmesh.errors import AecMeshError
from aecmesh.models.spatial import ParentConflict, SpatialNode, SpatialReference
from aecmesh.parser.resolver import EntityResolver

logger = logging.getLogger(__name__)

# Relationship type -> (parent attribute index, children attribute index)
RELATIONSHIP_LAYOUT = {
    "IFCRELAGGREGATES": (4, 5),
    "IFCRELNESTS": (4, 5),
    "IFCRELCONTAINEDINSPATIALSTRUCTURE": (5, 4),
}


class SpatialTree:
    """Read-only spatial hierarchy keyed by entity id.

    Every node has at most one parent.  When two relationships claim the same
    child under different parents, the relationship that appears first in
    the file wins and the later one is listed in :attr:`conflicts`.
    """

    def __init__(
        self,
        nodes: dict[int, SpatialNode],
        parents: dict[int, int],
        roots: list[int],
        conflicts: list[ParentConflict] | None = None,
    ) -> None:
        self._nodes = nodes
        self._parents = parents
        self._roots = roots
        self.conflicts: list[ParentConflict] = conflicts or []

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._nodes

    @property
    def root(self) -> SpatialNode | None:
        """The project node, or the first parentless spatial node."""
        return self._nodes[self._roots[0]] if self._roots else None

    @property
    def roots(self) -> list[SpatialNode]:
        return [self._nodes[i] for i in self._roots]

    def node(self, entity_id: int) -> SpatialNode | None:
        return self._nodes.get(entity_id)

    def children(self, entity_id: int) -> list[SpatialNode]:
        node = self._nodes.get(entity_id)
        if node is None:
            return []
        return [self._nodes[c] for c in node.children]

    def parent(self, entity_id: int) -> SpatialNode | None:
        parent_id = self._parents.get(entity_id)
        return self._nodes.get(parent_id) if parent_id is not None else None

    def ancestors(self, entity_id: int) -> list[SpatialNode]:
        """Parents of *entity_id*, nearest first.  Stops if a cycle is found."""
        out: list[SpatialNode] = []
        seen = {entity_id}
        current = self._parents.get(entity_id)
        while current is not None and current not in seen:
            seen.add(current)
            out.append(self._nodes[current])
            current = self._parents.get(current)
        return out

    def path(self, entity_id: int) -> list[SpatialNode]:
        """Nodes from the top of the hierarchy down to *entity_id*."""
        node = self._nodes.get(entity_id)
        if node is None:
            return []
        return list(reversed(self.ancestors(entity_id))) + [node]

    def iter_nodes(self) -> Iterator[SpatialNode]:
        """Depth-first walk from the roots, visiting every node once."""
        visited: set[int] = set()
        stack = list(reversed(self._roots))
        while stack:
            entity_id = stack.pop()
            if entity_id in visited:
                continue
            visited.add(entity_id)
            node = self._nodes[entity_id]
            yield node
            stack.extend(reversed(node.children))

    def descendants(self, entity_id: int) -> list[SpatialNode]:
        visited = {entity_id}
        out: list[SpatialNode] = []
        stack = list(reversed(self._nodes[entity_id].children)) if entity_id in self._nodes else []
        while stack:
            child = stack.pop()
            if child in visited:
                continue
            visited.add(child)
            node = self._nodes[child]
            out.append(node)
            stack.extend(reversed(node.children))
        return out

    def storeys(self) -> list[SpatialNode]:
        """Every storey, lowest elevation first; storeys without one go last."""
        storeys = [n for n in self._nodes.values() if n.kind == "storey"]
        return sorted(
            storeys,
            key=lambda n: (n.elevation is None, n.elevation or 0.0),
        )

    def elements_in_storey(self, storey_id: int) -> list[SpatialNode]:
        """Elements under a storey, including those inside its spaces."""
        return [n for n in self.descendants(storey_id) if n.kind == "element"]

    def containing_storey(self, entity_id: int) -> SpatialNode | None:
        for node in self.ancestors(entity_id):
            if node.kind == "storey":
                return node
        return None

    def search(self, query: str) -> list[SpatialNode]:
        """Nodes whose name or type name contains *query*, case-insensitive."""
        needle = query.lower()
        return [
            n for n in self.iter_nodes()
            if needle in n.type_name.lower() or (n.name and needle in n.name.lower())
        ]

    def spatial_reference(self, entity_id: int) -> SpatialReference:
        """Site, building, storey and space names above *entity_id*."""
        ref = SpatialReference()
        for node in self.ancestors(entity_id):
            if node.kind == "space" and ref.space_id is None:
                ref.space_name, ref.space_id = node.name, node.global_id
            elif node.kind == "storey" and ref.storey_id is None:
                ref.storey_name, ref.storey_id = node.name, node.global_id
            elif node.kind == "building" and ref.building_id is None:
                ref.building_name, ref.building_id = node.name, node.global_id
            elif node.kind == "site" and ref.site_id is None:
                ref.site_name, ref.site_id = node.name, node.global_id
        return ref


def _relation_ids(resolver: EntityResolver) -> list[int]:
    ids: list[int] = []
    for type_name in RELATIONSHIP_LAYOUT:
        ids.extend(resolver.find_by_type_name(type_name))
    # File order, regardless of relationship type
    return sorted(ids, key=lambda i: resolver.raw(i).offset)


def _make_node(resolver: EntityResolver, entity_id: int, children: list[int]) -> SpatialNode:
    type_name = resolver.type_name_of(entity_id) or ""
    kind = SPATIAL_TYPES.get(type_name, "element")
    name = global_id = elevation = None
    try:
        entity = resolver.resolve(entity_id)
        name = entity.get_string(2)
        global_id = entity.get_string(0)
        if kind == "storey":
            elevation = entity.get_float(9)
    except AecMeshError:
        logger.warning("Could not decode spatial node #%d", entity_id, exc_info=True)
    return SpatialNode(
        id=entity_id,
        kind=kind,
        type_name=type_name,
        name=name,
        global_id=global_id,
        elevation=elevation,
        children=tuple(children),
    )


def build_spatial_tree(resolver: EntityResolver) -> SpatialTree:
    """Walk every relationship once, in file order, and assemble the tree."""
    parents: dict[int, int] = {}
    children: dict[int, list[int]] = {}
    conflicts: list[ParentConflict] = []

    for rel_id in _relation_ids(resolver):
        try:
            rel = resolver.resolve(rel_id)
        except AecMeshError:
            logger.warning("Skipping unreadable relationship #%d", rel_id, exc_info=True)
            continue
        parent_index, children_index = RELATIONSHIP_LAYOUT[rel.type_name]
        parent_id = rel.get_ref(parent_index)
        if parent_id is None or parent_id not in resolver:
            logger.warning("Relationship #%d has no valid parent", rel_id)
            continue

        for child_id in rel.get_refs(children_index):
            if child_id not in resolver:
                logger.warning("Relationship #%d refers to missing #%d", rel_id, child_id)
                continue
            if child_id == parent_id:
                continue
            existing = parents.get(child_id)
            if existing is None:
                parents[child_id] = parent_id
                children.setdefault(parent_id, []).append(child_id)
            elif existing != parent_id:
                logger.warning(
                    "#%d already belongs to #%d, ignoring #%d from relationship #%d",
                    child_id, existing, parent_id, rel_id,
                )
                conflicts.append(
                    ParentConflict(
                        child=child_id,
                        kept_parent=existing,
                        ignored_parent=parent_id,
                        relation=rel_id,
                    )
                )

    # Every spatial entity gets a node, related or not
    members: dict[int, None] = {}
    for type_name in SPATIAL_TYPES:
        for entity_id in resolver.find_by_type_name(type_name):
            members[entity_id] = None
    for parent_id, kids in children.items():
        members[parent_id] = None
        for kid in kids:
            members[kid] = None

    nodes = {i: _make_node(resolver, i, children.get(i, [])) for i in members}

    projects = resolver.find_by_type_name("IFCPROJECT")
    if projects:
        roots = [projects[0]]
    else:
        ordered = sorted(
            (i for i in nodes if i not in parents and nodes[i].kind != "element"),
            key=lambda i: resolver.raw(i).offset,
        )
        roots = sorted(ordered, key=lambda i: nodes[i].kind != "site")

    logger.info(
        "Spatial tree: %d nodes, %d roots, %d conflicts",
        len(nodes), len(roots), len(conflicts),
    )
    return SpatialTree(nodes, parents, roots, conflicts)
