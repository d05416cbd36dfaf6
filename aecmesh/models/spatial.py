"""Spatial structure records: the project/site/building/storey/space/element tree."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

NodeKind = Literal[
    "project", "site", "building", "storey", "space", "facility", "facility_part", "element"
]


class SpatialNode(BaseModel):
    """One node of the spatial tree.

    Children are ordered ids, never nested nodes; look them up through the
    owning :class:`~aecmesh.parser.spatial.SpatialTree`.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    kind: NodeKind
    type_name: str
    name: str | None = None
    global_id: str | None = None
    elevation: float | None = None
    children: tuple[int, ...] = ()


class SpatialReference(BaseModel):
    """Where an element lives in the spatial hierarchy."""

    site_name: str | None = None
    site_id: str | None = None
    building_name: str | None = None
    building_id: str | None = None
    storey_name: str | None = None
    storey_id: str | None = None
    space_name: str | None = None
    space_id: str | None = None


class ParentConflict(BaseModel):
    """A relation that tried to re-parent an already placed child."""

    model_config = ConfigDict(frozen=True)

    child: int
    kept_parent: int
    ignored_parent: int
    relation: int
