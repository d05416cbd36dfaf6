"""Parse pipeline entry points and the resulting model handle.

Entry point: ``parse_file(path)`` or ``StepParser(settings).parse(text)``

Scans the STEP text into an entity index, then runs the unit, spatial and
property passes over the complete index.  Entity attributes stay undecoded
until something asks for them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from aecmesh.config import SCAN_PROGRESS_SHARE, ParserSettings
from aecmesh.errors import StructuralError
from aecmesh.models.entity import DecodedEntity, EntityRef
from aecmesh.models.header import HeaderInfo
from aecmesh.models.properties import ElementIdentity, PropertySet
from aecmesh.models.spatial import SpatialNode
from aecmesh.parser.properties import PropertyIndex, build_property_index, element_identity
from aecmesh.parser.resolver import EntityResolver
from aecmesh.parser.scanner import ProgressCallback, parse_header, read_step_file
from aecmesh.parser.spatial import SpatialTree, build_spatial_tree
from aecmesh.parser.units import extract_angle_scale, extract_unit_scale

logger = logging.getLogger(__name__)


class ParsedModel:
    """Read-only handle over one parsed file.

    Safe to query from several threads once :meth:`StepParser.parse` has
    returned.
    """

    def __init__(
        self,
        resolver: EntityResolver,
        header: HeaderInfo,
        unit_scale: float = 1.0,
        spatial: SpatialTree | None = None,
        properties: PropertyIndex | None = None,
        angle_scale: float | None = None,
    ) -> None:
        self.resolver = resolver
        self.header = header
        self.unit_scale = unit_scale
        self.spatial = spatial
        self.properties = properties
        self.angle_scale = angle_scale

    @property
    def errors(self) -> list[StructuralError]:
        """Structural errors collected while scanning (non-strict mode)."""
        return self.resolver.errors

    def __len__(self) -> int:
        return len(self.resolver)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self.resolver

    def get(self, entity_id: int) -> DecodedEntity | None:
        return self.resolver.get(entity_id)

    def resolve(self, entity_id: int) -> DecodedEntity:
        return self.resolver.resolve(entity_id)

    def resolve_ref(self, value: EntityRef | int) -> DecodedEntity:
        return self.resolver.resolve_ref(value)

    def find_by_type_name(self, type_name: str) -> list[int]:
        return self.resolver.find_by_type_name(type_name)

    def entities_by_type(self, type_name: str) -> list[DecodedEntity]:
        return self.resolver.entities_by_type(type_name)

    def count_by_type(self) -> dict[str, int]:
        return self.resolver.count_by_type()

    @property
    def spatial_root(self) -> SpatialNode | None:
        return self.spatial.root if self.spatial is not None else None

    def spatial_children(self, entity_id: int) -> list[SpatialNode]:
        return self.spatial.children(entity_id) if self.spatial is not None else []

    def property_sets(self, entity_id: int) -> list[PropertySet]:
        """Property and quantity sets of an element, in file order."""
        return self.properties.sets_for(entity_id) if self.properties is not None else []

    def identity(self, entity_id: int) -> ElementIdentity:
        return element_identity(self.resolver, entity_id)

    def summary(self) -> dict[str, Any]:
        return {
            "schema": self.header.schema_identifier,
            "entities": len(self.resolver),
            "types": len(self.resolver.type_names()),
            "unit_scale": self.unit_scale,
            "spatial_nodes": len(self.spatial) if self.spatial is not None else 0,
            "elements_with_properties": len(self.properties) if self.properties is not None else 0,
            "errors": len(self.errors),
        }


class StepParser:
    """Run the parse pipeline with a given :class:`ParserSettings`."""

    def __init__(self, settings: ParserSettings | None = None) -> None:
        self.settings = settings or ParserSettings()

    def parse(self, text: str, on_progress: ProgressCallback | None = None) -> ParsedModel:
        """Parse STEP *text* into a :class:`ParsedModel`.

        Parameters
        ----------
        text:
            The complete file, or only its DATA section.
        on_progress:
            Optional ``(phase, fraction)`` hook.  Fractions never decrease
            within one call and end at 1.0.  Raising from the hook aborts
            the parse with that exception.

        Raises
        ------
        StructuralError
            Only in strict mode; otherwise malformed records are collected
            in :attr:`ParsedModel.errors`.
        """
        settings = self.settings
        report: Callable[[str, float], None] = on_progress or (lambda phase, fraction: None)

        def _scan_progress(phase: str, fraction: float) -> None:
            report(phase, fraction * SCAN_PROGRESS_SHARE)

        resolver = EntityResolver(text)
        resolver.index(
            on_progress=_scan_progress,
            chunk_bytes=settings.progress_chunk_bytes,
            strict=settings.strict,
        )
        header = parse_header(text)

        remaining = 1.0 - SCAN_PROGRESS_SHARE
        report("units", SCAN_PROGRESS_SHARE + remaining * 0.25)
        unit_scale = extract_unit_scale(resolver)
        angle_scale = extract_angle_scale(resolver)

        spatial = None
        if settings.build_spatial_tree:
            report("spatial", SCAN_PROGRESS_SHARE + remaining * 0.5)
            spatial = build_spatial_tree(resolver)

        properties = None
        if settings.extract_properties:
            report("properties", SCAN_PROGRESS_SHARE + remaining * 0.75)
            properties = build_property_index(resolver)

        report("complete", 1.0)
        model = ParsedModel(resolver, header, unit_scale, spatial, properties, angle_scale)
        logger.info("Parse complete: %s", model.summary())
        return model


def parse(text: str, settings: ParserSettings | None = None) -> ParsedModel:
    return StepParser(settings).parse(text)


def parse_with_progress(
    text: str,
    on_progress: ProgressCallback,
    settings: ParserSettings | None = None,
) -> ParsedModel:
    return StepParser(settings).parse(text, on_progress)


def parse_file(
    path: str | Path,
    settings: ParserSettings | None = None,
    on_progress: ProgressCallback | None = None,
) -> ParsedModel:
    """Read and parse a STEP/IFC file from disk."""
    logger.info("Opening %s", path)
    return StepParser(settings).parse(read_step_file(path), on_progress)
