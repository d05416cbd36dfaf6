"""Entity store: lookup by id and type name, the only way to follow a reference."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from aecmesh.config import DEFAULT_PROGRESS_CHUNK_BYTES
from aecmesh.errors import AecMeshError, EntityNotFound, InvalidAttribute, StructuralError
from aecmesh.models.entity import DecodedEntity, EntityRef, RawEntity
from aecmesh.parser.decoder import EntityDecoder
from aecmesh.parser.scanner import EntityScanner, ProgressCallback

logger = logging.getLogger(__name__)


class EntityResolver:
    """Own every entity of one file by id.

    Records are located up front by :meth:`index`; their attributes are
    decoded one entity at a time when first requested.  Decoding an entity
    never decodes the entities it references, so reference cycles are safe.

    After :meth:`index` returns, every query method may be called from many
    threads at once.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.decoder = EntityDecoder(text)
        self.errors: list[StructuralError] = []
        self._raw: dict[int, RawEntity] = {}
        self._type_index: dict[str, list[int]] = {}

    @classmethod
    def from_text(cls, text: str, strict: bool = False) -> EntityResolver:
        resolver = cls(text)
        resolver.index(strict=strict)
        return resolver

    def index(
        self,
        on_progress: ProgressCallback | None = None,
        chunk_bytes: int = DEFAULT_PROGRESS_CHUNK_BYTES,
        strict: bool = False,
    ) -> None:
        """Scan the text and build the id and type-name indexes.

        With *strict* the first structural error is raised; otherwise
        malformed records and duplicate ids are collected in :attr:`errors`
        and the remaining records stay usable.  For a duplicate id the first
        definition is kept.
        """
        scanner = EntityScanner(self.text)
        errors = None if strict else self.errors
        for record in scanner.scan(on_progress, chunk_bytes, errors=errors):
            if record.id in self._raw:
                exc = StructuralError(f"duplicate entity id #{record.id}", record.offset)
                if strict:
                    raise exc
                logger.warning("Ignoring duplicate definition: %s", exc)
                self.errors.append(exc)
                continue
            self._raw[record.id] = record
            self._type_index.setdefault(record.type_name, []).append(record.id)

        logger.info(
            "Indexed %d entities of %d types (%d structural errors)",
            len(self._raw), len(self._type_index), len(self.errors),
        )

    # Lookup -----------------------------------------------------------------

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._raw

    def __len__(self) -> int:
        return len(self._raw)

    def get(self, entity_id: int) -> DecodedEntity | None:
        """Return the decoded entity, or None when the id is absent."""
        raw = self._raw.get(entity_id)
        if raw is None:
            return None
        return self.decoder.decode(raw)

    def resolve(self, entity_id: int) -> DecodedEntity:
        """Return the decoded entity or raise :class:`EntityNotFound`."""
        raw = self._raw.get(entity_id)
        if raw is None:
            raise EntityNotFound(entity_id)
        return self.decoder.decode(raw)

    def resolve_ref(self, value: EntityRef | int, index: int = -1) -> DecodedEntity:
        """Dereference one attribute value.

        Anything other than a reference raises :class:`InvalidAttribute`
        labelled with *index*.
        """
        if isinstance(value, EntityRef):
            return self.resolve(value.id)
        if isinstance(value, int) and not isinstance(value, bool):
            return self.resolve(value)
        raise InvalidAttribute(index, f"expected an entity reference, got {value!r}")

    def resolve_ref_list(self, values: Iterable[Any]) -> list[DecodedEntity]:
        """Dereference every reference in a list value, skipping nulls."""
        return [self.resolve(v.id) for v in values if isinstance(v, EntityRef)]

    def raw(self, entity_id: int) -> RawEntity | None:
        return self._raw.get(entity_id)

    def raw_text(self, entity_id: int) -> str:
        raw = self._raw.get(entity_id)
        if raw is None:
            raise EntityNotFound(entity_id)
        return self.decoder.raw_text(raw)

    def type_name_of(self, entity_id: int) -> str | None:
        """Type name from the index, without decoding."""
        raw = self._raw.get(entity_id)
        return raw.type_name if raw is not None else None

    def find_by_type_name(self, type_name: str) -> list[int]:
        """Ids of every entity of exactly *type_name*, in file order."""
        return list(self._type_index.get(type_name, ()))

    def entities_by_type(self, type_name: str) -> list[DecodedEntity]:
        return [self.decoder.decode(self._raw[i]) for i in self._type_index.get(type_name, ())]

    def count_by_type(self) -> dict[str, int]:
        return {name: len(ids) for name, ids in self._type_index.items()}

    def type_names(self) -> list[str]:
        return list(self._type_index)

    def all_ids(self) -> list[int]:
        return list(self._raw)

    # Bulk decoding ------------------------------------------------------------

    def preload(
        self, entity_ids: Iterable[int] | None = None, workers: int = 1
    ) -> dict[int, AecMeshError]:
        """Decode many entities ahead of time.

        Returns the errors of entities that failed to decode, keyed by id;
        one bad entity does not stop the others.
        """
        ids = list(self._raw if entity_ids is None else entity_ids)
        failures: dict[int, AecMeshError] = {}

        def _decode(entity_id: int) -> tuple[int, AecMeshError | None]:
            try:
                self.resolve(entity_id)
            except AecMeshError as exc:
                return entity_id, exc
            return entity_id, None

        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(_decode, ids))
        else:
            results = [_decode(i) for i in ids]

        for entity_id, exc in results:
            if exc is not None:
                logger.warning("Could not decode #%d: %s", entity_id, exc)
                failures[entity_id] = exc
        logger.debug("Preloaded %d entities, %d failed", len(ids), len(failures))
        return failures
