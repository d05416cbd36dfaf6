"""Lazy, memoized conversion of raw entity records into attribute values."""

from __future__ import annotations

import logging
import threading
from typing import Any

from aecmesh.errors import EntityParseError, TokenError
from aecmesh.models.entity import (
    DERIVED,
    DecodedEntity,
    EntityRef,
    EnumValue,
    RawEntity,
    TypedValue,
)
from aecmesh.parser.tokenizer import Token, TokenKind, tokenize

logger = logging.getLogger(__name__)


def token_to_value(token: Token) -> Any:
    """Map a token (and its children) onto an attribute value."""
    kind = token.kind
    if kind is TokenKind.REF:
        return EntityRef(token.value)
    if kind in (TokenKind.STRING, TokenKind.BINARY, TokenKind.INTEGER, TokenKind.FLOAT):
        return token.value
    if kind is TokenKind.ENUM:
        return EnumValue(token.value)
    if kind is TokenKind.LIST:
        return tuple(token_to_value(t) for t in token.value)
    if kind is TokenKind.TYPED:
        name, children = token.value
        return TypedValue(name, tuple(token_to_value(t) for t in children))
    if kind is TokenKind.DERIVED:
        return DERIVED
    return None


class EntityDecoder:
    """Decode raw records of one file, caching each result by id.

    The cache is write-once per id: the first decoded value stored wins and
    every later caller receives that same object.  Lookups read the dict
    without locking; only insertion takes the lock.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self._cache: dict[int, DecodedEntity] = {}
        self._lock = threading.Lock()

    def decode(self, raw: RawEntity) -> DecodedEntity:
        """Return the decoded form of *raw*, tokenizing it on first use.

        Raises :class:`EntityParseError` carrying the entity id and the
        absolute offset of the offending token.
        """
        cached = self._cache.get(raw.id)
        if cached is not None:
            return cached

        try:
            tokens = tokenize(self.text, raw.args_start, raw.args_end)
        except TokenError as exc:
            raise EntityParseError(raw.id, exc.message, exc.offset) from exc

        entity = DecodedEntity(
            id=raw.id,
            type_name=raw.type_name,
            attributes=tuple(token_to_value(t) for t in tokens),
        )
        with self._lock:
            return self._cache.setdefault(raw.id, entity)

    def cached(self, entity_id: int) -> DecodedEntity | None:
        return self._cache.get(entity_id)

    def raw_text(self, raw: RawEntity) -> str:
        """Return the argument text of *raw* exactly as written."""
        return self.text[raw.args_start:raw.args_end]

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
        logger.debug("Decoder cache cleared")
