"""Locate entity records in STEP text without parsing their arguments.

The scanner walks ``;``-terminated statements, honouring string literals and
``/* */`` comments, and matches only the ``#id = TYPE(`` prefix of each one.
The argument text is kept as an offset span for the decoder to tokenize on
demand.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Callable, Iterator
from pathlib import Path

from aecmesh.config import DEFAULT_PROGRESS_CHUNK_BYTES
from aecmesh.errors import StructuralError, TokenError
from aecmesh.models.entity import EnumValue, RawEntity, TypedValue
from aecmesh.models.header import HeaderInfo
from aecmesh.parser.decoder import token_to_value
from aecmesh.parser.tokenizer import tokenize

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float], None]

MAX_ENTITY_ID = 0xFFFFFFFF

_SKIP_RE = re.compile(r"(?:\s+|/\*.*?\*/)*", re.DOTALL)
_STOP_RE = re.compile(r"'|/\*|;")
_PREFIX_RE = re.compile(r"#(\d+)\s*=\s*([A-Za-z_][A-Za-z0-9_]*)\s*\(")
_KEYWORD_RE = re.compile(r"([A-Za-z_][A-Za-z0-9_-]*)")
# Start of the next record after a malformed one: a ``#id =`` at line start
_RESYNC_RE = re.compile(r"[\n;][ \t\r]*(?=#\d+\s*=)")

# Returned by EntityScanner._read_record for ENDSEC;
_END_OF_SECTION = object()


def find_terminator(text: str, pos: int, end: int) -> int:
    """Return the index of the ``;`` ending the statement at *pos*, or -1.

    Semicolons inside string literals and comments are skipped.
    """
    while True:
        m = _STOP_RE.search(text, pos, end)
        if m is None:
            return -1
        token = m.group(0)
        if token == ";":
            return m.start()
        if token == "/*":
            close = text.find("*/", m.end(), end)
            if close < 0:
                return -1
            pos = close + 2
            continue
        # string literal, '' is an escaped quote
        i = m.end()
        while True:
            close = text.find("'", i, end)
            if close < 0:
                return -1
            if close + 1 < end and text[close + 1] == "'":
                i = close + 2
                continue
            break
        pos = close + 1


def _closing_paren(text: str, start: int, stop: int) -> int:
    """Index of the last significant character before *stop* if it is ``)``.

    Blanks and ``/* */`` comments between the parenthesis and the
    terminator are skipped.
    """
    i = stop - 1
    while i >= start:
        if text[i].isspace():
            i -= 1
        elif text[i] == "/" and i - 1 > start and text[i - 1] == "*":
            opener = text.rfind("/*", start, i - 1)
            if opener < 0:
                return -1
            i = opener - 1
        else:
            break
    if i >= start and text[i] == ")":
        return i
    return -1


def _iter_statements(text: str, start: int, end: int) -> Iterator[tuple[int, int]]:
    """Yield ``(start, terminator)`` for each statement; terminator may be -1."""
    pos = start
    while True:
        pos = _SKIP_RE.match(text, pos, end).end()
        if pos >= end:
            return
        semi = find_terminator(text, pos, end)
        yield pos, semi
        if semi < 0:
            return
        pos = semi + 1


def _keyword(text: str, pos: int, stop: int) -> str | None:
    m = _KEYWORD_RE.match(text, pos, stop)
    return m.group(1).upper() if m else None


class EntityScanner:
    """Iterate the entity records of one STEP file.

    Parameters
    ----------
    text:
        The whole file, or just its DATA section body.  When a ``DATA;``
        statement is present, scanning starts after it and stops at the
        matching ``ENDSEC;``.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self._data_start: int | None = None

    @property
    def data_start(self) -> int:
        if self._data_start is None:
            self._data_start = self._find_data_section()
        return self._data_start

    def _find_data_section(self) -> int:
        text = self.text
        for pos, semi in _iter_statements(text, 0, len(text)):
            if text.startswith("#", pos):
                return 0
            stop = semi if semi >= 0 else len(text)
            if _keyword(text, pos, stop) == "DATA":
                return semi + 1 if semi >= 0 else len(text)
        return 0

    def scan(
        self,
        on_progress: ProgressCallback | None = None,
        chunk_bytes: int = DEFAULT_PROGRESS_CHUNK_BYTES,
        errors: list[StructuralError] | None = None,
    ) -> Iterator[RawEntity]:
        """Yield :class:`RawEntity` records in file order.

        A record whose prefix is not ``#id = TYPE(`` raises
        :class:`StructuralError` at the offset of its first character.  When
        an *errors* list is given the error is appended instead and scanning
        resumes at the next ``#id =`` that starts a line, or after the
        record's terminator when there is none before it.

        *on_progress* is called as ``on_progress("scanning", fraction)``
        after every *chunk_bytes* of input and once with ``1.0`` at the end.
        Exceptions raised by the callback propagate and stop the scan.
        """
        text = self.text
        total = len(text) or 1
        end = len(text)
        next_report = self.data_start + chunk_bytes
        pos = self.data_start

        while True:
            pos = _SKIP_RE.match(text, pos, end).end()
            if pos >= end:
                break
            semi = find_terminator(text, pos, end)
            stop = semi if semi >= 0 else end
            resume = stop + 1
            try:
                record = self._read_record(pos, semi, stop)
            except StructuralError as exc:
                if errors is None:
                    raise
                logger.warning("Skipping malformed record: %s", exc)
                errors.append(exc)
                record = None
                resync = _RESYNC_RE.search(text, pos + 1, stop)
                if resync is not None:
                    resume = resync.end()

            if record is _END_OF_SECTION:
                break
            if record is not None:
                yield record

            consumed = min(resume, end)
            if on_progress is not None and consumed >= next_report:
                on_progress("scanning", min(consumed / total, 1.0))
                next_report = consumed + chunk_bytes
            pos = resume

        if on_progress is not None:
            on_progress("scanning", 1.0)

    def scan_collect(
        self,
        on_progress: ProgressCallback | None = None,
        chunk_bytes: int = DEFAULT_PROGRESS_CHUNK_BYTES,
    ) -> tuple[list[RawEntity], list[StructuralError]]:
        """Scan past malformed records, returning ``(records, errors)``."""
        errors: list[StructuralError] = []
        records = list(self.scan(on_progress, chunk_bytes, errors))
        return records, errors

    def _read_record(self, pos: int, semi: int, stop: int) -> RawEntity | object:
        text = self.text
        m = _PREFIX_RE.match(text, pos, stop)
        if m is None:
            if _keyword(text, pos, stop) == "ENDSEC":
                return _END_OF_SECTION
            raise StructuralError("malformed entity record, expected '#id = TYPE('", pos)
        if semi < 0:
            raise StructuralError(f"entity #{m.group(1)} has no ';' terminator", pos)
        entity_id = int(m.group(1))
        if entity_id > MAX_ENTITY_ID:
            raise StructuralError(f"entity id {entity_id} exceeds 32 bits", pos)
        close = _closing_paren(text, m.end(), stop)
        if close < 0:
            raise StructuralError(f"entity #{entity_id} is not closed by ')'", pos)
        return RawEntity(
            id=entity_id,
            type_name=m.group(2).upper(),
            offset=pos,
            args_start=m.end(),
            args_end=close,
        )

    # Convenience queries --------------------------------------------------

    def build_index(self) -> dict[str, list[int]]:
        """Map type name to entity ids, in file order."""
        index: dict[str, list[int]] = {}
        for record in self.scan(errors=[]):
            index.setdefault(record.type_name, []).append(record.id)
        return index

    def count_by_type(self) -> dict[str, int]:
        return dict(Counter(record.type_name for record in self.scan(errors=[])))

    def find_by_type(self, type_name: str) -> list[int]:
        wanted = type_name.upper()
        return [r.id for r in self.scan(errors=[]) if r.type_name == wanted]

    def entity_count(self) -> int:
        return sum(1 for _ in self.scan(errors=[]))


# ---------------------------------------------------------------------------
# Header section
# ---------------------------------------------------------------------------

def _plain(value: object) -> object:
    if isinstance(value, TypedValue):
        return _plain(value.value)
    if isinstance(value, EnumValue):
        return value.value
    if isinstance(value, tuple):
        return [_plain(v) for v in value]
    return value


def _str_or_none(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


def _str_list(value: object) -> list[str]:
    if isinstance(value, list):
        return [v for v in value if isinstance(v, str) and v]
    if isinstance(value, str) and value:
        return [value]
    return []


def parse_header(text: str) -> HeaderInfo:
    """Read FILE_DESCRIPTION, FILE_NAME and FILE_SCHEMA from the header.

    Missing or malformed header records leave the matching fields empty;
    a file without a header yields an empty :class:`HeaderInfo`.
    """
    info = HeaderInfo()
    for pos, semi in _iter_statements(text, 0, len(text)):
        if semi < 0 or text.startswith("#", pos):
            break
        keyword = _keyword(text, pos, semi)
        if keyword == "DATA":
            break
        if keyword not in ("FILE_DESCRIPTION", "FILE_NAME", "FILE_SCHEMA"):
            continue
        open_paren = text.find("(", pos, semi)
        close = _closing_paren(text, open_paren + 1, semi)
        if open_paren < 0 or close < 0:
            logger.warning("Malformed %s header record at byte %d", keyword, pos)
            continue
        try:
            args = [_plain(token_to_value(t)) for t in tokenize(text, open_paren + 1, close)]
        except TokenError:
            logger.warning("Could not tokenize %s header record", keyword, exc_info=True)
            continue
        args += [None] * (7 - len(args))

        if keyword == "FILE_DESCRIPTION":
            info.description = _str_list(args[0])
            info.implementation_level = _str_or_none(args[1])
        elif keyword == "FILE_NAME":
            info.name = _str_or_none(args[0])
            info.timestamp = _str_or_none(args[1])
            info.author = _str_list(args[2])
            info.organization = _str_list(args[3])
            info.preprocessor = _str_or_none(args[4])
            info.originating_system = _str_or_none(args[5])
            info.authorization = _str_or_none(args[6])
        else:
            info.schemas = _str_list(args[0])
    return info


def read_step_file(path: str | Path) -> str:
    """Read a STEP file as text, UTF-8 first with a latin-1 fallback."""
    data = Path(path).read_bytes()
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        logger.info("%s is not UTF-8, decoding as latin-1", path)
        text = data.decode("latin-1")
    logger.info("Read %s (%d bytes)", path, len(data))
    return text
