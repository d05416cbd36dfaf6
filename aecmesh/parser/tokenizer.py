"""Lex one entity's argument span into a token tree.

The tokenizer knows STEP syntax only, not IFC semantics.  It works on
absolute offsets into the original text so that error positions point into
the file, and it never slices the file apart from the individual literals.
Nested lists are handled with an explicit stack rather than recursion.
"""

from __future__ import annotations

import enum
import re
from typing import Any, NamedTuple

from aecmesh.errors import TokenError


class TokenKind(enum.Enum):
    REF = "ref"
    STRING = "string"
    BINARY = "binary"
    INTEGER = "integer"
    FLOAT = "float"
    ENUM = "enum"
    LIST = "list"
    TYPED = "typed"
    NULL = "null"
    DERIVED = "derived"


class Token(NamedTuple):
    """One value in the tree.

    ``value`` holds the literal (int id, str, number), a tuple of child
    tokens for lists, or ``(name, children)`` for typed values.
    """

    kind: TokenKind
    value: Any
    offset: int


_SKIP_RE = re.compile(r"(?:\s+|/\*.*?\*/)*", re.DOTALL)
_REF_RE = re.compile(r"#(\d+)")
_ENUM_RE = re.compile(r"\.([A-Za-z0-9_]+)\.")
_NUMBER_RE = re.compile(r"[+-]?\d+(?:\.\d*)?(?:[eE][+-]?\d+)?")
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_BINARY_RE = re.compile(r'"([0-9A-Fa-f]*)"')

_ESCAPE_RE = re.compile(
    r"''"
    r"|\\\\"
    r"|\\S\\(.)"
    r"|\\X\\([0-9A-Fa-f]{2})"
    r"|\\X2\\((?:[0-9A-Fa-f]{4})*)\\X0\\"
    r"|\\X4\\((?:[0-9A-Fa-f]{8})*)\\X0\\"
    r"|\\P[A-Z]?\\",
    re.DOTALL,
)


def _replace_escape(match: re.Match[str]) -> str:
    text = match.group(0)
    if text == "''":
        return "'"
    if text == "\\\\":
        return "\\"
    page_char, x1, x2, x4 = match.groups()
    if page_char is not None:
        return chr(ord(page_char) + 128)
    if x1 is not None:
        return chr(int(x1, 16))
    if x2 is not None:
        return bytes.fromhex(x2).decode("utf-16-be", errors="replace")
    if x4 is not None:
        return bytes.fromhex(x4).decode("utf-32-be", errors="replace")
    # \P?\ code page switch, no output
    return ""


def decode_step_string(raw: str) -> str:
    """Decode the body of a STEP string literal (without the outer quotes)."""
    if "'" not in raw and "\\" not in raw:
        return raw
    return _ESCAPE_RE.sub(_replace_escape, raw)


def _scan_string(text: str, pos: int, end: int) -> tuple[str, int]:
    """Return ``(decoded, next_pos)`` for the string literal opening at *pos*."""
    i = pos + 1
    while True:
        close = text.find("'", i, end)
        if close < 0:
            raise TokenError("unterminated string", pos)
        if close + 1 < end and text[close + 1] == "'":
            i = close + 2
            continue
        return decode_step_string(text[pos + 1:close]), close + 1


def tokenize(text: str, start: int = 0, end: int | None = None) -> list[Token]:
    """Tokenize ``text[start:end]`` as a comma separated argument list.

    The span is the inside of an entity's outer parentheses.  Returns the
    top-level tokens; raises :class:`TokenError` with an absolute offset on
    the first construct that is not a STEP value.
    """
    if end is None:
        end = len(text)

    # Each frame is (items, typed name or None, offset of the opener)
    stack: list[tuple[list[Token], str | None, int]] = []
    current: list[Token] = []
    expect_value = True
    just_opened = True
    pos = start

    while True:
        pos = _SKIP_RE.match(text, pos, end).end()
        if pos >= end:
            if stack:
                raise TokenError("unclosed parenthesis", stack[-1][2])
            if expect_value and not just_opened:
                raise TokenError("expected value after ','", pos)
            return current

        c = text[pos]

        if not expect_value:
            if c == ",":
                expect_value = True
                pos += 1
                continue
            if c != ")":
                raise TokenError(f"expected ',' or ')' but found {c!r}", pos)

        if c == ")":
            if expect_value and not just_opened:
                raise TokenError("expected value after ','", pos)
            if not stack:
                raise TokenError("unbalanced ')'", pos)
            items = tuple(current)
            current, name, opened_at = stack.pop()
            if name is None:
                current.append(Token(TokenKind.LIST, items, opened_at))
            else:
                current.append(Token(TokenKind.TYPED, (name, items), opened_at))
            expect_value = False
            just_opened = False
            pos += 1
            continue

        just_opened = False

        if c == "(":
            stack.append((current, None, pos))
            current = []
            just_opened = True
            pos += 1
            continue

        if c == "#":
            m = _REF_RE.match(text, pos, end)
            if m is None:
                raise TokenError("malformed entity reference", pos)
            current.append(Token(TokenKind.REF, int(m.group(1)), pos))
            pos = m.end()
        elif c == "'":
            value, next_pos = _scan_string(text, pos, end)
            current.append(Token(TokenKind.STRING, value, pos))
            pos = next_pos
        elif c == "$":
            current.append(Token(TokenKind.NULL, None, pos))
            pos += 1
        elif c == "*":
            current.append(Token(TokenKind.DERIVED, None, pos))
            pos += 1
        elif c == ".":
            m = _ENUM_RE.match(text, pos, end)
            if m is None:
                raise TokenError("malformed enumeration", pos)
            current.append(Token(TokenKind.ENUM, m.group(1), pos))
            pos = m.end()
        elif c.isdigit() or c in "+-":
            m = _NUMBER_RE.match(text, pos, end)
            if m is None:
                raise TokenError("malformed number", pos)
            literal = m.group(0)
            if "." in literal or "e" in literal or "E" in literal:
                current.append(Token(TokenKind.FLOAT, float(literal), pos))
            else:
                current.append(Token(TokenKind.INTEGER, int(literal), pos))
            pos = m.end()
        elif c == '"':
            m = _BINARY_RE.match(text, pos, end)
            if m is None:
                raise TokenError("malformed binary literal", pos)
            current.append(Token(TokenKind.BINARY, m.group(1), pos))
            pos = m.end()
        elif c.isalpha() or c == "_":
            m = _IDENT_RE.match(text, pos, end)
            after = _SKIP_RE.match(text, m.end(), end).end()
            if after >= end or text[after] != "(":
                raise TokenError(f"bare identifier {m.group(0)!r} is not a value", pos)
            stack.append((current, m.group(0).upper(), pos))
            current = []
            just_opened = True
            pos = after + 1
            continue
        else:
            raise TokenError(f"unexpected character {c!r}", pos)

        expect_value = False
