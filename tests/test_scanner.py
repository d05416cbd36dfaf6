"""Tests for the entity scanner, the header reader and file loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from aecmesh.errors import StructuralError
from aecmesh.parser.scanner import (
    EntityScanner,
    find_terminator,
    parse_header,
    read_step_file,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_HEADER = """ISO-10303-21;
HEADER;
FILE_DESCRIPTION(('ViewDefinition [CoordinationView]'),'2;1');
FILE_NAME('demo.ifc','2024-01-01T00:00:00',('Author'),('Org'),'pre','app','');
FILE_SCHEMA(('IFC4'));
ENDSEC;
"""


def _make_step(*records: str) -> str:
    """Wrap entity records in a complete ISO-10303-21 file."""
    body = "\n".join(records)
    return f"{_HEADER}DATA;\n{body}\nENDSEC;\nEND-ISO-10303-21;\n"


_RECORDS = (
    "#1=IFCPROJECT('p',$,'Demo',$,$,$,$,$,$);",
    "#2=IFCWALL('w1',$,'Wall; A',$,$,$,$,$);",
    "/* a comment; with a semicolon */",
    "#3 = IFCWALL ( 'w2',$,'Wall B',$,$,$,$,$ ) ;",
    "#10=IFCSLAB('s',$,$,$,$,$,$,$);",
)


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

class TestScan:
    def test_records_in_file_order(self):
        text = _make_step(*_RECORDS)
        records = list(EntityScanner(text).scan())
        assert [r.id for r in records] == [1, 2, 3, 10]
        assert [r.type_name for r in records] == ["IFCPROJECT", "IFCWALL", "IFCWALL", "IFCSLAB"]

    def test_offsets_and_argument_span(self):
        text = _make_step(*_RECORDS)
        wall = list(EntityScanner(text).scan())[2]
        assert text[wall.offset] == "#"
        assert text.startswith("#3", wall.offset)
        assert text[wall.args_start:wall.args_end].strip() == "'w2',$,'Wall B',$,$,$,$,$"

    def test_data_section_only(self):
        text = "#1=IFCA(1);\n#2=IFCB('x');\n"
        scanner = EntityScanner(text)
        assert scanner.data_start == 0
        assert [r.type_name for r in scanner.scan()] == ["IFCA", "IFCB"]

    def test_lowercase_type_names_normalised(self):
        records = list(EntityScanner("#1=ifcWall($);").scan())
        assert records[0].type_name == "IFCWALL"

    def test_stops_at_endsec(self):
        text = _make_step("#1=IFCA(1);") + "#9=IFCB(2);\n"
        assert [r.id for r in EntityScanner(text).scan()] == [1]

    def test_empty_data_section(self):
        assert list(EntityScanner(_make_step()).scan()) == []

    def test_find_terminator_skips_strings_and_comments(self):
        text = "#1=IFCA('a;b') /* ; */ ;"
        assert find_terminator(text, 0, len(text)) == len(text) - 1
        assert find_terminator("#1=IFCA('open", 0, 13) == -1


# ---------------------------------------------------------------------------
# Malformed records
# ---------------------------------------------------------------------------

class TestMalformed:
    def test_strict_raises_at_record_start(self):
        text = _make_step("#1=IFCA(1);", "#5 BADSYNTAX;", "#6=IFCB(2);")
        with pytest.raises(StructuralError) as exc:
            list(EntityScanner(text).scan())
        assert exc.value.offset == text.index("#5 BADSYNTAX")

    def test_collected_errors_keep_scanning(self):
        text = _make_step("#1=IFCA(1);", "#5 BADSYNTAX;", "#6=IFCB(2);")
        errors: list[StructuralError] = []
        records = list(EntityScanner(text).scan(errors=errors))
        assert [r.id for r in records] == [1, 6]
        assert len(errors) == 1
        assert errors[0].offset == text.index("#5 BADSYNTAX")

    def test_missing_terminator(self):
        errors: list[StructuralError] = []
        records = list(EntityScanner("#1=IFCA(1);\n#2=IFCB(2)").scan(errors=errors))
        assert [r.id for r in records] == [1]
        assert "terminator" in errors[0].message

    def test_unterminated_bad_record_keeps_next_records(self):
        text = _make_step("#1=IFCA(1);", "#5 BADSYNTAX", "#6=IFCB(2);", "#7=IFCC(3);")
        errors: list[StructuralError] = []
        records = list(EntityScanner(text).scan(errors=errors))
        assert [r.id for r in records] == [1, 6, 7]
        assert [e.offset for e in errors] == [text.index("#5 BADSYNTAX")]

    def test_unterminated_bad_record_strict(self):
        text = _make_step("#1=IFCA(1);", "#5 BADSYNTAX", "#6=IFCB(2);")
        with pytest.raises(StructuralError) as exc:
            list(EntityScanner(text).scan())
        assert exc.value.offset == text.index("#5 BADSYNTAX")

    def test_comment_before_terminator(self):
        text = _make_step("#1=IFCA(1) /* trailing */;", "#2=IFCB(2);")
        records = list(EntityScanner(text).scan())
        assert [r.id for r in records] == [1, 2]
        assert text[records[0].args_start:records[0].args_end] == "1"

    def test_scan_collect(self):
        text = _make_step("#1=IFCA(1);", "#5 BADSYNTAX;", "#6=IFCB(2);")
        records, errors = EntityScanner(text).scan_collect()
        assert [r.id for r in records] == [1, 6]
        assert len(errors) == 1
        assert isinstance(errors[0], StructuralError)

    def test_missing_closing_paren(self):
        with pytest.raises(StructuralError):
            list(EntityScanner("#1=IFCA(1, 2;").scan())

    def test_id_too_large(self):
        errors: list[StructuralError] = []
        list(EntityScanner("#99999999999=IFCA(1);").scan(errors=errors))
        assert len(errors) == 1


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

class TestProgress:
    def test_fractions_increase_and_end_at_one(self):
        text = _make_step(*(f"#{i}=IFCA({i});" for i in range(1, 200)))
        calls: list[tuple[str, float]] = []
        list(EntityScanner(text).scan(lambda p, f: calls.append((p, f)), chunk_bytes=256))
        fractions = [f for _, f in calls]
        assert len(calls) > 2
        assert all(p == "scanning" for p, _ in calls)
        assert fractions == sorted(fractions)
        assert calls[-1] == ("scanning", 1.0)

    def test_callback_exception_aborts(self):
        text = _make_step(*(f"#{i}=IFCA({i});" for i in range(1, 200)))

        def _cancel(phase: str, fraction: float) -> None:
            raise RuntimeError("cancelled")

        with pytest.raises(RuntimeError, match="cancelled"):
            list(EntityScanner(text).scan(_cancel, chunk_bytes=64))


# ---------------------------------------------------------------------------
# Convenience queries
# ---------------------------------------------------------------------------

class TestQueries:
    def test_count_and_find(self):
        scanner = EntityScanner(_make_step(*_RECORDS))
        assert scanner.count_by_type() == {"IFCPROJECT": 1, "IFCWALL": 2, "IFCSLAB": 1}
        assert scanner.find_by_type("ifcwall") == [2, 3]
        assert scanner.entity_count() == 4
        assert scanner.build_index()["IFCSLAB"] == [10]


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------

class TestHeader:
    def test_header_fields(self):
        info = parse_header(_make_step(*_RECORDS))
        assert info.schema_identifier == "IFC4"
        assert info.description == ["ViewDefinition [CoordinationView]"]
        assert info.implementation_level == "2;1"
        assert info.name == "demo.ifc"
        assert info.author == ["Author"]
        assert info.organization == ["Org"]
        assert info.originating_system == "app"
        assert info.authorization is None

    def test_no_header(self):
        info = parse_header("#1=IFCA(1);")
        assert info.schema_identifier is None
        assert info.name is None


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

class TestReadFile:
    def test_utf8(self, tmp_path: Path):
        path = tmp_path / "model.ifc"
        path.write_text(_make_step("#1=IFCA('Straße');"), encoding="utf-8")
        assert "Straße" in read_step_file(path)

    def test_latin1_fallback(self, tmp_path: Path):
        path = tmp_path / "model.ifc"
        path.write_bytes(b"#1=IFCA('caf\xe9');")
        assert read_step_file(path) == "#1=IFCA('café');"
