"""Tests for the aecmesh command line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from aecmesh.cli import main
from aecmesh.export.gltf import GLTFExporter


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_RECORDS = [
    "#1=IFCPROJECT('p',$,'Demo',$,$,$,$,$,#2);",
    "#2=IFCUNITASSIGNMENT((#3));",
    "#3=IFCSIUNIT(*,.LENGTHUNIT.,$,.METRE.);",
    "#4=IFCSITE('s',$,'Site',$,$,$,$,$,.ELEMENT.,$,$,$,$,$);",
    "#5=IFCBUILDINGSTOREY('l0',$,'Ground',$,$,$,$,$,.ELEMENT.,0.);",
    "#6=IFCRELAGGREGATES('a1',$,$,$,#1,(#4));",
    "#7=IFCRELAGGREGATES('a2',$,$,$,#4,(#5));",
    "#10=IFCCARTESIANPOINT((0.,0.,0.));",
    "#11=IFCAXIS2PLACEMENT3D(#10,$,$);",
    "#12=IFCLOCALPLACEMENT($,#11);",
    "#13=IFCDIRECTION((0.,0.,1.));",
    "#20=IFCRECTANGLEPROFILEDEF(.AREA.,$,$,2.,1.);",
    "#21=IFCEXTRUDEDAREASOLID(#20,#11,#13,3.);",
    "#22=IFCSHAPEREPRESENTATION($,'Body','SweptSolid',(#21));",
    "#23=IFCPRODUCTDEFINITIONSHAPE($,$,(#22));",
    "#24=IFCWALL('w',$,'Wall',$,$,#12,#23,$);",
    "#25=IFCRELCONTAINEDINSPATIALSTRUCTURE('c',$,$,$,(#24),#5);",
]


def _make_file(tmp_path: Path) -> Path:
    body = "\n".join(_RECORDS)
    text = (
        "ISO-10303-21;\nHEADER;\n"
        "FILE_DESCRIPTION(('ViewDefinition [CoordinationView]'),'2;1');\n"
        "FILE_NAME('demo.ifc','2024-05-01T10:00:00',(''),(''),'pre','Modeller 1.0','');\n"
        "FILE_SCHEMA(('IFC4'));\nENDSEC;\n"
        f"DATA;\n{body}\nENDSEC;\nEND-ISO-10303-21;\n"
    )
    path = tmp_path / "demo.ifc"
    path.write_text(text, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# info / tree
# ---------------------------------------------------------------------------

class TestInfo:
    def test_text_report(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]):
        assert main(["info", str(_make_file(tmp_path))]) == 0
        out = capsys.readouterr().out
        assert "Schema:       IFC4" in out
        assert "Entities:     17" in out
        assert "IFCWALL" in out
        assert "Storeys:" in out
        assert "#5 Ground" in out

    def test_top_limits_types(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]):
        assert main(["info", str(_make_file(tmp_path)), "--top", "2"]) == 0
        assert "more" in capsys.readouterr().out

    def test_json_summary(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]):
        assert main(["info", str(_make_file(tmp_path)), "--json"]) == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["schema"] == "IFC4"
        assert summary["entities"] == 17
        assert summary["spatial_nodes"] == 4

    def test_missing_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]):
        assert main(["info", str(tmp_path / "absent.ifc")]) == 2
        assert "error:" in capsys.readouterr().err


class TestTree:
    def test_indented_structure(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]):
        assert main(["tree", str(_make_file(tmp_path))]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines == [
            "IFCPROJECT #1 Demo",
            "  IFCSITE #4 Site",
            "    IFCBUILDINGSTOREY #5 Ground",
            "      IFCWALL #24 Wall",
        ]


# ---------------------------------------------------------------------------
# mesh
# ---------------------------------------------------------------------------

class TestMesh:
    def test_obj_export(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]):
        out_dir = tmp_path / "out"
        code = main(["mesh", str(_make_file(tmp_path)), "--format", "obj", "--out", str(out_dir)])
        assert code == 0
        assert (out_dir / "model.obj").exists()
        assert "1 meshes, 12 triangles, 0 skipped" in capsys.readouterr().out

    def test_json_export_with_workers(self, tmp_path: Path):
        out_dir = tmp_path / "out"
        args = ["mesh", str(_make_file(tmp_path)), "--format", "json", "--out", str(out_dir), "--workers", "2"]
        assert main(args) == 0
        scene = json.loads((out_dir / "scene.json").read_text(encoding="utf-8"))
        assert [m["name"] for m in scene["meshes"]] == ["IFCWALL#24"]

    def test_failed_export(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ):
        monkeypatch.setattr(GLTFExporter, "is_available", lambda self: False)
        code = main(["mesh", str(_make_file(tmp_path)), "--format", "gltf", "--out", str(tmp_path / "out")])
        assert code == 1
        assert "pygltflib" in capsys.readouterr().err

    def test_config_option(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]):
        config = tmp_path / "settings.json"
        config.write_text(json.dumps({"build_spatial_tree": False}), encoding="utf-8")
        code = main(["--config", str(config), "info", str(_make_file(tmp_path)), "--json"])
        assert code == 0
        assert json.loads(capsys.readouterr().out)["spatial_nodes"] == 0
