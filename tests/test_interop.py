"""Cross-checks against IfcOpenShell, when it is installed."""

from __future__ import annotations

from pathlib import Path

import pytest

from aecmesh.parser.model import parse_file

ifcopenshell = pytest.importorskip("ifcopenshell")


_IFC4 = """ISO-10303-21;
HEADER;
FILE_DESCRIPTION(('ViewDefinition [ReferenceView]'),'2;1');
FILE_NAME('interop.ifc','2024-05-01T10:00:00',(''),(''),'','','');
FILE_SCHEMA(('IFC4'));
ENDSEC;
DATA;
#1=IFCPROJECT('0YvctVUKr0kugbFTf53O9L',$,'Project',$,$,$,$,$,#2);
#2=IFCUNITASSIGNMENT((#3));
#3=IFCSIUNIT(*,.LENGTHUNIT.,.MILLI.,.METRE.);
#4=IFCBUILDINGSTOREY('1kTvXnbbzCWw8lcMd1dR4o',$,'Level 1',$,$,$,$,$,.ELEMENT.,0.);
#5=IFCWALL('2O2Frxt4X7Zf8NOew3FLOH',$,'Wall A',$,$,$,$,$,.STANDARD.);
#6=IFCWALL('3vB2YOyMX4xv5uCqZZG05x',$,'Wall B',$,$,$,$,$,.STANDARD.);
#7=IFCRELAGGREGATES('0Lz0jWgwP0WeRBQOkc_3uB',$,$,$,#1,(#4));
#8=IFCRELCONTAINEDINSPATIALSTRUCTURE('1DtgS3fY14pxhQ_Wk8qYbl',$,$,$,(#5,#6),#4);
ENDSEC;
END-ISO-10303-21;
"""


def _make_file(tmp_path: Path) -> Path:
    path = tmp_path / "interop.ifc"
    path.write_text(_IFC4, encoding="utf-8")
    return path


class TestAgainstIfcOpenShell:
    def test_same_walls(self, tmp_path: Path):
        path = _make_file(tmp_path)
        reference = ifcopenshell.open(str(path))
        model = parse_file(path)

        expected = sorted(w.GlobalId for w in reference.by_type("IfcWall"))
        ids = model.find_by_type_name("IFCWALL")
        assert sorted(model.identity(i).global_id for i in ids) == expected

    def test_same_schema_and_containment(self, tmp_path: Path):
        path = _make_file(tmp_path)
        reference = ifcopenshell.open(str(path))
        model = parse_file(path)

        assert model.header.schema_identifier == reference.schema
        storey = reference.by_type("IfcBuildingStorey")[0]
        contained = sorted(e.id() for rel in storey.ContainsElements for e in rel.RelatedElements)
        assert sorted(n.id for n in model.spatial_children(storey.id())) == contained
