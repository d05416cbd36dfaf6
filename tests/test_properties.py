"""Tests for property sets, quantities, element identity and project units."""

from __future__ import annotations

import pytest

from aecmesh.parser.properties import PropertyIndex, build_property_index, element_identity
from aecmesh.parser.resolver import EntityResolver
from aecmesh.parser.units import extract_angle_scale, extract_unit_scale, unit_symbol


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_PROPERTIES = [
    "#10=IFCWALL('w1',$,'Wall',$,'Partition',$,$,'T-01');",
    "#11=IFCWALL('w2',$,'Other wall',$,$,$,$,$);",
    "#20=IFCPROPERTYSINGLEVALUE('IsExternal',$,IFCBOOLEAN(.T.),$);",
    "#21=IFCPROPERTYSINGLEVALUE('FireRating',$,IFCLABEL('EI60'),$);",
    "#22=IFCPROPERTYENUMERATEDVALUE('Status',$,(IFCLABEL('NEW'),IFCLABEL('EXISTING')),$);",
    "#23=IFCPROPERTYBOUNDEDVALUE('Range',$,IFCREAL(10.),IFCREAL(2.),$,$);",
    "#24=IFCPROPERTYSINGLEVALUE('Width',$,IFCLENGTHMEASURE(250.),#60);",
    "#30=IFCPROPERTYSET('ps',$,'Pset_WallCommon',$,(#20,#21,#22,#23,#24,#999));",
    "#40=IFCQUANTITYLENGTH('Length',$,$,5.,$);",
    "#41=IFCQUANTITYCOUNT('Anchors',$,$,4.,$);",
    "#42=IFCQUANTITYMYSTERY('Mystery',$,$,42.5);",
    "#43=IFCQUANTITYAREA('NetSideArea',$,#61,12.5,$);",
    "#50=IFCELEMENTQUANTITY('eq',$,'Qto_WallBaseQuantities',$,$,(#40,#41,#42,#43));",
    "#60=IFCSIUNIT(*,.LENGTHUNIT.,.MILLI.,.METRE.);",
    "#61=IFCSIUNIT(*,.AREAUNIT.,$,.SQUARE_METRE.);",
    "#70=IFCRELDEFINESBYPROPERTIES('r1',$,$,$,(#10,#11),#30);",
    "#71=IFCRELDEFINESBYPROPERTIES('r2',$,$,$,(#10),#50);",
    "#72=IFCRELDEFINESBYPROPERTIES('r3',$,$,$,(#10),#998);",
]


def _make_resolver(lines: list[str]) -> EntityResolver:
    return EntityResolver.from_text("\n".join(lines))


def _make_index() -> PropertyIndex:
    return build_property_index(_make_resolver(_PROPERTIES))


# ---------------------------------------------------------------------------
# Property sets
# ---------------------------------------------------------------------------

class TestPropertySets:
    def test_sets_attached_in_file_order(self):
        index = _make_index()
        names = [s.name for s in index.sets_for(10)]
        assert names == ["Pset_WallCommon", "Qto_WallBaseQuantities"]
        assert len(index) == 2
        assert sorted(index.element_ids()) == [10, 11]
        assert index.sets_for(12) == []

    def test_single_values_unwrapped(self):
        pset = _make_index().property_sets(10)[0]
        assert pset.get("IsExternal") is True
        assert pset.get("FireRating") == "EI60"
        assert pset.get("Width") == 250.0

    def test_property_kinds(self):
        pset = _make_index().property_sets(10)[0]
        by_name = {p.name: p for p in pset.properties}
        assert by_name["Status"].kind == "enumerated"
        assert by_name["Status"].value == ["NEW", "EXISTING"]
        assert by_name["Range"].value == {"upper": 10.0, "lower": 2.0}
        assert by_name["Width"].unit == "mm"

    def test_missing_member_skipped(self):
        pset = _make_index().property_sets(10)[0]
        assert len(pset.properties) == 5

    def test_shared_definition_read_once(self):
        index = _make_index()
        assert index.sets_for(11)[0] is index.sets_for(10)[0]

    def test_get_value_and_flatten(self):
        index = _make_index()
        assert index.get_value(10, "Pset_WallCommon", "FireRating") == "EI60"
        assert index.get_value(10, "Pset_Missing", "FireRating") is None
        flat = index.flatten(10)
        assert flat["Pset_WallCommon.IsExternal"] is True
        assert flat["Qto_WallBaseQuantities.Length"] == 5.0


# ---------------------------------------------------------------------------
# Quantities
# ---------------------------------------------------------------------------

class TestQuantities:
    def test_known_quantities(self):
        qset = _make_index().quantity_sets(10)[0]
        assert qset.is_quantity_set
        by_name = {q.name: q for q in qset.quantities}
        assert by_name["Length"].kind == "length"
        assert by_name["Length"].unit == "m"
        assert by_name["Anchors"].value == 4
        assert isinstance(by_name["Anchors"].value, int)
        assert by_name["NetSideArea"].unit == "m²"

    def test_unknown_quantity_kept(self):
        qset = _make_index().quantity_sets(10)[0]
        mystery = [q for q in qset.quantities if q.name == "Mystery"][0]
        assert mystery.kind == "unknown"
        assert mystery.value == 42.5
        assert mystery.type_name == "IFCQUANTITYMYSTERY"

    def test_element_without_quantities(self):
        assert _make_index().quantity_sets(11) == []


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

class TestIdentity:
    def test_root_attributes(self):
        identity = element_identity(_make_resolver(_PROPERTIES), 10)
        assert identity.global_id == "w1"
        assert identity.name == "Wall"
        assert identity.object_type == "Partition"
        assert identity.tag == "T-01"
        assert identity.type_name == "IFCWALL"

    def test_spatial_elements_have_no_tag(self):
        resolver = _make_resolver(["#1=IFCBUILDINGSTOREY('s',$,'L1',$,$,$,$,'Level one',$,0.);"])
        assert element_identity(resolver, 1).tag is None


# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------

class TestUnits:
    @pytest.mark.parametrize(
        "unit, expected",
        [
            ("IFCSIUNIT(*,.LENGTHUNIT.,$,.METRE.)", 1.0),
            ("IFCSIUNIT(*,.LENGTHUNIT.,.MILLI.,.METRE.)", 0.001),
            ("IFCSIUNIT(*,.LENGTHUNIT.,.CENTI.,.METRE.)", 0.01),
        ],
    )
    def test_si_length_unit(self, unit: str, expected: float):
        resolver = _make_resolver([
            "#1=IFCPROJECT('p',$,'P',$,$,$,$,$,#2);",
            "#2=IFCUNITASSIGNMENT((#4,#3));",
            f"#3={unit};",
            "#4=IFCSIUNIT(*,.AREAUNIT.,$,.SQUARE_METRE.);",
        ])
        assert extract_unit_scale(resolver) == pytest.approx(expected)

    def test_conversion_based_unit(self):
        resolver = _make_resolver([
            "#1=IFCPROJECT('p',$,'P',$,$,$,$,$,#2);",
            "#2=IFCUNITASSIGNMENT((#3));",
            "#3=IFCCONVERSIONBASEDUNIT(#5,.LENGTHUNIT.,'FOOT',#4);",
            "#4=IFCMEASUREWITHUNIT(IFCLENGTHMEASURE(0.3048),#6);",
            "#5=IFCDIMENSIONALEXPONENTS(1,0,0,0,0,0,0);",
            "#6=IFCSIUNIT(*,.LENGTHUNIT.,$,.METRE.);",
        ])
        assert extract_unit_scale(resolver) == pytest.approx(0.3048)

    def test_defaults_to_metres(self):
        assert extract_unit_scale(_make_resolver(["#1=IFCWALL('w',$,$,$,$,$,$,$);"])) == 1.0
        resolver = _make_resolver(["#1=IFCPROJECT('p',$,'P',$,$,$,$,$,$);"])
        assert extract_unit_scale(resolver) == 1.0

    def test_degree_angle_unit(self):
        resolver = _make_resolver([
            "#1=IFCPROJECT('p',$,'P',$,$,$,$,$,#2);",
            "#2=IFCUNITASSIGNMENT((#3,#4));",
            "#3=IFCSIUNIT(*,.LENGTHUNIT.,.MILLI.,.METRE.);",
            "#4=IFCCONVERSIONBASEDUNIT(#5,.PLANEANGLEUNIT.,'DEGREE',#6);",
            "#5=IFCDIMENSIONALEXPONENTS(0,0,0,0,0,0,0);",
            "#6=IFCMEASUREWITHUNIT(IFCPLANEANGLEMEASURE(0.017453292519943295),#7);",
            "#7=IFCSIUNIT(*,.PLANEANGLEUNIT.,$,.RADIAN.);",
        ])
        assert extract_angle_scale(resolver) == pytest.approx(0.017453292519943295)
        assert extract_unit_scale(resolver) == pytest.approx(0.001)

    def test_radian_angle_unit(self):
        resolver = _make_resolver([
            "#1=IFCPROJECT('p',$,'P',$,$,$,$,$,#2);",
            "#2=IFCUNITASSIGNMENT((#3));",
            "#3=IFCSIUNIT(*,.PLANEANGLEUNIT.,$,.RADIAN.);",
        ])
        assert extract_angle_scale(resolver) == 1.0

    def test_no_angle_unit(self):
        resolver = _make_resolver([
            "#1=IFCPROJECT('p',$,'P',$,$,$,$,$,#2);",
            "#2=IFCUNITASSIGNMENT((#3));",
            "#3=IFCSIUNIT(*,.LENGTHUNIT.,$,.METRE.);",
        ])
        assert extract_angle_scale(resolver) is None

    def test_unit_symbols(self):
        resolver = _make_resolver(_PROPERTIES)
        assert unit_symbol(resolver.resolve(60)) == "mm"
        assert unit_symbol(resolver.resolve(61)) == "m²"
        assert unit_symbol(None) is None
