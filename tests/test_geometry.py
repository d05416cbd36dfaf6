"""Tests for the geometry processors, the router and product tessellation."""

from __future__ import annotations

import math

import pytest

from aecmesh.config import ParserSettings
from aecmesh.errors import (
    InvalidAttribute,
    ProfileError,
    TriangulationError,
    UnsupportedType,
)
from aecmesh.geometry.processors import GeometryProcessor
from aecmesh.geometry.router import (
    GeometryRouter,
    opening_map,
    product_ids_with_geometry,
    tessellate,
)
from aecmesh.parser.model import parse
from aecmesh.parser.resolver import EntityResolver


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _common(length_unit: str = "$") -> list[str]:
    return [
        "#1=IFCPROJECT('proj',$,'Project',$,$,$,$,$,#2);",
        "#2=IFCUNITASSIGNMENT((#3));",
        f"#3=IFCSIUNIT(*,.LENGTHUNIT.,{length_unit},.METRE.);",
        "#10=IFCCARTESIANPOINT((0.,0.,0.));",
        "#11=IFCAXIS2PLACEMENT3D(#10,$,$);",
        "#12=IFCLOCALPLACEMENT($,#11);",
        "#13=IFCDIRECTION((0.,0.,1.));",
    ]


_BOX = [
    "#20=IFCRECTANGLEPROFILEDEF(.AREA.,$,$,2.,1.);",
    "#21=IFCEXTRUDEDAREASOLID(#20,#11,#13,3.);",
    "#22=IFCSHAPEREPRESENTATION($,'Body','SweptSolid',(#21));",
    "#23=IFCPRODUCTDEFINITIONSHAPE($,$,(#22));",
    "#24=IFCWALL('wall',$,'Wall',$,$,#12,#23,$);",
    "#30=IFCCARTESIANPOINT((5.,0.,0.));",
    "#31=IFCAXIS2PLACEMENT3D(#30,$,$);",
    "#32=IFCLOCALPLACEMENT(#12,#31);",
    "#33=IFCCOLUMN('col',$,'Column',$,$,#32,#23,$);",
]


def _brep(flip_top: bool = False) -> list[str]:
    top = "#111=IFCPOLYLOOP((#104,#105,#106,#107));"
    top_bound = "#121=IFCFACEOUTERBOUND(#111,.T.);"
    if flip_top:
        top = "#111=IFCPOLYLOOP((#107,#106,#105,#104));"
        top_bound = "#121=IFCFACEOUTERBOUND(#111,.F.);"
    return [
        "#100=IFCCARTESIANPOINT((0.,0.,0.));",
        "#101=IFCCARTESIANPOINT((1.,0.,0.));",
        "#102=IFCCARTESIANPOINT((1.,1.,0.));",
        "#103=IFCCARTESIANPOINT((0.,1.,0.));",
        "#104=IFCCARTESIANPOINT((0.,0.,1.));",
        "#105=IFCCARTESIANPOINT((1.,0.,1.));",
        "#106=IFCCARTESIANPOINT((1.,1.,1.));",
        "#107=IFCCARTESIANPOINT((0.,1.,1.));",
        "#110=IFCPOLYLOOP((#100,#103,#102,#101));",
        top,
        "#112=IFCPOLYLOOP((#100,#101,#105,#104));",
        "#113=IFCPOLYLOOP((#103,#107,#106,#102));",
        "#114=IFCPOLYLOOP((#100,#104,#107,#103));",
        "#115=IFCPOLYLOOP((#101,#102,#106,#105));",
        "#120=IFCFACEOUTERBOUND(#110,.T.);",
        top_bound,
        "#122=IFCFACEOUTERBOUND(#112,.T.);",
        "#123=IFCFACEOUTERBOUND(#113,.T.);",
        "#124=IFCFACEOUTERBOUND(#114,.T.);",
        "#125=IFCFACEOUTERBOUND(#115,.T.);",
        "#130=IFCFACE((#120));",
        "#131=IFCFACE((#121));",
        "#132=IFCFACE((#122));",
        "#133=IFCFACE((#123));",
        "#134=IFCFACE((#124));",
        "#135=IFCFACE((#125));",
        "#140=IFCCLOSEDSHELL((#130,#131,#132,#133,#134,#135));",
        "#141=IFCFACETEDBREP(#140);",
        "#142=IFCSHAPEREPRESENTATION($,'Body','Brep',(#141));",
        "#143=IFCPRODUCTDEFINITIONSHAPE($,$,(#142));",
        "#144=IFCSLAB('slab',$,'Slab',$,$,#12,#143,$,$);",
    ]


_FACE_SETS = [
    "#150=IFCCARTESIANPOINTLIST3D(((0.,0.,0.),(1.,0.,0.),(1.,1.,0.),(0.,1.,0.)));",
    "#151=IFCTRIANGULATEDFACESET(#150,$,.F.,((1,2,3),(1,3,4)),$);",
    "#152=IFCTRIANGULATEDFACESET(#150,$,.F.,((1,2,9)),$);",
    "#153=IFCTRIANGULATEDFACESET(#150,$,$,((1,2,3)),(4,3,2));",
    "#154=IFCTRIANGULATEDFACESET(#150,((0.,1.,0.),(0.,1.,0.),(0.,1.,0.),(0.,1.,0.)),$,((1,2,3)),$);",
]

_REVOLVED = [
    "#160=IFCCARTESIANPOINT((2.,0.));",
    "#161=IFCAXIS2PLACEMENT2D(#160,$);",
    "#162=IFCRECTANGLEPROFILEDEF(.AREA.,$,#161,1.,1.);",
    "#163=IFCDIRECTION((0.,1.,0.));",
    "#164=IFCAXIS1PLACEMENT(#10,#163);",
    "#165=IFCREVOLVEDAREASOLID(#162,#11,#164,6.283185307179586);",
    "#166=IFCREVOLVEDAREASOLID(#162,#11,#164,180.);",
    "#167=IFCREVOLVEDAREASOLID(#162,#11,#164,0.);",
    "#168=IFCREVOLVEDAREASOLID(#162,#11,#164,5.);",
]

_SWEPT = [
    "#171=IFCCARTESIANPOINT((0.,0.,5.));",
    "#172=IFCPOLYLINE((#10,#171));",
    "#173=IFCSWEPTDISKSOLID(#172,0.5,$,$,$);",
    "#174=IFCSWEPTDISKSOLID(#172,0.,$,$,$);",
    "#175=IFCPOLYLINE((#10,#10));",
    "#176=IFCSWEPTDISKSOLID(#175,0.5,$,$,$);",
]

_MAPPED = [
    "#180=IFCREPRESENTATIONMAP(#11,#22);",
    "#181=IFCCARTESIANPOINT((10.,0.,0.));",
    "#182=IFCCARTESIANTRANSFORMATIONOPERATOR3D($,$,#181,$,$);",
    "#183=IFCMAPPEDITEM(#180,#182);",
    "#184=IFCSHAPEREPRESENTATION($,'Body','MappedRepresentation',(#183));",
    "#185=IFCPRODUCTDEFINITIONSHAPE($,$,(#184));",
    "#186=IFCFURNISHINGELEMENT('desk',$,'Desk',$,$,#12,#185,$);",
]

_AXIS_ONLY = [
    "#190=IFCSHAPEREPRESENTATION($,'Axis','Curve3D',(#172));",
    "#191=IFCPRODUCTDEFINITIONSHAPE($,$,(#190));",
    "#192=IFCBEAM('beam',$,'Beam',$,$,#12,#191,$);",
]


def _make_text(length_unit: str = "$") -> str:
    lines = (
        _common(length_unit) + _BOX + _brep() + _FACE_SETS + _REVOLVED + _SWEPT
        + _MAPPED + _AXIS_ONLY
    )
    return "\n".join(lines)


def _make_resolver(lines: list[str] | None = None) -> EntityResolver:
    text = "\n".join(lines) if lines is not None else _make_text()
    return EntityResolver.from_text(text)


def _opening_model(
    profile_position: str = "$", depth: float = 3.0
) -> list[str]:
    """A 4 x 0.2 x 3 wall with one rectangular opening through its caps."""
    return _common() + [
        "#200=IFCRECTANGLEPROFILEDEF(.AREA.,$,$,4.,0.2);",
        "#201=IFCEXTRUDEDAREASOLID(#200,#11,#13,3.);",
        "#202=IFCSHAPEREPRESENTATION($,'Body','SweptSolid',(#201));",
        "#203=IFCPRODUCTDEFINITIONSHAPE($,$,(#202));",
        "#204=IFCWALL('host',$,'Host',$,$,#12,#203,$);",
        "#208=IFCCARTESIANPOINT((2.,0.));",
        "#209=IFCAXIS2PLACEMENT2D(#208,$);",
        f"#210=IFCRECTANGLEPROFILEDEF(.AREA.,$,{profile_position},1.,0.1);",
        f"#211=IFCEXTRUDEDAREASOLID(#210,#11,#13,{depth!r});",
        "#212=IFCSHAPEREPRESENTATION($,'Body','SweptSolid',(#211));",
        "#213=IFCPRODUCTDEFINITIONSHAPE($,$,(#212));",
        "#214=IFCOPENINGELEMENT('open',$,$,$,$,#12,#213,$,$);",
        "#215=IFCRELVOIDSELEMENT('v',$,$,$,#204,#214);",
    ]


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class TestDispatch:
    def test_supported_types(self):
        router = GeometryRouter()
        assert router.supported_types == [
            "IFCEXTRUDEDAREASOLID",
            "IFCFACETEDBREP",
            "IFCREVOLVEDAREASOLID",
            "IFCSWEPTDISKSOLID",
            "IFCTRIANGULATEDFACESET",
        ]
        assert router.supports("IFCFACETEDBREP")
        assert not router.supports("IFCWALL")

    def test_unsupported_type(self):
        with pytest.raises(UnsupportedType) as exc:
            GeometryRouter().process(10, _make_resolver())
        assert exc.value.type_name == "IFCCARTESIANPOINT"

    def test_processor_base_is_abstract(self):
        with pytest.raises(TypeError):
            GeometryProcessor()  # type: ignore[abstract]


# ---------------------------------------------------------------------------
# Processors
# ---------------------------------------------------------------------------

class TestExtrudedAreaSolid:
    def test_box(self):
        mesh = GeometryRouter().process(21, _make_resolver())
        assert mesh.triangle_count == 12
        assert mesh.volume() == pytest.approx(6.0)
        lo, hi = mesh.bounds()
        assert lo == pytest.approx((-1.0, -0.5, 0.0))
        assert hi == pytest.approx((1.0, 0.5, 3.0))

    def test_unit_scale_applied(self):
        mesh = GeometryRouter(unit_scale=0.5).process(21, _make_resolver())
        assert mesh.volume() == pytest.approx(6.0 * 0.125)


class TestFacetedBrep:
    def test_unit_cube(self):
        mesh = GeometryRouter().process(141, _make_resolver())
        assert mesh.triangle_count == 12
        assert mesh.volume() == pytest.approx(1.0)

    def test_reversed_bound_orientation(self):
        resolver = _make_resolver(_common() + _brep(flip_top=True))
        mesh = GeometryRouter().process(141, resolver)
        assert mesh.volume() == pytest.approx(1.0)

    def test_unsupported_loop_skips_face(self):
        lines = _common() + _brep() + ["#199=IFCEDGELOOP(());"]
        lines = [
            "#120=IFCFACEOUTERBOUND(#199,.T.);" if line.startswith("#120=") else line
            for line in lines
        ]
        mesh = GeometryRouter().process(141, _make_resolver(lines))
        assert mesh.triangle_count == 10

    def test_no_usable_faces(self):
        lines = _common() + _brep() + ["#199=IFCEDGELOOP(());"]
        replaced = {
            "#120=": "#120=IFCFACEOUTERBOUND(#199,.T.);",
            "#140=": "#140=IFCCLOSEDSHELL((#130));",
        }
        lines = [replaced.get(line[:5], line) for line in lines]
        with pytest.raises(TriangulationError):
            GeometryRouter().process(141, _make_resolver(lines))


class TestTriangulatedFaceSet:
    def test_quad(self):
        mesh = GeometryRouter().process(151, _make_resolver())
        assert mesh.triangle_count == 2
        assert mesh.vertex_count == 4
        assert mesh.indices == [0, 1, 2, 0, 2, 3]
        assert mesh.normal(0) == pytest.approx((0.0, 0.0, 1.0))

    def test_index_out_of_range(self):
        with pytest.raises(InvalidAttribute) as exc:
            GeometryRouter().process(152, _make_resolver())
        assert exc.value.index == 3

    def test_point_index_remap(self):
        mesh = GeometryRouter().process(153, _make_resolver())
        assert mesh.indices == [3, 2, 1]

    def test_explicit_normals(self):
        mesh = GeometryRouter().process(154, _make_resolver())
        assert mesh.normal(0) == pytest.approx((0.0, 1.0, 0.0))


class TestRevolvedAreaSolid:
    def test_full_revolution(self):
        mesh = GeometryRouter().process(165, _make_resolver())
        # 4 profile edges x 24 steps x 2 triangles, no caps
        assert mesh.triangle_count == 192
        assert 11.5 < mesh.volume() < 12.6

    def test_half_revolution_in_degrees(self):
        mesh = GeometryRouter().process(166, _make_resolver())
        # 4 edges x 12 steps x 2 triangles, plus two capped ends
        assert mesh.triangle_count == 100
        assert 5.7 < mesh.volume() < 6.3

    def test_zero_angle(self):
        with pytest.raises(ProfileError):
            GeometryRouter().process(167, _make_resolver())

    def test_declared_degrees(self):
        mesh = GeometryRouter(angle_scale=math.pi / 180.0).process(168, _make_resolver())
        # 5 degrees: 4 edges x 4 steps x 2 triangles, plus two capped ends
        assert mesh.triangle_count == 36

    def test_declared_radians_skip_degree_guess(self):
        mesh = GeometryRouter(angle_scale=1.0).process(166, _make_resolver())
        assert mesh.triangle_count == 192


class TestSweptDiskSolid:
    def test_straight_tube(self):
        mesh = GeometryRouter().process(173, _make_resolver())
        assert mesh.triangle_count == 48
        lo, hi = mesh.bounds()
        assert lo[2] == pytest.approx(0.0)
        assert hi[2] == pytest.approx(5.0)
        assert hi[0] == pytest.approx(0.5)
        # Regular 12-gon of radius 0.5 swept over 5
        assert mesh.volume() == pytest.approx(0.75 * 5.0)

    def test_non_positive_radius(self):
        with pytest.raises(InvalidAttribute) as exc:
            GeometryRouter().process(174, _make_resolver())
        assert exc.value.index == 1

    def test_degenerate_directrix(self):
        with pytest.raises(ProfileError):
            GeometryRouter().process(176, _make_resolver())


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

class TestProducts:
    def test_product_ids(self):
        assert product_ids_with_geometry(_make_resolver()) == [24, 33, 144, 186, 192]

    def test_element_mesh(self):
        mesh = GeometryRouter().process_element(24, _make_resolver())
        assert mesh.volume() == pytest.approx(6.0)

    def test_placement_chain(self):
        lo, hi = GeometryRouter().process_element(33, _make_resolver()).bounds()
        assert lo[0] == pytest.approx(4.0)
        assert hi[0] == pytest.approx(6.0)

    def test_mapped_item(self):
        lo, hi = GeometryRouter().process_element(186, _make_resolver()).bounds()
        assert lo[0] == pytest.approx(9.0)
        assert hi[0] == pytest.approx(11.0)

    def test_no_body_representation(self):
        with pytest.raises(InvalidAttribute):
            GeometryRouter().process_element(192, _make_resolver())

    def test_process_many_skips_failures(self):
        batch = GeometryRouter().process_many([21, 141, 152, 10], _make_resolver())
        assert sorted(batch.meshes) == [21, 141]
        assert sorted(batch.errors) == [10, 152]
        assert batch.success_count == 2
        assert batch.to_dict()["meshes"] == 2


# ---------------------------------------------------------------------------
# Openings
# ---------------------------------------------------------------------------

class TestOpenings:
    def test_opening_map(self):
        assert opening_map(_make_resolver(_opening_model())) == {204: [214]}

    def test_openings_are_not_products(self):
        assert product_ids_with_geometry(_make_resolver(_opening_model())) == [204]

    def test_through_opening(self):
        mesh = GeometryRouter().process_element(204, _make_resolver(_opening_model()))
        assert mesh.volume() == pytest.approx((0.8 - 0.1) * 3.0)

    def test_partial_opening(self):
        resolver = _make_resolver(_opening_model(depth=1.0))
        mesh = GeometryRouter().process_element(204, resolver)
        assert mesh.volume() == pytest.approx(0.8 * 3.0 - 0.1 * 1.0)

    def test_opening_outside_host_is_skipped(self):
        resolver = _make_resolver(_opening_model(profile_position="#209"))
        mesh = GeometryRouter().process_element(204, resolver)
        assert mesh.volume() == pytest.approx(0.8 * 3.0)


# ---------------------------------------------------------------------------
# Tessellating a parsed model
# ---------------------------------------------------------------------------

class TestTessellate:
    def test_all_products(self):
        batch = tessellate(parse(_make_text()))
        assert sorted(batch.meshes) == [24, 33, 144, 186]
        assert list(batch.errors) == [192]

    def test_selected_products(self):
        batch = tessellate(parse(_make_text()), element_ids=[144])
        assert list(batch.meshes) == [144]

    def test_unit_scale(self):
        model = parse(_make_text(".MILLI."))
        scaled = tessellate(model).meshes[24]
        assert scaled.bounds()[1] == pytest.approx((0.001, 0.0005, 0.003))
        raw = tessellate(model, ParserSettings(apply_unit_scale=False)).meshes[24]
        assert raw.bounds()[1] == pytest.approx((1.0, 0.5, 3.0))

    def test_project_angle_unit(self):
        lines = [
            "#1=IFCPROJECT('proj',$,'Project',$,$,$,$,$,#2);",
            "#2=IFCUNITASSIGNMENT((#3,#7));",
            "#3=IFCSIUNIT(*,.LENGTHUNIT.,$,.METRE.);",
            "#4=IFCSIUNIT(*,.PLANEANGLEUNIT.,$,.RADIAN.);",
            "#5=IFCMEASUREWITHUNIT(IFCPLANEANGLEMEASURE(0.017453292519943295),#4);",
            "#6=IFCDIMENSIONALEXPONENTS(0,0,0,0,0,0,0);",
            "#7=IFCCONVERSIONBASEDUNIT(#6,.PLANEANGLEUNIT.,'DEGREE',#5);",
        ] + _common()[3:] + _REVOLVED + [
            "#300=IFCSHAPEREPRESENTATION($,'Body','SweptSolid',(#168));",
            "#301=IFCPRODUCTDEFINITIONSHAPE($,$,(#300));",
            "#302=IFCMEMBER('m',$,'Member',$,$,#12,#301,$);",
        ]
        model = parse("\n".join(lines))
        assert model.angle_scale == pytest.approx(math.pi / 180.0)
        assert tessellate(model).meshes[302].triangle_count == 36

    def test_workers_give_same_result(self):
        model = parse(_make_text())
        single = tessellate(model)
        threaded = tessellate(model, ParserSettings(workers=4))
        assert sorted(threaded.meshes) == sorted(single.meshes)
        for entity_id, mesh in single.meshes.items():
            assert threaded.meshes[entity_id].positions == mesh.positions
