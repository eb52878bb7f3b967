"""
Unit tests for the Tile Clipper (POD3)
"""

import pytest
from rtree import index as rtree_index
from shapely.errors import GEOSException
from shapely.geometry import Polygon

from panel_splitter.pod1_document_ingestion import (
    NodeKind,
    PaintStyle,
    SceneNode,
    Subpath,
    load_scene,
    parse_document,
)
from panel_splitter.pod2_grid_planning import (
    ClipStrategy,
    CoordinateTransformer,
    LayoutSettings,
    RegistrationMarkSpec,
    compute_grid,
)
from panel_splitter.pod3_tiling import ClipOutcomeKind, PrimitiveIndex, TileClipper, clip_tile, expand_strokes
from panel_splitter.pod3_tiling import clipper as clipper_module
from panel_splitter.pod3_tiling.indexer import FILL_FACTOR
from tests.conftest import make_svg


def _setup(document, **layout_options):
    layout = LayoutSettings(bed_width=300, bed_height=200, margin=5, **layout_options)
    grid = compute_grid(document.detected_width_mm, document.detected_height_mm, layout)
    transform = CoordinateTransformer.from_document(document)
    return layout, grid, transform, load_scene(document)


class TestExactTrim:
    """Test boolean clipping"""

    def test_full_cover_stays_inside_usable_area(self, full_cover_document):
        """Test clipped geometry lands on the margin-offset usable area"""
        layout, grid, transform, scene = _setup(full_cover_document)
        result = clip_tile(scene, grid.tiles[0], grid, layout, transform)

        assert not result.is_empty
        assert not result.has_unsafe_fallback
        assert result.exact_count == 1
        assert result.geometry_bounds == pytest.approx((5, 5, 295, 195))

    def test_every_tile_within_bed(self, full_cover_document):
        """Test every tile's geometry lies within the bed"""
        layout, grid, transform, scene = _setup(full_cover_document)
        clipper = TileClipper(layout)
        prepared = clipper.prepare(scene)
        for tile in grid.tiles:
            result = clipper.clip_tile(prepared, tile, grid, transform)
            minx, miny, maxx, maxy = result.geometry_bounds
            assert minx >= 5 - 1e-9 and miny >= 5 - 1e-9
            assert maxx <= 5 + tile.width + 1e-9
            assert maxy <= 5 + tile.height + 1e-9
            assert maxx <= 300 and maxy <= 200

    def test_scaled_document(self):
        """Test geometry bounds under a non-unit scale"""
        doc = parse_document(
            make_svg('<rect x="0" y="0" width="400" height="200"/>', width="200mm", height="100mm", view_box="0 0 400 200"),
            "scaled.svg",
        )
        layout, grid, transform, scene = _setup(doc)
        assert grid.total_tiles == 1
        result = clip_tile(scene, grid.tiles[0], grid, layout, transform)
        assert result.geometry_bounds == pytest.approx((5, 5, 205, 105))

    def test_view_box_origin(self):
        """Test a shifted viewBox maps onto the same local frame"""
        doc = parse_document(
            make_svg('<rect x="100" y="50" width="600" height="400"/>', view_box="100 50 600 400"),
            "shifted.svg",
        )
        layout, grid, transform, scene = _setup(doc)
        result = clip_tile(scene, grid.tiles[0], grid, layout, transform)
        assert result.geometry_bounds == pytest.approx((5, 5, 295, 195))

    def test_open_line_is_trimmed(self):
        """Test open subpaths clip as lines"""
        doc = parse_document(make_svg('<line x1="100" y1="100" x2="400" y2="100" stroke="black"/>'), "line.svg")
        layout, grid, transform, scene = _setup(doc)
        result = clip_tile(scene, grid.tiles[0], grid, layout, transform)
        assert result.geometry_bounds == pytest.approx((105, 105, 295, 105))

    def test_paint_is_copied(self):
        """Test clipped primitives keep their paint"""
        window = Polygon([(0, 0), (10, 0), (10, 10), (0, 10)])
        style = PaintStyle(fill="#123456", stroke="red", stroke_width=0.5, stroke_dasharray="2,1", opacity=0.5)
        prim = SceneNode.path(Subpath(points=[(5, 5), (20, 5), (20, 20), (5, 20)], closed=True), style, "shape")
        outcome = TileClipper(LayoutSettings()).clip_primitive(prim, window)
        assert outcome.kind == ClipOutcomeKind.EXACT
        assert outcome.node.style == style
        assert outcome.node.node_id == "shape"
        assert outcome.node.bounds() == pytest.approx((5, 5, 10, 10))

    def test_hole_keeps_opposite_winding(self):
        """Test compound path rings keep their orientation"""
        window = Polygon([(0, 0), (100, 0), (100, 100), (0, 100)])
        outer = Subpath(points=[(10, 10), (90, 10), (90, 90), (10, 90)], closed=True)
        inner = Subpath(points=[(30, 30), (30, 70), (70, 70), (70, 30)], closed=True)
        prim = SceneNode.compound([outer, inner])
        outcome = TileClipper(LayoutSettings()).clip_primitive(prim, window)
        rings = [sub.to_shapely().exterior.is_ccw for sub in outcome.node.subpaths]
        assert rings == [outer.to_shapely().exterior.is_ccw, inner.to_shapely().exterior.is_ccw]
        assert rings[0] != rings[1]

    def test_touching_primitive_is_empty(self):
        """Test shapes sharing only an edge with the window"""
        doc = parse_document(make_svg('<rect x="290" y="0" width="10" height="10"/>'), "edge.svg")
        layout, grid, transform, scene = _setup(doc)
        result = clip_tile(scene, grid.tiles[0], grid, layout, transform)
        assert result.is_empty
        assert not result.has_unsafe_fallback


class TestFallback:
    """Test recovery from boolean operation failures"""

    def test_intersection_error_keeps_unclipped_copy(self, full_cover_document, monkeypatch):
        """Test a failing intersection flags the tile"""
        def boom(geom, window):
            raise GEOSException("TopologyException: side location conflict")

        monkeypatch.setattr(clipper_module, "_intersect", boom)
        layout, grid, transform, scene = _setup(full_cover_document)
        result = clip_tile(scene, grid.tiles[0], grid, layout, transform)

        assert result.has_unsafe_fallback
        assert not result.is_empty
        assert result.fallback_count == 1
        assert result.tile.has_unsafe_fallback
        # The unclipped copy extends past the usable area
        assert result.geometry_bounds[2] > 295

    def test_empty_result_for_overlapping_shape(self, full_cover_document, monkeypatch):
        """Test an empty intersection for an overlapping shape counts as failure"""
        monkeypatch.setattr(clipper_module, "_intersect", lambda geom, window: Polygon())
        layout, grid, transform, scene = _setup(full_cover_document)
        result = clip_tile(scene, grid.tiles[0], grid, layout, transform)
        assert result.has_unsafe_fallback
        assert not result.is_empty

    def test_fallback_does_not_spread(self, monkeypatch):
        """Test only the failing primitive falls back"""
        body = '<rect id="bad" x="0" y="0" width="50" height="50"/><rect id="good" x="100" y="100" width="50" height="50"/>'
        doc = parse_document(make_svg(body), "two.svg")
        original = clipper_module._intersect

        def flaky(geom, window):
            if geom.bounds[0] == 0:
                raise GEOSException("boom")
            return original(geom, window)

        monkeypatch.setattr(clipper_module, "_intersect", flaky)
        layout, grid, transform, scene = _setup(doc)
        result = clip_tile(scene, grid.tiles[0], grid, layout, transform)
        assert result.exact_count == 1
        assert result.fallback_count == 1


class TestEmptyTiles:
    """Test tiles without content"""

    def test_empty_tile_has_no_document(self, corner_document):
        """Test empty tiles are omitted by default"""
        layout, grid, transform, scene = _setup(corner_document)
        result = clip_tile(scene, grid.tiles[1], grid, layout, transform)
        assert result.is_empty
        assert result.svg_content is None
        assert result.tile.is_empty

    def test_export_empty_tiles(self, corner_document):
        """Test empty tiles are emitted when requested"""
        layout, grid, transform, scene = _setup(corner_document, export_empty_tiles=True)
        result = clip_tile(scene, grid.tiles[1], grid, layout, transform)
        assert result.is_empty
        assert result.svg_content is not None
        assert 'width="300mm"' in result.svg_content


class TestTileDocument:
    """Test the emitted tile document"""

    def test_declared_size_is_bed(self, corner_document):
        """Test document size and viewBox"""
        layout, grid, transform, scene = _setup(corner_document)
        svg = clip_tile(scene, grid.tiles[0], grid, layout, transform).svg_content
        assert 'width="300mm"' in svg
        assert 'height="200mm"' in svg
        assert 'viewBox="0 0 300 200"' in svg
        assert 'id="square"' in svg

    def test_guides(self, corner_document):
        """Test guide overlay"""
        layout, grid, transform, scene = _setup(corner_document, guides_enabled=True)
        svg = clip_tile(scene, grid.tiles[0], grid, layout, transform).svg_content
        assert 'id="guides"' in svg
        assert 'stroke="red"' in svg

    def test_no_guides_by_default(self, corner_document):
        """Test guides are off unless enabled"""
        layout, grid, transform, scene = _setup(corner_document)
        svg = clip_tile(scene, grid.tiles[0], grid, layout, transform).svg_content
        assert 'id="guides"' not in svg

    def test_registration_marks_merged(self, corner_document):
        """Test marks are added when enabled"""
        layout, grid, transform, scene = _setup(
            corner_document, registration_marks=RegistrationMarkSpec(enabled=True)
        )
        svg = clip_tile(scene, grid.tiles[0], grid, layout, transform).svg_content
        assert 'id="registration-marks"' in svg
        assert svg.count("<line") == 8


class TestFastMask:
    """Test declarative clipping"""

    def test_mask_wraps_whole_scene(self, corner_document):
        """Test clip region and untouched path data"""
        layout, grid, transform, scene = _setup(corner_document, clip_strategy=ClipStrategy.FAST_MASK)
        result = clip_tile(scene, grid.tiles[0], grid, layout, transform)
        assert not result.is_empty
        assert not result.has_unsafe_fallback
        assert "<clipPath" in result.svg_content
        assert 'clip-path="url(#tile-clip)"' in result.svg_content
        assert 'id="square"' in result.svg_content
        assert "M 10.0000 10.0000" not in result.svg_content

    def test_mask_keeps_source_markup(self):
        """Test curves and transforms reach the tile unmodified"""
        body = (
            '<circle id="dot" cx="50" cy="50" r="40"/>'
            '<g transform="translate(100 0)"><path id="wave" d="M0 0 C0 10 10 10 10 0"/></g>'
            '<metadata>editor data</metadata>'
        )
        doc = parse_document(make_svg(body), "curves.svg")
        layout, grid, transform, scene = _setup(doc, clip_strategy=ClipStrategy.FAST_MASK)
        svg = clip_tile(scene, grid.tiles[0], grid, layout, transform).svg_content

        assert "<circle" in svg
        assert 'id="dot"' in svg and 'r="40"' in svg
        assert 'd="M0 0 C0 10 10 10 10 0"' in svg
        assert 'transform="translate(100 0)"' in svg
        assert " L " not in svg
        assert "editor data" not in svg

    def test_mask_with_expanded_strokes(self):
        """Test stroke expansion replaces the source markup"""
        doc = parse_document(
            make_svg('<line x1="0" y1="100" x2="600" y2="100" stroke="black" stroke-width="4"/>'),
            "stroke.svg",
        )
        layout, grid, transform, scene = _setup(doc, clip_strategy=ClipStrategy.FAST_MASK, expand_strokes=True)
        svg = clip_tile(scene, grid.tiles[0], grid, layout, transform).svg_content
        assert "<line" not in svg
        assert 'fill-rule="evenodd"' in svg

    def test_mask_never_flags_unsafe(self, full_cover_document, monkeypatch):
        """Test boolean failures cannot affect the mask strategy"""
        def boom(geom, window):
            raise GEOSException("boom")

        monkeypatch.setattr(clipper_module, "_intersect", boom)
        layout, grid, transform, scene = _setup(full_cover_document, clip_strategy=ClipStrategy.FAST_MASK)
        result = clip_tile(scene, grid.tiles[4], grid, layout, transform)
        assert not result.has_unsafe_fallback

    def test_mask_empty_tile(self, corner_document):
        """Test emptiness under the mask strategy"""
        layout, grid, transform, scene = _setup(corner_document, clip_strategy=ClipStrategy.FAST_MASK)
        result = clip_tile(scene, grid.tiles[-1], grid, layout, transform)
        assert result.is_empty
        assert result.svg_content is None


class TestSimplify:
    """Test vertex reduction"""

    def test_simplify_node(self):
        """Test nearly collinear vertices are dropped"""
        sub = Subpath(points=[(10, 10), (50, 10.001), (100, 10), (100, 100), (10, 100)], closed=True)
        node = SceneNode.path(sub)
        simplified = TileClipper(LayoutSettings()).simplify_node(node, 0.5)
        assert len(simplified.subpaths[0].points) == 4

    def test_simplify_applied_to_tiles(self):
        """Test the tolerance reduces output vertices"""
        points = " ".join(f"{x},{100 + (x % 2) * 0.01}" for x in range(10, 200))
        doc = parse_document(make_svg(f'<polyline points="{points}" fill="none" stroke="black"/>'), "wavy.svg")
        layout, grid, transform, scene = _setup(doc)
        plain = clip_tile(scene, grid.tiles[0], grid, layout, transform).svg_content
        layout, grid, transform, scene = _setup(doc, simplify_tolerance=0.5)
        reduced = clip_tile(scene, grid.tiles[0], grid, layout, transform).svg_content
        assert reduced.count(" L ") < plain.count(" L ")


class TestExpandStrokes:
    """Test stroke to outline conversion"""

    def test_stroke_becomes_fill(self):
        """Test a stroked line becomes a filled outline"""
        style = PaintStyle(fill=None, stroke="red", stroke_width=2)
        scene = SceneNode.container([SceneNode.path(Subpath(points=[(0, 0), (10, 0)]), style)])
        expanded = next(expand_strokes(scene).iter_primitives())
        assert expanded.style.fill == "red"
        assert expanded.style.stroke is None
        assert expanded.geometry().area == pytest.approx(20)

    def test_filled_and_stroked(self):
        """Test fill and outline are kept separately"""
        style = PaintStyle(fill="blue", stroke="black", stroke_width=1)
        square = Subpath(points=[(0, 0), (10, 0), (10, 10), (0, 10)], closed=True)
        expanded = expand_strokes(SceneNode.container([SceneNode.path(square, style)]))
        group = expanded.children[0]
        assert group.kind == NodeKind.CONTAINER
        fill, outline = group.children
        assert fill.style.fill == "blue" and fill.style.stroke is None
        assert outline.style.fill == "black"

    def test_unstroked_unchanged(self):
        """Test primitives without stroke pass through"""
        prim = SceneNode.path(Subpath(points=[(0, 0), (1, 0), (1, 1)], closed=True))
        assert expand_strokes(SceneNode.container([prim])).children[0] == prim

    def test_expanded_tile(self):
        """Test the clipper clips expanded outlines"""
        doc = parse_document(
            make_svg('<line x1="0" y1="100" x2="600" y2="100" stroke="black" stroke-width="4"/>'),
            "stroke.svg",
        )
        layout, grid, transform, scene = _setup(doc, expand_strokes=True)
        result = clip_tile(scene, grid.tiles[0], grid, layout, transform)
        assert result.geometry_bounds == pytest.approx((5, 103, 295, 107))


class TestPrimitiveIndex:
    """Test the spatial index"""

    def test_candidates_in_document_order(self):
        """Test query results keep scene order"""
        prims = [
            SceneNode.path(Subpath(points=[(x, 0), (x + 5, 0), (x + 5, 5)], closed=True), node_id=f"p{x}")
            for x in (0, 100, 10, 200)
        ]
        index = PrimitiveIndex(SceneNode.container(prims))
        assert len(index) == 4
        assert [p.node_id for p in index.candidates((0, 0, 120, 10))] == ["p0", "p100", "p10"]
        assert not index.has_content((300, 300, 400, 400))

    def test_quadratic_tree_properties(self):
        """Test the index builds as a quadratic R-tree with a valid fill factor"""
        prim = SceneNode.path(Subpath(points=[(0, 0), (5, 0), (5, 5)], closed=True))
        index = PrimitiveIndex(SceneNode.container([prim]))
        assert index.properties.variant == rtree_index.RT_Quadratic
        assert index.properties.fill_factor == pytest.approx(FILL_FACTOR)
        assert FILL_FACTOR < 0.5
        assert index.has_content((0, 0, 10, 10))

    def test_many_primitives(self):
        """Test node splits succeed past the default node capacity"""
        prims = [
            SceneNode.path(Subpath(points=[(x, 0), (x + 1, 0), (x + 1, 1)], closed=True), node_id=f"p{x}")
            for x in range(0, 1000, 2)
        ]
        index = PrimitiveIndex(SceneNode.container(prims))
        assert len(index) == 500
        assert [p.node_id for p in index.candidates((0.5, 0, 5.5, 1))] == ["p0", "p2", "p4"]
