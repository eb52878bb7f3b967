"""
Tile Clipper - trims scene geometry to one tile's usable area
"""

import logging
from typing import List, Optional, Union

from shapely.errors import GEOSException
from shapely.geometry import box
from shapely.geometry.polygon import orient
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from .indexer import PrimitiveIndex
from .schemas import ClipOutcome, ClipOutcomeKind, ClipResult
from .writer import TileDocumentWriter
from ..pod1_document_ingestion.scene import Bounds, NodeKind, PaintStyle, SceneNode, Subpath, subpaths_from_geometry
from ..pod2_grid_planning.schemas import ClipStrategy, GridSpec, LayoutSettings, Tile
from ..pod2_grid_planning.transform import CoordinateTransformer

logger = logging.getLogger(__name__)

# SVG stroke attributes -> shapely buffer styles
CAP_STYLES = {"butt": "flat", "round": "round", "square": "square"}
JOIN_STYLES = {"miter": "mitre", "round": "round", "bevel": "bevel"}
SVG_MITER_LIMIT = 4.0

_DIMENSIONS = {"Point": 0, "MultiPoint": 0, "LineString": 1, "LinearRing": 1, "Polygon": 2}


class DegenerateIntersection(Exception):
    """Intersection came back empty although the shapes overlap"""


def _intersect(geom: BaseGeometry, window: BaseGeometry) -> BaseGeometry:
    return geom.intersection(window)


def _interiors_meet(geom: BaseGeometry, window: BaseGeometry) -> bool:
    return geom.intersects(window) and not geom.touches(window)


def _parts_of_dimension(geom: BaseGeometry, dimension: int) -> List[BaseGeometry]:
    """Flatten a result, keeping only parts of the given dimension"""
    if geom is None or geom.is_empty:
        return []
    if hasattr(geom, "geoms"):
        return [p for part in geom.geoms for p in _parts_of_dimension(part, dimension)]
    return [geom] if _DIMENSIONS.get(geom.geom_type) == dimension else []


def _map_primitives(node: SceneNode, fn) -> SceneNode:
    if node.kind == NodeKind.CONTAINER:
        return node.model_copy(update={"children": [_map_primitives(c, fn) for c in node.children]})
    return fn(node)


def expand_stroke(prim: SceneNode) -> SceneNode:
    """
    Replace a primitive's stroke by a filled outline

    The outline is a buffer of the centre line by half the stroke width,
    which approximates the stroke but ignores dash patterns. A primitive
    that is also filled becomes a container of its fill and the outline.
    Primitives whose outline cannot be computed are returned unchanged.
    """
    style = prim.style
    if not style.has_stroke:
        return prim

    try:
        outlines = [
            sub.to_outline().buffer(
                style.stroke_width / 2,
                cap_style=CAP_STYLES.get(style.stroke_linecap or "butt", "flat"),
                join_style=JOIN_STYLES.get(style.stroke_linejoin or "miter", "mitre"),
                mitre_limit=SVG_MITER_LIMIT,
            )
            for sub in prim.subpaths
            if len(sub.points) >= 2
        ]
        outline = unary_union(outlines)
    except (GEOSException, ValueError) as e:
        logger.warning(f"Stroke expansion failed for {prim.node_id or 'primitive'}, keeping stroke: {e}")
        return prim

    subpaths = subpaths_from_geometry(outline)
    if not subpaths:
        return prim

    outline_style = PaintStyle(
        fill=style.stroke,
        fill_opacity=style.stroke_opacity,
        opacity=style.opacity,
        fill_rule="evenodd",
    )
    outline_node = SceneNode.from_subpaths(subpaths, outline_style, prim.node_id)
    if not style.has_fill:
        return outline_node

    fill_node = prim.model_copy(update={"style": style.model_copy(update={"stroke": None}), "node_id": None})
    return SceneNode.container([fill_node, outline_node])


def expand_strokes(scene: SceneNode) -> SceneNode:
    """
    Copy of the scene with every stroked primitive outlined

    The copy no longer carries source markup, so masked tiles render the
    outlined geometry instead of the original elements.
    """
    return _map_primitives(scene, expand_stroke).model_copy(update={"markup": None})


def _max_half_stroke(scene: SceneNode) -> float:
    widths = [p.style.stroke_width for p in scene.iter_primitives() if p.style.has_stroke]
    return max(widths) / 2 if widths else 0.0


class TileClipper:
    """
    Produces the geometry of each tile in its own local frame.

    Every clip_tile call builds its output from scratch; the prepared scene
    and its index are only read, so calls may run concurrently.
    """

    def __init__(self, layout: LayoutSettings):
        """
        Initialize tile clipper

        Args:
            layout: Layout settings for the run
        """
        self.layout = layout

    def prepare(self, scene: SceneNode) -> PrimitiveIndex:
        """
        Apply run-wide preprocessing and index the primitives

        Args:
            scene: Parsed scene in native units

        Returns:
            PrimitiveIndex shared by every tile of the run
        """
        if self.layout.expand_strokes:
            scene = expand_strokes(scene)
            logger.info("Expanded strokes to filled outlines")
        return PrimitiveIndex(scene, pad=_max_half_stroke(scene))

    def clip_primitive(self, prim: SceneNode, window: BaseGeometry) -> ClipOutcome:
        """
        Intersect one primitive with the crop window

        Closed runs are clipped as areas and open runs as lines. A boolean
        operation error, or an empty result for a primitive whose interior
        does meet the window, yields a fallback carrying an unmodified copy.
        """
        pieces: List[Subpath] = []
        try:
            for sub in prim.subpaths:
                geom = sub.to_shapely()
                dimension = _DIMENSIONS[geom.geom_type]
                result = _intersect(geom, window)
                parts = _parts_of_dimension(result, dimension)
                if not parts:
                    if _interiors_meet(geom, window):
                        raise DegenerateIntersection("empty intersection for overlapping shape")
                    continue
                if dimension == 2:
                    # Keep the source winding so nonzero fills still cut holes
                    sign = 1.0 if geom.exterior.is_ccw else -1.0
                    parts = [orient(part, sign) for part in parts]
                for part in parts:
                    pieces.extend(subpaths_from_geometry(part))
        except (GEOSException, ValueError, DegenerateIntersection) as e:
            return ClipOutcome(kind=ClipOutcomeKind.FALLBACK, node=prim.model_copy(deep=True), reason=str(e))

        node = SceneNode.from_subpaths(pieces, prim.style, prim.node_id)
        if node is None:
            return ClipOutcome(kind=ClipOutcomeKind.EMPTY)
        return ClipOutcome(kind=ClipOutcomeKind.EXACT, node=node)

    def simplify_node(self, node: SceneNode, tolerance: float) -> SceneNode:
        """Reduce vertex count of a primitive, keeping it unchanged if that fails"""
        subpaths: List[Subpath] = []
        try:
            for sub in node.subpaths:
                simplified = sub.to_shapely().simplify(tolerance, preserve_topology=True)
                subpaths.extend(subpaths_from_geometry(simplified))
        except GEOSException as e:
            logger.debug(f"Simplification skipped: {e}")
            return node
        if not subpaths:
            return node
        return node.model_copy(update={"subpaths": subpaths})

    def crop_window(self, tile: Tile, grid: GridSpec, transform: CoordinateTransformer) -> Bounds:
        """Tile's usable area in native coordinates (minx, miny, maxx, maxy)"""
        x, y, w, h = transform.rect_to_native(tile.x, tile.y, grid.effective_tile_width, grid.effective_tile_height)
        return (x, y, x + w, y + h)

    def clip_tile(
        self,
        source: Union[SceneNode, PrimitiveIndex],
        tile: Tile,
        grid: GridSpec,
        transform: CoordinateTransformer
    ) -> ClipResult:
        """
        Clip the scene to one tile

        Args:
            source: Scene, or the index returned by prepare
            tile: Tile to produce
            grid: Grid the tile belongs to
            transform: Physical <-> native transform of the document

        Returns:
            ClipResult with the finalized tile and its document
        """
        prepared = source if isinstance(source, PrimitiveIndex) else self.prepare(source)
        window = self.crop_window(tile, grid, transform)

        # Crop origin lands on (margin, margin) in the local frame
        dx = -window[0] + transform.length_to_native_x(self.layout.margin)
        dy = -window[1] + transform.length_to_native_y(self.layout.margin)

        if self.layout.clip_strategy == ClipStrategy.FAST_MASK:
            return self._clip_masked(prepared, tile, grid, transform, window, dx, dy)
        return self._clip_exact(prepared, tile, grid, transform, window, dx, dy)

    def _clip_exact(self, prepared, tile, grid, transform, window, dx, dy) -> ClipResult:
        window_geom = box(*window)
        kept: List[SceneNode] = []
        exact_count = 0
        fallback_count = 0

        for prim in prepared.candidates(window):
            outcome = self.clip_primitive(prim, window_geom)
            if not outcome.contributes:
                continue
            if outcome.kind == ClipOutcomeKind.FALLBACK:
                fallback_count += 1
                logger.warning(f"{tile.id}: kept unclipped copy of {prim.node_id or 'primitive'} ({outcome.reason})")
            else:
                exact_count += 1
            kept.append(outcome.node.translated(dx, dy))

        if self.layout.simplify_tolerance > 0 and kept:
            tolerance = transform.length_to_native_x(self.layout.simplify_tolerance)
            kept = [self.simplify_node(node, tolerance) for node in kept]

        is_empty = not kept
        geometry_bounds: Optional[Bounds] = None
        if kept:
            minx, miny, maxx, maxy = SceneNode.container(kept).bounds()
            geometry_bounds = (
                minx * transform.scale_x,
                miny * transform.scale_y,
                maxx * transform.scale_x,
                maxy * transform.scale_y,
            )

        svg_content = None
        if not is_empty or self.layout.export_empty_tiles:
            svg_content = TileDocumentWriter(self.layout, grid, transform).write(kept)

        has_unsafe_fallback = fallback_count > 0
        logger.debug(f"{tile.id}: {exact_count} exact, {fallback_count} fallback")
        return ClipResult(
            tile=tile.model_copy(update={
                "is_empty": is_empty,
                "has_unsafe_fallback": has_unsafe_fallback,
                "svg_content": svg_content,
            }),
            svg_content=svg_content,
            is_empty=is_empty,
            has_unsafe_fallback=has_unsafe_fallback,
            exact_count=exact_count,
            fallback_count=fallback_count,
            geometry_bounds=geometry_bounds,
        )

    def _clip_masked(self, prepared, tile, grid, transform, window, dx, dy) -> ClipResult:
        # Emptiness is judged on bounding boxes; the mask itself never fails
        is_empty = not prepared.has_content(window)

        svg_content = None
        if not is_empty or self.layout.export_empty_tiles:
            writer = TileDocumentWriter(self.layout, grid, transform)
            svg_content = writer.write([prepared.scene], offset=(dx, dy), masked=True)

        return ClipResult(
            tile=tile.model_copy(update={"is_empty": is_empty, "has_unsafe_fallback": False, "svg_content": svg_content}),
            svg_content=svg_content,
            is_empty=is_empty,
        )


def clip_tile(
    scene: SceneNode,
    tile: Tile,
    grid: GridSpec,
    layout: LayoutSettings,
    transform: CoordinateTransformer
) -> ClipResult:
    """Functional form of TileClipper.clip_tile"""
    return TileClipper(layout).clip_tile(scene, tile, grid, transform)
