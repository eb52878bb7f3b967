"""
Tile Writer - emits a self-contained SVG document per tile
"""

import logging
import xml.etree.ElementTree as ET
from typing import List, Optional, Tuple

import svgwrite
from svgwrite.container import Group

from ..common.config import settings
from ..pod1_document_ingestion.scene import NodeKind, SceneNode
from ..pod2_grid_planning.schemas import GridSpec, LayoutSettings
from ..pod2_grid_planning.transform import CoordinateTransformer
from ..pod4_registration_marks.placer import MarkPlacer

logger = logging.getLogger(__name__)

GUIDE_GROUP_ID = "guides"
CONTENT_GROUP_ID = "tile-content"
CLIP_PATH_ID = "tile-clip"


class SourceFragment:
    """Verbatim source markup placed in an svgwrite tree (drawings run with debug=False)"""
    elementname = "g"

    def __init__(self, markup: str):
        self.markup = markup

    def get_xml(self) -> ET.Element:
        return ET.fromstring(self.markup)


class TileDocumentWriter:
    """
    Builds the output document of one tile.

    The document is sized to the bed in mm with viewBox (0, 0, bed width,
    bed height). Tile geometry stays in native units inside a group scaled
    by the transform's factors, so the usable area lands at
    (margin, margin) to (margin + effective size) in mm.
    """

    def __init__(self, layout: LayoutSettings, grid: GridSpec, transform: CoordinateTransformer):
        self.layout = layout
        self.grid = grid
        self.transform = transform

    def _new_drawing(self) -> svgwrite.Drawing:
        width = self.layout.bed_width
        height = self.layout.bed_height
        return svgwrite.Drawing(
            size=(f"{width:g}mm", f"{height:g}mm"),
            viewBox=f"0 0 {width:g} {height:g}",
            profile="full",
            debug=False,
        )

    def _usable_rect_native(self) -> Tuple[float, float, float, float]:
        """Usable area in the translated native frame (x, y, width, height)"""
        t = self.transform
        return (
            t.length_to_native_x(self.layout.margin),
            t.length_to_native_y(self.layout.margin),
            t.length_to_native_x(self.grid.effective_tile_width),
            t.length_to_native_y(self.grid.effective_tile_height),
        )

    def render_node(self, dwg: svgwrite.Drawing, node: SceneNode):
        """Scene node as an svgwrite element"""
        if node.kind == NodeKind.CONTAINER:
            group = dwg.g(id=node.node_id) if node.node_id else dwg.g()
            for child in node.children:
                group.add(self.render_node(dwg, child))
            return group

        attrs = node.style.svg_attributes()
        if node.node_id:
            attrs["id"] = node.node_id
        return dwg.path(d=node.path_data(), **attrs)

    def render_guides(self, dwg: svgwrite.Drawing) -> Group:
        """Border of the usable area plus corner crosshairs, in mm"""
        margin = self.layout.margin
        w = self.grid.effective_tile_width
        h = self.grid.effective_tile_height
        cross = settings.guide_cross_mm
        stroke = {
            "fill": "none",
            "stroke": settings.guide_color,
            "stroke_width": settings.guide_stroke_mm,
        }

        group = dwg.g(id=GUIDE_GROUP_ID)
        group.add(dwg.rect(insert=(margin, margin), size=(w, h), **stroke))
        for cx, cy in ((margin, margin), (margin + w, margin), (margin, margin + h), (margin + w, margin + h)):
            group.add(dwg.line(start=(cx - cross, cy), end=(cx + cross, cy), **stroke))
            group.add(dwg.line(start=(cx, cy - cross), end=(cx, cy + cross), **stroke))
        return group

    def write(
        self,
        nodes: List[SceneNode],
        offset: Optional[Tuple[float, float]] = None,
        masked: bool = False
    ) -> str:
        """
        Serialize a tile document

        Args:
            nodes: Geometry to include, in native units
            offset: Native translation applied as a transform attribute
                instead of to the path data
            masked: Clip the geometry to the usable area

        Returns:
            SVG document text
        """
        dwg = self._new_drawing()
        t = self.transform
        content = dwg.g(id=CONTENT_GROUP_ID, transform=f"scale({t.scale_x:.10g} {t.scale_y:.10g})")

        target = content
        if masked:
            x, y, w, h = self._usable_rect_native()
            clip = dwg.defs.add(dwg.clipPath(id=CLIP_PATH_ID))
            clip.add(dwg.rect(insert=(x, y), size=(w, h)))
            target = dwg.g(clip_path=f"url(#{CLIP_PATH_ID})")
            content.add(target)

        if offset is not None:
            shifted = dwg.g(transform=f"translate({offset[0]:.10g} {offset[1]:.10g})")
            target.add(shifted)
            target = shifted

        for node in nodes:
            if masked and node.markup is not None:
                # The mask leaves source elements untouched
                target.add(SourceFragment(node.markup))
            else:
                target.add(self.render_node(dwg, node))

        dwg.add(content)
        if self.layout.guides_enabled:
            dwg.add(self.render_guides(dwg))

        mark_spec = self.layout.registration_marks
        if mark_spec.enabled:
            placer = MarkPlacer(mark_spec)
            positions = placer.compute_mark_positions(self.grid, self.layout)
            dwg.add(placer.render_marks(positions, dwg))

        return dwg.tostring()
