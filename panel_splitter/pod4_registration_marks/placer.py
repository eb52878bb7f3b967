"""
Mark Placer - registration mark positions and geometry per tile corner
"""

import logging
from typing import Any, Dict, List, Optional

import svgwrite
from svgwrite.container import Group

from .schemas import Corner, MarkPosition
from ..pod2_grid_planning.schemas import GridSpec, LayoutSettings, MarkKind, MarkPlacement, RegistrationMarkSpec

logger = logging.getLogger(__name__)

MARK_CLEARANCE = 1.0
MARKS_GROUP_ID = "registration-marks"


class MarkPlacer:
    """
    Places and renders registration marks.

    Positions are expressed in the tile document's local frame, where the
    usable area spans (margin, margin) to (margin + effective size).
    """

    def __init__(self, mark_spec: Optional[RegistrationMarkSpec] = None):
        """
        Initialize mark placer

        Args:
            mark_spec: Mark configuration
        """
        self.mark_spec = mark_spec or RegistrationMarkSpec()

    def corner_offset(self, overlap: float = 0.0) -> float:
        """
        Distance between a margin corner and the mark centre

        Args:
            overlap: Tile overlap, used by the overlap-band placement

        Returns:
            Offset in mm (inward for inside-margin, outward for overlap band)
        """
        default = self.mark_spec.size / 2 + MARK_CLEARANCE
        if self.mark_spec.placement == MarkPlacement.ON_OVERLAP_BAND and overlap > 0:
            return overlap / 2
        return default

    def compute_mark_positions(self, grid: GridSpec, layout: LayoutSettings) -> List[MarkPosition]:
        """
        Compute one mark position per corner

        Args:
            grid: Grid specification
            layout: Layout settings (margin and overlap)

        Returns:
            Positions ordered top-left, top-right, bottom-left, bottom-right
        """
        margin = layout.margin
        left = margin
        top = margin
        right = margin + grid.effective_tile_width
        bottom = margin + grid.effective_tile_height
        offset = self.corner_offset(layout.overlap)

        if self.mark_spec.placement == MarkPlacement.INSIDE_MARGIN:
            xs = (left + offset, right - offset)
            ys = (top + offset, bottom - offset)
        else:
            # Overlap band: adjacent tiles' marks coincide once assembled
            xs = (left - offset, right + offset)
            ys = (top - offset, bottom + offset)

        return [
            MarkPosition(x=xs[0], y=ys[0], corner=Corner.TOP_LEFT),
            MarkPosition(x=xs[1], y=ys[0], corner=Corner.TOP_RIGHT),
            MarkPosition(x=xs[0], y=ys[1], corner=Corner.BOTTOM_LEFT),
            MarkPosition(x=xs[1], y=ys[1], corner=Corner.BOTTOM_RIGHT),
        ]

    def _stroke(self) -> Dict[str, Any]:
        return {
            "fill": "none",
            "stroke": self.mark_spec.stroke_color,
            "stroke_width": self.mark_spec.stroke_width,
        }

    def _crosshair(self, dwg: svgwrite.Drawing, group: Group, pos: MarkPosition):
        half = self.mark_spec.size / 2
        group.add(dwg.line(start=(pos.x - half, pos.y), end=(pos.x + half, pos.y), **self._stroke()))
        group.add(dwg.line(start=(pos.x, pos.y - half), end=(pos.x, pos.y + half), **self._stroke()))

    def _pinhole(self, dwg: svgwrite.Drawing, group: Group, pos: MarkPosition):
        group.add(dwg.circle(center=(pos.x, pos.y), r=self.mark_spec.hole_diameter / 2, **self._stroke()))

    def _l_mark(self, dwg: svgwrite.Drawing, group: Group, pos: MarkPosition):
        leg = self.mark_spec.size
        x, y = pos.x, pos.y
        # Legs point into the tile interior from each corner
        dx = leg if pos.corner in (Corner.TOP_LEFT, Corner.BOTTOM_LEFT) else -leg
        dy = leg if pos.corner in (Corner.TOP_LEFT, Corner.TOP_RIGHT) else -leg
        d = f"M {x} {y + dy} L {x} {y} L {x + dx} {y}"
        group.add(dwg.path(d=d, **self._stroke()))

    def render_marks(
        self,
        positions: List[MarkPosition],
        dwg: Optional[svgwrite.Drawing] = None
    ) -> Group:
        """
        Render marks as an SVG group

        Args:
            positions: Mark centres
            dwg: Drawing used as element factory

        Returns:
            Group with id "registration-marks"
        """
        dwg = dwg or svgwrite.Drawing(profile="full", debug=False)
        group = dwg.g(id=MARKS_GROUP_ID)

        renderers = {
            MarkKind.CROSSHAIR: self._crosshair,
            MarkKind.PINHOLE: self._pinhole,
            MarkKind.L_MARK: self._l_mark,
        }
        render = renderers[self.mark_spec.kind]
        for pos in positions:
            render(dwg, group, pos)

        logger.debug(f"Rendered {len(positions)} {self.mark_spec.kind.value} mark(s)")
        return group

    def marks_for_preview(self, positions: List[MarkPosition]) -> List[Dict[str, Any]]:
        """Plain mark descriptors for an external preview renderer"""
        return [
            {
                "kind": self.mark_spec.kind.value,
                "x": pos.x,
                "y": pos.y,
                "corner": pos.corner.value,
                "size": self.mark_spec.size,
                "stroke_width": self.mark_spec.stroke_width,
                "hole_diameter": self.mark_spec.hole_diameter,
            }
            for pos in positions
        ]


def compute_mark_positions(grid: GridSpec, layout: LayoutSettings) -> List[MarkPosition]:
    """Functional form of MarkPlacer.compute_mark_positions"""
    return MarkPlacer(layout.registration_marks).compute_mark_positions(grid, layout)


def render_marks(
    positions: List[MarkPosition],
    mark_spec: RegistrationMarkSpec,
    dwg: Optional[svgwrite.Drawing] = None
) -> Group:
    """Functional form of MarkPlacer.render_marks"""
    return MarkPlacer(mark_spec).render_marks(positions, dwg)
