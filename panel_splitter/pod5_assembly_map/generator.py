"""
Assembly Map Generator - overview of the tile grid for assembling the panels
"""

import logging
from datetime import date
from typing import List, Optional

import svgwrite

from .schemas import AssemblyMap
from ..common.config import settings
from ..pod1_document_ingestion.schemas import SourceDocument
from ..pod2_grid_planning.planner import format_tile_label
from ..pod2_grid_planning.schemas import GridSpec, LayoutSettings, Tile

logger = logging.getLogger(__name__)

MAP_PADDING = 20
LEGEND_HEIGHT = 80
LABEL_FONT_SIZE = 10
LEGEND_LINE_HEIGHT = 12
ORDER_BLOCK_WIDTH = 60

MAP_STYLES = f"""
.tile-rect {{ fill: #f0f9ff; stroke: #0ea5e9; stroke-width: 0.5; }}
.tile-rect-empty {{ fill: #f5f5f5; stroke: #d4d4d4; stroke-width: 0.5; }}
.tile-label {{ font-family: sans-serif; font-size: {LABEL_FONT_SIZE}px; text-anchor: middle; fill: #1e40af; }}
.design-border {{ fill: none; stroke: #64748b; stroke-width: 1; stroke-dasharray: 2,2; }}
.legend-text {{ font-family: sans-serif; font-size: 8px; fill: #475569; }}
.title-text {{ font-family: sans-serif; font-size: 12px; font-weight: bold; fill: #1e293b; }}
"""


class AssemblyMapGenerator:
    """
    Draws the grid over the design outline at a reduced scale.

    The map fits within settings.assembly_map_max_width/height and is
    never enlarged beyond 1:1.
    """

    def __init__(self, layout: Optional[LayoutSettings] = None):
        self.layout = layout or LayoutSettings()

    def compute_scale(self, design_width: float, design_height: float) -> float:
        """Uniform fit ratio, capped at 1"""
        return min(
            settings.assembly_map_max_width / design_width,
            settings.assembly_map_max_height / design_height,
            1.0,
        )

    def start_label(self, tiles: List[Tile]) -> str:
        """Label of the first tile in scan order"""
        if tiles:
            return tiles[0].label
        return format_tile_label(0, 0, self.layout.numbering_format, 0, self.layout.start_index_at_one)

    def generate(
        self,
        document: SourceDocument,
        grid: GridSpec,
        tiles: Optional[List[Tile]] = None
    ) -> AssemblyMap:
        """
        Generate the assembly map

        Args:
            document: Source document
            grid: Grid of the run
            tiles: Finalized tiles, defaults to grid.tiles

        Returns:
            AssemblyMap with the SVG document
        """
        layout = self.layout
        tiles = grid.tiles if tiles is None else tiles

        design_width = document.detected_width_mm
        design_height = document.detected_height_mm
        scale = self.compute_scale(design_width, design_height)

        scaled_width = design_width * scale
        scaled_height = design_height * scale
        svg_width = scaled_width + MAP_PADDING * 2
        svg_height = scaled_height + MAP_PADDING * 2 + LEGEND_HEIGHT

        dwg = svgwrite.Drawing(
            size=(f"{svg_width:g}mm", f"{svg_height:g}mm"),
            viewBox=f"0 0 {svg_width:g} {svg_height:g}",
            profile="full",
            debug=False,
        )
        dwg.defs.add(dwg.style(MAP_STYLES))
        dwg.add(dwg.rect(insert=(0, 0), size=(svg_width, svg_height), fill="white"))
        dwg.add(dwg.text(
            f"Assembly Map - {document.file_name}",
            insert=(svg_width / 2, 12),
            class_="title-text",
            text_anchor="middle",
        ))

        design = dwg.g(id="design", transform=f"translate({MAP_PADDING} {MAP_PADDING + 5})")
        design.add(dwg.rect(insert=(0, 0), size=(scaled_width, scaled_height), class_="design-border"))

        step_x = grid.step_x
        step_y = grid.step_y
        for tile in tiles:
            x = tile.col * step_x
            y = tile.row * step_y
            w = min(grid.effective_tile_width, design_width - x) * scale
            h = min(grid.effective_tile_height, design_height - y) * scale
            x *= scale
            y *= scale

            design.add(dwg.rect(
                insert=(x, y),
                size=(w, h),
                class_="tile-rect-empty" if tile.is_empty else "tile-rect",
                id=f"map-{tile.id}",
            ))
            if layout.assembly_map.include_labels:
                design.add(dwg.text(
                    tile.label,
                    insert=(x + w / 2, y + h / 2 + LABEL_FONT_SIZE / 3),
                    class_="tile-label",
                ))
        dwg.add(design)

        populated = sum(1 for t in tiles if not t.is_empty)
        start = self.start_label(tiles)
        legend_top = scaled_height + MAP_PADDING * 2 + 10

        legend_lines = [
            f"Design Size: {design_width:.1f} × {design_height:.1f} mm",
            f"Bed Size: {layout.bed_width:g} × {layout.bed_height:g} mm",
            f"Margin: {layout.margin:g} mm | Overlap: {layout.overlap:g} mm",
            f"Grid: {grid.cols} × {grid.rows} ({len(tiles)} tiles, {populated} with content)",
            f"Numbering: {layout.numbering_format.value}",
            f"Generated: {date.today().isoformat()}",
        ]
        legend = dwg.g(id="legend", transform=f"translate({MAP_PADDING} {legend_top:g})")
        for i, line in enumerate(legend_lines):
            legend.add(dwg.text(line, insert=(0, i * LEGEND_LINE_HEIGHT), class_="legend-text"))
        dwg.add(legend)

        order_lines = [
            "Assembly Order:",
            "→ Left to Right",
            "↓ Top to Bottom",
            f"Start: {start}",
        ]
        order = dwg.g(id="assembly-order", transform=f"translate({svg_width - ORDER_BLOCK_WIDTH:g} {legend_top:g})")
        for i, line in enumerate(order_lines):
            text = dwg.text(line, insert=(0, i * LEGEND_LINE_HEIGHT), class_="legend-text")
            if i == 0:
                text["font-weight"] = "bold"
            order.add(text)
        dwg.add(order)

        logger.info(f"Assembly map for {document.file_name}: {populated}/{len(tiles)} tiles populated, scale {scale:.4f}")

        return AssemblyMap(
            svg_content=dwg.tostring(),
            scale=scale,
            width=svg_width,
            height=svg_height,
            populated_count=populated,
            total_count=len(tiles),
            start_label=start,
        )


def generate_assembly_map(
    document: SourceDocument,
    layout: LayoutSettings,
    grid: GridSpec,
    tiles: Optional[List[Tile]] = None
) -> AssemblyMap:
    """Functional form of AssemblyMapGenerator.generate"""
    return AssemblyMapGenerator(layout).generate(document, grid, tiles)
