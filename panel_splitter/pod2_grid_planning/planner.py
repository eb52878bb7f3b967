"""
Grid Planner - grid dimensions, tile rectangles and labels
"""

import logging
import math
from typing import List, Optional

from .schemas import GridSpec, LayoutSettings, NumberingFormat, Tile, ValidationIssue
from ..common.config import settings
from ..common.errors import LayoutError

logger = logging.getLogger(__name__)


def format_tile_label(
    row: int,
    col: int,
    numbering_format: NumberingFormat,
    index: int,
    start_at_one: bool = True
) -> str:
    """
    Display label of a tile

    Args:
        row: Zero-based row
        col: Zero-based column
        numbering_format: Label format
        index: Zero-based position in row-major scan order
        start_at_one: Offset row, column and index by one

    Returns:
        Label such as "R01C02", "01-02" or "Tile_002"
    """
    offset = 1 if start_at_one else 0
    r = f"{row + offset:02d}"
    c = f"{col + offset:02d}"
    i = f"{index + offset:03d}"

    if numbering_format == NumberingFormat.DASHED:
        return f"{r}-{c}"
    if numbering_format == NumberingFormat.SEQUENTIAL:
        return f"Tile_{i}"
    return f"R{r}C{c}"


def tile_id(row: int, col: int) -> str:
    """Stable identifier of a grid cell"""
    return f"tile-{row}-{col}"


def validate_settings(layout: LayoutSettings, min_bed_size: Optional[float] = None) -> List[ValidationIssue]:
    """
    Check layout invariants

    Args:
        layout: Settings to check
        min_bed_size: Minimum bed width/height, defaults to settings.min_bed_size_mm

    Returns:
        Every violated invariant (empty list when the layout is usable)
    """
    minimum = settings.min_bed_size_mm if min_bed_size is None else min_bed_size
    issues: List[ValidationIssue] = []

    if layout.bed_width < minimum:
        issues.append(ValidationIssue(field="bed_width", message=f"Bed width must be at least {minimum:g}mm"))
    if layout.bed_height < minimum:
        issues.append(ValidationIssue(field="bed_height", message=f"Bed height must be at least {minimum:g}mm"))
    if layout.margin < 0:
        issues.append(ValidationIssue(field="margin", message="Margin cannot be negative"))
    if layout.overlap < 0:
        issues.append(ValidationIssue(field="overlap", message="Overlap cannot be negative"))

    effective_width = layout.effective_tile_width
    effective_height = layout.effective_tile_height

    if effective_width <= 0:
        issues.append(ValidationIssue(field="margin", message="Margin too large for bed width"))
    if effective_height <= 0:
        issues.append(ValidationIssue(field="margin", message="Margin too large for bed height"))
    if layout.overlap >= effective_width:
        issues.append(ValidationIssue(field="overlap", message="Overlap must be less than effective tile width"))
    if layout.overlap >= effective_height:
        issues.append(ValidationIssue(field="overlap", message="Overlap must be less than effective tile height"))

    if issues:
        logger.debug(f"Layout settings have {len(issues)} issue(s)")
    return issues


class GridPlanner:
    """
    Plans the tile grid over a design's physical bounding box
    """

    def __init__(self, layout: Optional[LayoutSettings] = None):
        """
        Initialize grid planner

        Args:
            layout: Layout settings
        """
        self.layout = layout or LayoutSettings()

    def calculate_grid_size(self, design_width: float, design_height: float):
        """
        Calculate grid dimensions

        Args:
            design_width: Design width in mm
            design_height: Design height in mm

        Returns:
            Tuple of (rows, cols, step_x, step_y)
        """
        layout = self.layout
        effective_width = layout.effective_tile_width
        effective_height = layout.effective_tile_height

        if effective_width <= 0 or effective_height <= 0:
            raise LayoutError("Effective tile size is zero or negative. Reduce margin or increase bed size.")

        step_x = effective_width - layout.overlap
        step_y = effective_height - layout.overlap

        if step_x <= 0 or step_y <= 0:
            raise LayoutError("Overlap is too large for the effective tile size.")

        # The trailing overlap is shared with the previous tile, not a new cell
        cols = max(1, math.ceil((design_width - layout.overlap) / step_x))
        rows = max(1, math.ceil((design_height - layout.overlap) / step_y))
        return rows, cols, step_x, step_y

    def compute_grid(self, design_width: float, design_height: float) -> GridSpec:
        """
        Compute the grid and its tiles in row-major order

        Args:
            design_width: Design width in mm
            design_height: Design height in mm

        Returns:
            GridSpec

        Raises:
            LayoutError: Effective tile size or step is not positive
        """
        layout = self.layout
        rows, cols, step_x, step_y = self.calculate_grid_size(design_width, design_height)
        effective_width = layout.effective_tile_width
        effective_height = layout.effective_tile_height

        tiles: List[Tile] = []
        index = 0
        for row in range(rows):
            for col in range(cols):
                x = col * step_x
                y = row * step_y
                tiles.append(Tile(
                    row=row,
                    col=col,
                    id=tile_id(row, col),
                    label=format_tile_label(row, col, layout.numbering_format, index, layout.start_index_at_one),
                    x=x,
                    y=y,
                    # Trailing tiles stop at the design boundary
                    width=min(effective_width, design_width - x),
                    height=min(effective_height, design_height - y),
                ))
                index += 1

        grid = GridSpec(
            rows=rows,
            cols=cols,
            tile_width=layout.bed_width,
            tile_height=layout.bed_height,
            effective_tile_width=effective_width,
            effective_tile_height=effective_height,
            overlap=layout.overlap,
            tiles=tiles,
        )

        logger.info(f"Computed {cols}x{rows} grid ({len(tiles)} tiles) for {design_width:.1f} x {design_height:.1f} mm")
        return grid


def compute_grid(design_width: float, design_height: float, layout: LayoutSettings) -> GridSpec:
    """Functional form of GridPlanner.compute_grid"""
    return GridPlanner(layout).compute_grid(design_width, design_height)
