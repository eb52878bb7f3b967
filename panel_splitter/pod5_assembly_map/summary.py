"""
Export summary - naming of output files and the human-readable run report
"""

from datetime import datetime
from typing import List

from ..pod1_document_ingestion.parser import get_base_file_name
from ..pod1_document_ingestion.schemas import SourceDocument
from ..pod2_grid_planning.schemas import GridSpec, LayoutSettings, Tile
from ..pod3_tiling.schemas import TileResult

ASSEMBLY_MAP_FILE = "assembly_map.svg"
SUMMARY_FILE = "summary.txt"


def tile_file_name(document: SourceDocument, tile: Tile, layout: LayoutSettings) -> str:
    """Output file name of a tile, labelled unless numbering is disabled"""
    suffix = tile.label if layout.numbering_enabled else tile.id
    return f"{get_base_file_name(document.file_name)}_{suffix}.svg"


def build_export_summary(
    document: SourceDocument,
    layout: LayoutSettings,
    grid: GridSpec,
    results: List[TileResult]
) -> str:
    """
    Plain-text report accompanying an export

    Args:
        document: Source document
        layout: Layout settings of the run
        grid: Grid of the run
        results: Exported tile results in scan order

    Returns:
        Summary text
    """
    finalized = grid.with_results(results)
    empty = [t for t in finalized.tiles if t.is_empty]
    unsafe = [r.tile for r in results if r.tile.has_unsafe_fallback]

    lines = [
        f"Panel Splitter export - {document.file_name}",
        f"Generated: {datetime.now().isoformat(timespec='seconds')}",
        "",
        f"Design size: {document.detected_width_mm:.1f} x {document.detected_height_mm:.1f} mm",
        f"Bed size: {layout.bed_width:g} x {layout.bed_height:g} mm",
        f"Margin: {layout.margin:g} mm | Overlap: {layout.overlap:g} mm",
        f"Clip strategy: {layout.clip_strategy.value}",
        f"Grid: {grid.cols} x {grid.rows} ({grid.total_tiles} tiles)",
        f"Exported tiles: {len(results)}",
        f"Tiles with content: {grid.total_tiles - len(empty)}",
    ]

    if empty:
        lines.append(f"Empty tiles: {', '.join(t.label for t in empty)}")
    if unsafe:
        lines.append(f"WARNING: {len(unsafe)} tile(s) contain unclipped fallback geometry: {', '.join(t.label for t in unsafe)}")

    lines.extend(["", "Files:"])
    lines.extend(f"  {tile_file_name(document, r.tile, layout)}" for r in results)
    if layout.assembly_map.enabled:
        lines.append(f"  {ASSEMBLY_MAP_FILE}")

    return "\n".join(lines) + "\n"
