"""
Command line entry point

    panel-splitter design.svg -o out/ --bed-width 600 --bed-height 400 --marks crosshair
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .common.config import settings
from .common.errors import ParseError
from .common.logging_config import setup_logging
from .pod1_document_ingestion import UnitMode, parse_document
from .pod2_grid_planning import (
    AssemblyMapConfig,
    ClipStrategy,
    LayoutSettings,
    MarkKind,
    MarkPlacement,
    NumberingFormat,
    RegistrationMarkSpec,
    compute_grid,
    validate_settings,
)
from .pod3_tiling import ProcessingPhase, TilingEngine
from .pod5_assembly_map import ASSEMBLY_MAP_FILE, SUMMARY_FILE, build_export_summary, generate_assembly_map, tile_file_name

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID_SETTINGS = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="panel-splitter",
        description="Split an SVG design into bed-sized tiles with registration marks and an assembly map",
    )
    parser.add_argument("input", type=Path, help="Input SVG file")
    parser.add_argument("-o", "--output-dir", type=Path, default=None, help="Output directory (default: <input name>_tiles)")

    layout = parser.add_argument_group("layout")
    layout.add_argument("--bed-width", type=float, default=settings.default_bed_width, help="Bed width in mm")
    layout.add_argument("--bed-height", type=float, default=settings.default_bed_height, help="Bed height in mm")
    layout.add_argument("--margin", type=float, default=settings.default_margin, help="Margin on each bed edge in mm")
    layout.add_argument("--overlap", type=float, default=0.0, help="Overlap between adjacent tiles in mm")
    layout.add_argument("--strategy", choices=[s.value for s in ClipStrategy], default=ClipStrategy.EXACT_TRIM.value)
    layout.add_argument("--unit-mode", choices=[m.value for m in UnitMode], default=UnitMode.AUTO.value,
                        help="Pixel interpretation for px lengths")

    output = parser.add_argument_group("output")
    output.add_argument("--numbering", choices=[f.value for f in NumberingFormat], default=NumberingFormat.ROW_COL.value)
    output.add_argument("--no-numbering", action="store_true", help="Name files by tile id instead of label")
    output.add_argument("--start-at-zero", action="store_true", help="Number rows, columns and tiles from 0")
    output.add_argument("--guides", action="store_true", help="Overlay non-printing guides")
    output.add_argument("--expand-strokes", action="store_true", help="Convert strokes to filled outlines")
    output.add_argument("--simplify", type=float, default=0.0, help="Simplification tolerance in mm")
    output.add_argument("--export-empty", action="store_true", help="Also write tiles without content")
    output.add_argument("--no-assembly-map", action="store_true")
    output.add_argument("--no-map-labels", action="store_true")

    marks = parser.add_argument_group("registration marks")
    marks.add_argument("--marks", choices=[k.value for k in MarkKind], default=None, help="Enable marks of this kind")
    marks.add_argument("--mark-placement", choices=[p.value for p in MarkPlacement], default=MarkPlacement.INSIDE_MARGIN.value)
    marks.add_argument("--mark-size", type=float, default=6.0)
    marks.add_argument("--mark-stroke", type=float, default=0.2)
    marks.add_argument("--hole-diameter", type=float, default=2.0)

    parser.add_argument("--log-level", default=None, help=f"Logging level (default: {settings.log_level})")
    parser.add_argument("-q", "--quiet", action="store_true", help="Hide the progress bar")
    return parser


def build_layout(args: argparse.Namespace) -> LayoutSettings:
    """LayoutSettings from parsed arguments"""
    return LayoutSettings(
        bed_width=args.bed_width,
        bed_height=args.bed_height,
        margin=args.margin,
        overlap=args.overlap,
        clip_strategy=ClipStrategy(args.strategy),
        numbering_enabled=not args.no_numbering,
        numbering_format=NumberingFormat(args.numbering),
        start_index_at_one=not args.start_at_zero,
        guides_enabled=args.guides,
        expand_strokes=args.expand_strokes,
        simplify_tolerance=args.simplify,
        export_empty_tiles=args.export_empty,
        unit_mode=UnitMode(args.unit_mode),
        registration_marks=RegistrationMarkSpec(
            enabled=args.marks is not None,
            kind=MarkKind(args.marks or MarkKind.CROSSHAIR.value),
            placement=MarkPlacement(args.mark_placement),
            size=args.mark_size,
            stroke_width=args.mark_stroke,
            hole_diameter=args.hole_diameter,
        ),
        assembly_map=AssemblyMapConfig(
            enabled=not args.no_assembly_map,
            include_labels=not args.no_map_labels,
        ),
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        layout = build_layout(args)
    except ValueError as e:
        # pydantic ValidationError is a ValueError
        logger.error(f"Invalid options: {e}")
        return EXIT_INVALID_SETTINGS

    issues = validate_settings(layout)
    if issues:
        for issue in issues:
            logger.error(f"{issue.field}: {issue.message}")
        return EXIT_INVALID_SETTINGS

    input_path: Path = args.input
    try:
        document = parse_document(input_path.read_bytes(), input_path.name, layout.unit_mode)
    except (OSError, ParseError) as e:
        logger.error(f"Cannot read {input_path}: {e}")
        return EXIT_FAILED

    grid = compute_grid(document.detected_width_mm, document.detected_height_mm, layout)

    engine = TilingEngine(layout)
    try:
        run = engine.run(document, grid, show_progress=not args.quiet)
    finally:
        engine.cleanup()

    if run.state.phase != ProcessingPhase.DONE:
        logger.error(f"Tiling failed: {run.state.error}")
        return EXIT_FAILED

    output_dir: Path = args.output_dir or input_path.with_name(f"{input_path.stem}_tiles")
    output_dir.mkdir(parents=True, exist_ok=True)

    for result in run.results:
        (output_dir / tile_file_name(document, result.tile, layout)).write_text(result.svg_content, encoding="utf-8")

    if layout.assembly_map.enabled:
        assembly_map = generate_assembly_map(document, layout, run.grid)
        (output_dir / ASSEMBLY_MAP_FILE).write_text(assembly_map.svg_content, encoding="utf-8")

    summary = build_export_summary(document, layout, grid, run.results)
    (output_dir / SUMMARY_FILE).write_text(summary, encoding="utf-8")

    if run.unsafe_tiles:
        logger.warning(f"{len(run.unsafe_tiles)} tile(s) contain unclipped fallback geometry")
    logger.info(f"Wrote {len(run.results)} tile(s) to {output_dir} in {run.processing_time:.2f} seconds")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
