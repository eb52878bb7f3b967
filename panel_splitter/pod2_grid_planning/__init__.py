"""
POD 2: Grid Planning Module
Computes the tile grid, validates layout settings and maps layout space
to document space
"""

from .planner import GridPlanner, compute_grid, format_tile_label, validate_settings
from .schemas import (
    AssemblyMapConfig,
    ClipStrategy,
    GridSpec,
    LayoutSettings,
    MarkKind,
    MarkPlacement,
    NumberingFormat,
    RegistrationMarkSpec,
    Tile,
    ValidationIssue
)
from .transform import CoordinateTransformer

__all__ = [
    "GridPlanner",
    "compute_grid",
    "format_tile_label",
    "validate_settings",
    "AssemblyMapConfig",
    "ClipStrategy",
    "GridSpec",
    "LayoutSettings",
    "MarkKind",
    "MarkPlacement",
    "NumberingFormat",
    "RegistrationMarkSpec",
    "Tile",
    "ValidationIssue",
    "CoordinateTransformer"
]
