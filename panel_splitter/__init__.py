"""
Panel Splitter
Splits a large vector design into bed-sized tiles for fabrication
"""

from .pod1_document_ingestion import parse_document
from .pod2_grid_planning import compute_grid, validate_settings
from .pod3_tiling import process_tiles
from .pod5_assembly_map import generate_assembly_map

__version__ = "0.1.0"

__all__ = [
    "parse_document",
    "compute_grid",
    "validate_settings",
    "process_tiles",
    "generate_assembly_map",
]
