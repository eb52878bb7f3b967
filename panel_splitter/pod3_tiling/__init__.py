"""
Pod 3: Tiling Module
Clips the scene to every tile and emits one document per tile
"""

from .clipper import TileClipper, clip_tile, expand_strokes
from .engine import TilingEngine, process_tiles
from .indexer import PrimitiveIndex
from .schemas import (
    ClipOutcome,
    ClipOutcomeKind,
    ClipResult,
    ProcessingPhase,
    ProcessingState,
    TileResult,
    TilingRun,
)
from .writer import TileDocumentWriter

__all__ = [
    "TileClipper",
    "clip_tile",
    "expand_strokes",
    "TilingEngine",
    "process_tiles",
    "PrimitiveIndex",
    "ClipOutcome",
    "ClipOutcomeKind",
    "ClipResult",
    "ProcessingPhase",
    "ProcessingState",
    "TileResult",
    "TilingRun",
    "TileDocumentWriter",
]
