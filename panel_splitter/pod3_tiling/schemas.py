"""
Schemas for tiling module
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, Field

from ..pod1_document_ingestion.scene import SceneNode
from ..pod2_grid_planning.schemas import GridSpec, Tile


class ClipOutcomeKind(str, Enum):
    """Result of trimming one primitive"""
    EXACT = "exact"  # boolean intersection succeeded
    FALLBACK = "fallback"  # unmodified clone kept after a failed intersection
    EMPTY = "empty"  # nothing of the primitive lies in the window


class ClipOutcome(BaseModel):
    """Per-primitive clip result"""
    kind: ClipOutcomeKind
    node: Optional[SceneNode] = None
    reason: Optional[str] = None

    @property
    def contributes(self) -> bool:
        return self.kind != ClipOutcomeKind.EMPTY and self.node is not None


class ClipResult(BaseModel):
    """Result of clipping one tile"""
    tile: Tile
    svg_content: Optional[str] = Field(default=None, repr=False)
    is_empty: bool = False
    has_unsafe_fallback: bool = False
    exact_count: int = 0
    fallback_count: int = 0
    geometry_bounds: Optional[Tuple[float, float, float, float]] = None  # local frame, mm

    @property
    def exported(self) -> bool:
        return self.svg_content is not None


class TileResult(BaseModel):
    """Finalized tile ready for export"""
    tile: Tile
    svg_content: str = Field(repr=False)


class ProcessingPhase(str, Enum):
    """Batch lifecycle"""
    IDLE = "idle"
    PREPARING = "preparing"
    TILING = "tiling"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ProcessingState(BaseModel):
    """Progress and terminal state of a batch"""
    phase: ProcessingPhase = ProcessingPhase.IDLE
    current_tile: int = 0
    total_tiles: int = 0
    error: Optional[str] = None

    @property
    def is_processing(self) -> bool:
        return self.phase in (ProcessingPhase.PREPARING, ProcessingPhase.TILING)

    @property
    def progress_percent(self) -> float:
        if self.total_tiles <= 0:
            return 0.0
        return self.current_tile / self.total_tiles * 100


class TilingRun(BaseModel):
    """Outcome of TilingEngine.run"""
    state: ProcessingState
    results: List[TileResult] = Field(default_factory=list)
    grid: Optional[GridSpec] = None
    processing_time: float = 0.0  # seconds
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def unsafe_tiles(self) -> List[Tile]:
        return [r.tile for r in self.results if r.tile.has_unsafe_fallback]
