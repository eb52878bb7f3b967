"""
Schemas for grid planning module
"""

from enum import Enum
from typing import Dict, List, Optional, TYPE_CHECKING
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..pod1_document_ingestion.schemas import UnitMode
from ..common.config import settings

if TYPE_CHECKING:
    from ..pod3_tiling.schemas import TileResult


class ClipStrategy(str, Enum):
    """How tile geometry is trimmed to its cell"""
    EXACT_TRIM = "exact-trim"  # boolean intersection per primitive
    FAST_MASK = "fast-mask"  # declarative clip region over the whole scene


class NumberingFormat(str, Enum):
    """Tile label formats"""
    ROW_COL = "R01C01"
    DASHED = "01-01"
    SEQUENTIAL = "Tile_001"


class MarkKind(str, Enum):
    """Registration mark shapes"""
    CROSSHAIR = "crosshair"
    PINHOLE = "pinhole"
    L_MARK = "lmark"


class MarkPlacement(str, Enum):
    """Where registration marks sit relative to the margin corners"""
    INSIDE_MARGIN = "inside"
    ON_OVERLAP_BAND = "overlap"


class RegistrationMarkSpec(BaseModel):
    """Registration mark configuration"""
    enabled: bool = False
    kind: MarkKind = MarkKind.CROSSHAIR
    placement: MarkPlacement = MarkPlacement.INSIDE_MARGIN
    size: float = Field(default=6.0, description="Mark size (crosshair/leg length) in mm")
    stroke_width: float = Field(default=0.2, description="Mark stroke width in mm")
    hole_diameter: float = Field(default=2.0, description="Pinhole diameter in mm")
    stroke_color: str = Field(default="black", description="Mark stroke colour")

    @field_validator("size", "stroke_width", "hole_diameter")
    @classmethod
    def validate_positive(cls, v):
        """Validate mark dimensions"""
        if v <= 0:
            raise ValueError(f"Mark dimensions must be positive: {v}")
        return v


class AssemblyMapConfig(BaseModel):
    """Assembly map configuration"""
    enabled: bool = True
    include_labels: bool = True
    include_thumbnails: bool = False  # accepted, not rendered


class LayoutSettings(BaseModel):
    """
    Configuration for one tiling run.

    Cross-field invariants (effective size, overlap bounds) are checked by
    validate_settings so that every problem can be reported at once.
    """
    bed_width: float = Field(default_factory=lambda: settings.default_bed_width, description="Bed width in mm")
    bed_height: float = Field(default_factory=lambda: settings.default_bed_height, description="Bed height in mm")
    margin: float = Field(default_factory=lambda: settings.default_margin, description="Clear margin on each bed edge in mm")
    overlap: float = Field(default=0.0, description="Overlap between adjacent tiles in mm")
    clip_strategy: ClipStrategy = ClipStrategy.EXACT_TRIM
    numbering_enabled: bool = True
    numbering_format: NumberingFormat = NumberingFormat.ROW_COL
    start_index_at_one: bool = True
    guides_enabled: bool = False
    expand_strokes: bool = False
    simplify_tolerance: float = Field(default=0.0, ge=0.0, description="Simplification tolerance in mm")
    export_empty_tiles: bool = False
    unit_mode: UnitMode = UnitMode.AUTO
    registration_marks: RegistrationMarkSpec = Field(default_factory=RegistrationMarkSpec)
    assembly_map: AssemblyMapConfig = Field(default_factory=AssemblyMapConfig)

    @property
    def effective_tile_width(self) -> float:
        return self.bed_width - 2 * self.margin

    @property
    def effective_tile_height(self) -> float:
        return self.bed_height - 2 * self.margin


class ValidationIssue(BaseModel):
    """One violated layout invariant"""
    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class Tile(BaseModel):
    """One grid cell in physical layout space (mm)"""
    row: int
    col: int
    id: str
    label: str
    x: float
    y: float
    width: float
    height: float
    is_empty: bool = False
    has_unsafe_fallback: bool = False
    svg_content: Optional[str] = Field(default=None, repr=False)

    @property
    def bounds(self):
        """minx, miny, maxx, maxy"""
        return (self.x, self.y, self.x + self.width, self.y + self.height)


class GridSpec(BaseModel):
    """Grid derived from a design size and layout settings"""
    rows: int = Field(ge=1)
    cols: int = Field(ge=1)
    tile_width: float  # nominal (bed) size
    tile_height: float
    effective_tile_width: float
    effective_tile_height: float
    overlap: float = 0.0
    tiles: List[Tile]

    @property
    def step_x(self) -> float:
        return self.effective_tile_width - self.overlap

    @property
    def step_y(self) -> float:
        return self.effective_tile_height - self.overlap

    @property
    def total_tiles(self) -> int:
        return len(self.tiles)

    def get_tile_by_position(self, row: int, col: int) -> Optional[Tile]:
        """Get tile by grid position"""
        if 0 <= row < self.rows and 0 <= col < self.cols:
            return self.tiles[row * self.cols + col]
        return None

    def with_results(self, results: List["TileResult"]) -> "GridSpec":
        """
        New GridSpec carrying finalized tiles from a processing run

        Tiles that produced no result are marked empty.
        """
        finalized: Dict[str, Tile] = {r.tile.id: r.tile for r in results}
        tiles = [
            finalized.get(tile.id) or tile.model_copy(update={"is_empty": True})
            for tile in self.tiles
        ]
        return self.model_copy(update={"tiles": tiles})
