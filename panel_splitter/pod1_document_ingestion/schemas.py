"""
Schemas for document ingestion module
"""

from enum import Enum
from typing import Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, model_validator


class UnitMode(str, Enum):
    """How pixel-denominated lengths are interpreted"""
    AUTO = "auto"  # fixed reference resolution (96 dpi)
    PX96 = "px96"
    PX72 = "px72"


class ViewBox(BaseModel):
    """Intrinsic viewport rectangle of a document (native units)"""
    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    width: float
    height: float

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)


class SourceDocument(BaseModel):
    """
    Immutable parsed input document.

    Physical size is derived at parse time from the declared width/height,
    or from the viewBox when either is missing.
    """
    model_config = ConfigDict(frozen=True)

    file_name: str
    original_content: str = Field(repr=False)
    view_box: Optional[ViewBox] = None
    width: Optional[float] = None  # declared magnitude, in width_unit
    height: Optional[float] = None
    width_unit: str = "px"
    height_unit: str = "px"
    unit_mode: UnitMode = UnitMode.AUTO
    detected_width_mm: float
    detected_height_mm: float

    @model_validator(mode="after")
    def validate_has_size_source(self):
        """At least one size source must be present"""
        has_declared = self.width is not None and self.height is not None
        if not has_declared and self.view_box is None:
            raise ValueError("Document needs width+height or a viewBox")
        return self

    @property
    def size_mm(self) -> Tuple[float, float]:
        return (self.detected_width_mm, self.detected_height_mm)

    @property
    def native_width(self) -> float:
        """Native coordinate extent along X"""
        if self.view_box is not None:
            return self.view_box.width
        if self.width is not None:
            return self.width
        return self.detected_width_mm

    @property
    def native_height(self) -> float:
        """Native coordinate extent along Y"""
        if self.view_box is not None:
            return self.view_box.height
        if self.height is not None:
            return self.height
        return self.detected_height_mm
