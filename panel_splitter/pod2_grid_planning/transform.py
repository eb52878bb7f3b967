"""
Coordinate Transformer - physical layout space (mm) <-> native document space
"""

import logging
from typing import Tuple

from pydantic import BaseModel, ConfigDict

from ..pod1_document_ingestion.schemas import SourceDocument

logger = logging.getLogger(__name__)

Rect = Tuple[float, float, float, float]  # x, y, width, height


class CoordinateTransformer(BaseModel):
    """
    Independent per-axis scale between millimetres and native units.

    scale = physical size / native extent, so native = mm / scale + origin.
    """
    model_config = ConfigDict(frozen=True)

    scale_x: float
    scale_y: float
    origin_x: float = 0.0
    origin_y: float = 0.0

    @classmethod
    def from_document(cls, document: SourceDocument) -> "CoordinateTransformer":
        """
        Derive scale factors from a parsed document

        The native extent is the viewBox size, falling back to the declared
        width/height magnitudes.
        """
        native_width = document.native_width
        native_height = document.native_height
        scale_x = document.detected_width_mm / native_width if native_width else 1.0
        scale_y = document.detected_height_mm / native_height if native_height else 1.0
        origin_x = document.view_box.x if document.view_box else 0.0
        origin_y = document.view_box.y if document.view_box else 0.0

        transform = cls(scale_x=scale_x, scale_y=scale_y, origin_x=origin_x, origin_y=origin_y)
        logger.debug(f"Transform for {document.file_name}: scale=({scale_x:.6f}, {scale_y:.6f}) origin=({origin_x}, {origin_y})")
        return transform

    def length_to_native_x(self, mm: float) -> float:
        return mm / self.scale_x

    def length_to_native_y(self, mm: float) -> float:
        return mm / self.scale_y

    def point_to_native(self, x_mm: float, y_mm: float) -> Tuple[float, float]:
        return (x_mm / self.scale_x + self.origin_x, y_mm / self.scale_y + self.origin_y)

    def point_to_physical(self, x: float, y: float) -> Tuple[float, float]:
        return ((x - self.origin_x) * self.scale_x, (y - self.origin_y) * self.scale_y)

    def rect_to_native(self, x_mm: float, y_mm: float, width_mm: float, height_mm: float) -> Rect:
        """Project a physical rectangle into native coordinates"""
        nx, ny = self.point_to_native(x_mm, y_mm)
        return (nx, ny, width_mm / self.scale_x, height_mm / self.scale_y)
