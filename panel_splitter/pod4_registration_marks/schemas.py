"""
Schemas for registration marks module
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict


class Corner(str, Enum):
    """Tile corners in mark order"""
    TOP_LEFT = "tl"
    TOP_RIGHT = "tr"
    BOTTOM_LEFT = "bl"
    BOTTOM_RIGHT = "br"


class MarkPosition(BaseModel):
    """Centre of one mark in the tile's local frame (mm)"""
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    corner: Corner
