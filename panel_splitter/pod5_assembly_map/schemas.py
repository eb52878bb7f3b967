"""
Schemas for assembly map module
"""

from datetime import datetime
from pydantic import BaseModel, Field


class AssemblyMap(BaseModel):
    """Overview document of a tiled design"""
    svg_content: str = Field(repr=False)
    scale: float  # drawing units per mm of design
    width: float  # document size in mm
    height: float
    populated_count: int
    total_count: int
    start_label: str
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def empty_count(self) -> int:
        return self.total_count - self.populated_count
