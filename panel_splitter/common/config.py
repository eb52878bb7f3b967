"""
Configuration management for Panel Splitter
"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings"""

    # Bed defaults
    default_bed_width: float = Field(
        default=300.0,
        description="Default fabrication bed width in mm"
    )
    default_bed_height: float = Field(
        default=200.0,
        description="Default fabrication bed height in mm"
    )
    default_margin: float = Field(
        default=5.0,
        description="Default margin kept clear on every bed edge in mm"
    )
    min_bed_size_mm: float = Field(
        default=10.0,
        description="Smallest accepted bed width/height in mm"
    )

    # Geometry
    curve_flatness: float = Field(
        default=0.1,
        description="Maximum chord error when flattening curves (native units)"
    )
    paint_fallback_color: str = Field(
        default="black",
        description="Solid colour used for gradient/pattern paints without a fallback"
    )

    # Guides
    guide_color: str = Field(
        default="red",
        description="Stroke colour of the non-printing guide overlay"
    )
    guide_stroke_mm: float = Field(
        default=0.1,
        description="Guide stroke width in mm"
    )
    guide_cross_mm: float = Field(
        default=5.0,
        description="Half-length of the corner guide crosshairs in mm"
    )

    # Assembly map
    assembly_map_max_width: float = Field(
        default=400.0,
        description="Maximum width of the assembly map drawing area"
    )
    assembly_map_max_height: float = Field(
        default=300.0,
        description="Maximum height of the assembly map drawing area"
    )

    # Performance
    max_workers: int = Field(
        default=4,
        description="Maximum number of worker threads"
    )
    yield_every: int = Field(
        default=2,
        description="Number of tiles processed between cooperative yields"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Log file path"
    )

    model_config = SettingsConfigDict(
        env_prefix="PANEL_SPLITTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create global settings instance
settings = Settings()
