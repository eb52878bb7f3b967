"""
POD 4: Registration Marks Module
Computes and renders alignment marks at tile corners
"""

from .placer import MarkPlacer, compute_mark_positions, render_marks
from .schemas import Corner, MarkPosition

__all__ = [
    "MarkPlacer",
    "compute_mark_positions",
    "render_marks",
    "Corner",
    "MarkPosition"
]
