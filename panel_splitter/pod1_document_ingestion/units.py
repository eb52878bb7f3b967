"""
Unit Converter - length parsing and conversion to millimetres
"""

import logging
import re
from typing import Tuple, Union

from .schemas import UnitMode
from ..common.errors import ParseError

logger = logging.getLogger(__name__)

MM_PER_INCH = 25.4

UNIT_TO_MM = {
    "mm": 1.0,
    "cm": 10.0,
    "in": MM_PER_INCH,
    "pt": MM_PER_INCH / 72,
    "pc": MM_PER_INCH / 6,
    "px": MM_PER_INCH / 96,
}

# Pixel factor per unit mode; every other unit ignores the mode
PX_TO_MM = {
    UnitMode.AUTO: MM_PER_INCH / 96,
    UnitMode.PX96: MM_PER_INCH / 96,
    UnitMode.PX72: MM_PER_INCH / 72,
}

DEFAULT_UNIT = "px"

_LENGTH_RE = re.compile(r"^([\d.]+)\s*(mm|cm|in|pt|pc|px)?$", re.IGNORECASE)
_NUMERIC_PREFIX_RE = re.compile(r"^\s*[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


def _leading_number(text: str) -> Union[float, None]:
    """Numeric prefix of text, or None when there is none"""
    match = _NUMERIC_PREFIX_RE.match(text)
    if not match:
        return None
    return float(match.group(0))


def parse_length(text: str, strict: bool = False) -> Tuple[float, str]:
    """
    Split a dimension string into magnitude and unit

    Args:
        text: Attribute value such as "210mm", "8.5in" or "640"
        strict: Raise ParseError instead of tolerating a missing number

    Returns:
        Tuple of (magnitude, lower-case unit). A value without a numeric
        prefix yields (0.0, "px") unless strict is set.
    """
    value = (text or "").strip()
    match = _LENGTH_RE.match(value)
    if match:
        try:
            magnitude = float(match.group(1))
        except ValueError:
            magnitude = 0.0
        return magnitude, (match.group(2) or DEFAULT_UNIT).lower()

    # Unknown suffix ("100%", "12em"): keep the numeric prefix, default unit
    magnitude = _leading_number(value)
    if magnitude is None:
        if strict:
            raise ParseError(f"No numeric value in length: {text!r}")
        logger.debug(f"Length {text!r} has no numeric prefix, using 0{DEFAULT_UNIT}")
        return 0.0, DEFAULT_UNIT
    return magnitude, DEFAULT_UNIT


def convert_to_mm(value: float, unit: str, unit_mode: UnitMode = UnitMode.AUTO) -> float:
    """
    Convert a magnitude in the given unit to millimetres

    Args:
        value: Magnitude
        unit: Unit name; unknown units are treated as pixels
        unit_mode: Pixel interpretation, only affects "px"

    Returns:
        Length in millimetres
    """
    unit = (unit or DEFAULT_UNIT).lower()
    if unit == "px":
        return value * PX_TO_MM[UnitMode(unit_mode)]
    factor = UNIT_TO_MM.get(unit, UNIT_TO_MM[DEFAULT_UNIT])
    return value * factor

