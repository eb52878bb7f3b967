"""
Path data reader - turns SVG path "d" strings into polyline subpaths

Curves and elliptical arcs are flattened with numpy sampling so the rest of
the pipeline only ever handles straight segments.
"""

import logging
import math
import re
from typing import List, Optional, Tuple

import numpy as np

from .scene import Subpath
from ..common.errors import ParseError

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

_TOKEN_RE = re.compile(
    r"([MmLlHhVvCcSsQqTtAaZz])|([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)"
)

# Number of parameters consumed per command repetition
_ARITY = {
    "M": 2, "L": 2, "H": 1, "V": 1, "C": 6, "S": 4,
    "Q": 4, "T": 2, "A": 7, "Z": 0,
}

MAX_CURVE_SEGMENTS = 256


def _tokenize(d: str) -> List[str]:
    tokens = []
    for command, number in _TOKEN_RE.findall(d):
        tokens.append(command or number)
    return tokens


class _TokenStream:
    """Cursor over path tokens with support for packed arc flags"""

    def __init__(self, tokens: List[str]):
        self.tokens = tokens
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def peek_is_number(self) -> bool:
        return not self.at_end() and not self.tokens[self.pos].isalpha()

    def next_command(self) -> str:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def number(self) -> float:
        if not self.peek_is_number():
            raise ParseError("Path data ended in the middle of a command")
        token = self.tokens[self.pos]
        self.pos += 1
        return float(token)

    def flag(self) -> bool:
        """Arc flags may be packed against the next number ("01", "10.5")"""
        if not self.peek_is_number():
            raise ParseError("Path data is missing an arc flag")
        token = self.tokens[self.pos]
        if token[0] not in "01":
            raise ParseError(f"Invalid arc flag: {token!r}")
        if len(token) > 1:
            # A flag is a single character; the rest is the next number
            self.tokens[self.pos] = token[1:]
        else:
            self.pos += 1
        return token[0] == "1"


def _segment_count(control_span: float, factor: float, flatness: float) -> int:
    if control_span <= 0 or flatness <= 0:
        return 1
    count = math.ceil(math.sqrt(factor * control_span / flatness))
    return int(min(max(count, 1), MAX_CURVE_SEGMENTS))


def flatten_cubic(p0: Point, p1: Point, p2: Point, p3: Point, flatness: float) -> List[Point]:
    """
    Sample a cubic Bezier segment

    Args:
        p0, p1, p2, p3: Control points
        flatness: Maximum chord deviation

    Returns:
        Points after p0, ending exactly at p3
    """
    ctrl = np.array([p0, p1, p2, p3], dtype=np.float64)
    dd = max(
        np.linalg.norm(ctrl[0] - 2 * ctrl[1] + ctrl[2]),
        np.linalg.norm(ctrl[1] - 2 * ctrl[2] + ctrl[3]),
    )
    n = _segment_count(dd, 0.75, flatness)
    t = np.linspace(0.0, 1.0, n + 1)[1:, None]
    mt = 1.0 - t
    pts = (mt ** 3) * ctrl[0] + 3 * (mt ** 2) * t * ctrl[1] + 3 * mt * (t ** 2) * ctrl[2] + (t ** 3) * ctrl[3]
    result = [(float(x), float(y)) for x, y in pts]
    result[-1] = (float(p3[0]), float(p3[1]))
    return result


def flatten_quadratic(p0: Point, p1: Point, p2: Point, flatness: float) -> List[Point]:
    """Sample a quadratic Bezier segment, returning points after p0"""
    ctrl = np.array([p0, p1, p2], dtype=np.float64)
    dd = np.linalg.norm(ctrl[0] - 2 * ctrl[1] + ctrl[2])
    n = _segment_count(dd, 0.25, flatness)
    t = np.linspace(0.0, 1.0, n + 1)[1:, None]
    mt = 1.0 - t
    pts = (mt ** 2) * ctrl[0] + 2 * mt * t * ctrl[1] + (t ** 2) * ctrl[2]
    result = [(float(x), float(y)) for x, y in pts]
    result[-1] = (float(p2[0]), float(p2[1]))
    return result


def flatten_arc(
    p0: Point,
    rx: float,
    ry: float,
    rotation_deg: float,
    large_arc: bool,
    sweep: bool,
    p1: Point,
    flatness: float
) -> List[Point]:
    """
    Sample an SVG elliptical arc using the endpoint-to-center conversion

    Args:
        p0: Start point
        rx, ry: Radii
        rotation_deg: X-axis rotation in degrees
        large_arc: Large arc flag
        sweep: Sweep flag
        p1: End point
        flatness: Maximum chord deviation

    Returns:
        Points after p0, ending exactly at p1
    """
    x0, y0 = p0
    x1, y1 = p1
    if (x0, y0) == (x1, y1):
        return []
    rx, ry = abs(rx), abs(ry)
    if rx == 0 or ry == 0:
        return [(x1, y1)]

    phi = math.radians(rotation_deg % 360.0)
    cos_phi, sin_phi = math.cos(phi), math.sin(phi)

    dx2 = (x0 - x1) / 2.0
    dy2 = (y0 - y1) / 2.0
    x1p = cos_phi * dx2 + sin_phi * dy2
    y1p = -sin_phi * dx2 + cos_phi * dy2

    # Scale up radii that cannot reach the end point
    lam = (x1p ** 2) / (rx ** 2) + (y1p ** 2) / (ry ** 2)
    if lam > 1:
        scale = math.sqrt(lam)
        rx *= scale
        ry *= scale

    num = rx ** 2 * ry ** 2 - rx ** 2 * y1p ** 2 - ry ** 2 * x1p ** 2
    den = rx ** 2 * y1p ** 2 + ry ** 2 * x1p ** 2
    coef = math.sqrt(max(num, 0.0) / den) if den else 0.0
    if large_arc == sweep:
        coef = -coef
    cxp = coef * rx * y1p / ry
    cyp = -coef * ry * x1p / rx

    cx = cos_phi * cxp - sin_phi * cyp + (x0 + x1) / 2.0
    cy = sin_phi * cxp + cos_phi * cyp + (y0 + y1) / 2.0

    def angle(ux: float, uy: float, vx: float, vy: float) -> float:
        return math.atan2(ux * vy - uy * vx, ux * vx + uy * vy)

    theta1 = angle(1.0, 0.0, (x1p - cxp) / rx, (y1p - cyp) / ry)
    dtheta = angle((x1p - cxp) / rx, (y1p - cyp) / ry, (-x1p - cxp) / rx, (-y1p - cyp) / ry)
    if not sweep and dtheta > 0:
        dtheta -= 2 * math.pi
    elif sweep and dtheta < 0:
        dtheta += 2 * math.pi

    radius = max(rx, ry)
    if flatness <= 0 or flatness >= radius:
        step = math.pi / 2
    else:
        step = 2 * math.acos(1 - flatness / radius)
    n = int(min(max(math.ceil(abs(dtheta) / step), 1), MAX_CURVE_SEGMENTS))

    thetas = theta1 + np.linspace(0.0, dtheta, n + 1)[1:]
    xs = cx + rx * np.cos(thetas) * cos_phi - ry * np.sin(thetas) * sin_phi
    ys = cy + rx * np.cos(thetas) * sin_phi + ry * np.sin(thetas) * cos_phi
    result = [(float(x), float(y)) for x, y in zip(xs, ys)]
    result[-1] = (float(x1), float(y1))
    return result


def parse_path_data(d: str, flatness: float = 0.1) -> List[Subpath]:
    """
    Parse an SVG path "d" attribute into polyline subpaths

    Args:
        d: Path data string
        flatness: Maximum chord error used when flattening curves

    Returns:
        List of subpaths; subpaths with fewer than two points are dropped
    """
    stream = _TokenStream(_tokenize(d or ""))
    subpaths: List[Subpath] = []

    current: List[Point] = []
    closed = False
    cx = cy = 0.0
    start_x = start_y = 0.0
    last_cubic_ctrl: Optional[Point] = None
    last_quad_ctrl: Optional[Point] = None
    command = ""

    def finish():
        nonlocal current, closed
        if len(current) >= 2:
            subpaths.append(Subpath(points=current, closed=closed))
        current = []
        closed = False

    def ensure_started():
        # Drawing after "Z" without a moveto restarts at the subpath start
        if not current:
            current.append((cx, cy))

    while not stream.at_end():
        if not stream.peek_is_number():
            command = stream.next_command()
        elif not command:
            raise ParseError("Path data must start with a moveto command")
        elif command in "Zz":
            raise ParseError("Unexpected number after closepath")

        upper = command.upper()
        relative = command.islower()

        if upper == "Z":
            if current:
                closed = True
                finish()
            cx, cy = start_x, start_y
            last_cubic_ctrl = last_quad_ctrl = None
            continue

        if _ARITY[upper] and not stream.peek_is_number():
            # Command letter with no parameters
            raise ParseError(f"Command {command!r} has no parameters")

        while stream.peek_is_number():
            ox, oy = (cx, cy) if relative else (0.0, 0.0)

            if upper == "M":
                finish()
                cx, cy = stream.number() + ox, stream.number() + oy
                start_x, start_y = cx, cy
                current = [(cx, cy)]
                # Subsequent pairs are implicit linetos
                command = "l" if relative else "L"
                upper = "L"
                last_cubic_ctrl = last_quad_ctrl = None
                continue

            ensure_started()

            if upper == "L":
                cx, cy = stream.number() + ox, stream.number() + oy
                current.append((cx, cy))
                last_cubic_ctrl = last_quad_ctrl = None
            elif upper == "H":
                cx = stream.number() + (cx if relative else 0.0)
                current.append((cx, cy))
                last_cubic_ctrl = last_quad_ctrl = None
            elif upper == "V":
                cy = stream.number() + (cy if relative else 0.0)
                current.append((cx, cy))
                last_cubic_ctrl = last_quad_ctrl = None
            elif upper in ("C", "S"):
                if upper == "C":
                    c1 = (stream.number() + ox, stream.number() + oy)
                elif last_cubic_ctrl is not None:
                    c1 = (2 * cx - last_cubic_ctrl[0], 2 * cy - last_cubic_ctrl[1])
                else:
                    c1 = (cx, cy)
                c2 = (stream.number() + ox, stream.number() + oy)
                end = (stream.number() + ox, stream.number() + oy)
                current.extend(flatten_cubic((cx, cy), c1, c2, end, flatness))
                last_cubic_ctrl = c2
                last_quad_ctrl = None
                cx, cy = end
            elif upper in ("Q", "T"):
                if upper == "Q":
                    ctrl = (stream.number() + ox, stream.number() + oy)
                elif last_quad_ctrl is not None:
                    ctrl = (2 * cx - last_quad_ctrl[0], 2 * cy - last_quad_ctrl[1])
                else:
                    ctrl = (cx, cy)
                end = (stream.number() + ox, stream.number() + oy)
                current.extend(flatten_quadratic((cx, cy), ctrl, end, flatness))
                last_quad_ctrl = ctrl
                last_cubic_ctrl = None
                cx, cy = end
            elif upper == "A":
                rx, ry = stream.number(), stream.number()
                rotation = stream.number()
                large_arc = stream.flag()
                sweep = stream.flag()
                end = (stream.number() + ox, stream.number() + oy)
                current.extend(
                    flatten_arc((cx, cy), rx, ry, rotation, large_arc, sweep, end, flatness)
                )
                last_cubic_ctrl = last_quad_ctrl = None
                cx, cy = end

    finish()
    return subpaths
