"""
Document parser - reads SVG input into a SourceDocument and a scene graph
"""

import logging
import math
import re
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from .schemas import SourceDocument, UnitMode, ViewBox
from .units import convert_to_mm, parse_length
from .path_data import parse_path_data, flatten_arc
from .scene import PaintStyle, SceneNode, Subpath
from ..common.config import settings
from ..common.errors import DimensionError, ParseError

logger = logging.getLogger(__name__)

CONTAINER_TAGS = {"svg", "g", "a", "switch"}
SHAPE_TAGS = {"path", "rect", "circle", "ellipse", "line", "polyline", "polygon"}
SKIPPED_TAGS = {
    "defs", "clipPath", "mask", "symbol", "marker", "pattern", "style",
    "metadata", "title", "desc", "linearGradient", "radialGradient", "filter",
}
UNSUPPORTED_TAGS = {"text", "image", "use", "foreignObject"}
MARKUP_DROPPED_TAGS = {"metadata", "title", "desc"}

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"
XML_NS = "http://www.w3.org/XML/1998/namespace"

# Paint properties that children inherit
INHERITED_PROPS = (
    "fill", "stroke", "stroke-width", "stroke-linecap", "stroke-linejoin",
    "stroke-dasharray", "stroke-dashoffset", "fill-opacity", "stroke-opacity",
    "fill-rule",
)

_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_TRANSFORM_RE = re.compile(r"(matrix|translate|scale|rotate|skewX|skewY)\s*\(([^)]*)\)")

_SVG_SUFFIX_RE = re.compile(r"\.svg$", re.IGNORECASE)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def get_base_file_name(file_name: str) -> str:
    """Strip a trailing .svg extension"""
    return _SVG_SUFFIX_RE.sub("", file_name)


def _parse_view_box(value: Optional[str]) -> Optional[ViewBox]:
    if not value:
        return None
    parts = [p for p in re.split(r"[\s,]+", value.strip()) if p]
    if len(parts) != 4:
        return None
    try:
        x, y, width, height = (float(p) for p in parts)
    except ValueError:
        return None
    if any(math.isnan(v) for v in (x, y, width, height)) or width <= 0 or height <= 0:
        return None
    return ViewBox(x=x, y=y, width=width, height=height)


def _parse_root(content: str) -> ET.Element:
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise ParseError(f"SVG parsing error: {e}") from e

    if _local_name(root.tag) != "svg":
        raise ParseError("Invalid SVG: No <svg> element found")
    return root


def parse_document(
    raw_content: Union[str, bytes],
    file_name: str,
    unit_mode: UnitMode = UnitMode.AUTO
) -> SourceDocument:
    """
    Parse SVG text into a SourceDocument

    Args:
        raw_content: SVG markup (str or UTF-8 bytes)
        file_name: Original file name, kept for labelling output
        unit_mode: Pixel interpretation for px lengths

    Returns:
        SourceDocument with its physical size in millimetres

    Raises:
        ParseError: Markup is not a readable SVG document
        DimensionError: Neither width+height nor a viewBox gives a positive size
    """
    if isinstance(raw_content, bytes):
        try:
            raw_content = raw_content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"SVG is not valid UTF-8: {e}") from e
    unit_mode = UnitMode(unit_mode)
    root = _parse_root(raw_content)

    view_box = _parse_view_box(root.get("viewBox"))

    width: Optional[float] = None
    height: Optional[float] = None
    width_unit = "px"
    height_unit = "px"

    width_attr = root.get("width")
    height_attr = root.get("height")
    if width_attr:
        width, width_unit = parse_length(width_attr)
    if height_attr:
        height, height_unit = parse_length(height_attr)

    if width is not None and height is not None:
        detected_width_mm = convert_to_mm(width, width_unit, unit_mode)
        detected_height_mm = convert_to_mm(height, height_unit, unit_mode)
    elif view_box is not None:
        # viewBox extents are always pixel-equivalent
        detected_width_mm = convert_to_mm(view_box.width, "px", unit_mode)
        detected_height_mm = convert_to_mm(view_box.height, "px", unit_mode)
    else:
        raise DimensionError("SVG has no width/height or viewBox. Cannot determine dimensions.")

    if detected_width_mm <= 0 or detected_height_mm <= 0:
        raise DimensionError(f"SVG size resolves to {detected_width_mm:g} x {detected_height_mm:g} mm")

    document = SourceDocument(
        file_name=file_name,
        original_content=raw_content,
        view_box=view_box,
        width=width,
        height=height,
        width_unit=width_unit,
        height_unit=height_unit,
        unit_mode=unit_mode,
        detected_width_mm=detected_width_mm,
        detected_height_mm=detected_height_mm,
    )

    logger.info(
        f"Parsed {file_name}: {detected_width_mm:.2f} x {detected_height_mm:.2f} mm "
        f"(unit mode {unit_mode.value})"
    )
    return document


def reparse_with_unit_mode(document: SourceDocument, unit_mode: UnitMode) -> SourceDocument:
    """New SourceDocument for the same content under another unit mode"""
    return parse_document(document.original_content, document.file_name, unit_mode)


# ---------------------------------------------------------------------------
# Scene loading
# ---------------------------------------------------------------------------

def parse_transform(value: Optional[str]) -> np.ndarray:
    """
    Compose an SVG transform list into a 3x3 matrix

    Args:
        value: transform attribute, e.g. "translate(10 5) rotate(45)"

    Returns:
        Affine matrix (identity when value is empty)
    """
    m = np.eye(3, dtype=np.float64)
    if not value:
        return m

    for name, args in _TRANSFORM_RE.findall(value):
        nums = [float(v) for v in _NUMBER_RE.findall(args)]
        if name == "matrix" and len(nums) == 6:
            a, b, c, d, e, f = nums
            t = np.array([[a, c, e], [b, d, f], [0, 0, 1]], dtype=np.float64)
        elif name == "translate" and nums:
            tx = nums[0]
            ty = nums[1] if len(nums) > 1 else 0.0
            t = np.array([[1, 0, tx], [0, 1, ty], [0, 0, 1]], dtype=np.float64)
        elif name == "scale" and nums:
            sx = nums[0]
            sy = nums[1] if len(nums) > 1 else sx
            t = np.array([[sx, 0, 0], [0, sy, 0], [0, 0, 1]], dtype=np.float64)
        elif name == "rotate" and nums:
            rad = math.radians(nums[0])
            cos_a, sin_a = math.cos(rad), math.sin(rad)
            t = np.array([[cos_a, -sin_a, 0], [sin_a, cos_a, 0], [0, 0, 1]], dtype=np.float64)
            if len(nums) == 3:
                cx, cy = nums[1], nums[2]
                to_origin = np.array([[1, 0, -cx], [0, 1, -cy], [0, 0, 1]], dtype=np.float64)
                back = np.array([[1, 0, cx], [0, 1, cy], [0, 0, 1]], dtype=np.float64)
                t = back @ t @ to_origin
        elif name == "skewX" and nums:
            t = np.array([[1, math.tan(math.radians(nums[0])), 0], [0, 1, 0], [0, 0, 1]], dtype=np.float64)
        elif name == "skewY" and nums:
            t = np.array([[1, 0, 0], [math.tan(math.radians(nums[0])), 1, 0], [0, 0, 1]], dtype=np.float64)
        else:
            logger.warning(f"Ignoring malformed transform: {name}({args})")
            continue
        # Transform lists apply right to left
        m = m @ t
    return m


def _parse_style_attribute(value: Optional[str]) -> Dict[str, str]:
    props: Dict[str, str] = {}
    if not value:
        return props
    for declaration in value.split(";"):
        if ":" not in declaration:
            continue
        key, val = declaration.split(":", 1)
        props[key.strip()] = val.strip()
    return props


def _element_props(el: ET.Element, inherited: Dict[str, str]) -> Dict[str, str]:
    """Paint properties of an element merged over its inherited ones"""
    props = {k: v for k, v in inherited.items() if k in INHERITED_PROPS}
    for key in INHERITED_PROPS + ("opacity",):
        if el.get(key) is not None:
            props[key] = el.get(key)
    props.update(_parse_style_attribute(el.get("style")))
    return props


def _float_or(value: Optional[str], default: Optional[float]) -> Optional[float]:
    if value is None:
        return default
    match = _NUMBER_RE.match(value.strip())
    if not match:
        return default
    return float(match.group(0))


def _paint(value: Optional[str], default: Optional[str]) -> Optional[str]:
    if value is None:
        return default
    value = value.strip()
    if value.startswith("url("):
        # Paint servers are not carried into clipped tiles; use the declared
        # fallback colour, e.g. "url(#grad) red"
        value = value[value.find(")") + 1:].strip() or settings.paint_fallback_color
    if value in ("none", "transparent"):
        return None
    return value


def _style_from_props(props: Dict[str, str], group_opacity: float) -> PaintStyle:
    return PaintStyle(
        fill=_paint(props.get("fill"), "black"),
        stroke=_paint(props.get("stroke"), None),
        stroke_width=_float_or(props.get("stroke-width"), 1.0),
        stroke_linecap=props.get("stroke-linecap"),
        stroke_linejoin=props.get("stroke-linejoin"),
        stroke_dasharray=None if props.get("stroke-dasharray") in (None, "none") else props.get("stroke-dasharray"),
        stroke_dashoffset=_float_or(props.get("stroke-dashoffset"), None),
        opacity=group_opacity * (_float_or(props.get("opacity"), 1.0) or 0.0),
        fill_opacity=_float_or(props.get("fill-opacity"), None),
        stroke_opacity=_float_or(props.get("stroke-opacity"), None),
        fill_rule=props.get("fill-rule", "nonzero"),
    )


def _points_attr(value: Optional[str]) -> List[Tuple[float, float]]:
    nums = [float(n) for n in _NUMBER_RE.findall(value or "")]
    return [(nums[i], nums[i + 1]) for i in range(0, len(nums) - 1, 2)]


def _attr(el: ET.Element, name: str) -> float:
    return _float_or(el.get(name), 0.0) or 0.0


def _ellipse_subpath(cx: float, cy: float, rx: float, ry: float, flatness: float) -> Optional[Subpath]:
    if rx <= 0 or ry <= 0:
        return None
    start = (cx + rx, cy)
    mid = (cx - rx, cy)
    points = [start]
    points.extend(flatten_arc(start, rx, ry, 0.0, False, True, mid, flatness))
    points.extend(flatten_arc(mid, rx, ry, 0.0, False, True, start, flatness))
    return Subpath(points=points[:-1], closed=True)


def shape_to_subpaths(el: ET.Element, flatness: float) -> List[Subpath]:
    """
    Expand a basic shape element into path subpaths

    Args:
        el: Element with one of the SHAPE_TAGS
        flatness: Curve flattening tolerance

    Returns:
        List of subpaths (empty for degenerate shapes)
    """
    tag = _local_name(el.tag)

    if tag == "path":
        return parse_path_data(el.get("d", ""), flatness)

    if tag == "rect":
        x, y = _attr(el, "x"), _attr(el, "y")
        w, h = _attr(el, "width"), _attr(el, "height")
        if w <= 0 or h <= 0:
            return []
        rx = _float_or(el.get("rx"), None)
        ry = _float_or(el.get("ry"), None)
        if rx is None and ry is None:
            return [Subpath(points=[(x, y), (x + w, y), (x + w, y + h), (x, y + h)], closed=True)]
        rx = min(rx if rx is not None else ry, w / 2)
        ry = min(ry if ry is not None else rx, h / 2)
        d = (
            f"M {x + rx} {y} H {x + w - rx} A {rx} {ry} 0 0 1 {x + w} {y + ry} "
            f"V {y + h - ry} A {rx} {ry} 0 0 1 {x + w - rx} {y + h} "
            f"H {x + rx} A {rx} {ry} 0 0 1 {x} {y + h - ry} "
            f"V {y + ry} A {rx} {ry} 0 0 1 {x + rx} {y} Z"
        )
        return parse_path_data(d, flatness)

    if tag == "circle":
        r = _attr(el, "r")
        sub = _ellipse_subpath(_attr(el, "cx"), _attr(el, "cy"), r, r, flatness)
        return [sub] if sub else []

    if tag == "ellipse":
        sub = _ellipse_subpath(_attr(el, "cx"), _attr(el, "cy"), _attr(el, "rx"), _attr(el, "ry"), flatness)
        return [sub] if sub else []

    if tag == "line":
        return [Subpath(points=[(_attr(el, "x1"), _attr(el, "y1")), (_attr(el, "x2"), _attr(el, "y2"))])]

    if tag in ("polyline", "polygon"):
        points = _points_attr(el.get("points"))
        if len(points) < 2:
            return []
        return [Subpath(points=points, closed=tag == "polygon")]

    return []


def _build_node(
    el: ET.Element,
    matrix: np.ndarray,
    inherited: Dict[str, str],
    group_opacity: float,
    flatness: float,
    skipped: Dict[str, int]
) -> Optional[SceneNode]:
    tag = _local_name(el.tag)

    # Comments and processing instructions have no string tag
    if not tag or tag in SKIPPED_TAGS:
        return None
    if tag in UNSUPPORTED_TAGS or (tag not in CONTAINER_TAGS and tag not in SHAPE_TAGS):
        skipped[tag] = skipped.get(tag, 0) + 1
        return None

    props = _element_props(el, inherited)
    if props.get("display") == "none" or el.get("display") == "none":
        return None

    local = matrix @ parse_transform(el.get("transform"))

    if tag in CONTAINER_TAGS:
        opacity = group_opacity * (_float_or(props.pop("opacity", None), 1.0) or 0.0)
        children = []
        for child in el:
            node = _build_node(child, local, props, opacity, flatness, skipped)
            if node is not None:
                children.append(node)
        return SceneNode.container(children, node_id=el.get("id"))

    try:
        subpaths = shape_to_subpaths(el, flatness)
    except ParseError as e:
        logger.warning(f"Skipped <{tag}> {el.get('id') or ''} with invalid geometry: {e}")
        skipped[tag] = skipped.get(tag, 0) + 1
        return None
    node = SceneNode.from_subpaths(subpaths, _style_from_props(props, group_opacity), el.get("id"))
    if node is None:
        return None
    if not np.allclose(local, np.eye(3)):
        node = node.map_points(local)
    return node


def _copy_svg_element(el: ET.Element) -> Optional[ET.Element]:
    """Copy of a source element in the default namespace, foreign markup dropped"""
    if not isinstance(el.tag, str):
        return None
    namespace, _, local = el.tag[1:].partition("}") if el.tag.startswith("{") else ("", "", el.tag)
    if namespace not in ("", SVG_NS) or local in MARKUP_DROPPED_TAGS:
        return None

    attrib = {}
    for key, value in el.attrib.items():
        if key.startswith("{"):
            attr_ns, _, name = key[1:].partition("}")
            if attr_ns == XLINK_NS:
                key = name  # xlink:href -> href
            elif attr_ns != XML_NS:
                continue
        attrib[key] = value

    copy = ET.Element(local, attrib)
    copy.text = el.text
    copy.tail = el.tail
    for child in el:
        child_copy = _copy_svg_element(child)
        if child_copy is not None:
            copy.append(child_copy)
    return copy


def source_markup(root: ET.Element) -> str:
    """
    Verbatim content of a document as one group element

    The group carries the root's presentation attributes so inherited
    paint still applies. Path data, shapes, transforms and definitions are
    left untouched.
    """
    group = ET.Element("g", {k: v for k, v in root.attrib.items() if k in INHERITED_PROPS + ("opacity", "style")})
    for child in root:
        child_copy = _copy_svg_element(child)
        if child_copy is not None:
            group.append(child_copy)
    return ET.tostring(group, encoding="unicode")


def load_scene(document: SourceDocument, flatness: Optional[float] = None) -> SceneNode:
    """
    Build the scene graph of a parsed document

    Transforms are baked into coordinates, so every point is expressed in
    the document's native (viewBox) coordinate space. The root node also
    keeps the unmodified source markup for declarative clipping.

    Args:
        document: Parsed source document
        flatness: Curve flattening tolerance, defaults to settings.curve_flatness

    Returns:
        Root container node
    """
    flatness = settings.curve_flatness if flatness is None else flatness
    root = _parse_root(document.original_content)

    skipped: Dict[str, int] = {}
    props = _element_props(root, {})
    opacity = _float_or(props.pop("opacity", None), 1.0) or 0.0
    children = []
    for child in root:
        node = _build_node(child, np.eye(3), props, opacity, flatness, skipped)
        if node is not None:
            children.append(node)

    for tag, count in skipped.items():
        logger.warning(f"Skipped {count} unsupported or invalid <{tag}> element(s) in {document.file_name}")

    scene = SceneNode.container(children, node_id=root.get("id"))
    scene = scene.model_copy(update={"markup": source_markup(root)})
    logger.debug(f"Loaded scene with {scene.primitive_count()} primitives")
    return scene
