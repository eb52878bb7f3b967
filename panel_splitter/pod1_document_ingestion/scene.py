"""
Scene graph for parsed vector geometry

A scene is a closed tagged variant: every node is a simple path, a compound
path or a container. Containers recurse; the two path kinds are the leaf
primitives the clipper works on.
"""

from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field
from shapely.geometry import LineString, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

Bounds = Tuple[float, float, float, float]  # minx, miny, maxx, maxy


class NodeKind(str, Enum):
    """Scene node variants"""
    PATH = "path"
    COMPOUND = "compound"
    CONTAINER = "container"


class PaintStyle(BaseModel):
    """Resolved paint attributes of a primitive"""
    model_config = ConfigDict(frozen=True)

    fill: Optional[str] = "black"
    stroke: Optional[str] = None
    stroke_width: float = 1.0
    stroke_linecap: Optional[str] = None
    stroke_linejoin: Optional[str] = None
    stroke_dasharray: Optional[str] = None
    stroke_dashoffset: Optional[float] = None
    opacity: float = 1.0
    fill_opacity: Optional[float] = None
    stroke_opacity: Optional[float] = None
    fill_rule: str = "nonzero"

    @property
    def has_fill(self) -> bool:
        return self.fill is not None

    @property
    def has_stroke(self) -> bool:
        return self.stroke is not None and self.stroke_width > 0

    def svg_attributes(self) -> Dict[str, Any]:
        """Keyword arguments for an svgwrite element"""
        attrs: Dict[str, Any] = {
            "fill": self.fill or "none",
            "stroke": self.stroke or "none",
        }
        if self.stroke is not None:
            attrs["stroke_width"] = self.stroke_width
        if self.stroke_linecap:
            attrs["stroke_linecap"] = self.stroke_linecap
        if self.stroke_linejoin:
            attrs["stroke_linejoin"] = self.stroke_linejoin
        if self.stroke_dasharray:
            attrs["stroke_dasharray"] = self.stroke_dasharray
        if self.stroke_dashoffset is not None:
            attrs["stroke_dashoffset"] = self.stroke_dashoffset
        if self.opacity != 1.0:
            attrs["opacity"] = self.opacity
        if self.fill_opacity is not None:
            attrs["fill_opacity"] = self.fill_opacity
        if self.stroke_opacity is not None:
            attrs["stroke_opacity"] = self.stroke_opacity
        if self.fill_rule != "nonzero":
            attrs["fill_rule"] = self.fill_rule
        return attrs


class Subpath(BaseModel):
    """One polyline run of a path, optionally closed"""
    points: List[Tuple[float, float]]
    closed: bool = False

    def to_shapely(self) -> BaseGeometry:
        """Closed runs become polygons, open runs line strings"""
        if self.closed and len(self.points) >= 3:
            return Polygon(self.points)
        return LineString(self.points)

    def to_outline(self) -> LineString:
        """Centre line of the run, including the closing segment"""
        points = list(self.points)
        if self.closed and points[0] != points[-1]:
            points.append(points[0])
        return LineString(points)

    def path_data(self, precision: int = 4) -> str:
        fmt = f"{{:.{precision}f}}"
        head = self.points[0]
        parts = [f"M {fmt.format(head[0])} {fmt.format(head[1])}"]
        parts.extend(f"L {fmt.format(x)} {fmt.format(y)}" for x, y in self.points[1:])
        if self.closed:
            parts.append("Z")
        return " ".join(parts)


class SceneNode(BaseModel):
    """
    Node of the scene graph.

    Leaf kinds carry subpaths; containers carry children. Use the
    constructors below rather than building nodes by hand.
    """
    kind: NodeKind
    node_id: Optional[str] = None
    style: PaintStyle = Field(default_factory=PaintStyle)
    subpaths: List[Subpath] = Field(default_factory=list)
    children: List["SceneNode"] = Field(default_factory=list)
    markup: Optional[str] = Field(default=None, repr=False)  # verbatim source SVG of a root container

    @classmethod
    def path(cls, subpath: Subpath, style: Optional[PaintStyle] = None, node_id: Optional[str] = None) -> "SceneNode":
        return cls(kind=NodeKind.PATH, subpaths=[subpath], style=style or PaintStyle(), node_id=node_id)

    @classmethod
    def compound(cls, subpaths: List[Subpath], style: Optional[PaintStyle] = None, node_id: Optional[str] = None) -> "SceneNode":
        return cls(kind=NodeKind.COMPOUND, subpaths=list(subpaths), style=style or PaintStyle(), node_id=node_id)

    @classmethod
    def container(cls, children: List["SceneNode"], node_id: Optional[str] = None) -> "SceneNode":
        return cls(kind=NodeKind.CONTAINER, children=list(children), node_id=node_id)

    @classmethod
    def from_subpaths(cls, subpaths: List[Subpath], style: Optional[PaintStyle] = None, node_id: Optional[str] = None) -> Optional["SceneNode"]:
        """Simple path for one run, compound path for several, None for none"""
        if not subpaths:
            return None
        if len(subpaths) == 1:
            return cls.path(subpaths[0], style, node_id)
        return cls.compound(subpaths, style, node_id)

    @property
    def is_primitive(self) -> bool:
        return self.kind != NodeKind.CONTAINER

    def iter_primitives(self) -> Iterator["SceneNode"]:
        """Depth-first leaf primitives in document order"""
        if self.kind == NodeKind.CONTAINER:
            for child in self.children:
                yield from child.iter_primitives()
        else:
            yield self

    def geometry(self) -> BaseGeometry:
        """Shapely geometry of the node (union of all runs for containers)"""
        parts = [sub.to_shapely() for prim in self.iter_primitives() for sub in prim.subpaths]
        if not parts:
            return Polygon()
        if len(parts) == 1:
            return parts[0]
        return unary_union([p if p.is_valid else p.buffer(0) for p in parts])

    def bounds(self) -> Optional[Bounds]:
        """Axis-aligned bounds of all points, None for an empty node"""
        points = [pt for prim in self.iter_primitives() for sub in prim.subpaths for pt in sub.points]
        if not points:
            return None
        arr = np.asarray(points, dtype=np.float64)
        minx, miny = arr.min(axis=0)
        maxx, maxy = arr.max(axis=0)
        return (float(minx), float(miny), float(maxx), float(maxy))

    def map_points(self, matrix: np.ndarray) -> "SceneNode":
        """
        Copy of the node with a 3x3 affine matrix applied to every point

        Stroke widths are scaled by the matrix's area factor.
        """
        if self.kind == NodeKind.CONTAINER:
            return self.model_copy(update={"children": [c.map_points(matrix) for c in self.children]})

        new_subpaths = []
        for sub in self.subpaths:
            arr = np.asarray(sub.points, dtype=np.float64)
            homog = np.hstack([arr, np.ones((len(arr), 1))])
            mapped = homog @ matrix.T
            new_subpaths.append(Subpath(points=[(float(x), float(y)) for x, y, _ in mapped], closed=sub.closed))

        style = self.style
        det = abs(float(np.linalg.det(matrix[:2, :2])))
        if style.stroke is not None and det not in (0.0, 1.0):
            style = style.model_copy(update={"stroke_width": style.stroke_width * float(np.sqrt(det))})
        return self.model_copy(update={"subpaths": new_subpaths, "style": style})

    def translated(self, dx: float, dy: float) -> "SceneNode":
        matrix = np.array([[1.0, 0.0, dx], [0.0, 1.0, dy], [0.0, 0.0, 1.0]])
        return self.map_points(matrix)

    def path_data(self, precision: int = 4) -> str:
        return " ".join(sub.path_data(precision) for sub in self.subpaths)

    def primitive_count(self) -> int:
        return sum(1 for _ in self.iter_primitives())


SceneNode.model_rebuild()


def subpaths_from_geometry(geom: BaseGeometry) -> List[Subpath]:
    """
    Convert a shapely result back into subpaths

    Polygons contribute their exterior and interior rings as closed runs,
    lines contribute open runs, points and empty parts are dropped.
    """
    if geom is None or geom.is_empty:
        return []

    geom_type = geom.geom_type
    if geom_type == "Polygon":
        rings = [geom.exterior, *geom.interiors]
        result = []
        for ring in rings:
            coords = [(float(x), float(y)) for x, y in ring.coords]
            if len(coords) >= 4:
                result.append(Subpath(points=coords[:-1], closed=True))
        return result
    if geom_type in ("LineString", "LinearRing"):
        coords = [(float(x), float(y)) for x, y in geom.coords]
        if len(coords) < 2:
            return []
        return [Subpath(points=coords, closed=geom_type == "LinearRing")]
    if geom_type in ("MultiPolygon", "MultiLineString", "GeometryCollection"):
        result = []
        for part in geom.geoms:
            result.extend(subpaths_from_geometry(part))
        return result
    return []
