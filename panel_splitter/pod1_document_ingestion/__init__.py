"""
POD 1: Document Ingestion Module
Parses SVG input, resolves its physical size and builds the scene graph
"""

from .parser import parse_document, load_scene, get_base_file_name, reparse_with_unit_mode
from .schemas import SourceDocument, UnitMode, ViewBox
from .scene import NodeKind, PaintStyle, SceneNode, Subpath
from .units import parse_length, convert_to_mm

__all__ = [
    "parse_document",
    "load_scene",
    "get_base_file_name",
    "reparse_with_unit_mode",
    "SourceDocument",
    "UnitMode",
    "ViewBox",
    "NodeKind",
    "PaintStyle",
    "SceneNode",
    "Subpath",
    "parse_length",
    "convert_to_mm"
]
