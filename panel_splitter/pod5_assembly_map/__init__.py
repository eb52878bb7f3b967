"""
Pod 5: Assembly Map Module
Overview document and export summary for a tiled design
"""

from .generator import AssemblyMapGenerator, generate_assembly_map
from .schemas import AssemblyMap
from .summary import ASSEMBLY_MAP_FILE, SUMMARY_FILE, build_export_summary, tile_file_name

__all__ = [
    "AssemblyMapGenerator",
    "generate_assembly_map",
    "AssemblyMap",
    "ASSEMBLY_MAP_FILE",
    "SUMMARY_FILE",
    "build_export_summary",
    "tile_file_name",
]
