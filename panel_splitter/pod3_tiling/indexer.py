"""
Primitive Indexer - Spatial indexing of scene primitives for per-tile queries
"""

import logging
from typing import List

from rtree import index

from ..pod1_document_ingestion.scene import Bounds, SceneNode

logger = logging.getLogger(__name__)

FILL_FACTOR = 0.4


class PrimitiveIndex:
    """
    R-tree over the bounding boxes of a scene's leaf primitives.

    Built once per run and only read afterwards, so tile workers may
    query it concurrently. Query results keep document order.
    """

    def __init__(self, scene: SceneNode, pad: float = 0.0):
        """
        Initialize primitive index

        Args:
            scene: Scene to index
            pad: Extra distance added around every bounding box (native units)
        """
        self.scene = scene
        self.primitives: List[SceneNode] = []

        # R-tree properties
        self.properties = index.Property()
        self.properties.dimension = 2
        self.properties.variant = index.RT_Quadratic
        # libspatialindex requires a fill factor below 0.5 for quadratic trees
        self.properties.fill_factor = FILL_FACTOR

        self._index = index.Index(properties=self.properties)

        for prim in scene.iter_primitives():
            bounds = prim.bounds()
            if bounds is None:
                continue
            minx, miny, maxx, maxy = bounds
            padded = (minx - pad, miny - pad, maxx + pad, maxy + pad)
            i = len(self.primitives)
            self.primitives.append(prim)
            self._index.insert(i, padded)

        logger.debug(f"Indexed {len(self.primitives)} primitive(s)")

    def __len__(self) -> int:
        return len(self.primitives)

    def candidates(self, window: Bounds) -> List[SceneNode]:
        """
        Primitives whose bounding box intersects a window

        Args:
            window: Query bounds (minx, miny, maxx, maxy)

        Returns:
            Matching primitives in document order
        """
        hits = sorted(self._index.intersection(window))
        return [self.primitives[i] for i in hits]

    def has_content(self, window: Bounds) -> bool:
        """Whether any primitive's bounding box meets the window"""
        return self._index.count(window) > 0
