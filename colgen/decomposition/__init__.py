"""
Convex decomposition: hole bridging, ear clipping, Hertel-Mehlhorn merge.
"""

from colgen.decomposition.triangulation import (
    ear_clip,
    find_bridge,
    merge_holes_with_bridges,
)
from colgen.decomposition.convex_merge import merge_triangles
from colgen.decomposition.decomposer import ConvexDecomposer, validate_polygon

__all__ = [
    "ear_clip",
    "find_bridge",
    "merge_holes_with_bridges",
    "merge_triangles",
    "ConvexDecomposer",
    "validate_polygon",
]
