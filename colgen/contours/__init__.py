"""
Contour extraction: marching squares tracing, nesting and simplification.
"""

from colgen.contours.marching_squares import ContourTracer, trace_contours
from colgen.contours.tree import ContourTree, build_contour_tree, NO_PARENT
from colgen.contours.simplify import (
    ContourSimplifier,
    douglas_peucker_2d,
    simplify_closed,
    simplify_ring,
)

__all__ = [
    "ContourTracer",
    "trace_contours",
    "ContourTree",
    "build_contour_tree",
    "NO_PARENT",
    "ContourSimplifier",
    "douglas_peucker_2d",
    "simplify_closed",
    "simplify_ring",
]
