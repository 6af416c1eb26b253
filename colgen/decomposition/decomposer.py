"""
Decomposition of polygons with holes into convex pieces.
"""

from __future__ import annotations

import numpy as np

from colgen import log
from colgen.errors import DecompositionError
from colgen.geometry import (
    GEOMETRY_EPSILON,
    point_in_polygon,
    ring_self_intersects,
    rings_intersect,
    signed_area_2d,
)
from colgen.types import ConvexPolygon, Diagnostic, DiagnosticKind, Polygon, Severity
from colgen.decomposition.convex_merge import merge_triangles
from colgen.decomposition.triangulation import ear_clip, merge_holes_with_bridges

_MIN_POLYGON_AREA = 1e-12
_AREA_RTOL = 1e-6


def _shared_vertices(ring: np.ndarray) -> tuple[np.ndarray, list[int]]:
    """Collapse repeated points of a bridged ring onto one vertex id."""
    ids: dict[tuple[float, float], int] = {}
    unique: list[tuple[float, float]] = []
    mapping: list[int] = []
    for x, y in ring.tolist():
        key = (x, y)
        idx = ids.get(key)
        if idx is None:
            idx = len(unique)
            ids[key] = idx
            unique.append(key)
        mapping.append(idx)
    return np.array(unique, dtype=np.float64).reshape(-1, 2), mapping


def validate_polygon(polygon: Polygon, epsilon: float = GEOMETRY_EPSILON) -> None:
    """
    Check the topology the decomposer relies on.

    Raises:
        DecompositionError: Self-intersecting rings, wrong orientation, or
            holes that cross or leave the outer ring or overlap each other.
    """
    outer = polygon.outer.points
    if len(outer) < 3:
        raise DecompositionError(f"outer boundary has {len(outer)} points")
    if ring_self_intersects(outer, epsilon):
        raise DecompositionError("outer boundary intersects itself")
    if signed_area_2d(outer) <= 0.0:
        raise DecompositionError("outer boundary must have positive orientation")

    holes = [h.points for h in polygon.holes]
    for k, hole in enumerate(holes):
        if len(hole) < 3 or ring_self_intersects(hole, epsilon):
            raise DecompositionError(f"hole {k} intersects itself")
        if signed_area_2d(hole) >= 0.0:
            raise DecompositionError(f"hole {k} must have negative orientation")
        if rings_intersect(hole, outer, epsilon):
            raise DecompositionError(f"hole {k} crosses the outer boundary")
        if not point_in_polygon(hole[0], outer):
            raise DecompositionError(f"hole {k} lies outside the outer boundary")

    for k in range(len(holes)):
        for j in range(k + 1, len(holes)):
            if rings_intersect(holes[k], holes[j], epsilon):
                raise DecompositionError(f"holes {k} and {j} intersect")
            if point_in_polygon(holes[k][0], holes[j]) or point_in_polygon(holes[j][0], holes[k]):
                raise DecompositionError(f"holes {k} and {j} are nested")


class ConvexDecomposer:
    """
    Splits a Polygon into convex pieces.

    Holes are bridged into the outer ring, the ring is ear clipped and the
    triangles are merged back greedily while the pieces stay convex.

    Args:
        epsilon: Cross product tolerance for convexity and collinearity.
    """

    def __init__(self, epsilon: float = GEOMETRY_EPSILON) -> None:
        self.epsilon = epsilon

    def decompose(
        self,
        polygon: Polygon,
        index: int | None = None,
    ) -> tuple[list[ConvexPolygon], list[Diagnostic]]:
        """
        Decompose one polygon.

        Args:
            polygon: Polygon in grid space.
            index: Contour index reported in diagnostics, defaults to
                polygon.source_index.

        Returns:
            (convex pieces, diagnostics).

        Raises:
            DecompositionError: Invalid input topology, or the decomposition
                failed its own area check.
        """
        if index is None:
            index = polygon.source_index
        validate_polygon(polygon, self.epsilon)

        diagnostics: list[Diagnostic] = []
        holes = [h.points for h in polygon.holes]
        ring, unbridged = merge_holes_with_bridges(polygon.outer.points, holes, self.epsilon)
        for k in unbridged:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.HOLE_FILLED,
                message=f"hole {k} of polygon {index} has no valid bridge, treated as solid",
                contour_index=index,
            ))

        expected = polygon.outer.area - sum(
            abs(signed_area_2d(h)) for k, h in enumerate(holes) if k not in unbridged
        )
        if expected <= _MIN_POLYGON_AREA:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.POLYGON_SKIPPED,
                message=f"polygon {index} has zero area",
                severity=Severity.INFO,
                contour_index=index,
            ))
            return [], diagnostics

        points, mapping = _shared_vertices(ring)
        triangles = [
            (mapping[a], mapping[b], mapping[c])
            for a, b, c in ear_clip(ring, self.epsilon)
        ]
        pieces = merge_triangles(points, triangles, self.epsilon)

        result = [ConvexPolygon(points[piece]) for piece in pieces]
        for k, piece in enumerate(result):
            if not piece.is_convex(self.epsilon):
                raise DecompositionError(f"piece {k} of polygon {index} is not convex")

        total = sum(p.area for p in result)
        if not np.isclose(total, expected, rtol=_AREA_RTOL, atol=_MIN_POLYGON_AREA):
            raise DecompositionError(
                f"pieces of polygon {index} cover area {total:.6g}, expected {expected:.6g}"
            )

        log.debug(
            f"[ConvexDecomposer] polygon {index}: {len(triangles)} triangles -> {len(result)} pieces"
        )
        return result, diagnostics
