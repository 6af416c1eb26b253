"""
Contour simplification with bounded deviation.

Douglas-Peucker over point-to-segment distances: every point of a
simplified contour lies within epsilon of the original contour, and the
simplified vertices are a subset of the original ones.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from colgen import log
from colgen.geometry import (
    as_points,
    dedupe_ring,
    point_in_polygon,
    point_segment_distances,
    ring_self_intersects,
    rings_intersect,
    signed_area_2d,
)
from colgen.types import Contour, Diagnostic, DiagnosticKind, Polygon, Severity
from colgen.contours.tree import ContourTree

# Absorbs rounding in distance computations; exact collinear points go at epsilon = 0
_DISTANCE_SLACK = 1e-12

# Below this the tolerance retry ladder jumps straight to zero
_MIN_RETRY_EPSILON = 1e-3

_MIN_RING_AREA = 1e-12


def douglas_peucker_indices(points: np.ndarray, epsilon: float) -> np.ndarray:
    """
    Indices of the vertices kept by Douglas-Peucker on an open polyline.

    The first and the last point are always kept.
    """
    n = len(points)
    if n <= 2:
        return np.arange(n)

    keep = np.zeros(n, dtype=bool)
    keep[0] = True
    keep[-1] = True

    stack = [(0, n - 1)]
    while stack:
        start_idx, end_idx = stack.pop()
        if end_idx - start_idx <= 1:
            continue

        dist = point_segment_distances(points[start_idx + 1:end_idx], points[start_idx], points[end_idx])
        k = int(np.argmax(dist))
        if dist[k] > epsilon + _DISTANCE_SLACK:
            max_idx = start_idx + 1 + k
            keep[max_idx] = True
            stack.append((max_idx, end_idx))
            stack.append((start_idx, max_idx))

    return np.flatnonzero(keep)


def douglas_peucker_2d(points, epsilon: float) -> np.ndarray:
    """
    Simplify an open 2D polyline with Douglas-Peucker.

    Args:
        points: Polyline vertices, shape (N, 2).
        epsilon: Maximum deviation.

    Returns:
        Simplified polyline, shape (M, 2).
    """
    pts = as_points(points)
    return pts[douglas_peucker_indices(pts, epsilon)]


def _cut_points(ring: np.ndarray) -> tuple[int, int]:
    """
    Anchor = lexicographically smallest vertex (x, then y).
    Far = vertex farthest from the anchor, ties to the smallest coordinates.
    """
    order = np.lexsort((ring[:, 1], ring[:, 0]))
    anchor = int(order[0])

    d2 = np.sum((ring - ring[anchor]) ** 2, axis=1)
    candidates = np.flatnonzero(d2 == d2.max())
    if len(candidates) > 1:
        sub = ring[candidates]
        candidates = candidates[np.lexsort((sub[:, 1], sub[:, 0]))]
    return anchor, int(candidates[0])


def _chain_within(ring: np.ndarray, first: int, last: int, epsilon: float) -> bool:
    """All ring vertices strictly between first and last (cyclic) lie within epsilon of first-last."""
    n = len(ring)
    between = [(first + k) % n for k in range(1, (last - first) % n)]
    if not between:
        return True
    dist = point_segment_distances(ring[between], ring[first], ring[last])
    return bool(np.max(dist) <= epsilon + _DISTANCE_SLACK)


def simplify_closed(points, epsilon: float) -> np.ndarray:
    """
    Simplify a closed ring independent of its start vertex.

    The ring is cut at two vertices chosen by geometry (see _cut_points) and
    both chains are simplified separately. Afterwards the two cut vertices
    themselves are dropped when the bound allows it.

    Returns:
        Simplified ring, orientation preserved. May have fewer than 3 points.
    """
    ring = dedupe_ring(points)
    n = len(ring)
    if n < 3:
        return ring

    anchor, far = _cut_points(ring)
    ring = np.roll(ring, -anchor, axis=0)
    far = (far - anchor) % n

    chain_a = ring[:far + 1]
    chain_b = np.vstack([ring[far:], ring[:1]])
    keep_a = douglas_peucker_indices(chain_a, epsilon)
    keep_b = douglas_peucker_indices(chain_b, epsilon) + far

    kept = [int(i) for i in keep_a[:-1]] + [int(i) % n for i in keep_b[:-1]]

    # Cut vertices were forced; release them if the neighbouring chord stays in bound
    for forced in (0, far):
        if len(kept) <= 3 or forced not in kept:
            continue
        pos = kept.index(forced)
        prev_v = kept[pos - 1]
        next_v = kept[(pos + 1) % len(kept)]
        if _chain_within(ring, prev_v, next_v, epsilon):
            kept.pop(pos)

    return ring[kept]


def _area_kept(area: float, reference: float, max_error: Optional[float]) -> bool:
    """Relative area change within max_error; None disables the check."""
    if max_error is None or abs(reference) <= _MIN_RING_AREA:
        return True
    return abs(area - reference) <= max_error * abs(reference)


def simplify_ring(
    points,
    epsilon: float,
    max_area_error: Optional[float] = None,
) -> tuple[np.ndarray, float]:
    """
    Simplify a closed ring, lowering epsilon while the result is not simple
    or its area drifts more than max_area_error (relative) from the input.

    The ladder is epsilon, epsilon/2, ... down to 0 (collinear removal only).
    Degenerate results (< 3 points or zero area) are returned as is.

    Returns:
        (ring, epsilon actually used).
    """
    pts = dedupe_ring(points)
    traced = signed_area_2d(pts)
    eps = float(epsilon)
    while True:
        ring = simplify_closed(pts, eps)
        if len(ring) < 3 or abs(signed_area_2d(ring)) <= _MIN_RING_AREA:
            return ring, eps
        area = signed_area_2d(ring)
        valid = (
            np.sign(area) == np.sign(traced)
            and not ring_self_intersects(ring)
            and _area_kept(area, traced, max_area_error)
        )
        if valid or eps == 0.0:
            return ring, eps
        eps = eps / 2.0 if eps / 2.0 >= _MIN_RETRY_EPSILON else 0.0


def _tolerance_ladder(epsilon: float) -> list[float]:
    ladder = [float(epsilon)]
    eps = float(epsilon)
    while eps > 0.0:
        eps = eps / 2.0 if eps / 2.0 >= _MIN_RETRY_EPSILON else 0.0
        ladder.append(eps)
    return ladder


class ContourSimplifier:
    """
    Simplifies traced contours and assembles them into polygons.

    Args:
        epsilon: Maximum deviation from the traced contour, grid cells.
        min_area: Contours with smaller absolute area are skipped (outer)
            or filled (holes). Area exactly equal to min_area is kept.
        max_area_error: Relative area change tolerated before epsilon is
            lowered, None to only require simple rings.
    """

    def __init__(
        self,
        epsilon: float = 0.5,
        min_area: float = 1.0,
        max_area_error: Optional[float] = 0.05,
    ) -> None:
        self.epsilon = epsilon
        self.min_area = min_area
        self.max_area_error = max_area_error

    def simplify(
        self,
        contour: Contour,
        index: Optional[int] = None,
    ) -> tuple[Optional[Contour], list[Diagnostic]]:
        """
        Simplify one contour.

        Returns:
            (simplified contour or None when dropped, diagnostics).
        """
        diagnostics: list[Diagnostic] = []
        ring, used = simplify_ring(contour.points, self.epsilon, self.max_area_error)
        label = "hole" if contour.is_hole else "contour"
        drop_kind = DiagnosticKind.HOLE_FILLED if contour.is_hole else DiagnosticKind.CONTOUR_SKIPPED

        if len(ring) < 3 or abs(signed_area_2d(ring)) <= _MIN_RING_AREA:
            diagnostics.append(Diagnostic(
                kind=drop_kind,
                message=f"{label} {index} degenerated to {len(ring)} points after simplification",
                contour_index=index,
            ))
            return None, diagnostics

        if used < self.epsilon:
            diagnostics.append(self._reduced(label, index, used))

        area = abs(signed_area_2d(ring))
        if area < self.min_area:
            diagnostics.append(Diagnostic(
                kind=drop_kind,
                message=f"{label} {index} skipped: area {area:.4g} below minimum {self.min_area:.4g}",
                contour_index=index,
            ))
            return None, diagnostics

        return Contour(points=ring, is_hole=contour.is_hole), diagnostics

    def build_polygons(self, tree: ContourTree) -> tuple[list[Polygon], list[Diagnostic]]:
        """
        Simplify every outer contour of the tree together with its holes.

        Holes that leave their outer boundary or touch another hole after
        simplification are retried with smaller epsilon, then filled.
        """
        polygons: list[Polygon] = []
        diagnostics: list[Diagnostic] = []

        for index in tree.outer_indices():
            outer, notes = self.simplify(tree[index], index)
            diagnostics.extend(notes)
            if outer is None:
                continue

            holes: list[Contour] = []
            for hole_index in tree.children(index):
                hole, notes = self._fit_hole(tree[hole_index], hole_index, outer, holes)
                diagnostics.extend(notes)
                if hole is not None:
                    holes.append(hole)

            polygons.append(Polygon(outer=outer, holes=tuple(holes), source_index=index))

        log.debug(f"[ContourSimplifier] {len(polygons)} polygons, {len(diagnostics)} notices")
        return polygons, diagnostics

    def _fit_hole(
        self,
        hole: Contour,
        index: int,
        outer: Contour,
        accepted: list[Contour],
    ) -> tuple[Optional[Contour], list[Diagnostic]]:
        pts = dedupe_ring(hole.points)
        traced = signed_area_2d(pts)

        for eps in _tolerance_ladder(self.epsilon):
            ring = simplify_closed(pts, eps)
            area = signed_area_2d(ring)
            if len(ring) < 3 or abs(area) <= _MIN_RING_AREA:
                return None, [Diagnostic(
                    kind=DiagnosticKind.HOLE_FILLED,
                    message=f"hole {index} degenerated to {len(ring)} points after simplification",
                    contour_index=index,
                )]
            if area > 0.0 or ring_self_intersects(ring):
                continue
            if not _area_kept(area, traced, self.max_area_error):
                continue
            if not point_in_polygon(ring[0], outer.points) or rings_intersect(ring, outer.points):
                continue
            if any(rings_intersect(ring, other.points) for other in accepted):
                continue

            notes: list[Diagnostic] = []
            if eps < self.epsilon:
                notes.append(self._reduced("hole", index, eps))
            if abs(area) < self.min_area:
                notes.append(Diagnostic(
                    kind=DiagnosticKind.HOLE_FILLED,
                    message=f"hole {index} filled: area {abs(area):.4g} below minimum {self.min_area:.4g}",
                    contour_index=index,
                ))
                return None, notes
            return Contour(points=ring, is_hole=True), notes

        return None, [Diagnostic(
            kind=DiagnosticKind.HOLE_FILLED,
            message=f"hole {index} crosses its boundary after simplification, treated as solid",
            contour_index=index,
        )]

    @staticmethod
    def _reduced(label: str, index: Optional[int], used: float) -> Diagnostic:
        return Diagnostic(
            kind=DiagnosticKind.REDUCED_TOLERANCE,
            message=f"{label} {index} simplified with reduced epsilon {used:.4g}",
            severity=Severity.INFO,
            contour_index=index,
        )
