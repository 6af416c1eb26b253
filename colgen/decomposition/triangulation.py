"""
Polygon triangulation for convex decomposition.

Holes are spliced into the outer ring through bridge edges, the resulting
weakly simple ring is cut into triangles by ear clipping.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from colgen.errors import DecompositionError
from colgen.geometry import (
    GEOMETRY_EPSILON,
    as_points,
    cross_2d,
    point_in_polygon,
    points_in_triangle_2d,
    ring_edges,
    segment_crossings,
    segment_hits,
)


def _coincident(points: np.ndarray, p, epsilon: float) -> np.ndarray:
    return (np.abs(points[:, 0] - p[0]) <= epsilon) & (np.abs(points[:, 1] - p[1]) <= epsilon)


def locally_inside(prev_p, curr_p, next_p, target, epsilon: float = GEOMETRY_EPSILON) -> bool:
    """
    Check that the direction curr_p -> target leaves the vertex into the
    material, i.e. into the wedge on the left of the ring at curr_p.

    Works for both orientations: for an outer ring the material is its
    interior, for a clockwise hole ring it is the exterior.
    """
    ux, uy = next_p[0] - curr_p[0], next_p[1] - curr_p[1]
    wx, wy = prev_p[0] - curr_p[0], prev_p[1] - curr_p[1]
    dx, dy = target[0] - curr_p[0], target[1] - curr_p[1]

    u_d = ux * dy - uy * dx
    d_w = dx * wy - dy * wx
    if ux * wy - uy * wx > epsilon:
        return u_d > epsilon and d_w > epsilon
    return u_d > epsilon or d_w > epsilon


def _runs_along(p, q, others: np.ndarray, epsilon: float) -> bool:
    """Segment p-q overlaps one of the segments p-others[k]."""
    if len(others) == 0:
        return False
    dx, dy = q[0] - p[0], q[1] - p[1]
    ox = others[:, 0] - p[0]
    oy = others[:, 1] - p[1]
    cross = dx * oy - dy * ox
    dot = dx * ox + dy * oy
    return bool(np.any((np.abs(cross) <= epsilon) & (dot > 0.0)))


def _incident_split(starts: np.ndarray, ends: np.ndarray, p, epsilon: float):
    at_start = _coincident(starts, p, epsilon)
    at_end = _coincident(ends, p, epsilon)
    incident = at_start | at_end
    far_ends = np.vstack([ends[at_start], starts[at_end]])
    return incident, far_ends


def is_valid_bridge(
    ring: np.ndarray,
    ring_idx: int,
    hole: np.ndarray,
    hole_idx: int,
    obstacles: Sequence[np.ndarray] = (),
    epsilon: float = GEOMETRY_EPSILON,
) -> bool:
    """
    Check that ring[ring_idx] - hole[hole_idx] can serve as a bridge.

    The bridge must leave both vertices into the material, must not touch
    any edge other than the ones meeting at its endpoints (and must not run
    along those), and its midpoint must lie inside the ring and outside
    every hole.
    """
    p = ring[ring_idx]
    q = hole[hole_idx]
    n = len(ring)
    m = len(hole)

    if not locally_inside(ring[ring_idx - 1], p, ring[(ring_idx + 1) % n], q, epsilon):
        return False
    if not locally_inside(hole[hole_idx - 1], q, hole[(hole_idx + 1) % m], p, epsilon):
        return False

    for points, origin, target in ((ring, p, q), (hole, q, p)):
        starts, ends = ring_edges(points)
        incident, far_ends = _incident_split(starts, ends, origin, epsilon)
        if _runs_along(origin, target, far_ends, epsilon):
            return False
        if np.any(segment_hits(p, q, starts[~incident], ends[~incident], epsilon)):
            return False

    for other in obstacles:
        starts, ends = ring_edges(other)
        if np.any(segment_hits(p, q, starts, ends, epsilon)):
            return False

    mid = (p + q) / 2.0
    if not point_in_polygon(mid, ring) or point_in_polygon(mid, hole):
        return False
    return not any(point_in_polygon(mid, other) for other in obstacles)


def find_bridge(
    ring: np.ndarray,
    hole: np.ndarray,
    obstacles: Sequence[np.ndarray] = (),
    epsilon: float = GEOMETRY_EPSILON,
) -> Optional[tuple[int, int]]:
    """
    Find the shortest valid bridge between a ring and a hole.

    Candidate pairs are tried by squared length, ties by hole vertex index,
    then ring vertex index.

    Args:
        ring: Current (possibly already bridged) outer ring, shape (N, 2).
        hole: Hole ring, shape (M, 2), clockwise.
        obstacles: Holes not yet spliced in.

    Returns:
        (ring_idx, hole_idx) or None if no valid bridge exists.
    """
    diff = ring[:, None, :] - hole[None, :, :]
    d2 = np.einsum("ijk,ijk->ij", diff, diff)
    ring_ids, hole_ids = np.indices(d2.shape)
    order = np.lexsort((ring_ids.ravel(), hole_ids.ravel(), d2.ravel()))

    for flat in order:
        ri = int(ring_ids.flat[flat])
        hi = int(hole_ids.flat[flat])
        if is_valid_bridge(ring, ri, hole, hi, obstacles, epsilon):
            return ri, hi
    return None


def splice_hole(ring: np.ndarray, ring_idx: int, hole: np.ndarray, hole_idx: int) -> np.ndarray:
    """Insert a hole into the ring through the bridge ring[ring_idx] - hole[hole_idx]."""
    hole_walk = np.roll(hole, -hole_idx, axis=0)
    return np.vstack([
        ring[:ring_idx + 1],
        hole_walk,
        hole_walk[:1],
        ring[ring_idx:ring_idx + 1],
        ring[ring_idx + 1:],
    ])


def merge_holes_with_bridges(
    outer,
    holes: Sequence,
    epsilon: float = GEOMETRY_EPSILON,
) -> tuple[np.ndarray, list[int]]:
    """
    Merge holes into the outer boundary through bridge edges.

    Holes are processed from right to left (decreasing max x, ties by
    index). A hole without a valid bridge is left out of the ring, which
    makes its area solid.

    Args:
        outer: Outer ring shape (N, 2), positive orientation.
        holes: Hole rings, each shape (M, 2), negative orientation.

    Returns:
        (weakly simple ring, indices of holes that could not be bridged).
    """
    result = as_points(outer)
    hole_rings = [as_points(h) for h in holes]
    order = sorted(
        range(len(hole_rings)),
        key=lambda k: (-float(hole_rings[k][:, 0].max()), k),
    )

    unbridged: list[int] = []
    for pos, k in enumerate(order):
        hole = hole_rings[k]
        obstacles = [hole_rings[j] for j in order[pos + 1:]]
        bridge = find_bridge(result, hole, obstacles, epsilon)
        if bridge is None:
            unbridged.append(k)
            continue
        result = splice_hole(result, bridge[0], hole, bridge[1])

    return result, sorted(unbridged)


def _is_ear(pts: np.ndarray, indices: list[int], i: int, epsilon: float) -> bool:
    m = len(indices)
    a = pts[indices[i - 1]]
    b = pts[indices[i]]
    c = pts[indices[(i + 1) % m]]

    rest = [indices[(i + k) % m] for k in range(2, m - 1)]
    if rest:
        others = pts[rest]
        free = ~(_coincident(others, a, epsilon) | _coincident(others, b, epsilon) | _coincident(others, c, epsilon))
        if np.any(points_in_triangle_2d(others[free], a, b, c)):
            return False

    loop = pts[indices]
    starts, ends = ring_edges(loop)
    return not np.any(segment_crossings(a, c, starts, ends, epsilon))


def ear_clip(ring, epsilon: float = GEOMETRY_EPSILON) -> list[tuple[int, int, int]]:
    """
    Triangulate a positively oriented, weakly simple ring by ear clipping.

    Collinear vertices are dropped without producing a triangle.

    Args:
        ring: Vertices, shape (N, 2). Bridged rings may repeat points.
        epsilon: Cross product tolerance for collinearity.

    Returns:
        Triangles [(i, j, k), ...] as indices into ring, all positively
        oriented.

    Raises:
        DecompositionError: No ear can be found.
    """
    pts = as_points(ring)
    n = len(pts)
    if n < 3:
        return []

    indices = list(range(n))
    triangles: list[tuple[int, int, int]] = []

    i = 0
    misses = 0
    while len(indices) > 3:
        m = len(indices)
        i %= m
        prev_idx = indices[i - 1]
        curr_idx = indices[i]
        next_idx = indices[(i + 1) % m]

        cross = cross_2d(pts[prev_idx], pts[curr_idx], pts[next_idx])
        if abs(cross) <= epsilon:
            indices.pop(i)
            i = max(i - 1, 0)
            misses = 0
            continue

        if cross > 0.0 and _is_ear(pts, indices, i, epsilon):
            triangles.append((prev_idx, curr_idx, next_idx))
            indices.pop(i)
            i = max(i - 1, 0)
            misses = 0
            continue

        i += 1
        misses += 1
        if misses >= m:
            raise DecompositionError(
                f"ear clipping stalled with {m} vertices left after {len(triangles)} triangles"
            )

    a, b, c = indices
    cross = cross_2d(pts[a], pts[b], pts[c])
    if cross > epsilon:
        triangles.append((a, b, c))
    elif cross < -epsilon:
        raise DecompositionError("ear clipping left a negatively oriented triangle")

    return triangles
