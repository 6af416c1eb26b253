"""
Planar geometry predicates shared by the pipeline stages.

All functions take points as np.ndarray of shape (N, 2) (or anything
np.asarray accepts) in a single consistent coordinate system.
"""

from __future__ import annotations

import numpy as np

GEOMETRY_EPSILON = 1e-9


def as_points(points) -> np.ndarray:
    """Convert input to float64 array of shape (N, 2)."""
    arr = np.asarray(points, dtype=np.float64)
    if arr.size == 0:
        return arr.reshape(0, 2)
    return arr.reshape(-1, 2)


def signed_area_2d(polygon) -> float:
    """Signed area of a closed ring (positive for CCW)."""
    pts = as_points(polygon)
    if len(pts) < 3:
        return 0.0
    x = pts[:, 0]
    y = pts[:, 1]
    return float(0.5 * (np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y)))


def cross_2d(o, a, b) -> float:
    """Z component of (a - o) x (b - o)."""
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def point_in_triangle_2d(p, a, b, c) -> bool:
    """Point inside triangle or on its boundary."""
    d1 = cross_2d(a, b, p)
    d2 = cross_2d(b, c, p)
    d3 = cross_2d(c, a, p)

    has_neg = (d1 < 0) or (d2 < 0) or (d3 < 0)
    has_pos = (d1 > 0) or (d2 > 0) or (d3 > 0)

    return not (has_neg and has_pos)


def points_in_triangle_2d(points: np.ndarray, a, b, c) -> np.ndarray:
    """Vectorised point_in_triangle_2d, returns bool mask of shape (N,)."""
    px = points[:, 0]
    py = points[:, 1]
    d1 = (b[0] - a[0]) * (py - a[1]) - (b[1] - a[1]) * (px - a[0])
    d2 = (c[0] - b[0]) * (py - b[1]) - (c[1] - b[1]) * (px - b[0])
    d3 = (a[0] - c[0]) * (py - c[1]) - (a[1] - c[1]) * (px - c[0])

    has_neg = (d1 < 0) | (d2 < 0) | (d3 < 0)
    has_pos = (d1 > 0) | (d2 > 0) | (d3 > 0)
    return ~(has_neg & has_pos)


def _within_box(px, py, ax, ay, bx, by, eps):
    return (
        (np.minimum(ax, bx) - eps <= px) & (px <= np.maximum(ax, bx) + eps)
        & (np.minimum(ay, by) - eps <= py) & (py <= np.maximum(ay, by) + eps)
    )


def segment_hits(
    a1,
    a2,
    starts: np.ndarray,
    ends: np.ndarray,
    epsilon: float = GEOMETRY_EPSILON,
) -> np.ndarray:
    """
    Test segment a1-a2 against many segments at once.

    Touching and collinear overlap count as intersection.

    Returns:
        bool mask of shape (len(starts),).
    """
    sx, sy = starts[:, 0], starts[:, 1]
    ex, ey = ends[:, 0], ends[:, 1]
    ax, ay = a1[0], a1[1]
    bx, by = a2[0], a2[1]

    d1 = (ex - sx) * (ay - sy) - (ey - sy) * (ax - sx)
    d2 = (ex - sx) * (by - sy) - (ey - sy) * (bx - sx)
    d3 = (bx - ax) * (sy - ay) - (by - ay) * (sx - ax)
    d4 = (bx - ax) * (ey - ay) - (by - ay) * (ex - ax)

    proper = (
        (((d1 > epsilon) & (d2 < -epsilon)) | ((d1 < -epsilon) & (d2 > epsilon)))
        & (((d3 > epsilon) & (d4 < -epsilon)) | ((d3 < -epsilon) & (d4 > epsilon)))
    )
    touch = (
        ((np.abs(d1) <= epsilon) & _within_box(ax, ay, sx, sy, ex, ey, epsilon))
        | ((np.abs(d2) <= epsilon) & _within_box(bx, by, sx, sy, ex, ey, epsilon))
        | ((np.abs(d3) <= epsilon) & _within_box(sx, sy, ax, ay, bx, by, epsilon))
        | ((np.abs(d4) <= epsilon) & _within_box(ex, ey, ax, ay, bx, by, epsilon))
    )
    return proper | touch


def segment_crossings(
    a1,
    a2,
    starts: np.ndarray,
    ends: np.ndarray,
    epsilon: float = GEOMETRY_EPSILON,
) -> np.ndarray:
    """Proper crossings of segment a1-a2 with many segments, touching excluded."""
    sx, sy = starts[:, 0], starts[:, 1]
    ex, ey = ends[:, 0], ends[:, 1]
    ax, ay = a1[0], a1[1]
    bx, by = a2[0], a2[1]

    d1 = (ex - sx) * (ay - sy) - (ey - sy) * (ax - sx)
    d2 = (ex - sx) * (by - sy) - (ey - sy) * (bx - sx)
    d3 = (bx - ax) * (sy - ay) - (by - ay) * (sx - ax)
    d4 = (bx - ax) * (ey - ay) - (by - ay) * (ex - ax)

    return (
        (((d1 > epsilon) & (d2 < -epsilon)) | ((d1 < -epsilon) & (d2 > epsilon)))
        & (((d3 > epsilon) & (d4 < -epsilon)) | ((d3 < -epsilon) & (d4 > epsilon)))
    )


def ring_edges(ring: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Edge start and end points of a closed ring."""
    return ring, np.roll(ring, -1, axis=0)


def ring_self_intersects(ring, epsilon: float = GEOMETRY_EPSILON) -> bool:
    """
    Check that a closed ring is not simple.

    Non-adjacent edges must not touch; adjacent edges must not fold back
    onto each other.
    """
    pts = as_points(ring)
    n = len(pts)
    if n < 3:
        return True

    starts, ends = ring_edges(pts)

    # Spikes: consecutive edges collinear and pointing in opposite directions
    prev_vec = pts - np.roll(pts, 1, axis=0)
    next_vec = np.roll(pts, -1, axis=0) - pts
    cross = prev_vec[:, 0] * next_vec[:, 1] - prev_vec[:, 1] * next_vec[:, 0]
    dot = prev_vec[:, 0] * next_vec[:, 0] + prev_vec[:, 1] * next_vec[:, 1]
    if np.any((np.abs(cross) <= epsilon) & (dot < 0)):
        return True

    for i in range(n - 2):
        last = n if i > 0 else n - 1
        if last <= i + 2:
            continue
        hits = segment_hits(starts[i], ends[i], starts[i + 2:last], ends[i + 2:last], epsilon)
        if np.any(hits):
            return True
    return False


def rings_intersect(ring_a, ring_b, epsilon: float = GEOMETRY_EPSILON) -> bool:
    """Any edge of ring_a touches or crosses any edge of ring_b."""
    a = as_points(ring_a)
    b = as_points(ring_b)
    b_starts, b_ends = ring_edges(b)
    a_starts, a_ends = ring_edges(a)
    for i in range(len(a)):
        if np.any(segment_hits(a_starts[i], a_ends[i], b_starts, b_ends, epsilon)):
            return True
    return False


def point_in_polygon(point, ring) -> bool:
    """Even-odd ray casting test. Points on the boundary are unspecified."""
    pts = as_points(ring)
    x, y = float(point[0]), float(point[1])
    xs, ys = pts[:, 0], pts[:, 1]
    xn, yn = np.roll(xs, -1), np.roll(ys, -1)

    crosses = (ys > y) != (yn > y)
    denom = np.where(crosses, yn - ys, 1.0)
    x_hit = xs + (y - ys) * (xn - xs) / denom
    return bool(np.count_nonzero(crosses & (x < x_hit)) % 2 == 1)


def point_segment_distances(points: np.ndarray, a, b) -> np.ndarray:
    """Euclidean distance from each point to segment a-b."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    seg = b - a
    seg_len_sq = float(np.dot(seg, seg))
    rel = points - a
    if seg_len_sq < 1e-20:
        return np.hypot(rel[:, 0], rel[:, 1])
    t = np.clip((rel @ seg) / seg_len_sq, 0.0, 1.0)
    closest = a + t[:, None] * seg
    diff = points - closest
    return np.hypot(diff[:, 0], diff[:, 1])


def distance_to_ring(point, ring) -> float:
    """Distance from a point to the nearest point of a closed ring."""
    pts = as_points(ring)
    p = np.asarray(point, dtype=np.float64).reshape(1, 2)
    starts, ends = ring_edges(pts)
    best = np.inf
    for i in range(len(pts)):
        best = min(best, float(point_segment_distances(p, starts[i], ends[i])[0]))
    return best


def edge_crosses(ring) -> np.ndarray:
    """Cross product at every vertex of a closed ring, shape (N,)."""
    pts = as_points(ring)
    prev_vec = pts - np.roll(pts, 1, axis=0)
    next_vec = np.roll(pts, -1, axis=0) - pts
    return prev_vec[:, 0] * next_vec[:, 1] - prev_vec[:, 1] * next_vec[:, 0]


def is_convex_ring(ring, epsilon: float = GEOMETRY_EPSILON) -> bool:
    """Positively oriented ring without reflex vertices."""
    pts = as_points(ring)
    if len(pts) < 3:
        return False
    if signed_area_2d(pts) <= 0.0:
        return False
    return bool(np.all(edge_crosses(pts) >= -epsilon))


def dedupe_ring(ring, epsilon: float = 1e-12) -> np.ndarray:
    """Drop consecutive coincident points, including the closing pair."""
    pts = as_points(ring)
    if len(pts) == 0:
        return pts
    keep = [0]
    for i in range(1, len(pts)):
        if np.max(np.abs(pts[i] - pts[keep[-1]])) > epsilon:
            keep.append(i)
    while len(keep) > 1 and np.max(np.abs(pts[keep[-1]] - pts[keep[0]])) <= epsilon:
        keep.pop()
    return pts[keep]
