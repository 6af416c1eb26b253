"""
Hertel-Mehlhorn merging of a triangulation into convex pieces.

Pieces are lists of vertex ids into a shared point array, positively
oriented. Two pieces are adjacent when one holds the directed edge (u, v)
and the other holds (v, u); that edge is a diagonal that may be removed.
"""

from __future__ import annotations

from typing import Iterable, Optional

import numpy as np

from colgen.geometry import GEOMETRY_EPSILON, cross_2d

Piece = list[int]


def _edges(piece: Piece) -> list[tuple[int, int]]:
    n = len(piece)
    return [(piece[k], piece[(k + 1) % n]) for k in range(n)]


def is_convex_piece(points: np.ndarray, piece: Piece, epsilon: float = GEOMETRY_EPSILON) -> bool:
    """No reflex vertex; collinear vertices are allowed."""
    n = len(piece)
    for k in range(n):
        if cross_2d(points[piece[k - 1]], points[piece[k]], points[piece[(k + 1) % n]]) < -epsilon:
            return False
    return True


def strip_collinear(points: np.ndarray, piece: Piece, epsilon: float = GEOMETRY_EPSILON) -> Piece:
    """Drop vertices lying on the segment between their neighbours."""
    result = list(piece)
    k = 0
    while len(result) > 3 and k < len(result):
        n = len(result)
        if abs(cross_2d(points[result[k - 1]], points[result[k]], points[result[(k + 1) % n]])) <= epsilon:
            result.pop(k)
            k = max(k - 1, 0)
        else:
            k += 1
    return result


def join_pieces(a: Piece, b: Piece, u: int, v: int) -> Piece:
    """
    Glue two pieces along their shared diagonal.

    a holds the edge u -> v, b holds v -> u.
    """
    ia = a.index(u)
    ib = b.index(v)
    # a from v around to u, then b strictly between u and v
    rot_a = a[ia + 1:] + a[:ia + 1]
    rot_b = b[ib + 1:] + b[:ib + 1]
    return rot_a + rot_b[1:-1]


def _evaluate(
    points: np.ndarray,
    a: Piece,
    b: Piece,
    u: int,
    v: int,
    epsilon: float,
) -> Optional[tuple[int, Piece]]:
    merged = join_pieces(a, b, u, v)
    if len(set(merged)) != len(merged):
        return None
    if not is_convex_piece(points, merged, epsilon):
        return None
    reduction = (
        len(strip_collinear(points, a, epsilon))
        + len(strip_collinear(points, b, epsilon))
        - len(strip_collinear(points, merged, epsilon))
    )
    return reduction, merged


def _canonical_rotation(piece: Piece) -> Piece:
    k = piece.index(min(piece))
    return piece[k:] + piece[:k]


def merge_triangles(
    points,
    triangles: Iterable[tuple[int, int, int]],
    epsilon: float = GEOMETRY_EPSILON,
) -> list[Piece]:
    """
    Merge triangles into convex pieces (Hertel-Mehlhorn).

    Each step removes the diagonal whose removal keeps the merged piece
    convex and saves the most vertices; ties go to the lowest (u, v) pair.
    Result pieces have collinear vertices removed and come out in a
    deterministic order.

    Args:
        points: Vertex coordinates, shape (K, 2).
        triangles: Positively oriented triangles as vertex id triples.
        epsilon: Cross product tolerance.

    Returns:
        Convex pieces as vertex id lists.
    """
    pts = np.asarray(points, dtype=np.float64)
    pieces: dict[int, Piece] = {k: list(t) for k, t in enumerate(triangles)}
    next_id = len(pieces)

    owner: dict[tuple[int, int], int] = {}
    for pid, piece in pieces.items():
        for edge in _edges(piece):
            owner[edge] = pid

    cache: dict[tuple[int, int, int, int], Optional[tuple[int, Piece]]] = {}

    while True:
        best = None
        for (u, v), pa in owner.items():
            if u > v:
                continue
            pb = owner.get((v, u))
            if pb is None or pb == pa:
                continue
            key = (pa, pb, u, v)
            if key not in cache:
                cache[key] = _evaluate(pts, pieces[pa], pieces[pb], u, v, epsilon)
            result = cache[key]
            if result is None:
                continue
            rank = (-result[0], u, v)
            if best is None or rank < best[0]:
                best = (rank, pa, pb, result[1])

        if best is None:
            break

        _, pa, pb, merged = best
        for pid in (pa, pb):
            for edge in _edges(pieces.pop(pid)):
                del owner[edge]
        pieces[next_id] = merged
        for edge in _edges(merged):
            owner[edge] = next_id
        next_id += 1

    result = [_canonical_rotation(strip_collinear(pts, piece, epsilon)) for piece in pieces.values()]
    result.sort()
    return result
