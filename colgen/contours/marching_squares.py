"""
Contour tracing over an occupancy grid with marching squares.

Samples sit at pixel centres (x + 0.5, y + 0.5). The grid is padded with
one ring of empty samples, so every region closes, including regions that
touch the grid border. Crossings are interpolated linearly at the grid
threshold; for binary input they land on pixel edges.

Every directed segment keeps the solid side on its positive-cross side,
so traced outer boundaries have positive signed area and holes negative.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from colgen import log
from colgen.errors import TracingError
from colgen.raster.grid import OccupancyGrid
from colgen.geometry import dedupe_ring
from colgen.types import Contour

# Cell edges
TOP = 0
RIGHT = 1
BOTTOM = 2
LEFT = 3

# Corner bits of a case index: tl=8, tr=4, br=2, bl=1
TL_BIT = 8
TR_BIT = 4
BR_BIT = 2
BL_BIT = 1

# Directed segments (from_edge, to_edge) per case.
# Saddle cases 5 and 10 are resolved separately.
MARCHING_SQUARES_CASES: dict[int, tuple[tuple[int, int], ...]] = {
    0: (),
    1: ((LEFT, BOTTOM),),
    2: ((BOTTOM, RIGHT),),
    3: ((LEFT, RIGHT),),
    4: ((RIGHT, TOP),),
    6: ((BOTTOM, TOP),),
    7: ((LEFT, TOP),),
    8: ((TOP, LEFT),),
    9: ((TOP, BOTTOM),),
    11: ((TOP, RIGHT),),
    12: ((RIGHT, LEFT),),
    13: ((RIGHT, BOTTOM),),
    14: ((BOTTOM, LEFT),),
    15: (),
}

# Saddles: (centre solid -> solid corners joined, centre empty -> separated)
SADDLE_CASES: dict[int, tuple[tuple[tuple[int, int], ...], tuple[tuple[int, int], ...]]] = {
    5: (((LEFT, TOP), (RIGHT, BOTTOM)), ((RIGHT, TOP), (LEFT, BOTTOM))),
    10: (((TOP, RIGHT), (BOTTOM, LEFT)), ((TOP, LEFT), (BOTTOM, RIGHT))),
}

# Crossings never land on a sample point
_INTERP_MARGIN = 1e-3

EdgeKey = tuple[int, int, int]
"""(row, column, orientation): orientation 0 = horizontal edge, 1 = vertical."""


def case_index(tl: bool, tr: bool, br: bool, bl: bool) -> int:
    """Marching squares case of a 2x2 neighbourhood."""
    return (TL_BIT if tl else 0) | (TR_BIT if tr else 0) | (BR_BIT if br else 0) | (BL_BIT if bl else 0)


def cell_segments(case: int, corner_mean: float, threshold: float) -> tuple[tuple[int, int], ...]:
    """
    Directed edge pairs for one cell.

    Saddle tie-break: the centre counts as solid when the mean of the four
    corner values is >= threshold.
    """
    saddle = SADDLE_CASES.get(case)
    if saddle is not None:
        joined, separated = saddle
        return joined if corner_mean >= threshold else separated
    return MARCHING_SQUARES_CASES[case]


def _edge_key(ci: int, cj: int, edge: int) -> EdgeKey:
    if edge == TOP:
        return (cj, ci, 0)
    if edge == BOTTOM:
        return (cj + 1, ci, 0)
    if edge == LEFT:
        return (cj, ci, 1)
    return (cj, ci + 1, 1)


def _crossing(padded: np.ndarray, key: EdgeKey, threshold: float) -> tuple[float, float]:
    """Interpolated crossing point of an edge, in grid coordinates."""
    row, col, orient = key
    v0 = padded[row, col]
    v1 = padded[row, col + 1] if orient == 0 else padded[row + 1, col]
    frac = (threshold - v0) / (v1 - v0)
    frac = min(max(frac, _INTERP_MARGIN), 1.0 - _INTERP_MARGIN)
    # Padded sample (col, row) sits at grid point (col - 0.5, row - 0.5)
    if orient == 0:
        return col - 0.5 + frac, row - 0.5
    return col - 0.5, row - 0.5 + frac


def trace_segments(grid: OccupancyGrid) -> dict[EdgeKey, EdgeKey]:
    """
    Classify all cells and collect directed segments.

    Returns:
        Mapping from the edge a segment starts on to the edge it ends on.

    Raises:
        TracingError: Two segments start on the same edge.
    """
    threshold = grid.threshold
    padded = grid.padded_values()
    solid = padded >= threshold

    tl = solid[:-1, :-1]
    tr = solid[:-1, 1:]
    br = solid[1:, 1:]
    bl = solid[1:, :-1]
    cases = (
        tl.astype(np.int32) * TL_BIT
        + tr.astype(np.int32) * TR_BIT
        + br.astype(np.int32) * BR_BIT
        + bl.astype(np.int32) * BL_BIT
    )
    means = (padded[:-1, :-1] + padded[:-1, 1:] + padded[1:, 1:] + padded[1:, :-1]) / 4.0

    links: dict[EdgeKey, EdgeKey] = {}
    rows, cols = np.nonzero((cases != 0) & (cases != 15))
    for cj, ci in zip(rows.tolist(), cols.tolist()):
        case = int(cases[cj, ci])
        for from_edge, to_edge in cell_segments(case, float(means[cj, ci]), threshold):
            start = _edge_key(ci, cj, from_edge)
            if start in links:
                raise TracingError(f"two boundary segments start on edge {start}")
            links[start] = _edge_key(ci, cj, to_edge)
    return links


def link_loops(
    links: dict[EdgeKey, EdgeKey],
    max_steps: Optional[int] = None,
) -> list[list[EdgeKey]]:
    """
    Chain segments into closed loops, visiting start edges in row-major order.

    Args:
        links: Output of trace_segments().
        max_steps: Step budget for one loop. None = number of segments.

    Raises:
        TracingError: A loop is open or does not close within the budget.
    """
    budget = len(links) if max_steps is None else max_steps
    remaining = dict(links)
    loops: list[list[EdgeKey]] = []

    for start in sorted(links):
        if start not in remaining:
            continue

        loop = [start]
        current = remaining.pop(start)
        steps = 1
        while current != start:
            if steps >= budget:
                raise TracingError(
                    f"contour starting at edge {start} did not close within {budget} steps"
                )
            nxt = remaining.pop(current, None)
            if nxt is None:
                raise TracingError(f"contour starting at edge {start} is open at edge {current}")
            loop.append(current)
            current = nxt
            steps += 1
        loops.append(loop)

    return loops


def trace_contours(grid: OccupancyGrid, max_steps: Optional[int] = None) -> list[Contour]:
    """
    Trace all boundaries between solid and empty cells.

    An empty or fully solid grid produces no contours.

    Args:
        grid: Occupancy grid.
        max_steps: Step budget for closing one contour, None = unbounded by
            anything but the number of boundary segments.

    Returns:
        Contours in deterministic order; outer boundaries have is_hole=False.
    """
    if grid.is_empty or grid.is_full:
        return []

    links = trace_segments(grid)
    loops = link_loops(links, max_steps)
    padded = grid.padded_values()

    contours: list[Contour] = []
    for loop in loops:
        points = np.array([_crossing(padded, key, grid.threshold) for key in loop], dtype=np.float64)
        points = dedupe_ring(points)
        if len(points) < 3:
            raise TracingError(f"contour at edge {loop[0]} collapsed to {len(points)} points")
        contours.append(Contour.from_points(points))

    return contours


class ContourTracer:
    """Marching squares tracer with a bounded step budget."""

    def __init__(self, max_steps: Optional[int] = None) -> None:
        self.max_steps = max_steps

    def trace(self, grid: OccupancyGrid) -> list[Contour]:
        contours = trace_contours(grid, self.max_steps)
        holes = sum(1 for c in contours if c.is_hole)
        log.debug(
            f"[ContourTracer] {len(contours) - holes} outer contours, {holes} holes "
            f"on {grid.width}x{grid.height} grid"
        )
        return contours
