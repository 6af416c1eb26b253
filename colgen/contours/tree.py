"""
Nesting of traced contours.

The nesting is kept in a flat arena: contours[i] is enclosed by
contours[parents[i]], parents[i] == -1 for top-level contours.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np

from colgen.errors import TracingError
from colgen.geometry import point_in_polygon
from colgen.types import Contour

NO_PARENT = -1


@dataclass(frozen=True, eq=False)
class ContourTree:
    """Parent-indexed arena of contours."""

    contours: tuple[Contour, ...]
    parents: tuple[int, ...]

    def __len__(self) -> int:
        return len(self.contours)

    def __getitem__(self, index: int) -> Contour:
        return self.contours[index]

    def roots(self) -> list[int]:
        """Indices of top-level contours."""
        return [i for i, p in enumerate(self.parents) if p == NO_PARENT]

    def children(self, index: int) -> list[int]:
        """Indices of contours directly enclosed by contours[index]."""
        return [i for i, p in enumerate(self.parents) if p == index]

    def depth(self, index: int) -> int:
        """Number of enclosing contours."""
        depth = 0
        parent = self.parents[index]
        while parent != NO_PARENT:
            depth += 1
            parent = self.parents[parent]
        return depth

    def outer_indices(self) -> list[int]:
        return [i for i, c in enumerate(self.contours) if c.is_outer]

    def hole_indices(self) -> list[int]:
        return [i for i, c in enumerate(self.contours) if c.is_hole]

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {
            "contours": [
                {"points": c.points.tolist(), "is_hole": c.is_hole}
                for c in self.contours
            ],
            "parents": list(self.parents),
        }


def build_contour_tree(contours: Iterable[Contour]) -> ContourTree:
    """
    Find the immediate container of every contour.

    The container is the smallest-area contour holding the contour's first
    vertex. Traced contours never touch, so one vertex decides.

    Raises:
        TracingError: Nesting contradicts the orientation flags (a hole at
            top level, or a hole directly inside a hole).
    """
    items = tuple(contours)
    areas = np.array([c.area for c in items], dtype=np.float64)
    parents: list[int] = []

    for i, contour in enumerate(items):
        probe = contour.points[0]
        best = NO_PARENT
        best_area = np.inf
        for j, other in enumerate(items):
            if j == i or areas[j] <= areas[i] or areas[j] >= best_area:
                continue
            if point_in_polygon(probe, other.points):
                best = j
                best_area = areas[j]
        parents.append(best)

    for i, contour in enumerate(items):
        parent = parents[i]
        if contour.is_hole and (parent == NO_PARENT or items[parent].is_hole):
            raise TracingError(f"hole contour {i} is not enclosed by an outer boundary")
        if contour.is_outer and parent != NO_PARENT and items[parent].is_outer:
            raise TracingError(f"outer contour {i} is directly enclosed by outer contour {parent}")

    return ContourTree(contours=items, parents=tuple(parents))
