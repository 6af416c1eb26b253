"""
Export of convex pieces from grid space into world space.
"""

from __future__ import annotations

from typing import Iterable, Optional

import numpy as np

from colgen import log
from colgen.geometry import signed_area_2d
from colgen.types import ColliderSet, ColliderTransform, ConvexPolygon, Diagnostic


def export_polygon(polygon: ConvexPolygon, transform: ColliderTransform) -> ConvexPolygon:
    """
    Map one convex piece into world space.

    A transform with negative determinant (the default y flip) mirrors the
    piece; its vertex order is then reversed, keeping the first vertex, so
    the result stays positively oriented.
    """
    world = transform.apply(polygon.vertices)
    if signed_area_2d(world) < 0.0:
        world = np.roll(world[::-1], 1, axis=0)
    return ConvexPolygon(world)


class ColliderExporter:
    """
    Builds ColliderSet objects from grid-space convex pieces.

    Args:
        transform: Default grid -> world transform.
    """

    def __init__(self, transform: Optional[ColliderTransform] = None) -> None:
        self.transform = transform if transform is not None else ColliderTransform()

    def export(
        self,
        polygons: Iterable[ConvexPolygon],
        source_id: str,
        diagnostics: Iterable[Diagnostic] = (),
        transform: Optional[ColliderTransform] = None,
    ) -> ColliderSet:
        """
        Transform pieces and package them with their diagnostics.

        Args:
            polygons: Convex pieces in grid space.
            source_id: Identifier of the source raster.
            diagnostics: Notices collected by the earlier stages.
            transform: Overrides the exporter's default transform.
        """
        if transform is None:
            transform = self.transform
        exported = tuple(export_polygon(p, transform) for p in polygons)
        log.debug(f"[ColliderExporter] {source_id}: {len(exported)} polygons")
        return ColliderSet(
            source_id=source_id,
            polygons=exported,
            transform=transform,
            diagnostics=tuple(diagnostics),
        )
