"""
Sprite -> collider pipeline.

sample -> trace -> nest -> simplify -> decompose -> export, one synchronous
run per raster. Runs share no state, so batches parallelise across rasters.
"""

from __future__ import annotations

import dataclasses
from concurrent.futures import Executor
from typing import Iterable, Mapping, Optional, Sequence, Union

import numpy as np

from colgen import log
from colgen.contours import ContourSimplifier, ContourTracer, build_contour_tree
from colgen.decomposition import ConvexDecomposer
from colgen.errors import ColliderError
from colgen.exporter import ColliderExporter
from colgen.raster import OccupancyGrid
from colgen.types import (
    ColliderConfig,
    ColliderSet,
    ColliderTransform,
    ConvexPolygon,
    Diagnostic,
    DiagnosticKind,
    Severity,
)

GridLike = Union[OccupancyGrid, np.ndarray, Sequence[Sequence[float]]]


class ColliderGenerator:
    """
    Runs the whole pipeline for one raster at a time.

    The generator holds only configuration; it can be reused for any
    number of rasters and from several threads.

    Args:
        config: Pipeline parameters, defaults to ColliderConfig().
        transform: Default grid -> world transform for exported sets.
    """

    def __init__(
        self,
        config: Optional[ColliderConfig] = None,
        transform: Optional[ColliderTransform] = None,
    ) -> None:
        self.config = config if config is not None else ColliderConfig()
        self.tracer = ContourTracer(self.config.max_trace_steps)
        self.simplifier = ContourSimplifier(
            self.config.epsilon, self.config.min_area, self.config.max_area_error
        )
        self.decomposer = ConvexDecomposer(self.config.convexity_epsilon)
        self.exporter = ColliderExporter(transform)

    def generate(
        self,
        grid: GridLike,
        source_id: str = "",
        transform: Optional[ColliderTransform] = None,
    ) -> ColliderSet:
        """
        Build colliders for one raster.

        Args:
            grid: OccupancyGrid, or a 2D array thresholded at config.threshold.
            source_id: Identifier copied into the result and the log.
            transform: Overrides the generator's default transform.

        Returns:
            ColliderSet in world space.

        Raises:
            InvalidInputError: Malformed grid.
            TracingError: A contour did not close within the step budget.
            DecompositionError: An invalid polygon reached the decomposer.
        """
        if not isinstance(grid, OccupancyGrid):
            grid = OccupancyGrid(grid, self.config.threshold)

        diagnostics: list[Diagnostic] = []

        if self.config.min_region_pixels > 1:
            grid, removed = grid.without_small_regions(self.config.min_region_pixels)
            if removed:
                diagnostics.append(Diagnostic(
                    kind=DiagnosticKind.REGION_REMOVED,
                    message=f"{removed} regions smaller than {self.config.min_region_pixels} pixels removed",
                    severity=Severity.INFO,
                ))

        if grid.is_empty:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.NO_OCCUPIED_REGION,
                message=f"no cell reaches threshold {grid.threshold}",
                severity=Severity.INFO,
            ))
            return self._finish([], source_id, diagnostics, transform)

        if grid.is_full:
            return self._finish(
                self._full_grid(grid, diagnostics), source_id, diagnostics, transform
            )

        contours = self.tracer.trace(grid)
        tree = build_contour_tree(contours)
        polygons, notes = self.simplifier.build_polygons(tree)
        diagnostics.extend(notes)

        pieces: list[ConvexPolygon] = []
        for polygon in polygons:
            result, notes = self.decomposer.decompose(polygon)
            pieces.extend(result)
            diagnostics.extend(notes)

        return self._finish(pieces, source_id, diagnostics, transform)

    def _full_grid(self, grid: OccupancyGrid, diagnostics: list[Diagnostic]) -> list[ConvexPolygon]:
        w = float(grid.width)
        h = float(grid.height)
        if w * h < self.config.min_area:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.CONTOUR_SKIPPED,
                message=f"grid area {w * h:.4g} below minimum {self.config.min_area:.4g}",
            ))
            return []
        diagnostics.append(Diagnostic(
            kind=DiagnosticKind.FULL_GRID,
            message=f"every cell is solid, collider covers the {grid.width}x{grid.height} grid",
            severity=Severity.INFO,
        ))
        rect = np.array([[0.0, 0.0], [w, 0.0], [w, h], [0.0, h]], dtype=np.float64)
        return [ConvexPolygon(rect)]

    def _finish(
        self,
        pieces: list[ConvexPolygon],
        source_id: str,
        diagnostics: list[Diagnostic],
        transform: Optional[ColliderTransform],
    ) -> ColliderSet:
        for diagnostic in diagnostics:
            message = f"[ColliderGenerator] {source_id}: {diagnostic.kind.value}: {diagnostic.message}"
            if diagnostic.severity is Severity.INFO:
                log.info(message)
            else:
                log.warn(message)
        return self.exporter.export(pieces, source_id, diagnostics, transform)


def _with_overrides(
    config: Optional[ColliderConfig],
    threshold: Optional[float],
    epsilon: Optional[float],
) -> ColliderConfig:
    config = config if config is not None else ColliderConfig()
    changes = {}
    if threshold is not None:
        changes["threshold"] = threshold
    if epsilon is not None:
        changes["epsilon"] = epsilon
    return dataclasses.replace(config, **changes) if changes else config


def compute_collider(
    bitmap: Sequence,
    width: int,
    height: int,
    threshold: Optional[float] = None,
    epsilon: Optional[float] = None,
    config: Optional[ColliderConfig] = None,
    transform: Optional[ColliderTransform] = None,
    source_id: str = "",
) -> ColliderSet:
    """
    Build colliders from a flat row-major bitmap.

    Args:
        bitmap: width * height occupancy values (bool, 0/1 or [0, 1] floats).
        width: Bitmap width.
        height: Bitmap height.
        threshold: Overrides config.threshold.
        epsilon: Overrides config.epsilon.
        config: Base configuration.
        transform: Grid -> world transform, default flips y only.

    Raises:
        InvalidInputError: width * height does not match the bitmap length.
    """
    config = _with_overrides(config, threshold, epsilon)
    grid = OccupancyGrid.from_bitmap(bitmap, width, height, config.threshold)
    return ColliderGenerator(config).generate(grid, source_id, transform)


def compute_collider_for_image(
    image,
    threshold: Optional[float] = None,
    epsilon: Optional[float] = None,
    channel: str = "A",
    config: Optional[ColliderConfig] = None,
    transform: Optional[ColliderTransform] = None,
    source_id: str = "",
) -> ColliderSet:
    """
    Build colliders from a loaded PIL image.

    The default transform centres the sprite at the world origin with y up
    and the sprite width scaled to one unit.
    """
    config = _with_overrides(config, threshold, epsilon)
    grid = OccupancyGrid.from_image(image, config.threshold, channel)
    if transform is None:
        transform = ColliderTransform.centered(grid.width, grid.height)
    return ColliderGenerator(config).generate(grid, source_id, transform)


def _generate_one(
    source_id: str,
    grid: GridLike,
    config: Optional[ColliderConfig],
    transform: Optional[ColliderTransform],
) -> Union[ColliderSet, ColliderError]:
    try:
        return ColliderGenerator(config).generate(grid, source_id, transform)
    except ColliderError as e:
        log.warn(f"[ColliderGenerator] {source_id}: {type(e).__name__}: {e.reason}")
        return e


def generate_batch(
    items: Union[Mapping[str, GridLike], Iterable[tuple[str, GridLike]]],
    config: Optional[ColliderConfig] = None,
    executor: Optional[Executor] = None,
    transform: Optional[ColliderTransform] = None,
) -> dict[str, Union[ColliderSet, ColliderError]]:
    """
    Build colliders for many rasters.

    A failing raster yields its ColliderError in place of a ColliderSet,
    the rest of the batch is unaffected.

    Args:
        items: source_id -> grid mapping, or (source_id, grid) pairs.
        config: Shared configuration.
        executor: Optional concurrent.futures executor. Process pools need
            picklable grids (OccupancyGrid and numpy arrays are).
        transform: Shared grid -> world transform.

    Returns:
        source_id -> ColliderSet or ColliderError, in input order.
    """
    pairs = list(items.items()) if isinstance(items, Mapping) else list(items)

    if executor is None:
        return {sid: _generate_one(sid, grid, config, transform) for sid, grid in pairs}

    futures = [
        (sid, executor.submit(_generate_one, sid, grid, config, transform))
        for sid, grid in pairs
    ]
    return {sid: future.result() for sid, future in futures}
