"""
Typed failures of the collider pipeline.

Each one is terminal for the raster being processed; the caller skips the
sprite and continues with the rest of the batch.
"""


class ColliderError(Exception):
    """Base error of the collider pipeline."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class InvalidInputError(ColliderError):
    """Zero-sized or malformed grid, or invalid parameters."""


class TracingError(ColliderError):
    """Contour tracer could not close a loop within its step budget."""


class DecompositionError(ColliderError):
    """Self-intersecting or otherwise invalid polygon reached the decomposer."""
