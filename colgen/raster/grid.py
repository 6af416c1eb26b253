"""
OccupancyGrid: immutable 2D occupancy raster with threshold classification.
"""

from __future__ import annotations

from typing import Iterator, Sequence

import numpy as np
from scipy import ndimage

from colgen.errors import InvalidInputError

DEFAULT_THRESHOLD = 0.5

# 8-connectivity structuring element for region labelling
_STRUCTURE_8 = np.ones((3, 3), dtype=bool)


class OccupancyGrid:
    """
    Occupancy raster: values in [0, 1], cell solid when value >= threshold.

    Array layout is (height, width): values[y, x].
    Queries outside [0, width) x [0, height) report empty cells.

    Attributes:
        values: Read-only float64 array of occupancy values.
        mask: Read-only bool array, True for solid cells.
        threshold: Classification threshold.
    """

    __slots__ = ("_values", "_mask", "_threshold")

    def __init__(self, values, threshold: float = DEFAULT_THRESHOLD) -> None:
        try:
            threshold = float(threshold)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"threshold must be a number, got {threshold!r}") from e
        if not 0.0 <= threshold <= 1.0:
            raise InvalidInputError(f"threshold must be within [0, 1], got {threshold}")

        arr = np.asarray(values)
        if arr.ndim != 2:
            raise InvalidInputError(f"occupancy grid must be 2D, got shape {arr.shape}")
        height, width = arr.shape
        if width < 1 or height < 1:
            raise InvalidInputError(f"occupancy grid must be at least 1x1, got {width}x{height}")

        if arr.dtype == np.bool_:
            data = arr.astype(np.float64)
        elif np.issubdtype(arr.dtype, np.integer):
            if np.any((arr != 0) & (arr != 1)):
                raise InvalidInputError(
                    "integer occupancy grid must only contain 0 and 1; "
                    "normalise other ranges to [0, 1] first"
                )
            data = arr.astype(np.float64)
        elif np.issubdtype(arr.dtype, np.floating):
            data = arr.astype(np.float64)
            if not np.all(np.isfinite(data)):
                raise InvalidInputError("occupancy grid contains non-finite values")
            if np.any((data < 0.0) | (data > 1.0)):
                raise InvalidInputError("occupancy values must be within [0, 1]")
        else:
            raise InvalidInputError(f"unsupported occupancy grid dtype: {arr.dtype}")

        mask = data >= threshold
        data.setflags(write=False)
        mask.setflags(write=False)

        self._values = data
        self._mask = mask
        self._threshold = threshold

    @classmethod
    def from_bitmap(
        cls,
        bitmap: Sequence[bool],
        width: int,
        height: int,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> "OccupancyGrid":
        """
        Build from a flat row-major bitmap.

        Raises:
            InvalidInputError: Non-positive dimensions, or width * height does
                not match the bitmap length.
        """
        flat = np.asarray(bitmap)
        if width < 1 or height < 1:
            raise InvalidInputError(
                f"Bitmap width and height must be positive, got {width} x {height}"
            )
        if width * height != flat.size:
            raise InvalidInputError(
                "Provided width and height values don't match bitmap length. "
                f"{width} * {height} != {flat.size}"
            )
        return cls(flat.reshape(height, width), threshold)

    @classmethod
    def from_image(cls, image, threshold: float = DEFAULT_THRESHOLD, channel: str = "A") -> "OccupancyGrid":
        """Build from a loaded PIL image (alpha channel by default)."""
        from colgen.raster.image import image_to_occupancy

        return cls(image_to_occupancy(image, channel), threshold)

    # ----------------------------------------------------------------
    # Properties
    # ----------------------------------------------------------------

    @property
    def width(self) -> int:
        return int(self._values.shape[1])

    @property
    def height(self) -> int:
        return int(self._values.shape[0])

    @property
    def shape(self) -> tuple[int, int]:
        """(height, width)."""
        return self.height, self.width

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def mask(self) -> np.ndarray:
        return self._mask

    @property
    def occupied_count(self) -> int:
        """Number of solid cells."""
        return int(np.count_nonzero(self._mask))

    @property
    def is_empty(self) -> bool:
        return not self._mask.any()

    @property
    def is_full(self) -> bool:
        return bool(self._mask.all())

    # ----------------------------------------------------------------
    # Queries
    # ----------------------------------------------------------------

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def value(self, x: int, y: int) -> float:
        """Occupancy value, 0.0 outside the grid."""
        if not self.in_bounds(x, y):
            return 0.0
        return float(self._values[y, x])

    def occupied(self, x: int, y: int) -> bool:
        """Solid cell test, False outside the grid."""
        if not self.in_bounds(x, y):
            return False
        return bool(self._mask[y, x])

    def iter_occupied(self) -> Iterator[tuple[int, int]]:
        """Solid cells (x, y) in row-major order."""
        ys, xs = np.nonzero(self._mask)
        for y, x in zip(ys.tolist(), xs.tolist()):
            yield x, y

    def padded_values(self) -> np.ndarray:
        """Values surrounded by a one-cell ring of zeros, shape (H+2, W+2)."""
        return np.pad(self._values, 1, mode="constant", constant_values=0.0)

    # ----------------------------------------------------------------
    # Region filtering
    # ----------------------------------------------------------------

    def label_regions(self) -> tuple[np.ndarray, int]:
        """
        Label 8-connected solid regions.

        Returns:
            (labels array (H, W) int32, region count). Label 0 is empty space.
        """
        labels, count = ndimage.label(self._mask, structure=_STRUCTURE_8)
        return labels.astype(np.int32), int(count)

    def without_small_regions(self, min_pixels: int) -> tuple["OccupancyGrid", int]:
        """
        Erase 8-connected solid regions with fewer than min_pixels cells.

        Erased cells get value 0.0, the remaining values are kept.

        Returns:
            (filtered grid, number of erased regions).
        """
        if min_pixels <= 1 or self.is_empty:
            return self, 0

        labels, count = self.label_regions()
        sizes = np.bincount(labels.ravel(), minlength=count + 1)
        small = np.flatnonzero(sizes < min_pixels)
        small = small[small != 0]
        if len(small) == 0:
            return self, 0

        values = self._values.copy()
        values[np.isin(labels, small)] = 0.0
        return OccupancyGrid(values, self._threshold), int(len(small))

    def __repr__(self) -> str:
        return (
            f"OccupancyGrid(width={self.width}, height={self.height}, "
            f"threshold={self._threshold}, occupied={self.occupied_count})"
        )
