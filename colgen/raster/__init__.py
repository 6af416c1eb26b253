"""
Raster sampling: occupancy grids from arrays, bitmaps and sprite images.
"""

from colgen.raster.grid import OccupancyGrid, DEFAULT_THRESHOLD
from colgen.raster.image import image_to_occupancy

__all__ = [
    "OccupancyGrid",
    "DEFAULT_THRESHOLD",
    "image_to_occupancy",
]
