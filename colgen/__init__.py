"""
colgen - convex physics colliders from raster sprite art.

Pipeline:
1. OccupancyGrid - threshold the sprite (alpha by default) into solid cells
2. ContourTracer - marching squares boundaries, outer and holes
3. ContourSimplifier - Douglas-Peucker within epsilon
4. ConvexDecomposer - hole bridging, ear clipping, Hertel-Mehlhorn merge
5. ColliderExporter - world space ColliderSet
"""

from colgen import log  # noqa: F401

from colgen.errors import ColliderError, InvalidInputError, TracingError, DecompositionError
from colgen.types import (
    ColliderConfig,
    ColliderSet,
    ColliderTransform,
    Contour,
    ConvexPolygon,
    Diagnostic,
    DiagnosticKind,
    Polygon,
    Severity,
)
from colgen.raster import OccupancyGrid
from colgen.contours import ContourTracer, ContourSimplifier, ContourTree, build_contour_tree
from colgen.decomposition import ConvexDecomposer
from colgen.exporter import ColliderExporter
from colgen.pipeline import (
    ColliderGenerator,
    compute_collider,
    compute_collider_for_image,
    generate_batch,
)
from colgen.settings import load_config, save_config, settings_path

__version__ = '0.1.0'

__all__ = [
    # Errors
    'ColliderError',
    'InvalidInputError',
    'TracingError',
    'DecompositionError',
    # Data model
    'ColliderConfig',
    'ColliderSet',
    'ColliderTransform',
    'Contour',
    'ConvexPolygon',
    'Diagnostic',
    'DiagnosticKind',
    'Polygon',
    'Severity',
    # Stages
    'OccupancyGrid',
    'ContourTracer',
    'ContourTree',
    'build_contour_tree',
    'ContourSimplifier',
    'ConvexDecomposer',
    'ColliderExporter',
    # Pipeline
    'ColliderGenerator',
    'compute_collider',
    'compute_collider_for_image',
    'generate_batch',
    # Settings
    'load_config',
    'save_config',
    'settings_path',
]
