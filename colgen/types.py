"""
Base data structures of the collider pipeline.

Grid space: x grows along columns, y grows down the rows, pixel (x, y)
covers the square [x, x+1] x [y, y+1]. Outer contours have positive
shoelace area, holes negative.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, asdict
from typing import Iterator, Optional, Sequence, Union

import numpy as np

from colgen.errors import InvalidInputError
from colgen.geometry import (
    GEOMETRY_EPSILON,
    as_points,
    is_convex_ring,
    signed_area_2d,
)


def _frozen_points(points) -> np.ndarray:
    arr = np.array(as_points(points), dtype=np.float64)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class ColliderConfig:
    """Configuration of the collider pipeline."""

    threshold: float = 0.5
    """Occupancy threshold: a cell is solid when value >= threshold."""

    epsilon: float = 0.5
    """Douglas-Peucker tolerance in grid cells."""

    min_area: float = 1.0
    """Contours with smaller absolute area (cells^2) are skipped, holes are filled."""

    min_region_pixels: int = 1
    """8-connected regions with fewer occupied pixels are erased before tracing."""

    convexity_epsilon: float = GEOMETRY_EPSILON
    """Cross product tolerance; nearly collinear vertices are not reflex."""

    max_trace_steps: Optional[int] = None
    """Step budget for closing one contour. None = number of boundary segments."""

    max_area_error: Optional[float] = 0.05
    """Relative area change allowed by simplification before epsilon is lowered. None disables the check."""

    def __post_init__(self) -> None:
        if not 0.0 <= self.threshold <= 1.0:
            raise InvalidInputError(f"threshold must be within [0, 1], got {self.threshold}")
        if self.epsilon < 0.0:
            raise InvalidInputError(f"epsilon must be non-negative, got {self.epsilon}")
        if self.min_area < 0.0:
            raise InvalidInputError(f"min_area must be non-negative, got {self.min_area}")
        if self.min_region_pixels < 1:
            raise InvalidInputError(
                f"min_region_pixels must be at least 1, got {self.min_region_pixels}"
            )
        if self.convexity_epsilon < 0.0:
            raise InvalidInputError(
                f"convexity_epsilon must be non-negative, got {self.convexity_epsilon}"
            )
        if self.max_trace_steps is not None and self.max_trace_steps < 1:
            raise InvalidInputError(
                f"max_trace_steps must be positive, got {self.max_trace_steps}"
            )
        if self.max_area_error is not None and self.max_area_error < 0.0:
            raise InvalidInputError(
                f"max_area_error must be non-negative, got {self.max_area_error}"
            )

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return asdict(self)

    @staticmethod
    def from_dict(data: dict) -> "ColliderConfig":
        """Deserialize from dictionary, missing keys take defaults."""
        defaults = ColliderConfig()
        max_steps = data.get("max_trace_steps", defaults.max_trace_steps)
        area_error = data.get("max_area_error", defaults.max_area_error)
        return ColliderConfig(
            threshold=float(data.get("threshold", defaults.threshold)),
            epsilon=float(data.get("epsilon", defaults.epsilon)),
            min_area=float(data.get("min_area", defaults.min_area)),
            min_region_pixels=int(data.get("min_region_pixels", defaults.min_region_pixels)),
            convexity_epsilon=float(data.get("convexity_epsilon", defaults.convexity_epsilon)),
            max_trace_steps=None if max_steps is None else int(max_steps),
            max_area_error=None if area_error is None else float(area_error),
        )


class DiagnosticKind(enum.Enum):
    NO_OCCUPIED_REGION = "no_occupied_region"
    FULL_GRID = "full_grid"
    REGION_REMOVED = "region_removed"
    CONTOUR_SKIPPED = "contour_skipped"
    REDUCED_TOLERANCE = "reduced_tolerance"
    HOLE_FILLED = "hole_filled"
    POLYGON_SKIPPED = "polygon_skipped"


class Severity(enum.Enum):
    INFO = "info"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """Non-fatal notice produced while building colliders."""

    kind: DiagnosticKind
    message: str
    severity: Severity = Severity.WARNING
    contour_index: Optional[int] = None
    """Index of the contour in the ContourTree, when the notice concerns one."""

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "severity": self.severity.value,
            "contour_index": self.contour_index,
        }

    @staticmethod
    def from_dict(data: dict) -> "Diagnostic":
        """Deserialize from dictionary."""
        return Diagnostic(
            kind=DiagnosticKind(data["kind"]),
            message=data.get("message", ""),
            severity=Severity(data.get("severity", Severity.WARNING.value)),
            contour_index=data.get("contour_index"),
        )

    def __str__(self) -> str:
        return f"{self.severity.value}: {self.kind.value}: {self.message}"


@dataclass(frozen=True, eq=False)
class Contour:
    """
    Closed polyline in grid space.

    The first and last point are implicitly connected.
    """

    points: np.ndarray
    """Vertices, shape (N, 2), read-only."""

    is_hole: bool
    """True for clockwise (negative area) boundaries of empty regions."""

    def __post_init__(self) -> None:
        object.__setattr__(self, "points", _frozen_points(self.points))

    @staticmethod
    def from_points(points) -> "Contour":
        """Build contour, orientation flag taken from the signed area."""
        pts = as_points(points)
        return Contour(points=pts, is_hole=signed_area_2d(pts) < 0.0)

    @property
    def is_outer(self) -> bool:
        return not self.is_hole

    @property
    def signed_area(self) -> float:
        return signed_area_2d(self.points)

    @property
    def area(self) -> float:
        return abs(self.signed_area)

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True, eq=False)
class Polygon:
    """Simplified outer boundary with zero or more holes strictly inside it."""

    outer: Contour
    holes: tuple[Contour, ...] = ()
    source_index: Optional[int] = None
    """Index of the outer contour in the ContourTree."""

    @property
    def area(self) -> float:
        """Hole-adjusted area."""
        return self.outer.area - sum(h.area for h in self.holes)


@dataclass(frozen=True, eq=False)
class ConvexPolygon:
    """Convex piece of a decomposition, positively oriented, no holes."""

    vertices: np.ndarray
    """Vertices, shape (N, 2), N >= 3, read-only."""

    def __post_init__(self) -> None:
        object.__setattr__(self, "vertices", _frozen_points(self.vertices))

    @property
    def area(self) -> float:
        return abs(signed_area_2d(self.vertices))

    @property
    def signed_area(self) -> float:
        return signed_area_2d(self.vertices)

    def is_convex(self, epsilon: float = GEOMETRY_EPSILON) -> bool:
        return is_convex_ring(self.vertices, epsilon)

    def centroid(self) -> np.ndarray:
        """Area centroid."""
        pts = self.vertices
        nxt = np.roll(pts, -1, axis=0)
        cross = pts[:, 0] * nxt[:, 1] - nxt[:, 0] * pts[:, 1]
        area = cross.sum() / 2.0
        if abs(area) < 1e-20:
            return pts.mean(axis=0)
        cx = ((pts[:, 0] + nxt[:, 0]) * cross).sum() / (6.0 * area)
        cy = ((pts[:, 1] + nxt[:, 1]) * cross).sum() / (6.0 * area)
        return np.array([cx, cy], dtype=np.float64)

    def __len__(self) -> int:
        return len(self.vertices)


ScaleLike = Union[float, Sequence[float]]


@dataclass(frozen=True)
class ColliderTransform:
    """
    Grid space -> world space mapping.

    world_x = (x - origin_x) * scale_x
    world_y = (y - origin_y) * scale_y, negated when flip_y is set
    """

    scale: tuple[float, float] = (1.0, 1.0)
    origin: tuple[float, float] = (0.0, 0.0)
    flip_y: bool = True
    """Grid rows grow downward, engine y usually grows upward."""

    def __post_init__(self) -> None:
        scale = self.scale
        if np.isscalar(scale):
            scale = (float(scale), float(scale))
        scale = tuple(float(s) for s in scale)
        if len(scale) != 2:
            raise InvalidInputError(f"scale must be a number or a pair, got {self.scale!r}")
        if scale[0] == 0.0 or scale[1] == 0.0 or not np.all(np.isfinite(scale)):
            raise InvalidInputError(f"scale must be finite and non-zero, got {self.scale!r}")
        origin = tuple(float(o) for o in self.origin)
        if len(origin) != 2 or not np.all(np.isfinite(origin)):
            raise InvalidInputError(f"origin must be a finite pair, got {self.origin!r}")
        object.__setattr__(self, "scale", scale)
        object.__setattr__(self, "origin", origin)

    @staticmethod
    def identity() -> "ColliderTransform":
        return ColliderTransform(scale=(1.0, 1.0), origin=(0.0, 0.0), flip_y=False)

    @staticmethod
    def centered(width: int, height: int, scale: Optional[float] = None) -> "ColliderTransform":
        """
        Sprite centre at world origin, y up.

        Default scale 1/width maps the sprite width onto one world unit.
        """
        if scale is None:
            scale = 1.0 / float(width)
        return ColliderTransform(
            scale=(scale, scale),
            origin=(width / 2.0, height / 2.0),
            flip_y=True,
        )

    @property
    def determinant(self) -> float:
        sy = -self.scale[1] if self.flip_y else self.scale[1]
        return self.scale[0] * sy

    @property
    def preserves_winding(self) -> bool:
        return self.determinant > 0.0

    def apply(self, points) -> np.ndarray:
        """Map grid-space points to world space."""
        pts = as_points(points)
        out = np.empty_like(pts)
        out[:, 0] = (pts[:, 0] - self.origin[0]) * self.scale[0]
        out[:, 1] = (pts[:, 1] - self.origin[1]) * self.scale[1]
        if self.flip_y:
            out[:, 1] = -out[:, 1]
        return out

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {
            "scale": list(self.scale),
            "origin": list(self.origin),
            "flip_y": self.flip_y,
        }

    @staticmethod
    def from_dict(data: dict) -> "ColliderTransform":
        """Deserialize from dictionary."""
        return ColliderTransform(
            scale=tuple(data.get("scale", (1.0, 1.0))),
            origin=tuple(data.get("origin", (0.0, 0.0))),
            flip_y=bool(data.get("flip_y", True)),
        )


COLLIDER_FORMAT_VERSION = "1.0"


@dataclass(frozen=True, eq=False)
class ColliderSet:
    """
    Exported colliders of one raster.

    Polygons are in world space; the caller owns the set after export.
    """

    source_id: str
    polygons: tuple[ConvexPolygon, ...] = ()
    transform: ColliderTransform = field(default_factory=ColliderTransform)
    diagnostics: tuple[Diagnostic, ...] = ()

    def __len__(self) -> int:
        return len(self.polygons)

    def __iter__(self) -> Iterator[ConvexPolygon]:
        return iter(self.polygons)

    @property
    def is_empty(self) -> bool:
        return not self.polygons

    def polygon_count(self) -> int:
        """Number of convex polygons."""
        return len(self.polygons)

    def vertex_count(self) -> int:
        """Total number of vertices."""
        return sum(len(p) for p in self.polygons)

    def total_area(self) -> float:
        """Summed world-space area."""
        return float(sum(p.area for p in self.polygons))

    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.WARNING]

    def to_trimesh(self) -> tuple[np.ndarray, np.ndarray]:
        """
        Flatten into a triangle mesh.

        Each convex polygon is fan-triangulated from its first vertex.

        Returns:
            (vertices shape (V, 2) float64, indices shape (T, 3) int32).
        """
        vertices: list[np.ndarray] = []
        indices: list[tuple[int, int, int]] = []
        offset = 0
        for polygon in self.polygons:
            n = len(polygon.vertices)
            vertices.append(polygon.vertices)
            for k in range(1, n - 1):
                indices.append((offset, offset + k, offset + k + 1))
            offset += n

        if not vertices:
            return np.zeros((0, 2), dtype=np.float64), np.zeros((0, 3), dtype=np.int32)
        return np.vstack(vertices), np.array(indices, dtype=np.int32).reshape(-1, 3)

    def to_dict(self) -> dict:
        """Plain-data form for the asset layer."""
        return {
            "version": COLLIDER_FORMAT_VERSION,
            "source_id": self.source_id,
            "transform": self.transform.to_dict(),
            "polygons": [p.vertices.tolist() for p in self.polygons],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }

    @staticmethod
    def from_dict(data: dict) -> "ColliderSet":
        """
        Restore from to_dict() output.

        Raises:
            ValueError: Unsupported format version.
        """
        version = data.get("version", "")
        if not str(version).startswith("1."):
            raise ValueError(f"Unsupported collider format version: {version}")

        return ColliderSet(
            source_id=data.get("source_id", ""),
            polygons=tuple(
                ConvexPolygon(np.array(vertices, dtype=np.float64))
                for vertices in data.get("polygons", [])
            ),
            transform=ColliderTransform.from_dict(data.get("transform", {})),
            diagnostics=tuple(Diagnostic.from_dict(d) for d in data.get("diagnostics", [])),
        )
