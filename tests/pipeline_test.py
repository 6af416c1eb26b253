"""
End-to-end tests for the collider pipeline.
"""

import itertools
import unittest
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from PIL import Image

from colgen.contours import build_contour_tree
from colgen.errors import InvalidInputError, TracingError
from colgen.geometry import point_in_polygon
from colgen.pipeline import (
    ColliderGenerator,
    compute_collider,
    compute_collider_for_image,
    generate_batch,
)
from colgen.raster import OccupancyGrid
from colgen.types import ColliderConfig, ColliderSet, ColliderTransform, DiagnosticKind, Severity

IDENTITY = ColliderTransform.identity()


def _ring_grid():
    """10x10 block with a 4x4 hole in the middle."""
    grid = np.ones((10, 10))
    grid[3:7, 3:7] = 0.0
    return grid


def _sprite(size=32, seed=1):
    """Blob with a hole, similar to a rasterised sprite alpha mask."""
    rng = np.random.default_rng(seed)
    yy, xx = np.mgrid[0:size, 0:size]
    c = (size - 1) / 2.0
    r2 = (xx - c) ** 2 + (yy - c) ** 2
    radius = size * 0.45 + rng.normal(0.0, 0.6, size=(size, size))
    mask = (r2 <= radius ** 2) & (r2 >= (size * 0.15) ** 2)
    return mask.astype(np.float64)


class ScenarioTest(unittest.TestCase):
    """Reference scenarios."""

    def test_filled_square(self):
        result = ColliderGenerator(ColliderConfig(threshold=0.5, epsilon=0.5)).generate(
            np.ones((10, 10)), "filled"
        )
        self.assertEqual(result.polygon_count(), 1)
        self.assertEqual(len(result.polygons[0]), 4)
        self.assertAlmostEqual(result.total_area(), 100.0)
        self.assertTrue(result.polygons[0].is_convex())
        self.assertEqual([d.kind for d in result.diagnostics], [DiagnosticKind.FULL_GRID])
        self.assertEqual(result.warnings(), [])

    def test_embedded_square(self):
        grid = np.zeros((12, 12))
        grid[1:11, 1:11] = 1.0
        result = ColliderGenerator().generate(grid, "crate", IDENTITY)

        # Octagon of the traced boundary; the skewed quad at epsilon 0.5 loses 9 cells
        self.assertEqual(result.polygon_count(), 1)
        self.assertAlmostEqual(result.total_area(), 100.0 - 0.5)
        self.assertTrue(result.polygons[0].is_convex())
        self.assertEqual([d.kind for d in result.diagnostics], [DiagnosticKind.REDUCED_TOLERANCE])
        self.assertEqual(result.warnings(), [])

    def test_embedded_square_without_area_check(self):
        grid = np.zeros((12, 12))
        grid[1:11, 1:11] = 1.0
        config = ColliderConfig(max_area_error=None)
        result = ColliderGenerator(config).generate(grid, "crate", IDENTITY)

        self.assertEqual(result.polygon_count(), 1)
        self.assertEqual(len(result.polygons[0]), 4)
        self.assertAlmostEqual(result.total_area(), 90.5)
        self.assertEqual(result.diagnostics, ())

    def test_ring(self):
        generator = ColliderGenerator(ColliderConfig(epsilon=0.0))
        result = generator.generate(_ring_grid(), "ring", IDENTITY)

        # Outer and hole lose 4 * 0.125 each to the chamfered corners
        self.assertAlmostEqual(result.total_area(), (100.0 - 0.5) - (16.0 - 0.5))
        hole_samples = list(itertools.product(np.linspace(3.6, 6.4, 8), np.linspace(3.6, 6.4, 8)))
        for polygon in result:
            self.assertTrue(polygon.is_convex())
            for point in hole_samples:
                self.assertFalse(point_in_polygon(point, polygon.vertices))

    def test_ring_default_epsilon(self):
        result = ColliderGenerator().generate(_ring_grid(), "ring", IDENTITY)

        # Both outer and hole step down to epsilon 0.25 to keep their area
        self.assertAlmostEqual(result.total_area(), (100.0 - 0.5) - (16.0 - 0.5))
        reduced = [d for d in result.diagnostics if d.kind is DiagnosticKind.REDUCED_TOLERANCE]
        self.assertEqual(len(reduced), 2)
        self.assertEqual(len(result.diagnostics), 2)
        for polygon in result:
            self.assertTrue(polygon.is_convex())
            self.assertFalse(point_in_polygon((5.0, 5.0), polygon.vertices))

    def test_empty_grid(self):
        result = ColliderGenerator().generate(np.zeros((8, 8)), "empty")
        self.assertTrue(result.is_empty)
        self.assertEqual(len(result.diagnostics), 1)
        self.assertEqual(result.diagnostics[0].kind, DiagnosticKind.NO_OCCUPIED_REGION)
        self.assertEqual(result.diagnostics[0].severity, Severity.INFO)

    def _single_pixel(self):
        grid = np.zeros((3, 3))
        grid[1, 1] = 1.0
        return grid

    def test_single_pixel_default_min_area(self):
        result = ColliderGenerator(ColliderConfig(epsilon=0.0)).generate(self._single_pixel())
        self.assertTrue(result.is_empty)
        self.assertEqual([d.kind for d in result.diagnostics], [DiagnosticKind.CONTOUR_SKIPPED])

    def test_single_pixel_kept(self):
        config = ColliderConfig(epsilon=0.0, min_area=0.5)
        result = ColliderGenerator(config).generate(self._single_pixel(), "pixel", IDENTITY)
        self.assertEqual(result.polygon_count(), 1)
        self.assertAlmostEqual(result.total_area(), 0.5)
        self.assertEqual(result.diagnostics, ())
        points = {tuple(p) for p in result.polygons[0].vertices.tolist()}
        self.assertEqual(points, {(1.5, 1.0), (2.0, 1.5), (1.5, 2.0), (1.0, 1.5)})


class PropertyTest(unittest.TestCase):
    """Properties that hold for any input."""

    def test_convex_disjoint_area(self):
        grid = _sprite()
        generator = ColliderGenerator(ColliderConfig(epsilon=0.0))
        result = generator.generate(grid, "sprite", IDENTITY)

        self.assertGreater(result.polygon_count(), 0)
        for polygon in result:
            self.assertTrue(polygon.is_convex())
            self.assertGreater(polygon.signed_area, 0.0)

        for x, y in itertools.product(np.arange(0.31, 32, 0.77), np.arange(0.47, 32, 0.77)):
            inside = sum(point_in_polygon((x, y), p.vertices) for p in result)
            self.assertLessEqual(inside, 1)

    def test_area_matches_simplified_polygons(self):
        grid = OccupancyGrid(_sprite(seed=4))
        generator = ColliderGenerator(ColliderConfig(epsilon=0.75))

        tree = build_contour_tree(generator.tracer.trace(grid))
        polygons, _ = generator.simplifier.build_polygons(tree)
        self.assertGreater(len(polygons), 0)

        total = 0.0
        for polygon in polygons:
            pieces, notes = generator.decomposer.decompose(polygon)
            covered = sum(p.area for p in pieces)
            total += covered
            if not any(n.kind is DiagnosticKind.HOLE_FILLED for n in notes):
                self.assertAlmostEqual(covered, polygon.area, delta=1e-4 * polygon.area)

        result = generator.generate(grid, "sprite", IDENTITY)
        self.assertAlmostEqual(result.total_area(), total, delta=1e-9 * total)

    def test_idempotent(self):
        grid = _sprite(seed=9)
        first = ColliderGenerator().generate(grid, "a")
        second = ColliderGenerator().generate(grid, "a")
        self.assertEqual(first.to_dict(), second.to_dict())

    def test_default_transform_flips_y(self):
        result = ColliderGenerator().generate(np.ones((4, 2)), "tall")
        vertices = result.polygons[0].vertices
        self.assertAlmostEqual(vertices[:, 1].min(), -4.0)
        self.assertAlmostEqual(vertices[:, 1].max(), 0.0)
        self.assertGreater(result.polygons[0].signed_area, 0.0)

    def test_small_regions_removed(self):
        grid = np.zeros((12, 12))
        grid[0, 0] = 1.0
        grid[4:10, 4:10] = 1.0
        result = ColliderGenerator(ColliderConfig(min_region_pixels=4)).generate(grid, "specks")
        kinds = [d.kind for d in result.diagnostics]
        self.assertIn(DiagnosticKind.REGION_REMOVED, kinds)
        self.assertNotIn(DiagnosticKind.CONTOUR_SKIPPED, kinds)
        self.assertEqual(result.polygon_count(), 1)

    def test_step_budget_failure(self):
        grid = np.zeros((6, 6))
        grid[1:5, 1:5] = 1.0
        with self.assertRaises(TracingError):
            ColliderGenerator(ColliderConfig(max_trace_steps=3)).generate(grid)


class EntryPointTest(unittest.TestCase):
    """compute_collider and friends."""

    def test_compute_collider(self):
        bitmap = [True] * 16
        result = compute_collider(bitmap, 4, 4, threshold=0.5, epsilon=0.5)
        self.assertIsInstance(result, ColliderSet)
        self.assertAlmostEqual(result.total_area(), 16.0)

    def test_compute_collider_bad_dimensions(self):
        with self.assertRaises(InvalidInputError) as ctx:
            compute_collider([True] * 10, 4, 4)
        self.assertIn("4 * 4 != 10", str(ctx.exception))

    def test_compute_collider_for_image(self):
        image = Image.new("RGBA", (8, 8), (0, 0, 0, 0))
        for x in range(8):
            for y in range(8):
                image.putpixel((x, y), (255, 255, 255, 255))
        result = compute_collider_for_image(image, source_id="crate")

        # Centred, width normalised to one unit, y up
        self.assertEqual(result.source_id, "crate")
        self.assertAlmostEqual(result.total_area(), 1.0)
        vertices = result.polygons[0].vertices
        np.testing.assert_allclose(vertices.min(axis=0), [-0.5, -0.5])
        np.testing.assert_allclose(vertices.max(axis=0), [0.5, 0.5])


class BatchTest(unittest.TestCase):
    """generate_batch."""

    def _items(self):
        block = np.zeros((6, 6))
        block[1:5, 1:5] = 1.0
        return {
            "block": block,
            "empty": np.zeros((3, 3)),
            "broken": np.zeros((0, 4)),
        }

    def test_errors_collected(self):
        results = generate_batch(self._items())
        self.assertEqual(list(results), ["block", "empty", "broken"])
        self.assertIsInstance(results["block"], ColliderSet)
        self.assertTrue(results["empty"].is_empty)
        self.assertIsInstance(results["broken"], InvalidInputError)

    def test_executor_matches_sequential(self):
        items = self._items()
        sequential = generate_batch(items)
        with ThreadPoolExecutor(max_workers=2) as executor:
            parallel = generate_batch(items.items(), executor=executor)

        self.assertEqual(list(parallel), list(sequential))
        self.assertEqual(parallel["block"].to_dict(), sequential["block"].to_dict())
        self.assertIsInstance(parallel["broken"], InvalidInputError)


if __name__ == "__main__":
    unittest.main()
