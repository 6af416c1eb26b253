"""
Tests for hole bridging, ear clipping and convex merging.
"""

import itertools

import numpy as np
import pytest

from colgen.decomposition import (
    ConvexDecomposer,
    ear_clip,
    find_bridge,
    merge_holes_with_bridges,
    merge_triangles,
)
from colgen.errors import DecompositionError
from colgen.geometry import point_in_polygon, signed_area_2d
from colgen.types import Contour, DiagnosticKind, Polygon, Severity

SQUARE = np.array([[0, 0], [10, 0], [10, 10], [0, 10]], dtype=np.float64)
L_SHAPE = np.array([[0, 0], [2, 0], [2, 1], [1, 1], [1, 2], [0, 2]], dtype=np.float64)


def _hole(x0, y0, x1, y1):
    """Axis-aligned hole ring, negative orientation."""
    return np.array([[x0, y0], [x0, y1], [x1, y1], [x1, y0]], dtype=np.float64)


def _polygon(outer, *holes):
    return Polygon(
        outer=Contour(points=outer, is_hole=False),
        holes=tuple(Contour(points=h, is_hole=True) for h in holes),
    )


def _assert_disjoint(pieces, bounds, samples=41):
    """No sample point lies inside two pieces."""
    (x0, y0), (x1, y1) = bounds
    xs = np.linspace(x0, x1, samples) + 0.0137
    ys = np.linspace(y0, y1, samples) + 0.0291
    for x, y in itertools.product(xs, ys):
        inside = sum(point_in_polygon((x, y), p.vertices) for p in pieces)
        assert inside <= 1


class TestEarClip:
    """Tests for ear_clip."""

    def test_triangle(self):
        assert ear_clip([[0, 0], [1, 0], [0, 1]]) == [(0, 1, 2)]

    def test_square(self):
        triangles = ear_clip(SQUARE)
        assert len(triangles) == 2
        area = sum(signed_area_2d(SQUARE[list(t)]) for t in triangles)
        assert area == pytest.approx(100.0)

    def test_l_shape(self):
        triangles = ear_clip(L_SHAPE)
        assert len(triangles) == 4
        for t in triangles:
            assert signed_area_2d(L_SHAPE[list(t)]) > 0
        area = sum(signed_area_2d(L_SHAPE[list(t)]) for t in triangles)
        assert area == pytest.approx(3.0)

    def test_collinear_vertices_dropped(self):
        ring = np.array([[1, 0], [2, 0], [2, 2], [0, 2], [0, 0]], dtype=np.float64)
        triangles = ear_clip(ring)
        assert len(triangles) == 2
        for t in triangles:
            assert 0 not in t

    def test_too_few_points(self):
        assert ear_clip([[0, 0], [1, 1]]) == []


class TestBridging:
    """Tests for hole bridging."""

    def test_find_bridge_shortest(self):
        hole = _hole(6, 6, 8, 8)
        bridge = find_bridge(SQUARE, hole)
        assert bridge is not None
        ring_idx, hole_idx = bridge
        assert tuple(SQUARE[ring_idx]) == (10.0, 10.0)
        assert tuple(hole[hole_idx]) == (8.0, 8.0)

    def test_merge_single_hole(self):
        hole = _hole(3, 3, 7, 7)
        ring, unbridged = merge_holes_with_bridges(SQUARE, [hole])
        assert unbridged == []
        assert len(ring) == len(SQUARE) + len(hole) + 2
        assert signed_area_2d(ring) == pytest.approx(100.0 - 16.0)

    def test_merge_two_holes(self):
        holes = [_hole(1, 1, 3, 3), _hole(6, 6, 8, 8)]
        ring, unbridged = merge_holes_with_bridges(SQUARE, holes)
        assert unbridged == []
        assert signed_area_2d(ring) == pytest.approx(100.0 - 8.0)

    def test_unbridgeable_hole_left_out(self):
        ring, unbridged = merge_holes_with_bridges(SQUARE, [_hole(12, 12, 14, 14)])
        assert unbridged == [0]
        np.testing.assert_array_equal(ring, SQUARE)

    def test_unbridgeable_hole_does_not_block_others(self):
        holes = [_hole(12, 12, 14, 14), _hole(3, 3, 7, 7)]
        ring, unbridged = merge_holes_with_bridges(SQUARE, holes)
        assert unbridged == [0]
        assert signed_area_2d(ring) == pytest.approx(100.0 - 16.0)

    def test_no_holes(self):
        ring, unbridged = merge_holes_with_bridges(SQUARE, [])
        np.testing.assert_array_equal(ring, SQUARE)
        assert unbridged == []


class TestMergeTriangles:
    """Tests for Hertel-Mehlhorn merging."""

    def test_square_merges_into_one(self):
        pieces = merge_triangles(SQUARE, [(0, 1, 2), (0, 2, 3)])
        assert pieces == [[0, 1, 2, 3]]

    def test_l_shape_two_pieces(self):
        pieces = merge_triangles(L_SHAPE, ear_clip(L_SHAPE))
        assert len(pieces) == 2
        area = sum(signed_area_2d(L_SHAPE[p]) for p in pieces)
        assert area == pytest.approx(3.0)

    def test_deterministic(self):
        triangles = ear_clip(L_SHAPE)
        assert merge_triangles(L_SHAPE, triangles) == merge_triangles(L_SHAPE, list(triangles))


class TestConvexDecomposer:
    """Tests for ConvexDecomposer."""

    def test_convex_input_single_piece(self):
        pieces, diagnostics = ConvexDecomposer().decompose(_polygon(SQUARE))
        assert len(pieces) == 1
        assert len(pieces[0]) == 4
        assert pieces[0].area == pytest.approx(100.0)
        assert diagnostics == []

    def test_l_shape(self):
        pieces, _ = ConvexDecomposer().decompose(_polygon(L_SHAPE))
        assert len(pieces) == 2
        for piece in pieces:
            assert piece.is_convex()
            assert piece.signed_area > 0
        assert sum(p.area for p in pieces) == pytest.approx(3.0)
        _assert_disjoint(pieces, ((0, 0), (2, 2)))

    def test_square_with_hole(self):
        hole = _hole(3, 3, 7, 7)
        pieces, diagnostics = ConvexDecomposer().decompose(_polygon(SQUARE, hole))

        assert diagnostics == []
        assert sum(p.area for p in pieces) == pytest.approx(84.0)
        for piece in pieces:
            assert piece.is_convex()
            assert not point_in_polygon((5.0, 5.0), piece.vertices)
        _assert_disjoint(pieces, ((0, 0), (10, 10)))

    def test_two_holes(self):
        holes = [_hole(1, 1, 3, 3), _hole(6, 2, 8, 8)]
        pieces, _ = ConvexDecomposer().decompose(_polygon(SQUARE, *holes))
        assert sum(p.area for p in pieces) == pytest.approx(100.0 - 4.0 - 12.0)
        for piece in pieces:
            assert piece.is_convex()
        _assert_disjoint(pieces, ((0, 0), (10, 10)))

    def test_comb(self):
        """Many reflex vertices."""
        outer = np.array([
            [0, 0], [9, 0], [9, 3], [8, 3], [8, 1], [7, 1], [7, 3], [6, 3], [6, 1],
            [5, 1], [5, 3], [4, 3], [4, 1], [3, 1], [3, 3], [2, 3], [2, 1], [1, 1],
            [1, 3], [0, 3],
        ], dtype=np.float64)
        expected = signed_area_2d(outer)
        pieces, _ = ConvexDecomposer().decompose(_polygon(outer))
        assert sum(p.area for p in pieces) == pytest.approx(expected)
        for piece in pieces:
            assert piece.is_convex()
        _assert_disjoint(pieces, ((0, 0), (9, 3)))

    def test_deterministic(self):
        polygon = _polygon(SQUARE, _hole(3, 3, 7, 7))
        first, _ = ConvexDecomposer().decompose(polygon)
        second, _ = ConvexDecomposer().decompose(polygon)
        assert len(first) == len(second)
        for a, b in zip(first, second):
            np.testing.assert_array_equal(a.vertices, b.vertices)

    def test_bowtie_rejected(self):
        bowtie = np.array([[0, 0], [2, 2], [2, 0], [0, 2]], dtype=np.float64)
        with pytest.raises(DecompositionError):
            ConvexDecomposer().decompose(_polygon(bowtie))

    def test_hole_crossing_outer_rejected(self):
        with pytest.raises(DecompositionError):
            ConvexDecomposer().decompose(_polygon(SQUARE, _hole(8, 3, 12, 6)))

    def test_hole_outside_rejected(self):
        with pytest.raises(DecompositionError):
            ConvexDecomposer().decompose(_polygon(SQUARE, _hole(12, 12, 14, 14)))

    def test_overlapping_holes_rejected(self):
        with pytest.raises(DecompositionError):
            ConvexDecomposer().decompose(_polygon(SQUARE, _hole(2, 2, 5, 5), _hole(4, 4, 7, 7)))

    def test_thin_frame(self):
        outer = np.array([[0, 0], [4, 0], [4, 4], [0, 4]], dtype=np.float64)
        hole = _hole(0.5, 0.5, 3.5, 3.5)
        pieces, diagnostics = ConvexDecomposer().decompose(_polygon(outer, hole))
        assert sum(p.area for p in pieces) == pytest.approx(16.0 - 9.0)
        assert all(d.kind is not DiagnosticKind.HOLE_FILLED for d in diagnostics)
        for piece in pieces:
            assert piece.is_convex()
            assert not point_in_polygon((2.0, 2.0), piece.vertices)

    def test_unbridged_hole_filled(self, monkeypatch):
        def no_bridges(outer, holes, epsilon):
            return np.asarray(outer, dtype=np.float64), list(range(len(holes)))

        monkeypatch.setattr("colgen.decomposition.decomposer.merge_holes_with_bridges", no_bridges)
        polygon = _polygon(SQUARE, _hole(3, 3, 7, 7))
        pieces, diagnostics = ConvexDecomposer().decompose(polygon, index=5)

        assert sum(p.area for p in pieces) == pytest.approx(100.0)
        assert [d.kind for d in diagnostics] == [DiagnosticKind.HOLE_FILLED]
        assert diagnostics[0].severity is Severity.WARNING
        assert diagnostics[0].contour_index == 5

    def test_zero_area_polygon_skipped(self):
        tiny = np.array([[0, 0], [1e-7, 0], [1e-7, 1e-7], [0, 1e-7]], dtype=np.float64)
        pieces, diagnostics = ConvexDecomposer(epsilon=1e-20).decompose(_polygon(tiny), index=2)

        assert pieces == []
        assert [d.kind for d in diagnostics] == [DiagnosticKind.POLYGON_SKIPPED]
        assert diagnostics[0].severity is Severity.INFO
        assert diagnostics[0].contour_index == 2
