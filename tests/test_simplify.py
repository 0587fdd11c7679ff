"""Tests for Douglas-Peucker path simplification."""

import math
import pytest
from pinmark.models import LIFT, Point
from pinmark.simplify import perpendicular_distance, simplify_path, simplify_stroke_points


def _wave(n=60, amplitude=3.0):
    return [Point(i * 0.5, amplitude * math.sin(i / 4)) for i in range(n)]


class TestPerpendicularDistance:
    def test_on_segment(self):
        assert perpendicular_distance(Point(1, 0), Point(0, 0), Point(2, 0)) == 0

    def test_above_segment(self):
        assert perpendicular_distance(Point(1, 2), Point(0, 0), Point(2, 0)) == 2

    def test_projection_clamped_to_end(self):
        assert perpendicular_distance(Point(5, 4), Point(0, 0), Point(2, 0)) == 5

    def test_degenerate_segment(self):
        assert perpendicular_distance(Point(3, 4), Point(0, 0), Point(0, 0)) == 5


class TestSimplifyPath:
    def test_nearly_straight_line_collapses(self):
        pts = [(0, 0), (1, 0.1), (2, -0.1), (3, 0)]
        assert simplify_path(pts, 1) == [(0, 0), (3, 0)]

    def test_two_points_unchanged(self):
        assert simplify_path([(0, 0), (5, 5)], 1) == [(0, 0), (5, 5)]

    def test_single_point_unchanged(self):
        assert simplify_path([(1, 1)], 1) == [(1, 1)]

    def test_corner_is_kept(self):
        pts = [(0, 0), (5, 0), (10, 0), (10, 5), (10, 10)]
        assert simplify_path(pts, 0.5) == [(0, 0), (10, 0), (10, 10)]

    def test_endpoints_always_kept(self):
        pts = _wave()
        out = simplify_path(pts, 2.0)
        assert out[0] == pts[0]
        assert out[-1] == pts[-1]

    def test_output_is_subsequence(self):
        pts = _wave()
        out = simplify_path(pts, 0.5)
        it = iter(pts)
        assert all(p in it for p in out)

    @pytest.mark.parametrize("tolerance", [0, 0.1, 0.5, 1.0, 5.0])
    def test_idempotent(self, tolerance):
        once = simplify_path(_wave(), tolerance)
        assert simplify_path(once, tolerance) == once

    @pytest.mark.parametrize("tolerance", [0.1, 0.5, 1.0, 2.5])
    def test_every_point_within_tolerance(self, tolerance):
        pts = _wave()
        out = simplify_path(pts, tolerance)
        segments = list(zip(out, out[1:]))
        for p in pts:
            nearest = min(perpendicular_distance(p, a, b) for a, b in segments)
            assert nearest <= tolerance + 1e-9


class TestSimplifyStrokePoints:
    def test_subpaths_simplified_separately(self):
        pts = [Point(0, 0), Point(1, 0.1), Point(2, 0), LIFT,
               Point(10, 10), Point(11, 10.1), Point(12, 10)]
        assert simplify_stroke_points(pts, 1) == [
            Point(0, 0), Point(2, 0), LIFT, Point(10, 10), Point(12, 10),
        ]

    def test_leading_and_trailing_lifts_dropped(self):
        pts = [LIFT, Point(0, 0), Point(1, 1), LIFT]
        assert simplify_stroke_points(pts, 1) == [Point(0, 0), Point(1, 1)]
