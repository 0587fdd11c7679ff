"""Tests for the percentage to PDF space transform."""

import logging
import pytest
from pinmark.transform import (
    PageGeometry, PdfPoint, display_up, normalize_rotation,
    to_absolute, to_relative, transform_rect,
)

ROTATIONS = [0, 90, 180, 270]


class TestToAbsolute:
    def test_center_unrotated(self):
        assert to_absolute(50, 50, 600, 800, 0) == PdfPoint(300, 400)

    def test_top_left_is_high_y(self):
        assert to_absolute(0, 0, 600, 800, 0) == PdfPoint(0, 800)

    def test_rotated_90(self):
        assert to_absolute(25, 75, 600, 800, 90) == PdfPoint(450, 200)

    def test_rotated_180(self):
        assert to_absolute(25, 75, 600, 800, 180) == PdfPoint(450, 600)

    def test_rotated_270(self):
        assert to_absolute(25, 75, 600, 800, 270) == PdfPoint(150, 600)

    def test_displayed_size_at_90(self):
        # the viewer shows a 600x800 page; its box is 800x600
        geometry = PageGeometry.from_displayed(600, 800, 90)
        assert geometry.point(50, 50) == PdfPoint(400, 300)

    @pytest.mark.parametrize("rotation", ROTATIONS)
    @pytest.mark.parametrize("px,py", [(0, 0), (100, 100), (12.5, 87.25), (50, 3)])
    def test_round_trip(self, rotation, px, py):
        x, y = to_absolute(px, py, 612, 792, rotation)
        back = to_relative(x, y, 612, 792, rotation)
        assert back == pytest.approx((px, py))

    @pytest.mark.parametrize("rotation", ROTATIONS)
    def test_stays_inside_page(self, rotation):
        for px, py in [(0, 0), (100, 0), (0, 100), (100, 100)]:
            p = to_absolute(px, py, 600, 800, rotation)
            assert 0 <= p.x <= 600
            assert 0 <= p.y <= 800


class TestRotationValidation:
    @pytest.mark.parametrize("value", [0, 90, 180, 270, 90.0])
    def test_valid(self, value):
        assert normalize_rotation(value) == int(value)

    @pytest.mark.parametrize("value", [-90, 45, 360, 90.5, "90", None])
    def test_invalid_falls_back(self, value, caplog):
        with caplog.at_level(logging.WARNING, logger="pinmark.transform"):
            assert normalize_rotation(value) == 0
        assert "Unsupported page rotation" in caplog.text

    def test_invalid_uses_identity_mapping(self):
        assert to_absolute(50, 25, 600, 800, 45) == to_absolute(50, 25, 600, 800, 0)


class TestTransformRect:
    def test_unrotated(self):
        r = transform_rect(10, 10, 20, 30, 600, 800, 0)
        assert (r.x, r.y, r.width, r.height) == pytest.approx((60, 480, 120, 240))

    @pytest.mark.parametrize("rotation", ROTATIONS)
    def test_size_non_negative(self, rotation):
        r = transform_rect(70, 5, 20, 40, 600, 800, rotation)
        assert r.width >= 0
        assert r.height >= 0

    def test_axes_swap_at_90(self):
        r = transform_rect(10, 10, 20, 30, 600, 800, 90)
        assert (r.width, r.height) == pytest.approx((180, 160))

    def test_corners(self):
        r = transform_rect(0, 0, 100, 100, 600, 800, 0)
        assert (r.x1, r.y1) == (600, 800)


class TestPageGeometry:
    def test_invalid_rotation_normalized(self):
        assert PageGeometry(600, 800, 33).rotation == 0

    @pytest.mark.parametrize("rotation,size", [(0, (600, 800)), (90, (800, 600)),
                                               (180, (600, 800)), (270, (800, 600))])
    def test_displayed_size(self, rotation, size):
        assert PageGeometry(600, 800, rotation).displayed_size == size

    def test_to_mupdf_flips_y(self):
        geometry = PageGeometry(600, 800)
        assert geometry.to_mupdf(geometry.point(10, 20)) == pytest.approx((60, 160))

    @pytest.mark.parametrize("rotation", ROTATIONS)
    def test_display_up_is_unit(self, rotation):
        ux, uy = display_up(rotation)
        assert abs(ux) + abs(uy) == 1
