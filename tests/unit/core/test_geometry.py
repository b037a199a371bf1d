"""百分比几何单元测试."""

from __future__ import annotations

import pytest

from cover_studio.core.geometry import (
    Box,
    PixelRect,
    percent_to_pixels,
    pixel_delta_to_percent,
    pixels_to_percent,
)


# ===================
# Box 测试
# ===================
class TestBox:
    """测试百分比框的边缘计算."""

    def test_edges(self):
        """测试四条边的位置."""
        box = Box(x=50, y=40, width=20, height=10)
        assert box.left == 40
        assert box.right == 60
        assert box.top == 35
        assert box.bottom == 45

    def test_box_is_frozen(self):
        """测试图层框不可修改."""
        box = Box(x=50, y=50, width=10, height=10)
        with pytest.raises(AttributeError):
            box.x = 20  # type: ignore[misc]


# ===================
# 换算测试
# ===================
class TestPercentToPixels:
    """测试百分比到像素的换算."""

    def test_centered_box(self):
        """测试居中图层框."""
        rect = percent_to_pixels(Box(50, 50, 50, 25), 1080, 1920)
        assert rect.width == pytest.approx(540)
        assert rect.height == pytest.approx(480)
        assert rect.left == pytest.approx(270)
        assert rect.top == pytest.approx(720)
        assert rect.center == pytest.approx((540, 960))

    def test_box_outside_canvas(self):
        """测试出血位置（超出画布）的图层框."""
        rect = percent_to_pixels(Box(-10, 110, 20, 20), 1000, 1000)
        assert rect.left == pytest.approx(-200)
        assert rect.bottom == pytest.approx(1200)

    @pytest.mark.parametrize(
        "box,size",
        [
            (Box(50, 50, 80, 15), (1080, 1920)),
            (Box(12.5, 87.3, 33.3, 4.2), (1242, 1660)),
            (Box(-5, 105, 1, 1), (1920, 1080)),
        ],
    )
    def test_round_trip(self, box: Box, size: tuple[int, int]):
        """测试百分比→像素→百分比在浮点误差内不变."""
        result = pixels_to_percent(percent_to_pixels(box, *size), *size)
        assert result.x == pytest.approx(box.x)
        assert result.y == pytest.approx(box.y)
        assert result.width == pytest.approx(box.width)
        assert result.height == pytest.approx(box.height)


class TestPixelsToPercent:
    """测试像素到百分比的换算."""

    def test_full_canvas(self):
        """测试覆盖整个画布的矩形."""
        box = pixels_to_percent(PixelRect(0, 0, 1080, 1920), 1080, 1920)
        assert box == Box(50, 50, 100, 100)


class TestPixelDeltaToPercent:
    """测试像素位移换算."""

    def test_basic(self):
        assert pixel_delta_to_percent(27, 540) == pytest.approx(5)

    def test_negative(self):
        assert pixel_delta_to_percent(-54, 540) == pytest.approx(-10)

    def test_zero_axis(self):
        """测试轴长为 0 时返回 0."""
        assert pixel_delta_to_percent(10, 0) == 0.0
