"""视口缩放单元测试."""

from __future__ import annotations

import pytest

from cover_studio.core.viewport import ViewportScaler


@pytest.fixture
def scaler() -> ViewportScaler:
    return ViewportScaler(padding=64, margin_factor=0.95)


class TestViewportUpdate:
    """测试缩放比例计算."""

    def test_width_limited(self, scaler: ViewportScaler):
        """测试宽度受限."""
        scale = scaler.update(1144, 4000, 1080, 1920)
        assert scale == pytest.approx(0.95)
        assert scaler.scale == pytest.approx(0.95)

    def test_height_limited(self, scaler: ViewportScaler):
        """测试高度受限."""
        scale = scaler.update(4000, 1024, 1080, 1920)
        assert scale == pytest.approx(960 / 1920 * 0.95)

    def test_container_smaller_than_padding(self, scaler: ViewportScaler):
        """测试容器小于内边距时缩放为 0."""
        assert scaler.update(30, 30, 1080, 1920) == 0.0

    def test_zero_canvas_keeps_previous_scale(self, scaler: ViewportScaler):
        """测试画布尺寸为 0 时保留上一次的缩放."""
        scaler.update(1144, 4000, 1080, 1920)
        assert scaler.update(800, 600, 0, 1920) == pytest.approx(0.95)
        assert scaler.update(800, 600, 1080, 0) == pytest.approx(0.95)

    def test_non_finite_falls_back(self, scaler: ViewportScaler):
        """测试非有限结果回退为 1.0."""
        assert scaler.update(float("inf"), float("inf"), 1080, 1920) == 1.0

    def test_initial_scale(self, scaler: ViewportScaler):
        assert scaler.scale == 1.0
        assert scaler.zoom_percent == 100


class TestViewportGeometry:
    """测试画布显示矩形."""

    def test_rendered_size(self, scaler: ViewportScaler):
        scaler.scale = 0.5
        assert scaler.rendered_size(1080, 1920) == (540, 960)

    def test_canvas_rect_is_centered(self, scaler: ViewportScaler):
        """测试画布在容器中居中."""
        scaler.scale = 0.5
        rect = scaler.canvas_rect(1000, 1000, 1080, 1920)
        assert rect.left == pytest.approx(230)
        assert rect.top == pytest.approx(20)
        assert rect.width == pytest.approx(540)
        assert rect.height == pytest.approx(960)

    def test_zoom_percent(self, scaler: ViewportScaler):
        scaler.update(1144, 4000, 1080, 1920)
        assert scaler.zoom_percent == 95
