"""光栅化引擎单元测试."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from PIL import ImageFont

from cover_studio.models.canvas_document import (
    CanvasDocument,
    ImageLayer,
    ShapeLayer,
    TextLayer,
)
from cover_studio.services.image_source import ImageSourceLoader
from cover_studio.services.rasterizer import CoverRasterizer, find_font, measure_line, wrap_text
from cover_studio.utils.exceptions import ImageSourceError, RasterizationError


def _solid_shape(**kwargs) -> ShapeLayer:
    """无阴影、无圆角的纯色矩形."""
    defaults = dict(
        background_color="#0000ff",
        border_radius=0,
        box_shadow_enabled=False,
    )
    defaults.update(kwargs)
    return ShapeLayer(**defaults)


@pytest.fixture
def rasterizer() -> CoverRasterizer:
    return CoverRasterizer(oversample=1)


# ===================
# 换行
# ===================
class TestWrapText:
    """测试自动换行（以字符数为宽度）."""

    def test_fits_on_one_line(self):
        assert wrap_text("hello world", len, 20) == ["hello world"]

    def test_wraps_on_words(self):
        assert wrap_text("hello big world", len, 10) == ["hello big", "world"]

    def test_breaks_long_word(self):
        assert wrap_text("abcdefghij", len, 4) == ["abcd", "efgh", "ij"]

    def test_cjk_wraps_per_character(self):
        assert wrap_text("一二三四五", len, 2) == ["一二", "三四", "五"]

    def test_explicit_newlines_kept(self):
        assert wrap_text("a\n\nb", len, 10) == ["a", "", "b"]


class TestFonts:
    """测试字体查找与测量."""

    def test_find_font_always_returns_font(self):
        font = find_font("Definitely Missing Font", 24, True, True)
        assert font is not None
        assert font.getlength("A") > 0

    def test_letter_spacing_added(self):
        font = ImageFont.load_default(size=20)
        base = measure_line(font, "abc")
        assert measure_line(font, "abc", 5) == pytest.approx(base + 15)
        assert measure_line(font, "", 5) == 0


# ===================
# 背景
# ===================
class TestBackground:
    """测试背景渲染."""

    def test_output_size_is_logical(self):
        document = CanvasDocument(width=90, height=160)
        image = CoverRasterizer(oversample=2).rasterize(document)
        assert image.size == (90, 160)
        assert image.mode == "RGBA"

    def test_opaque_background(self, rasterizer):
        document = CanvasDocument(width=50, height=50, background_color="#ff8800")
        image = rasterizer.rasterize(document)
        assert image.getpixel((0, 0)) == (255, 136, 0, 255)
        assert image.getpixel((49, 49)) == (255, 136, 0, 255)

    def test_transparent_background(self, rasterizer):
        document = CanvasDocument(width=50, height=50, background_color="transparent")
        assert rasterizer.rasterize(document).getpixel((0, 0))[3] == 0

    def test_background_image(self, rasterizer, sample_png_path: Path):
        document = CanvasDocument(width=50, height=50, background_image=str(sample_png_path))
        assert rasterizer.rasterize(document).getpixel((25, 25)) == (255, 0, 0, 255)

    def test_unreadable_background_image(self, rasterizer, tmp_path: Path):
        document = CanvasDocument(width=50, height=50, background_image=str(tmp_path / "none.png"))
        with pytest.raises(ImageSourceError):
            rasterizer.rasterize(document)


# ===================
# 图层
# ===================
class TestShapeLayers:
    """测试形状图层渲染."""

    def test_rectangle_fills_box(self, rasterizer, small_document):
        small_document.layers.append(_solid_shape(x=50, y=50, width=50, height=50))
        image = rasterizer.rasterize(small_document)
        assert image.getpixel((50, 100)) == (0, 0, 255, 255)
        # 图层框外保持背景
        assert image.getpixel((10, 10)) == (255, 255, 255, 255)

    def test_invisible_layer_skipped(self, rasterizer, small_document):
        small_document.layers.append(_solid_shape(visible=False))
        image = rasterizer.rasterize(small_document)
        assert image.getpixel((50, 100)) == (255, 255, 255, 255)

    def test_array_order_is_paint_order(self, rasterizer, small_document):
        small_document.layers.append(_solid_shape(background_color="#ff0000"))
        small_document.layers.append(_solid_shape(background_color="#00ff00"))
        assert rasterizer.rasterize(small_document).getpixel((50, 100)) == (0, 255, 0, 255)

    def test_opacity(self, rasterizer):
        document = CanvasDocument(width=40, height=40, background_color="transparent")
        document.layers.append(_solid_shape(opacity=50, width=100, height=100))
        alpha = rasterizer.rasterize(document).getpixel((20, 20))[3]
        assert 120 <= alpha <= 135

    def test_circle_leaves_corners_empty(self, rasterizer):
        document = CanvasDocument(width=100, height=100, background_color="transparent")
        document.layers.append(_solid_shape(shape_type="circle", width=100, height=100))
        image = rasterizer.rasterize(document)
        assert image.getpixel((50, 50))[3] == 255
        assert image.getpixel((2, 2))[3] == 0

    def test_rotation_about_center(self, rasterizer):
        """测试旋转 90° 后横条变为竖条."""
        document = CanvasDocument(width=100, height=100, background_color="transparent")
        document.layers.append(_solid_shape(width=80, height=10, rotation=90))
        image = rasterizer.rasterize(document)
        assert image.getpixel((50, 15))[3] > 200
        assert image.getpixel((15, 50))[3] == 0

    def test_shadow_extends_outside_box(self, rasterizer):
        document = CanvasDocument(width=200, height=200, background_color="transparent")
        document.layers.append(
            _solid_shape(width=50, height=50, box_shadow_enabled=True, box_shadow_blur=4)
        )
        image = rasterizer.rasterize(document)
        # 投影向下偏移，图层框正下方有半透明像素
        assert image.getpixel((100, 152))[3] > 0

    def test_scale_independent_geometry(self):
        """测试不同过采样倍数下几何一致."""
        document = CanvasDocument(width=100, height=100, background_color="transparent")
        document.layers.append(_solid_shape(x=25, y=75, width=20, height=20))
        for oversample in (1, 2, 3):
            image = CoverRasterizer(oversample=oversample).rasterize(document)
            assert image.getpixel((25, 75))[3] == 255
            assert image.getpixel((50, 50))[3] == 0


class TestTextLayers:
    """测试文字图层渲染."""

    def test_text_draws_pixels(self, rasterizer):
        document = CanvasDocument(width=200, height=100, background_color="transparent")
        document.layers.append(
            TextLayer(text="HELLO", font_size=40, color="#000000", text_shadow_enabled=False,
                      width=100, height=100)
        )
        image = rasterizer.rasterize(document)
        assert image.getbbox() is not None

    def test_text_clipped_to_box(self, rasterizer):
        document = CanvasDocument(width=200, height=200, background_color="transparent")
        document.layers.append(
            TextLayer(text="WWW", font_size=60, width=20, height=10, text_shadow_enabled=False)
        )
        bbox = rasterizer.rasterize(document).getbbox()
        assert bbox is not None
        left, top, right, bottom = bbox
        assert left >= 80 and right <= 120
        assert top >= 90 and bottom <= 110

    def test_text_background(self, rasterizer):
        document = CanvasDocument(width=100, height=100, background_color="transparent")
        document.layers.append(
            TextLayer(text="", background_color="#00ff00", width=100, height=100,
                      font_size=20, padding=5, text_shadow_enabled=False)
        )
        assert rasterizer.rasterize(document).getpixel((50, 50)) == (0, 255, 0, 255)


class TestImageLayers:
    """测试图片图层渲染."""

    def test_fill_mode(self, rasterizer, sample_png_path: Path):
        document = CanvasDocument(width=100, height=100, background_color="transparent")
        document.layers.append(ImageLayer(src=str(sample_png_path), object_fit="fill", width=100, height=100))
        image = rasterizer.rasterize(document)
        assert image.getpixel((5, 5)) == (255, 0, 0, 255)

    def test_contain_mode_letterboxes(self, rasterizer, sample_png_path: Path):
        document = CanvasDocument(width=100, height=100, background_color="transparent")
        document.layers.append(ImageLayer(src=str(sample_png_path), width=100, height=100))
        image = rasterizer.rasterize(document)
        assert image.getpixel((50, 50)) == (255, 0, 0, 255)
        assert image.getpixel((50, 5))[3] == 0

    def test_empty_src_skipped(self, rasterizer, small_document):
        small_document.layers.append(ImageLayer())
        assert rasterizer.rasterize(small_document).getpixel((50, 100)) == (255, 255, 255, 255)

    def test_remote_image_disallowed(self, rasterizer, small_document):
        small_document.layers.append(ImageLayer(src="https://cdn.example.com/a.png"))
        with pytest.raises(RasterizationError):
            rasterizer.rasterize(small_document)

    def test_unexpected_failure_wrapped(self, small_document):
        loader = MagicMock(spec=ImageSourceLoader)
        loader.load.side_effect = ValueError("boom")
        small_document.layers.append(ImageLayer(src="x.png"))
        with pytest.raises(RasterizationError):
            CoverRasterizer(oversample=1, image_loader=loader).rasterize(small_document)

    def test_document_not_mutated(self, rasterizer, small_document):
        small_document.layers.append(_solid_shape(rotation=30, opacity=40))
        before = small_document.model_dump()
        rasterizer.rasterize(small_document)
        assert small_document.model_dump() == before


# ===================
# 屏幕预览
# ===================
class TestPreview:
    """测试按视口缩放渲染预览."""

    def test_size_follows_scale(self, rasterizer, small_document):
        assert rasterizer.render_preview(small_document, 0.5).size == (50, 100)

    def test_scale_clamped(self, rasterizer, small_document):
        assert rasterizer.render_preview(small_document, 100).size == (200, 400)
        assert rasterizer.render_preview(small_document, 0).size == (5, 10)

    def test_missing_image_layer_skipped(self, rasterizer, small_document, tmp_path: Path):
        """测试单个图片图层失败时其余图层仍然显示，导出仍然报错."""
        small_document.layers.append(_solid_shape(x=0, y=0, width=50, height=50))
        small_document.layers.append(ImageLayer(src=str(tmp_path / "missing.png"), x=0, y=50, width=100, height=50))

        preview = rasterizer.render_preview(small_document, 1)
        assert preview.getpixel((10, 10)) == (0, 0, 255, 255)
        assert preview.getpixel((50, 150)) == (255, 255, 255, 255)

        with pytest.raises(ImageSourceError):
            rasterizer.rasterize(small_document)

    def test_missing_background_image_skipped(self, rasterizer, small_document, tmp_path: Path):
        small_document.background_image = str(tmp_path / "missing.png")
        small_document.layers.append(_solid_shape(x=0, y=0, width=50, height=50))

        preview = rasterizer.render_preview(small_document, 1)
        assert preview.getpixel((10, 10)) == (0, 0, 255, 255)
        assert preview.getpixel((90, 190)) == (255, 255, 255, 255)

        with pytest.raises(ImageSourceError):
            rasterizer.rasterize(small_document)
