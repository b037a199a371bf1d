"""封面光栅化引擎.

把画布文档渲染为逻辑分辨率的 RGBA 图片，结果与屏幕缩放无关。

Features:
    - 按过采样倍数渲染后 LANCZOS 缩小到逻辑尺寸
    - 按屏幕缩放渲染预览，单个图片来源失败时跳过该图层
    - 背景：纯色、透明或底图（cover 适应）
    - 按数组顺序渲染可见图层，支持不透明度与绕中心旋转
    - 文字渲染支持自动换行、行高、字间距、对齐、背景、阴影
    - 形状渲染支持圆角矩形、圆形、边框、投影
    - 图片图层支持 cover/contain/fill 适应模式
"""

from __future__ import annotations

import math
import os
import re
from functools import lru_cache
from typing import Callable, Optional

from PIL import Image, ImageDraw, ImageFilter, ImageFont

from cover_studio.core.geometry import PixelRect, percent_to_pixels
from cover_studio.models.canvas_document import (
    AnyLayer,
    CanvasDocument,
    ImageLayer,
    ShapeLayer,
    TextAlign,
    TextLayer,
)
from cover_studio.services.image_source import ImageSourceLoader
from cover_studio.utils.constants import EXPORT_OVERSAMPLE, PREVIEW_MAX_SCALE, PREVIEW_MIN_SCALE
from cover_studio.utils.exceptions import ImageSourceError, RasterizationError
from cover_studio.utils.image_utils import apply_opacity, fit_image, is_transparent, parse_color
from cover_studio.utils.logger import setup_logger

logger = setup_logger(__name__)


# ===================
# 常量定义
# ===================

# 阴影偏移（逻辑像素，向下）
TEXT_SHADOW_OFFSET = 2
BOX_SHADOW_OFFSET = 4

# 字体搜索路径
FONT_SEARCH_PATHS = [
    "/System/Library/Fonts/",
    "/System/Library/Fonts/Supplemental/",
    "/Library/Fonts/",
    "~/Library/Fonts/",
    "C:/Windows/Fonts/",
    "/usr/share/fonts/",
    "/usr/share/fonts/truetype/",
    "/usr/share/fonts/truetype/dejavu/",
    "/usr/share/fonts/opentype/noto/",
]

# 中文字体回退列表（macOS/Windows/Linux 常见中文字体）
CHINESE_FONT_FALLBACKS = [
    # macOS
    "PingFang SC.ttc",
    "PingFang.ttc",
    "STHeiti Medium.ttc",
    "Hiragino Sans GB.ttc",
    # Windows
    "msyh.ttc",  # 微软雅黑
    "msyhbd.ttc",
    "simhei.ttf",  # 黑体
    # Linux
    "NotoSansCJK-Black.ttc",
    "NotoSansCJK-Bold.ttc",
    "NotoSansCJK-Regular.ttc",
    "wqy-microhei.ttc",
    "wqy-zenhei.ttc",
]

# 西文默认字体
LATIN_FONT_FALLBACKS = {
    False: ["Arial.ttf", "arial.ttf", "DejaVuSans.ttf"],
    True: ["Arial Bold.ttf", "arialbd.ttf", "DejaVuSans-Bold.ttf"],
}

# 换行切分：CJK 单字、连续非空白字符、连续空白
_WRAP_TOKEN_PATTERN = re.compile(
    r"[\u3000-\u303f\u3400-\u4dbf\u4e00-\u9fff\uff00-\uffef]"
    r"|[^\s\u3000-\u303f\u3400-\u4dbf\u4e00-\u9fff\uff00-\uffef]+"
    r"|\s+"
)


# ===================
# 字体管理
# ===================


def _has_chinese_characters(text: str) -> bool:
    """检查文本是否包含中文字符."""
    for char in text:
        if "\u4e00" <= char <= "\u9fff" or "\u3400" <= char <= "\u4dbf":
            return True
    return False


def _search_font_file(names: list[str], font_size: int) -> Optional[ImageFont.FreeTypeFont]:
    """在常用路径中按顺序查找字体文件."""
    for search_path in FONT_SEARCH_PATHS:
        expanded_path = os.path.expanduser(search_path)
        if not os.path.isdir(expanded_path):
            continue

        for name in names:
            font_path = os.path.join(expanded_path, name)
            if os.path.exists(font_path):
                try:
                    return ImageFont.truetype(font_path, font_size)
                except OSError:
                    continue

    return None


@lru_cache(maxsize=64)
def find_font(
    font_family: Optional[str],
    font_size: int,
    bold: bool = False,
    needs_chinese: bool = False,
) -> ImageFont.FreeTypeFont:
    """查找字体.

    依次尝试：直接加载、常用路径下的文件名变体（含粗体变体）、
    中文字体回退、西文默认字体、Pillow 内置字体。

    Args:
        font_family: 字体名称
        font_size: 字体大小（像素）
        bold: 是否粗体
        needs_chinese: 文本是否包含中文

    Returns:
        字体对象
    """
    if font_family:
        try:
            return ImageFont.truetype(font_family, font_size)
        except OSError:
            pass

        compact = font_family.replace(" ", "")
        font_variants = []
        if bold:
            font_variants.extend([
                f"{compact}-Bold.ttf",
                f"{compact}-Bold.otf",
                f"{compact}-Black.otf",
                f"{font_family} Bold.ttf",
            ])
        font_variants.extend([
            f"{font_family}.ttf",
            f"{font_family}.otf",
            f"{font_family}.ttc",
            f"{compact}-Regular.ttf",
            f"{compact}-Regular.otf",
        ])

        font = _search_font_file(font_variants, font_size)
        if font is not None:
            return font

    if needs_chinese:
        font = _search_font_file(CHINESE_FONT_FALLBACKS, font_size)
        if font is not None:
            logger.debug(f"字体 '{font_family}' 未找到，使用中文字体回退")
            return font

    font = _search_font_file(LATIN_FONT_FALLBACKS[bold], font_size)
    if font is not None:
        return font

    logger.warning(f"字体 '{font_family}' 未找到，使用默认字体")
    return ImageFont.load_default(size=font_size)  # type: ignore[return-value]


# ===================
# 文字排版
# ===================


def measure_line(font: ImageFont.FreeTypeFont, text: str, letter_spacing: float = 0) -> float:
    """测量单行文字宽度（字间距加在每个字符之后）."""
    if not text:
        return 0.0
    return font.getlength(text) + letter_spacing * len(text)


def _break_long_token(
    token: str,
    measure: Callable[[str], float],
    max_width: float,
    lines: list[str],
) -> str:
    """按字符断开超宽的 token，返回最后未满的一段."""
    current = ""
    for char in token:
        if current and measure(current + char) > max_width:
            lines.append(current)
            current = ""
        current += char
    return current


def wrap_text(text: str, measure: Callable[[str], float], max_width: float) -> list[str]:
    """按宽度自动换行.

    保留显式换行符；西文按单词换行，中文按字换行，
    单个超宽单词按字符断开。

    Args:
        text: 原始文本
        measure: 测量函数
        max_width: 最大行宽

    Returns:
        行列表
    """
    lines: list[str] = []
    for paragraph in text.split("\n"):
        current = ""
        for token in _WRAP_TOKEN_PATTERN.findall(paragraph):
            candidate = current + token
            if measure(candidate.rstrip()) <= max_width:
                current = candidate
                continue

            if current.strip():
                lines.append(current.rstrip())
            current = _break_long_token(token, measure, max_width, lines)
        lines.append(current.rstrip())
    return lines


# ===================
# 光栅化器
# ===================


class CoverRasterizer:
    """封面光栅化器.

    所有几何都从百分比与文档的逻辑分辨率计算，不读取任何视口状态。

    Example:
        >>> rasterizer = CoverRasterizer(oversample=2)
        >>> image = rasterizer.rasterize(document)
        >>> image.size == document.canvas_size
        True
    """

    def __init__(
        self,
        oversample: int = EXPORT_OVERSAMPLE,
        image_loader: Optional[ImageSourceLoader] = None,
    ) -> None:
        """初始化光栅化器.

        Args:
            oversample: 过采样倍数
            image_loader: 图片来源加载器，默认禁止远程图片
        """
        self.oversample = max(1, int(oversample))
        self.image_loader = image_loader or ImageSourceLoader()

    def rasterize(self, document: CanvasDocument) -> Image.Image:
        """渲染画布文档.

        Args:
            document: 画布文档（调用方应传入快照）

        Returns:
            尺寸恰为 ``width × height`` 的 RGBA 图片

        Raises:
            ImageSourceError: 图片来源无法读取或被禁止
            RasterizationError: 渲染失败
        """
        try:
            canvas = self._render(document, self.oversample, strict=True)
            if self.oversample > 1:
                canvas = canvas.resize(document.canvas_size, Image.Resampling.LANCZOS)
            return canvas
        except RasterizationError:
            raise
        except Exception as e:
            logger.exception(f"光栅化失败: {e}")
            raise RasterizationError(f"光栅化失败: {e}") from e

    def render_preview(self, document: CanvasDocument, scale: float) -> Image.Image:
        """按屏幕缩放渲染预览.

        与 ``rasterize`` 不同，无法读取的图片（图层或底图）只记录警告并跳过，
        其余图层照常显示。

        Args:
            document: 画布文档
            scale: 视口缩放，限制在 ``PREVIEW_MIN_SCALE`` 与 ``PREVIEW_MAX_SCALE`` 之间

        Returns:
            约为 ``width × scale`` 乘 ``height × scale`` 的 RGBA 图片

        Raises:
            RasterizationError: 渲染失败
        """
        scale = min(max(scale, PREVIEW_MIN_SCALE), PREVIEW_MAX_SCALE)
        try:
            return self._render(document, scale, strict=False)
        except RasterizationError:
            raise
        except Exception as e:
            logger.exception(f"预览渲染失败: {e}")
            raise RasterizationError(f"预览渲染失败: {e}") from e

    def _render(self, document: CanvasDocument, scale: float, strict: bool) -> Image.Image:
        width = max(1, round(document.width * scale))
        height = max(1, round(document.height * scale))

        logger.debug(
            f"光栅化: 逻辑尺寸={document.canvas_size}, 缩放={scale:g}, "
            f"图层数={document.layer_count}"
        )

        canvas = self._render_background(document, (width, height), strict)

        for layer in document.layers:
            if not layer.visible:
                continue
            canvas = self._render_layer(canvas, layer, scale, strict)
        return canvas

    def _render_background(
        self,
        document: CanvasDocument,
        size: tuple[int, int],
        strict: bool = True,
    ) -> Image.Image:
        """渲染背景（颜色 + 底图）."""
        if is_transparent(document.background_color):
            fill = (0, 0, 0, 0)
        else:
            fill = parse_color(document.background_color)
        canvas = Image.new("RGBA", size, fill)

        if document.background_image:
            backdrop = self._load_source(document.background_image, strict)
            if backdrop is not None:
                backdrop = fit_image(backdrop, size, "cover")
                canvas = Image.alpha_composite(canvas, backdrop)
        return canvas

    def _load_source(self, src: str, strict: bool) -> Optional[Image.Image]:
        """加载图片来源；非严格模式下失败返回 None."""
        try:
            return self.image_loader.load(src)
        except ImageSourceError as e:
            if strict:
                raise
            logger.warning(f"图片无法加载，已跳过: {e}")
            return None

    def _render_layer(
        self,
        canvas: Image.Image,
        layer: AnyLayer,
        scale: float,
        strict: bool = True,
    ) -> Image.Image:
        """渲染单个图层并合成到画布.

        图层先绘制到与图层框同心的图块上，再应用不透明度、绕中心旋转，
        最后粘贴到全尺寸透明层并 alpha 合成。
        """
        rect = percent_to_pixels(layer.box, canvas.width, canvas.height)
        box_w = max(1, round(rect.width))
        box_h = max(1, round(rect.height))

        if isinstance(layer, TextLayer):
            tile = self._render_text_tile(layer, box_w, box_h, scale)
        elif isinstance(layer, ShapeLayer):
            tile = self._render_shape_tile(layer, box_w, box_h, scale)
        elif isinstance(layer, ImageLayer):
            tile = self._render_image_tile(layer, box_w, box_h, strict)
        else:
            logger.warning(f"未知图层类型: {type(layer)}")
            return canvas

        if tile is None:
            return canvas

        tile = apply_opacity(tile, layer.opacity)
        if layer.rotation % 360:
            # PIL 逆时针为正，CSS 顺时针为正
            tile = tile.rotate(-layer.rotation, resample=Image.Resampling.BICUBIC, expand=True)

        return self._composite_centered(canvas, tile, rect)

    def _composite_centered(self, canvas: Image.Image, tile: Image.Image, rect: PixelRect) -> Image.Image:
        center_x, center_y = rect.center
        position = (
            math.floor(center_x - tile.width / 2 + 0.5),
            math.floor(center_y - tile.height / 2 + 0.5),
        )
        temp = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        # 不使用蒙版粘贴，保留图块原始 alpha
        temp.paste(tile, position)
        return Image.alpha_composite(canvas, temp)

    # ========================
    # 文字
    # ========================

    def _render_text_tile(
        self,
        layer: TextLayer,
        box_w: int,
        box_h: int,
        scale: float,
    ) -> Optional[Image.Image]:
        """渲染文字图块（内容裁剪在图层框内）."""
        font_size = max(1, round(layer.font_size * scale))
        font = find_font(
            layer.font_family,
            font_size,
            layer.is_bold,
            _has_chinese_characters(layer.text),
        )

        padding = layer.padding * scale
        letter_spacing = layer.letter_spacing * scale
        line_height = font_size * layer.line_height
        content_w = max(1.0, box_w - 2 * padding)

        lines = wrap_text(
            layer.text,
            lambda s: measure_line(font, s, letter_spacing),
            content_w,
        )
        block_h = line_height * len(lines) + 2 * padding
        block_top = (box_h - block_h) / 2

        tile = Image.new("RGBA", (box_w, box_h), (0, 0, 0, 0))

        if not is_transparent(layer.background_color):
            draw = ImageDraw.Draw(tile)
            radius = int(min(layer.border_radius * scale, box_w / 2, block_h / 2))
            draw.rounded_rectangle(
                (0, round(block_top), box_w - 1, max(round(block_top), round(block_top + block_h) - 1)),
                radius=radius,
                fill=parse_color(layer.background_color),
            )

        glyphs = Image.new("RGBA", (box_w, box_h), (0, 0, 0, 0))
        self._draw_text_lines(
            glyphs,
            lines,
            font,
            parse_color(layer.color),
            layer.text_align,
            padding,
            block_top,
            line_height,
            letter_spacing,
            content_w,
        )

        if layer.text_shadow_enabled:
            shadow = Image.new("RGBA", (box_w, box_h), (0, 0, 0, 0))
            self._draw_text_lines(
                shadow,
                lines,
                font,
                parse_color(layer.text_shadow_color),
                layer.text_align,
                padding,
                block_top + TEXT_SHADOW_OFFSET * scale,
                line_height,
                letter_spacing,
                content_w,
            )
            if layer.text_shadow_blur > 0:
                shadow = shadow.filter(ImageFilter.GaussianBlur(layer.text_shadow_blur * scale / 2))
            tile = Image.alpha_composite(tile, shadow)

        return Image.alpha_composite(tile, glyphs)

    def _draw_text_lines(
        self,
        target: Image.Image,
        lines: list[str],
        font: ImageFont.FreeTypeFont,
        fill: tuple[int, int, int, int],
        align: TextAlign,
        padding: float,
        block_top: float,
        line_height: float,
        letter_spacing: float,
        content_w: float,
    ) -> None:
        """逐行绘制文字，每行在行框内垂直居中."""
        draw = ImageDraw.Draw(target)
        for i, line in enumerate(lines):
            if not line.strip():
                continue

            line_w = measure_line(font, line, letter_spacing)
            if align == TextAlign.CENTER:
                x = padding + (content_w - line_w) / 2
            elif align == TextAlign.RIGHT:
                x = padding + content_w - line_w
            else:
                x = padding
            y = block_top + padding + line_height * i + line_height / 2

            if letter_spacing:
                for char in line:
                    draw.text((x, y), char, font=font, fill=fill, anchor="lm")
                    x += font.getlength(char) + letter_spacing
            else:
                draw.text((x, y), line, font=font, fill=fill, anchor="lm")

    # ========================
    # 形状
    # ========================

    def _render_shape_tile(
        self,
        layer: ShapeLayer,
        box_w: int,
        box_h: int,
        scale: float,
    ) -> Image.Image:
        """渲染形状图块（向外扩展留出投影空间）."""
        blur = layer.box_shadow_blur * scale if layer.box_shadow_enabled else 0
        offset = BOX_SHADOW_OFFSET * scale if layer.box_shadow_enabled else 0
        margin = math.ceil(blur * 1.5 + offset) if layer.box_shadow_enabled else 0

        size = (box_w + 2 * margin, box_h + 2 * margin)
        bounds = (margin, margin, margin + box_w - 1, margin + box_h - 1)
        radius = int(min(layer.border_radius * scale, box_w / 2, box_h / 2))

        tile = Image.new("RGBA", size, (0, 0, 0, 0))

        if layer.box_shadow_enabled:
            shadow = Image.new("RGBA", size, (0, 0, 0, 0))
            shadow_bounds = (bounds[0], bounds[1] + offset, bounds[2], bounds[3] + offset)
            self._draw_shape(
                ImageDraw.Draw(shadow),
                layer,
                shadow_bounds,
                radius,
                parse_color(layer.box_shadow_color),
            )
            if blur > 0:
                shadow = shadow.filter(ImageFilter.GaussianBlur(blur / 2))
            tile = Image.alpha_composite(tile, shadow)

        body = Image.new("RGBA", size, (0, 0, 0, 0))
        border_width = round(layer.border_width * scale)
        self._draw_shape(
            ImageDraw.Draw(body),
            layer,
            bounds,
            radius,
            parse_color(layer.background_color),
            parse_color(layer.border_color) if border_width > 0 else None,
            border_width,
        )
        return Image.alpha_composite(tile, body)

    def _draw_shape(
        self,
        draw: ImageDraw.ImageDraw,
        layer: ShapeLayer,
        bounds: tuple[float, float, float, float],
        radius: float,
        fill: tuple[int, int, int, int],
        outline: Optional[tuple[int, int, int, int]] = None,
        width: int = 0,
    ) -> None:
        """绘制形状（边框向内绘制）."""
        if layer.is_circle:
            draw.ellipse(bounds, fill=fill, outline=outline, width=width)
        elif radius > 0:
            draw.rounded_rectangle(bounds, radius, fill=fill, outline=outline, width=width)
        else:
            draw.rectangle(bounds, fill=fill, outline=outline, width=width)

    # ========================
    # 图片
    # ========================

    def _render_image_tile(
        self,
        layer: ImageLayer,
        box_w: int,
        box_h: int,
        strict: bool = True,
    ) -> Optional[Image.Image]:
        """渲染图片图块，未设置图片时跳过."""
        if not layer.has_image:
            return None

        source = self._load_source(layer.src, strict)
        if source is None:
            return None
        return fit_image(source, (box_w, box_h), layer.object_fit.value)
