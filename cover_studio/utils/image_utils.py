"""图片工具函数模块.

提供颜色解析、图片编解码、适应模式缩放等工具函数。
"""

from __future__ import annotations

import base64
import io
import re
from typing import Union

from PIL import Image, ImageColor

from cover_studio.utils.constants import TRANSPARENT
from cover_studio.utils.helpers import clamp
from cover_studio.utils.logger import setup_logger

logger = setup_logger(__name__)

RGBAColor = tuple[int, int, int, int]

# rgba()/rgb() 函数形式，alpha 允许 0-1 小数或百分比
_RGB_FUNC_PATTERN = re.compile(
    r"^rgba?\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*(?:,\s*([\d.]+%?)\s*)?\)$",
    re.IGNORECASE,
)


def parse_color(value: str) -> RGBAColor:
    """解析颜色字符串为 RGBA 元组.

    支持 ``transparent``、十六进制（#rgb/#rrggbb/#rrggbbaa）、颜色名称、
    ``rgb()`` 以及 alpha 为 0-1 小数的 ``rgba()``。

    Args:
        value: 颜色字符串

    Returns:
        (r, g, b, a) 元组，取值 0-255

    Raises:
        ValueError: 无法解析的颜色
    """
    text = (value or "").strip()
    if not text:
        raise ValueError("颜色值不能为空")

    if text.lower() == TRANSPARENT:
        return (0, 0, 0, 0)

    match = _RGB_FUNC_PATTERN.match(text)
    if match:
        r, g, b = (min(255, int(round(float(v)))) for v in match.group(1, 2, 3))
        alpha_text = match.group(4)
        if alpha_text is None:
            a = 255
        elif alpha_text.endswith("%"):
            a = int(round(float(alpha_text[:-1]) / 100 * 255))
        else:
            a = int(round(float(alpha_text) * 255))
        return (r, g, b, max(0, min(255, a)))

    rgb = ImageColor.getrgb(text)
    if len(rgb) == 3:
        return (*rgb, 255)
    return rgb  # type: ignore[return-value]


def is_transparent(value: str) -> bool:
    """颜色是否为透明标记."""
    return (value or "").strip().lower() == TRANSPARENT


def ensure_rgba(image: Image.Image) -> Image.Image:
    """确保图片为 RGBA 模式.

    Args:
        image: PIL Image 对象

    Returns:
        RGBA 模式图片
    """
    if image.mode != "RGBA":
        return image.convert("RGBA")
    return image


def bytes_to_image(data: bytes) -> Image.Image:
    """字节数据转图片.

    Args:
        data: 图片字节数据

    Returns:
        已加载到内存的 PIL Image 对象
    """
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def data_uri_to_image(data_uri: str) -> Image.Image:
    """data URI（base64）转图片.

    Args:
        data_uri: ``data:image/png;base64,...`` 形式的字符串

    Returns:
        PIL Image 对象
    """
    payload = data_uri
    # 移除前缀
    if "," in payload:
        payload = payload.split(",", 1)[1]

    data = base64.b64decode(payload)
    return bytes_to_image(data)


def image_to_bytes(image: Image.Image, format: str = "PNG") -> bytes:
    """图片转字节数据.

    Args:
        image: PIL Image 对象
        format: 图片格式

    Returns:
        图片字节数据
    """
    buffer = io.BytesIO()
    save_kwargs: dict[str, Union[int, bool]] = {}
    if format.upper() == "PNG":
        save_kwargs["compress_level"] = 6
    image.save(buffer, format=format.upper(), **save_kwargs)
    return buffer.getvalue()


def apply_opacity(image: Image.Image, opacity: float) -> Image.Image:
    """按百分比缩放图片 alpha 通道.

    Args:
        image: RGBA 图片
        opacity: 不透明度（0-100）

    Returns:
        处理后的图片
    """
    if opacity >= 100:
        return image

    factor = clamp(opacity, 0, 100) / 100
    alpha = image.getchannel("A").point(lambda p: int(p * factor))
    result = image.copy()
    result.putalpha(alpha)
    return result


def fit_image(
    image: Image.Image,
    target_size: tuple[int, int],
    fit_mode: str,
) -> Image.Image:
    """根据适应模式调整图片大小.

    Args:
        image: 原图片
        target_size: 目标尺寸
        fit_mode: 适应模式（cover/contain/fill）

    Returns:
        尺寸恰为 target_size 的 RGBA 图片
    """
    image = ensure_rgba(image)
    target_w, target_h = max(1, target_size[0]), max(1, target_size[1])

    if fit_mode == "fill":
        return image.resize((target_w, target_h), Image.Resampling.LANCZOS)

    img_w, img_h = image.size
    img_ratio = img_w / img_h
    target_ratio = target_w / target_h

    if fit_mode == "cover":
        # 覆盖：填满目标区域，居中裁剪
        if img_ratio > target_ratio:
            new_h = target_h
            new_w = max(target_w, round(new_h * img_ratio))
        else:
            new_w = target_w
            new_h = max(target_h, round(new_w / img_ratio))

        resized = image.resize((new_w, new_h), Image.Resampling.LANCZOS)
        x = (new_w - target_w) // 2
        y = (new_h - target_h) // 2
        return resized.crop((x, y, x + target_w, y + target_h))

    # contain：完整显示在目标区域内，居中留白
    if img_ratio > target_ratio:
        new_w = target_w
        new_h = max(1, round(new_w / img_ratio))
    else:
        new_h = target_h
        new_w = max(1, round(new_h * img_ratio))

    resized = image.resize((new_w, new_h), Image.Resampling.LANCZOS)
    result = Image.new("RGBA", (target_w, target_h), (0, 0, 0, 0))
    result.paste(resized, ((target_w - new_w) // 2, (target_h - new_h) // 2))
    return result
