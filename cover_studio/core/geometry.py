"""百分比几何模型.

图层位置与尺寸以画布宽高的百分比表示，且以中心点为锚点。本模块提供
百分比空间与绝对像素空间之间的纯函数换算，不持有任何状态。
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Box:
    """百分比空间中的图层框.

    Attributes:
        x: 中心点 X（画布宽度百分比）
        y: 中心点 Y（画布高度百分比）
        width: 宽度（画布宽度百分比）
        height: 高度（画布高度百分比）
    """

    x: float
    y: float
    width: float
    height: float

    @property
    def left(self) -> float:
        return self.x - self.width / 2

    @property
    def right(self) -> float:
        return self.x + self.width / 2

    @property
    def top(self) -> float:
        return self.y - self.height / 2

    @property
    def bottom(self) -> float:
        return self.y + self.height / 2


@dataclass(frozen=True)
class PixelRect:
    """绝对像素矩形（左上角 + 尺寸）."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def center(self) -> tuple[float, float]:
        return (self.left + self.width / 2, self.top + self.height / 2)


def percent_to_pixels(box: Box, canvas_width: float, canvas_height: float) -> PixelRect:
    """百分比框转换为像素矩形.

    Args:
        box: 百分比框
        canvas_width: 画布宽度（像素）
        canvas_height: 画布高度（像素）

    Returns:
        像素矩形
    """
    width_px = canvas_width * (box.width / 100)
    height_px = canvas_height * (box.height / 100)
    left = canvas_width * (box.x / 100) - width_px / 2
    top = canvas_height * (box.y / 100) - height_px / 2
    return PixelRect(left=left, top=top, width=width_px, height=height_px)


def pixels_to_percent(rect: PixelRect, canvas_width: float, canvas_height: float) -> Box:
    """像素矩形转换为百分比框（percent_to_pixels 的逆运算）.

    Args:
        rect: 像素矩形
        canvas_width: 画布宽度（像素）
        canvas_height: 画布高度（像素）

    Returns:
        百分比框
    """
    center_x, center_y = rect.center
    return Box(
        x=pixel_delta_to_percent(center_x, canvas_width),
        y=pixel_delta_to_percent(center_y, canvas_height),
        width=pixel_delta_to_percent(rect.width, canvas_width),
        height=pixel_delta_to_percent(rect.height, canvas_height),
    )


def pixel_delta_to_percent(delta_px: float, axis_length_px: float) -> float:
    """像素位移转换为百分比位移.

    拖拽时 axis_length_px 应为画布当前的渲染尺寸（已含视口缩放），
    这样换算结果与缩放比例无关。

    Args:
        delta_px: 像素位移
        axis_length_px: 该轴向的像素长度

    Returns:
        百分比位移，轴长为 0 时返回 0
    """
    if axis_length_px == 0:
        return 0.0
    return delta_px / axis_length_px * 100
