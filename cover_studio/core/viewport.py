"""视口缩放模块.

根据容器尺寸计算画布的显示缩放比例。缩放只影响显示变换，
不改变任何已存储的几何数据。
"""

from __future__ import annotations

import math

from cover_studio.core.geometry import PixelRect
from cover_studio.utils.constants import VIEWPORT_MARGIN_FACTOR, VIEWPORT_PADDING
from cover_studio.utils.logger import setup_logger

logger = setup_logger(__name__)


class ViewportScaler:
    """视口缩放器.

    Attributes:
        scale: 当前缩放比例
        padding: 容器内边距（像素，两侧合计）
        margin_factor: 适配后再乘的边距系数

    Example:
        >>> scaler = ViewportScaler()
        >>> round(scaler.update(1144, 2000, 1080, 1920), 4)
        0.95
    """

    def __init__(
        self,
        padding: float = VIEWPORT_PADDING,
        margin_factor: float = VIEWPORT_MARGIN_FACTOR,
    ) -> None:
        self.padding = padding
        self.margin_factor = margin_factor
        self.scale = 1.0

    def update(
        self,
        container_width: float,
        container_height: float,
        canvas_width: float,
        canvas_height: float,
    ) -> float:
        """根据容器和画布尺寸重新计算缩放比例.

        可用区域为容器尺寸减去内边距（不小于 0）。画布宽或高为 0 时保留
        上一次的缩放比例；计算结果不是有限数值时回退为 1.0。

        Args:
            container_width: 容器宽度
            container_height: 容器高度
            canvas_width: 画布逻辑宽度
            canvas_height: 画布逻辑高度

        Returns:
            新的缩放比例
        """
        if canvas_width == 0 or canvas_height == 0:
            return self.scale

        available_w = max(0.0, container_width - self.padding)
        available_h = max(0.0, container_height - self.padding)

        scale = min(available_w / canvas_width, available_h / canvas_height) * self.margin_factor
        if not math.isfinite(scale):
            logger.warning(f"视口缩放比例无效，回退为 1.0: {scale}")
            scale = 1.0

        self.scale = scale
        return scale

    def rendered_size(self, canvas_width: float, canvas_height: float) -> tuple[float, float]:
        """画布在屏幕上的渲染尺寸."""
        return (canvas_width * self.scale, canvas_height * self.scale)

    def canvas_rect(
        self,
        container_width: float,
        container_height: float,
        canvas_width: float,
        canvas_height: float,
    ) -> PixelRect:
        """画布在容器中居中显示时的屏幕矩形.

        Args:
            container_width: 容器宽度
            container_height: 容器高度
            canvas_width: 画布逻辑宽度
            canvas_height: 画布逻辑高度

        Returns:
            屏幕坐标系下的画布矩形
        """
        width, height = self.rendered_size(canvas_width, canvas_height)
        return PixelRect(
            left=(container_width - width) / 2,
            top=(container_height - height) / 2,
            width=width,
            height=height,
        )

    @property
    def zoom_percent(self) -> int:
        """缩放百分比（用于显示）."""
        return round(self.scale * 100)
