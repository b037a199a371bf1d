"""吸附计算模块.

移动图层时，把图层的中心或边缘吸附到画布中线、画布边缘以及其它图层的
中心和边缘，并给出对应的参考线。

每个轴向独立计算:
    - 吸附目标依次为画布中心 50、画布边缘 0 和 100，然后按数组顺序加入
      其它图层的中心与两侧边缘
    - 参考点依次为图层中心、前沿（左/上）、后沿（右/下）
    - 在所有参考点与目标的组合中取距离最小且严格小于阈值的一个；
      距离相同时保留先找到的
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from cover_studio.core.geometry import Box, pixel_delta_to_percent
from cover_studio.utils.constants import SNAP_THRESHOLD_PX


class GuideOrientation(str, Enum):
    """参考线方向."""

    VERTICAL = "vertical"  # 竖线，位于某个 x 百分比
    HORIZONTAL = "horizontal"  # 横线，位于某个 y 百分比


@dataclass(frozen=True)
class Guide:
    """对齐参考线.

    Attributes:
        orientation: 方向
        position: 位置（百分比）
    """

    orientation: GuideOrientation
    position: float


@dataclass(frozen=True)
class SnapResult:
    """吸附结果.

    Attributes:
        x: 吸附后的中心 X
        y: 吸附后的中心 Y
        guides: 参考线（0-2 条）
    """

    x: float
    y: float
    guides: tuple[Guide, ...] = ()


def axis_targets(others: Iterable[tuple[float, float]]) -> list[float]:
    """构建单个轴向的吸附目标.

    Args:
        others: 其它图层在该轴向上的 (中心, 尺寸)

    Returns:
        目标位置列表（百分比）
    """
    targets = [50.0, 0.0, 100.0]
    for center, extent in others:
        targets.extend((center, center - extent / 2, center + extent / 2))
    return targets


def snap_axis(
    center: float,
    extent: float,
    targets: list[float],
    threshold: float,
) -> Optional[tuple[float, float]]:
    """在单个轴向上计算吸附.

    Args:
        center: 候选中心位置
        extent: 图层在该轴向的尺寸
        targets: 吸附目标
        threshold: 阈值（百分比）

    Returns:
        (吸附后的中心, 参考线位置)，未吸附返回 None
    """
    half = extent / 2
    # 参考点：(相对中心的偏移)
    offsets = (0.0, -half, half)

    best: Optional[tuple[float, float]] = None
    best_distance = threshold
    for offset in offsets:
        point = center + offset
        for target in targets:
            distance = abs(point - target)
            if distance < best_distance:
                best_distance = distance
                best = (target - offset, target)
    return best


def compute_snap(
    candidate_x: float,
    candidate_y: float,
    moving: Box,
    others: Iterable[Box],
    rendered_width: float,
    rendered_height: float,
    threshold_px: float = SNAP_THRESHOLD_PX,
) -> SnapResult:
    """计算移动中图层的吸附位置.

    阈值以屏幕像素给出，按画布当前的渲染尺寸换算为百分比，
    因此吸附的手感与视口缩放无关。

    Args:
        candidate_x: 候选中心 X（百分比）
        candidate_y: 候选中心 Y（百分比）
        moving: 移动中图层的框（取其宽高）
        others: 其它图层的框
        rendered_width: 画布渲染宽度（屏幕像素）
        rendered_height: 画布渲染高度（屏幕像素）
        threshold_px: 吸附阈值（屏幕像素）

    Returns:
        吸附结果
    """
    other_boxes = list(others)
    threshold_x = pixel_delta_to_percent(threshold_px, rendered_width)
    threshold_y = pixel_delta_to_percent(threshold_px, rendered_height)

    x, y = candidate_x, candidate_y
    guides: list[Guide] = []

    snapped_x = snap_axis(
        candidate_x,
        moving.width,
        axis_targets((b.x, b.width) for b in other_boxes),
        threshold_x,
    )
    if snapped_x is not None:
        x, position = snapped_x
        guides.append(Guide(GuideOrientation.VERTICAL, position))

    snapped_y = snap_axis(
        candidate_y,
        moving.height,
        axis_targets((b.y, b.height) for b in other_boxes),
        threshold_y,
    )
    if snapped_y is not None:
        y, position = snapped_y
        guides.append(Guide(GuideOrientation.HORIZONTAL, position))

    return SnapResult(x=x, y=y, guides=tuple(guides))
