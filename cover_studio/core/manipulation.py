"""直接操作引擎.

把指针事件转换为图层几何的修改：拖动图层移动（带吸附），
拖动控制柄缩放（保持对边不动）。

状态机:
    IDLE --pointer_down--> MOVING / RESIZING --pointer_up/leave--> IDLE

指针坐标为屏幕像素；位移按画布当前的渲染尺寸换算成百分比，
因此同样的屏幕拖动在任何缩放比例下都得到同样的几何结果。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from cover_studio.core.geometry import Box, pixel_delta_to_percent
from cover_studio.core.layer_store import LayerStore
from cover_studio.core.snapping import Guide, compute_snap
from cover_studio.utils.constants import MIN_BOX_PERCENT, SNAP_THRESHOLD_PX
from cover_studio.utils.logger import setup_logger

logger = setup_logger(__name__)


class DragMode(str, Enum):
    """拖拽模式."""

    MOVE = "move"
    RESIZE = "resize"


class ResizeHandle(str, Enum):
    """缩放控制柄（以方位命名）."""

    NW = "nw"
    NE = "ne"
    SW = "sw"
    SE = "se"
    N = "n"
    S = "s"
    E = "e"
    W = "w"

    @property
    def is_west(self) -> bool:
        return "w" in self.value

    @property
    def is_east(self) -> bool:
        return "e" in self.value

    @property
    def is_north(self) -> bool:
        return "n" in self.value

    @property
    def is_south(self) -> bool:
        return "s" in self.value


class EngineState(str, Enum):
    """引擎状态."""

    IDLE = "idle"
    MOVING = "moving"
    RESIZING = "resizing"


@dataclass(frozen=True)
class DragSession:
    """拖拽会话（按下时的快照）.

    Attributes:
        mode: 拖拽模式
        layer_id: 目标图层 ID
        start_x: 按下时的指针 X（屏幕像素）
        start_y: 按下时的指针 Y（屏幕像素）
        start_box: 按下时图层框的副本
        handle: 缩放控制柄，移动时为 None
    """

    mode: DragMode
    layer_id: str
    start_x: float
    start_y: float
    start_box: Box
    handle: Optional[ResizeHandle] = None


def resize_box(start: Box, handle: ResizeHandle, dx: float, dy: float) -> Box:
    """按控制柄缩放图层框.

    控制柄对侧的边保持不动，宽高不小于 ``MIN_BOX_PERCENT``；
    触及下限时对侧的边依然不动。

    Args:
        start: 起始框
        handle: 控制柄
        dx: X 位移（百分比）
        dy: Y 位移（百分比）

    Returns:
        新的图层框
    """
    left, right = start.left, start.right
    top, bottom = start.top, start.bottom

    if handle.is_east:
        right = max(left + MIN_BOX_PERCENT, right + dx)
    if handle.is_west:
        left = min(right - MIN_BOX_PERCENT, left + dx)
    if handle.is_south:
        bottom = max(top + MIN_BOX_PERCENT, bottom + dy)
    if handle.is_north:
        top = min(bottom - MIN_BOX_PERCENT, top + dy)

    return Box(
        x=(left + right) / 2,
        y=(top + bottom) / 2,
        width=right - left,
        height=bottom - top,
    )


class ManipulationEngine:
    """直接操作引擎.

    同一时间只有一个拖拽会话。目标图层在拖拽过程中被删除时，
    后续事件被静默忽略。

    Attributes:
        store: 图层存储
        snap_threshold_px: 吸附阈值（屏幕像素）
    """

    def __init__(self, store: LayerStore, snap_threshold_px: float = SNAP_THRESHOLD_PX) -> None:
        self.store = store
        self.snap_threshold_px = snap_threshold_px
        self._session: Optional[DragSession] = None
        self._guides: tuple[Guide, ...] = ()

    @property
    def state(self) -> EngineState:
        """当前状态."""
        if self._session is None:
            return EngineState.IDLE
        if self._session.mode == DragMode.RESIZE:
            return EngineState.RESIZING
        return EngineState.MOVING

    @property
    def session(self) -> Optional[DragSession]:
        """当前拖拽会话."""
        return self._session

    @property
    def guides(self) -> tuple[Guide, ...]:
        """当前显示的参考线."""
        return self._guides

    def pointer_down(
        self,
        layer_id: str,
        x: float,
        y: float,
        handle: ResizeHandle | str | None = None,
    ) -> bool:
        """按下指针，开始移动或缩放.

        Args:
            layer_id: 目标图层 ID
            x: 指针 X（屏幕像素）
            y: 指针 Y（屏幕像素）
            handle: 缩放控制柄，None 表示移动

        Returns:
            是否开始了拖拽会话
        """
        layer = self.store.get_layer(layer_id)
        if layer is None:
            return False

        resize_handle: Optional[ResizeHandle] = None
        if handle is not None:
            try:
                resize_handle = ResizeHandle(handle)
            except ValueError:
                logger.debug(f"未知的控制柄: {handle}")
                return False

        self._session = DragSession(
            mode=DragMode.RESIZE if resize_handle else DragMode.MOVE,
            layer_id=layer_id,
            start_x=x,
            start_y=y,
            start_box=layer.box,
            handle=resize_handle,
        )
        self._guides = ()
        self.store.select(layer_id)
        return True

    def pointer_move(self, x: float, y: float, rendered_width: float, rendered_height: float) -> bool:
        """移动指针.

        Args:
            x: 指针 X（屏幕像素）
            y: 指针 Y（屏幕像素）
            rendered_width: 画布渲染宽度（屏幕像素）
            rendered_height: 画布渲染高度（屏幕像素）

        Returns:
            是否修改了图层
        """
        session = self._session
        if session is None:
            return False

        if self.store.get_layer(session.layer_id) is None:
            # 图层已被删除
            self._end_session()
            return False

        dx = pixel_delta_to_percent(x - session.start_x, rendered_width)
        dy = pixel_delta_to_percent(y - session.start_y, rendered_height)
        start = session.start_box

        if session.mode == DragMode.MOVE:
            others = [
                layer.box for layer in self.store.layers if layer.id != session.layer_id
            ]
            result = compute_snap(
                start.x + dx,
                start.y + dy,
                start,
                others,
                rendered_width,
                rendered_height,
                self.snap_threshold_px,
            )
            self._guides = result.guides
            return self.store.update_layer(session.layer_id, {"x": result.x, "y": result.y})

        self._guides = ()
        box = resize_box(start, session.handle, dx, dy)  # type: ignore[arg-type]
        return self.store.update_layer(
            session.layer_id,
            {"x": box.x, "y": box.y, "width": box.width, "height": box.height},
        )

    def pointer_up(self) -> None:
        """释放指针，结束拖拽."""
        self._end_session()

    def pointer_leave(self) -> None:
        """指针离开画布，等同于释放."""
        self._end_session()

    def _end_session(self) -> None:
        self._session = None
        self._guides = ()
