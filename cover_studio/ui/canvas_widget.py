"""封面画布组件.

在窗口中按视口缩放显示画布，并把鼠标事件交给直接操作引擎。

Features:
    - 容器尺寸变化时重新计算缩放比例
    - 预览图与导出使用同一套光栅化逻辑，预览按屏幕缩放渲染
    - 选中框、八个缩放控制柄、吸附参考线
    - 旋转图层的点击检测
    - 缩放百分比显示
"""

from __future__ import annotations

import math
from typing import Optional

from PIL import Image
from PyQt6.QtCore import QPointF, QRectF, Qt, pyqtSignal
from PyQt6.QtGui import (
    QColor,
    QImage,
    QKeyEvent,
    QMouseEvent,
    QPainter,
    QPaintEvent,
    QPen,
    QResizeEvent,
)
from PyQt6.QtWidgets import QWidget

from cover_studio.core.geometry import percent_to_pixels
from cover_studio.core.layer_store import LayerStore
from cover_studio.core.manipulation import EngineState, ManipulationEngine, ResizeHandle
from cover_studio.core.snapping import GuideOrientation
from cover_studio.core.viewport import ViewportScaler
from cover_studio.models.canvas_document import AnyLayer, CanvasDocument
from cover_studio.services.rasterizer import CoverRasterizer
from cover_studio.utils.exceptions import RasterizationError
from cover_studio.utils.logger import setup_logger

logger = setup_logger(__name__)


# ===================
# 常量定义
# ===================

# 控制柄尺寸（屏幕像素）
HANDLE_SIZE = 10

# 颜色
CONTAINER_COLOR = QColor(226, 232, 240)
SELECTION_COLOR = QColor(249, 115, 22)
GUIDE_COLOR = QColor(236, 72, 153)
CHECKER_LIGHT = QColor(255, 255, 255)
CHECKER_DARK = QColor(203, 213, 225)
CHECKER_SIZE = 12

# 控制柄位置（相对图层框的比例）
HANDLE_ANCHORS: dict[ResizeHandle, tuple[float, float]] = {
    ResizeHandle.NW: (0.0, 0.0),
    ResizeHandle.NE: (1.0, 0.0),
    ResizeHandle.SW: (0.0, 1.0),
    ResizeHandle.SE: (1.0, 1.0),
    ResizeHandle.N: (0.5, 0.0),
    ResizeHandle.S: (0.5, 1.0),
    ResizeHandle.W: (0.0, 0.5),
    ResizeHandle.E: (1.0, 0.5),
}

HANDLE_CURSORS: dict[ResizeHandle, Qt.CursorShape] = {
    ResizeHandle.NW: Qt.CursorShape.SizeFDiagCursor,
    ResizeHandle.SE: Qt.CursorShape.SizeFDiagCursor,
    ResizeHandle.NE: Qt.CursorShape.SizeBDiagCursor,
    ResizeHandle.SW: Qt.CursorShape.SizeBDiagCursor,
    ResizeHandle.N: Qt.CursorShape.SizeVerCursor,
    ResizeHandle.S: Qt.CursorShape.SizeVerCursor,
    ResizeHandle.W: Qt.CursorShape.SizeHorCursor,
    ResizeHandle.E: Qt.CursorShape.SizeHorCursor,
}


# ===================
# 几何辅助
# ===================


def _rotate(x: float, y: float, cx: float, cy: float, degrees: float) -> tuple[float, float]:
    """绕中心点顺时针旋转（屏幕坐标系 y 轴向下）."""
    rad = math.radians(degrees)
    cos_a, sin_a = math.cos(rad), math.sin(rad)
    dx, dy = x - cx, y - cy
    return (cx + dx * cos_a - dy * sin_a, cy + dx * sin_a + dy * cos_a)


def layer_contains(layer: AnyLayer, px: float, py: float, canvas_w: float, canvas_h: float) -> bool:
    """判断画布坐标点是否落在图层（含旋转）内.

    Args:
        layer: 图层
        px: 点 X（画布像素）
        py: 点 Y（画布像素）
        canvas_w: 画布宽度（像素）
        canvas_h: 画布高度（像素）
    """
    rect = percent_to_pixels(layer.box, canvas_w, canvas_h)
    cx, cy = rect.center
    lx, ly = _rotate(px, py, cx, cy, -layer.rotation)
    return rect.left <= lx <= rect.right and rect.top <= ly <= rect.bottom


def hit_test_layer(
    document: CanvasDocument,
    px: float,
    py: float,
    canvas_w: float,
    canvas_h: float,
) -> Optional[AnyLayer]:
    """查找点击位置最上层的可见图层."""
    for layer in reversed(document.layers):
        if layer.visible and layer_contains(layer, px, py, canvas_w, canvas_h):
            return layer
    return None


def handle_points(
    layer: AnyLayer,
    canvas_w: float,
    canvas_h: float,
) -> dict[ResizeHandle, tuple[float, float]]:
    """计算图层八个控制柄的位置（含旋转）.

    Returns:
        {控制柄: (x, y)}，坐标与 canvas_w/canvas_h 同一坐标系
    """
    rect = percent_to_pixels(layer.box, canvas_w, canvas_h)
    cx, cy = rect.center
    points = {}
    for handle, (fx, fy) in HANDLE_ANCHORS.items():
        x = rect.left + rect.width * fx
        y = rect.top + rect.height * fy
        points[handle] = _rotate(x, y, cx, cy, layer.rotation)
    return points


def pil_to_qimage(image: Image.Image) -> QImage:
    """PIL 图片转 QImage（深拷贝）."""
    rgba = image.convert("RGBA") if image.mode != "RGBA" else image
    data = rgba.tobytes("raw", "RGBA")
    qimage = QImage(data, rgba.width, rgba.height, rgba.width * 4, QImage.Format.Format_RGBA8888)
    return qimage.copy()


# ===================
# 画布组件
# ===================


class CoverCanvasWidget(QWidget):
    """封面画布组件.

    Signals:
        selection_changed: 选中图层变化，参数为图层 ID 或 None
        zoom_changed: 缩放比例变化
    """

    selection_changed = pyqtSignal(object)  # Optional[str]
    zoom_changed = pyqtSignal(float)

    def __init__(
        self,
        store: LayerStore,
        engine: Optional[ManipulationEngine] = None,
        scaler: Optional[ViewportScaler] = None,
        rasterizer: Optional[CoverRasterizer] = None,
        parent: Optional[QWidget] = None,
    ) -> None:
        """初始化画布组件.

        Args:
            store: 图层存储
            engine: 直接操作引擎
            scaler: 视口缩放器
            rasterizer: 预览光栅化器（按屏幕缩放渲染）
            parent: 父组件
        """
        super().__init__(parent)

        self._store = store
        self._engine = engine or ManipulationEngine(store)
        self._scaler = scaler or ViewportScaler()
        self._rasterizer = rasterizer or CoverRasterizer(oversample=1)

        self._preview: Optional[QImage] = None
        self._preview_dirty = True
        self._preview_scale = 0.0
        self._last_selected: Optional[str] = store.selected_id

        self._setup_ui()
        self._store.add_listener(self._on_document_changed)

    def _setup_ui(self) -> None:
        """设置UI属性."""
        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMinimumSize(320, 320)

    # ========================
    # 公共属性
    # ========================

    @property
    def store(self) -> LayerStore:
        return self._store

    @property
    def engine(self) -> ManipulationEngine:
        return self._engine

    @property
    def scale(self) -> float:
        """当前缩放比例."""
        return self._scaler.scale

    def canvas_rect(self) -> QRectF:
        """画布在组件中的显示矩形."""
        document = self._store.document
        rect = self._scaler.canvas_rect(self.width(), self.height(), document.width, document.height)
        return QRectF(rect.left, rect.top, rect.width, rect.height)

    def refresh_scale(self) -> None:
        """按当前组件尺寸重新计算缩放."""
        document = self._store.document
        old_scale = self._scaler.scale
        scale = self._scaler.update(self.width(), self.height(), document.width, document.height)
        if scale != old_scale:
            self.zoom_changed.emit(scale)

    # ========================
    # 坐标换算
    # ========================

    def _to_canvas(self, pos: QPointF) -> tuple[float, float]:
        """组件坐标转画布逻辑像素坐标."""
        rect = self.canvas_rect()
        scale = self._scaler.scale or 1.0
        return ((pos.x() - rect.left()) / scale, (pos.y() - rect.top()) / scale)

    def _hit_handle(self, pos: QPointF) -> Optional[ResizeHandle]:
        """检测是否点中选中图层的控制柄."""
        layer = self._store.selected_layer
        if layer is None:
            return None

        rect = self.canvas_rect()
        points = handle_points(layer, rect.width(), rect.height())
        tolerance = HANDLE_SIZE / 2 + 2
        for handle, (x, y) in points.items():
            if abs(pos.x() - rect.left() - x) <= tolerance and abs(pos.y() - rect.top() - y) <= tolerance:
                return handle
        return None

    # ========================
    # 事件处理
    # ========================

    def resizeEvent(self, event: QResizeEvent) -> None:
        """尺寸变化时重新计算缩放."""
        super().resizeEvent(event)
        self.refresh_scale()

    def mousePressEvent(self, event: QMouseEvent) -> None:
        """鼠标按下：控制柄优先，然后是最上层图层，空白处取消选中."""
        if event.button() != Qt.MouseButton.LeftButton:
            super().mousePressEvent(event)
            return

        pos = event.position()
        handle = self._hit_handle(pos)
        selected_id = self._store.selected_id

        if handle is not None and selected_id is not None:
            self._engine.pointer_down(selected_id, pos.x(), pos.y(), handle)
        else:
            document = self._store.document
            cx, cy = self._to_canvas(pos)
            layer = hit_test_layer(document, cx, cy, document.width, document.height)
            if layer is not None:
                self._engine.pointer_down(layer.id, pos.x(), pos.y())
            else:
                self._store.select(None)

        self.update()
        event.accept()

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        """鼠标移动：拖拽中交给引擎，否则更新光标."""
        pos = event.position()
        if self._engine.state != EngineState.IDLE:
            rect = self.canvas_rect()
            self._engine.pointer_move(pos.x(), pos.y(), rect.width(), rect.height())
            self.update()
            event.accept()
            return

        handle = self._hit_handle(pos)
        if handle is not None:
            self.setCursor(HANDLE_CURSORS[handle])
        else:
            document = self._store.document
            cx, cy = self._to_canvas(pos)
            if hit_test_layer(document, cx, cy, document.width, document.height):
                self.setCursor(Qt.CursorShape.SizeAllCursor)
            else:
                self.setCursor(Qt.CursorShape.ArrowCursor)
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        """鼠标释放."""
        self._engine.pointer_up()
        self.update()
        super().mouseReleaseEvent(event)

    def leaveEvent(self, event) -> None:
        """鼠标离开组件时结束拖拽."""
        self._engine.pointer_leave()
        self.update()
        super().leaveEvent(event)

    def keyPressEvent(self, event: QKeyEvent) -> None:
        """Delete/Backspace 删除选中图层，Esc 取消选中."""
        selected_id = self._store.selected_id
        if event.key() in (Qt.Key.Key_Delete, Qt.Key.Key_Backspace) and selected_id:
            self._store.delete_layer(selected_id)
            event.accept()
            return
        if event.key() == Qt.Key.Key_Escape:
            self._store.select(None)
            event.accept()
            return
        super().keyPressEvent(event)

    def _on_document_changed(self, document: CanvasDocument) -> None:
        """文档变化时刷新预览."""
        self._preview_dirty = True
        self.refresh_scale()
        if document.selected_id != self._last_selected:
            self._last_selected = document.selected_id
            self.selection_changed.emit(document.selected_id)
        self.update()

    # ========================
    # 绘制
    # ========================

    def _ensure_preview(self) -> None:
        """按当前屏幕缩放渲染预览，文档与缩放均未变化时复用上次结果."""
        scale = (self._scaler.scale or 1.0) * self.devicePixelRatioF()
        if not self._preview_dirty and self._preview is not None and scale == self._preview_scale:
            return
        try:
            image = self._rasterizer.render_preview(self._store.document, scale)
            self._preview = pil_to_qimage(image)
        except RasterizationError as e:
            logger.warning(f"预览渲染失败: {e}")
            self._preview = None
        self._preview_scale = scale
        self._preview_dirty = False

    def paintEvent(self, event: QPaintEvent) -> None:
        """绘制画布、选中框、参考线和缩放比例."""
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)

        painter.fillRect(self.rect(), CONTAINER_COLOR)

        rect = self.canvas_rect()
        if rect.width() > 0 and rect.height() > 0:
            self._draw_checkerboard(painter, rect)
            self._ensure_preview()
            if self._preview is not None:
                painter.drawImage(rect, self._preview)
            self._draw_selection(painter, rect)
            self._draw_guides(painter, rect)

        self._draw_zoom_label(painter)
        painter.end()

    def _draw_checkerboard(self, painter: QPainter, rect: QRectF) -> None:
        """透明背景时绘制棋盘格."""
        if not self._store.document.is_transparent:
            return
        painter.save()
        painter.setClipRect(rect)
        painter.fillRect(rect, CHECKER_LIGHT)
        y = rect.top()
        row = 0
        while y < rect.bottom():
            x = rect.left() + (CHECKER_SIZE if row % 2 else 0)
            while x < rect.right():
                painter.fillRect(QRectF(x, y, CHECKER_SIZE, CHECKER_SIZE), CHECKER_DARK)
                x += CHECKER_SIZE * 2
            y += CHECKER_SIZE
            row += 1
        painter.restore()

    def _draw_selection(self, painter: QPainter, rect: QRectF) -> None:
        """绘制选中框与控制柄."""
        layer = self._store.selected_layer
        if layer is None:
            return

        box = percent_to_pixels(layer.box, rect.width(), rect.height())
        cx, cy = box.center

        painter.save()
        painter.translate(rect.left() + cx, rect.top() + cy)
        painter.rotate(layer.rotation)
        painter.setPen(QPen(SELECTION_COLOR, 2))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawRect(QRectF(-box.width / 2, -box.height / 2, box.width, box.height))

        painter.setBrush(QColor(255, 255, 255))
        painter.setPen(QPen(SELECTION_COLOR, 1.5))
        half = HANDLE_SIZE / 2
        for fx, fy in HANDLE_ANCHORS.values():
            hx = -box.width / 2 + box.width * fx
            hy = -box.height / 2 + box.height * fy
            painter.drawRect(QRectF(hx - half, hy - half, HANDLE_SIZE, HANDLE_SIZE))
        painter.restore()

    def _draw_guides(self, painter: QPainter, rect: QRectF) -> None:
        """绘制吸附参考线."""
        guides = self._engine.guides
        if not guides:
            return

        painter.save()
        painter.setPen(QPen(GUIDE_COLOR, 1, Qt.PenStyle.DashLine))
        for guide in guides:
            if guide.orientation == GuideOrientation.VERTICAL:
                x = rect.left() + rect.width() * guide.position / 100
                painter.drawLine(QPointF(x, rect.top()), QPointF(x, rect.bottom()))
            else:
                y = rect.top() + rect.height() * guide.position / 100
                painter.drawLine(QPointF(rect.left(), y), QPointF(rect.right(), y))
        painter.restore()

    def _draw_zoom_label(self, painter: QPainter) -> None:
        document = self._store.document
        text = f"{document.width} × {document.height}  {self._scaler.zoom_percent}%"
        painter.save()
        painter.setPen(QColor(100, 116, 139))
        painter.drawText(
            self.rect().adjusted(8, 8, -12, -8),
            Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignBottom,
            text,
        )
        painter.restore()
