"""直接操作引擎单元测试."""

from __future__ import annotations

import pytest

from cover_studio.core.geometry import Box
from cover_studio.core.layer_store import LayerStore
from cover_studio.core.manipulation import (
    DragMode,
    EngineState,
    ManipulationEngine,
    ResizeHandle,
    resize_box,
)
from cover_studio.core.snapping import Guide, GuideOrientation
from cover_studio.models.canvas_document import LayerType

# 渲染尺寸 1000x1000：1px = 0.1%
RENDERED = 1000.0


@pytest.fixture
def engine(store: LayerStore) -> ManipulationEngine:
    return ManipulationEngine(store, snap_threshold_px=5)


@pytest.fixture
def layer_id(store: LayerStore) -> str:
    """位于 (30, 30) 的 20x10 形状图层."""
    return store.add_layer(LayerType.SHAPE, {"x": 30, "y": 30, "width": 20, "height": 10}).id


# ===================
# 控制柄与缩放
# ===================
class TestResizeHandle:
    """测试控制柄方位."""

    def test_corner_flags(self):
        assert ResizeHandle.NW.is_north and ResizeHandle.NW.is_west
        assert not ResizeHandle.NW.is_east and not ResizeHandle.NW.is_south

    def test_edge_flags(self):
        assert ResizeHandle.E.is_east
        assert not (ResizeHandle.E.is_north or ResizeHandle.E.is_south or ResizeHandle.E.is_west)


class TestResizeBox:
    """测试保持锚点的缩放."""

    START = Box(50, 50, 20, 10)

    def test_east_keeps_left_edge(self):
        box = resize_box(self.START, ResizeHandle.E, 6, 0)
        assert box.left == pytest.approx(self.START.left)
        assert box.width == pytest.approx(26)
        assert box.height == pytest.approx(10)

    def test_west_keeps_right_edge(self):
        box = resize_box(self.START, ResizeHandle.W, -4, 0)
        assert box.right == pytest.approx(self.START.right)
        assert box.width == pytest.approx(24)

    def test_southeast_keeps_top_left(self):
        box = resize_box(self.START, ResizeHandle.SE, 2, 4)
        assert box.left == pytest.approx(40)
        assert box.top == pytest.approx(45)
        assert (box.width, box.height) == pytest.approx((22, 14))

    def test_north_keeps_bottom_edge(self):
        box = resize_box(self.START, ResizeHandle.N, 3, -2)
        assert box.bottom == pytest.approx(self.START.bottom)
        assert box.width == pytest.approx(20)
        assert box.height == pytest.approx(12)

    def test_floor_keeps_anchor(self):
        """测试触及 1% 下限时对侧的边依然不动."""
        box = resize_box(self.START, ResizeHandle.E, -50, 0)
        assert box.width == pytest.approx(1)
        assert box.left == pytest.approx(self.START.left)

        box = resize_box(self.START, ResizeHandle.NW, 50, 50)
        assert (box.width, box.height) == pytest.approx((1, 1))
        assert box.right == pytest.approx(self.START.right)
        assert box.bottom == pytest.approx(self.START.bottom)


# ===================
# 状态机
# ===================
class TestEngineStates:
    """测试状态转换."""

    def test_initially_idle(self, engine: ManipulationEngine):
        assert engine.state == EngineState.IDLE
        assert engine.session is None
        assert engine.guides == ()

    def test_pointer_down_starts_move(self, engine, store, layer_id):
        store.select(None)
        assert engine.pointer_down(layer_id, 100, 100)
        assert engine.state == EngineState.MOVING
        assert engine.session.mode == DragMode.MOVE
        assert engine.session.start_box == Box(30, 30, 20, 10)
        assert store.selected_id == layer_id

    def test_pointer_down_with_handle_starts_resize(self, engine, layer_id):
        assert engine.pointer_down(layer_id, 0, 0, "se")
        assert engine.state == EngineState.RESIZING
        assert engine.session.handle == ResizeHandle.SE

    def test_pointer_down_unknown_layer(self, engine):
        assert engine.pointer_down("missing", 0, 0) is False
        assert engine.state == EngineState.IDLE

    def test_pointer_down_unknown_handle(self, engine, layer_id):
        assert engine.pointer_down(layer_id, 0, 0, "middle") is False
        assert engine.state == EngineState.IDLE

    def test_pointer_up_and_leave_end_session(self, engine, layer_id):
        engine.pointer_down(layer_id, 0, 0)
        engine.pointer_up()
        assert engine.state == EngineState.IDLE

        engine.pointer_down(layer_id, 0, 0)
        engine.pointer_leave()
        assert engine.state == EngineState.IDLE
        assert engine.guides == ()

    def test_move_without_session(self, engine):
        assert engine.pointer_move(10, 10, RENDERED, RENDERED) is False


# ===================
# 移动
# ===================
class TestMove:
    """测试拖动移动."""

    def test_move_applies_percent_delta(self, engine, store, layer_id):
        engine.pointer_down(layer_id, 100, 100)
        assert engine.pointer_move(150, 80, RENDERED, RENDERED)
        layer = store.get_layer(layer_id)
        assert layer.x == pytest.approx(35)
        assert layer.y == pytest.approx(28)
        assert engine.guides == ()

    def test_move_is_zoom_independent(self, engine, store, layer_id):
        """测试相同的相对拖动在不同缩放下得到相同结果."""
        engine.pointer_down(layer_id, 0, 0)
        engine.pointer_move(25, 0, 500, 500)
        first = store.get_layer(layer_id).x
        engine.pointer_up()

        store.update_layer(layer_id, {"x": 30})
        engine.pointer_down(layer_id, 0, 0)
        engine.pointer_move(50, 0, 1000, 1000)
        assert store.get_layer(layer_id).x == pytest.approx(first)

    def test_move_snaps_to_midline(self, engine, store, layer_id):
        """测试阈值内吸附到中线."""
        engine.pointer_down(layer_id, 0, 0)
        engine.pointer_move(203, 0, RENDERED, RENDERED)  # 候选 x = 50.3
        assert store.get_layer(layer_id).x == 50
        assert engine.guides == (Guide(GuideOrientation.VERTICAL, 50.0),)

    def test_move_far_from_targets_keeps_raw_position(self, engine, store, layer_id):
        engine.pointer_down(layer_id, 0, 0)
        engine.pointer_move(215, 0, RENDERED, RENDERED)  # 候选 x = 51.5
        assert store.get_layer(layer_id).x == pytest.approx(51.5)
        assert engine.guides == ()

    def test_deleted_layer_ends_session(self, engine, store, layer_id):
        """测试拖拽中目标图层被删除时静默结束."""
        engine.pointer_down(layer_id, 0, 0)
        store.delete_layer(layer_id)
        assert engine.pointer_move(10, 10, RENDERED, RENDERED) is False
        assert engine.state == EngineState.IDLE


# ===================
# 缩放
# ===================
class TestResize:
    """测试拖动控制柄缩放."""

    def test_resize_east(self, engine, store, layer_id):
        engine.pointer_down(layer_id, 0, 0, ResizeHandle.E)
        engine.pointer_move(40, 999, RENDERED, RENDERED)
        layer = store.get_layer(layer_id)
        assert layer.box.left == pytest.approx(20)
        assert layer.width == pytest.approx(24)
        assert layer.height == pytest.approx(10)

    def test_resize_clears_guides(self, engine, store, layer_id):
        engine.pointer_down(layer_id, 0, 0)
        engine.pointer_move(203, 0, RENDERED, RENDERED)
        assert engine.guides
        engine.pointer_up()

        engine.pointer_down(layer_id, 0, 0, ResizeHandle.W)
        engine.pointer_move(-10, 0, RENDERED, RENDERED)
        assert engine.guides == ()

    def test_resize_never_below_floor(self, engine, store, layer_id):
        engine.pointer_down(layer_id, 0, 0, ResizeHandle.S)
        engine.pointer_move(0, -5000, RENDERED, RENDERED)
        layer = store.get_layer(layer_id)
        assert layer.height == pytest.approx(1)
        assert layer.box.top == pytest.approx(25)
