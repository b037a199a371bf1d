"""图层属性面板单元测试."""

from __future__ import annotations

import pytest

from cover_studio.core.layer_store import LayerStore
from cover_studio.models.canvas_document import LayerType, ShapeType
from cover_studio.ui.property_panel import LayerPropertyPanel
from cover_studio.utils.constants import FONT_FAMILIES


@pytest.fixture
def panel(qtbot, store: LayerStore):
    widget = LayerPropertyPanel(store)
    qtbot.addWidget(widget)
    return widget


class TestPropertyPanel:
    """测试属性面板."""

    def test_empty_state(self, panel):
        assert not panel._empty_label.isHidden()
        assert panel._common_group.isHidden()

    def test_groups_follow_layer_type(self, panel, store):
        store.add_layer(LayerType.TEXT)
        assert not panel._text_group.isHidden()
        assert panel._shape_group.isHidden()

        store.add_layer(LayerType.SHAPE)
        assert panel._text_group.isHidden()
        assert not panel._shape_group.isHidden()

    def test_shows_layer_values(self, panel, store):
        store.add_layer(LayerType.TEXT, {"x": 12.5, "fontSize": 64})
        assert panel._x.value() == pytest.approx(12.5)
        assert panel._font_size.value() == 64

    def test_edits_go_through_store(self, panel, store):
        layer = store.add_layer(LayerType.TEXT)
        panel._x.setValue(20)
        panel._text.setPlainText("新标题")
        updated = store.get_layer(layer.id)
        assert updated.x == 20
        assert updated.text == "新标题"

    def test_shape_type_combo(self, panel, store):
        layer = store.add_layer(LayerType.SHAPE)
        panel._shape_type.setCurrentIndex(panel._shape_type.findData(ShapeType.CIRCLE))
        assert store.get_layer(layer.id).is_circle

    def test_rejected_edit_restores_display(self, panel, store):
        layer = store.add_layer(LayerType.SHAPE, {"name": "底板"})
        panel._name.setText("x" * 150)
        panel._name.editingFinished.emit()
        assert store.get_layer(layer.id).name == "底板"
        assert panel._name.text() == "底板"


class TestTextStyleEditors:
    """测试文字字体、背景与阴影编辑."""

    def test_font_family_choices(self, panel, store):
        layer = store.add_layer(LayerType.TEXT)
        assert [panel._font_family.itemText(i) for i in range(panel._font_family.count())] == FONT_FAMILIES
        assert panel._font_family.currentText() == "Noto Sans SC"

        panel._font_family.setCurrentText("Bebas Neue")
        assert store.get_layer(layer.id).font_family == "Bebas Neue"

    def test_custom_font_family(self, panel, store):
        layer = store.add_layer(LayerType.TEXT)
        panel._font_family.setCurrentText("Source Han Serif")
        assert store.get_layer(layer.id).font_family == "Source Han Serif"

    def test_blank_font_family_ignored(self, panel, store):
        layer = store.add_layer(LayerType.TEXT)
        panel._font_family.setCurrentText("  ")
        assert store.get_layer(layer.id).font_family == "Noto Sans SC"

    def test_background_padding_and_radius(self, panel, store):
        layer = store.add_layer(LayerType.TEXT)
        panel._text_background.setText("#000000")
        panel._text_background.editingFinished.emit()
        panel._text_padding.setValue(12)
        panel._text_radius.setValue(8)

        updated = store.get_layer(layer.id)
        assert updated.background_color == "#000000"
        assert updated.padding == 12
        assert updated.border_radius == 8

    def test_text_shadow_blur_and_color(self, panel, store):
        layer = store.add_layer(LayerType.TEXT)
        assert panel._text_shadow_blur.value() == 10

        panel._text_shadow_blur.setValue(4)
        panel._text_shadow_color.setText("#112233")
        panel._text_shadow_color.editingFinished.emit()

        updated = store.get_layer(layer.id)
        assert updated.text_shadow_blur == 4
        assert updated.text_shadow_color == "#112233"

    def test_loaded_values_displayed(self, panel, store):
        store.add_layer(
            LayerType.TEXT,
            {"fontFamily": "Montserrat", "backgroundColor": "#ff0000", "padding": 6, "textShadowBlur": 3},
        )
        assert panel._font_family.currentText() == "Montserrat"
        assert panel._text_background.text() == "#ff0000"
        assert panel._text_padding.value() == 6
        assert panel._text_shadow_blur.value() == 3


class TestShapeShadowEditors:
    """测试形状投影编辑."""

    def test_box_shadow_blur_and_color(self, panel, store):
        layer = store.add_layer(LayerType.SHAPE)
        assert panel._box_shadow_blur.value() == 40
        assert panel._box_shadow_color.text() == "rgba(0,0,0,0.3)"

        panel._box_shadow_blur.setValue(12)
        panel._box_shadow_color.setText("#000000")
        panel._box_shadow_color.editingFinished.emit()

        updated = store.get_layer(layer.id)
        assert updated.box_shadow_blur == 12
        assert updated.box_shadow_color == "#000000"

    def test_text_radius_separate_from_shape_radius(self, panel, store):
        shape = store.add_layer(LayerType.SHAPE)
        text = store.add_layer(LayerType.TEXT)
        panel._text_radius.setValue(5)
        assert store.get_layer(text.id).border_radius == 5
        assert store.get_layer(shape.id).border_radius == 40
