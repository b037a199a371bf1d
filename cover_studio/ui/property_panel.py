"""图层属性面板.

根据选中图层类型显示对应的属性编辑器，所有修改都通过
``LayerStore.update_layer`` 写回。

Features:
    - 通用属性：名称、位置、尺寸、旋转、不透明度、可见性
    - 文字属性：内容、字体、字号、颜色、字重、对齐、行高、字间距、背景、阴影
    - 形状属性：形状类型、填充色、边框、圆角、投影（模糊与颜色）
    - 图片属性：适应模式
"""

from __future__ import annotations

from typing import Any, Optional

from PyQt6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDoubleSpinBox,
    QFormLayout,
    QGroupBox,
    QLabel,
    QLineEdit,
    QPlainTextEdit,
    QVBoxLayout,
    QWidget,
)

from cover_studio.core.layer_store import LayerStore
from cover_studio.models.canvas_document import (
    CanvasDocument,
    ImageFitMode,
    ImageLayer,
    ShapeLayer,
    ShapeType,
    TextAlign,
    TextLayer,
)
from cover_studio.utils.constants import FONT_FAMILIES

FONT_WEIGHTS = ["400", "500", "700", "900"]


def _spin(minimum: float, maximum: float, step: float = 1.0, decimals: int = 1) -> QDoubleSpinBox:
    spin = QDoubleSpinBox()
    spin.setRange(minimum, maximum)
    spin.setSingleStep(step)
    spin.setDecimals(decimals)
    spin.setKeyboardTracking(False)
    return spin


class LayerPropertyPanel(QWidget):
    """图层属性面板."""

    def __init__(self, store: LayerStore, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._store = store
        self._updating = False

        self._setup_ui()
        self._connect_signals()
        self._store.add_listener(self._on_document_changed)
        self._refresh()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(8, 8, 8, 8)

        self._empty_label = QLabel("选择一个图层以编辑属性")
        layout.addWidget(self._empty_label)

        # 通用属性
        self._common_group = QGroupBox("图层")
        form = QFormLayout(self._common_group)
        self._name = QLineEdit()
        self._x = _spin(-200, 300)
        self._y = _spin(-200, 300)
        self._width = _spin(1, 500)
        self._height = _spin(1, 500)
        self._rotation = _spin(0, 360, 1, 0)
        self._opacity = _spin(0, 100, 5, 0)
        self._visible = QCheckBox("可见")
        form.addRow("名称", self._name)
        form.addRow("X (%)", self._x)
        form.addRow("Y (%)", self._y)
        form.addRow("宽 (%)", self._width)
        form.addRow("高 (%)", self._height)
        form.addRow("旋转", self._rotation)
        form.addRow("不透明度", self._opacity)
        form.addRow("", self._visible)
        layout.addWidget(self._common_group)

        # 文字属性
        self._text_group = QGroupBox("文字")
        form = QFormLayout(self._text_group)
        self._text = QPlainTextEdit()
        self._text.setFixedHeight(72)
        self._font_family = QComboBox()
        self._font_family.setEditable(True)
        self._font_family.addItems(FONT_FAMILIES)
        self._font_size = _spin(1, 1000, 2, 0)
        self._text_color = QLineEdit()
        self._font_weight = QComboBox()
        self._font_weight.addItems(FONT_WEIGHTS)
        self._text_align = QComboBox()
        for align in TextAlign:
            self._text_align.addItem(align.value, align)
        self._line_height = _spin(0.5, 5, 0.1, 2)
        self._letter_spacing = _spin(-50, 200, 1, 0)
        self._text_background = QLineEdit()
        self._text_padding = _spin(0, 200, 1, 0)
        self._text_radius = _spin(0, 200, 1, 0)
        self._text_shadow = QCheckBox("文字阴影")
        self._text_shadow_blur = _spin(0, 50, 1, 0)
        self._text_shadow_color = QLineEdit()
        form.addRow("内容", self._text)
        form.addRow("字体", self._font_family)
        form.addRow("字号", self._font_size)
        form.addRow("颜色", self._text_color)
        form.addRow("字重", self._font_weight)
        form.addRow("对齐", self._text_align)
        form.addRow("行高", self._line_height)
        form.addRow("字间距", self._letter_spacing)
        form.addRow("背景色", self._text_background)
        form.addRow("内边距", self._text_padding)
        form.addRow("背景圆角", self._text_radius)
        form.addRow("", self._text_shadow)
        form.addRow("阴影模糊", self._text_shadow_blur)
        form.addRow("阴影颜色", self._text_shadow_color)
        layout.addWidget(self._text_group)

        # 形状属性
        self._shape_group = QGroupBox("形状")
        form = QFormLayout(self._shape_group)
        self._shape_type = QComboBox()
        for shape in ShapeType:
            self._shape_type.addItem(shape.value, shape)
        self._fill_color = QLineEdit()
        self._border_color = QLineEdit()
        self._border_width = _spin(0, 100, 1, 0)
        self._border_radius = _spin(0, 1000, 2, 0)
        self._box_shadow = QCheckBox("投影")
        self._box_shadow_blur = _spin(0, 100, 1, 0)
        self._box_shadow_color = QLineEdit()
        form.addRow("类型", self._shape_type)
        form.addRow("填充", self._fill_color)
        form.addRow("边框颜色", self._border_color)
        form.addRow("边框宽度", self._border_width)
        form.addRow("圆角", self._border_radius)
        form.addRow("", self._box_shadow)
        form.addRow("投影模糊", self._box_shadow_blur)
        form.addRow("投影颜色", self._box_shadow_color)
        layout.addWidget(self._shape_group)

        # 图片属性
        self._image_group = QGroupBox("图片")
        form = QFormLayout(self._image_group)
        self._object_fit = QComboBox()
        for fit in ImageFitMode:
            self._object_fit.addItem(fit.value, fit)
        form.addRow("适应", self._object_fit)
        layout.addWidget(self._image_group)

        layout.addStretch()

    def _connect_signals(self) -> None:
        self._name.editingFinished.connect(lambda: self._emit_change("name", self._name.text()))
        self._x.valueChanged.connect(lambda v: self._emit_change("x", v))
        self._y.valueChanged.connect(lambda v: self._emit_change("y", v))
        self._width.valueChanged.connect(lambda v: self._emit_change("width", v))
        self._height.valueChanged.connect(lambda v: self._emit_change("height", v))
        self._rotation.valueChanged.connect(lambda v: self._emit_change("rotation", v))
        self._opacity.valueChanged.connect(lambda v: self._emit_change("opacity", v))
        self._visible.toggled.connect(lambda v: self._emit_change("visible", v))

        self._text.textChanged.connect(lambda: self._emit_change("text", self._text.toPlainText()))
        self._font_family.currentTextChanged.connect(self._on_font_family_changed)
        self._font_size.valueChanged.connect(lambda v: self._emit_change("font_size", v))
        self._text_color.editingFinished.connect(
            lambda: self._emit_change("color", self._text_color.text())
        )
        self._font_weight.currentTextChanged.connect(lambda v: self._emit_change("font_weight", v))
        self._text_align.currentIndexChanged.connect(
            lambda _: self._emit_change("text_align", self._text_align.currentData())
        )
        self._line_height.valueChanged.connect(lambda v: self._emit_change("line_height", v))
        self._letter_spacing.valueChanged.connect(lambda v: self._emit_change("letter_spacing", v))
        self._text_background.editingFinished.connect(
            lambda: self._emit_change("background_color", self._text_background.text())
        )
        self._text_padding.valueChanged.connect(lambda v: self._emit_change("padding", v))
        self._text_radius.valueChanged.connect(lambda v: self._emit_change("border_radius", v))
        self._text_shadow.toggled.connect(lambda v: self._emit_change("text_shadow_enabled", v))
        self._text_shadow_blur.valueChanged.connect(lambda v: self._emit_change("text_shadow_blur", v))
        self._text_shadow_color.editingFinished.connect(
            lambda: self._emit_change("text_shadow_color", self._text_shadow_color.text())
        )

        self._shape_type.currentIndexChanged.connect(
            lambda _: self._emit_change("shape_type", self._shape_type.currentData())
        )
        self._fill_color.editingFinished.connect(
            lambda: self._emit_change("background_color", self._fill_color.text())
        )
        self._border_color.editingFinished.connect(
            lambda: self._emit_change("border_color", self._border_color.text())
        )
        self._border_width.valueChanged.connect(lambda v: self._emit_change("border_width", v))
        self._border_radius.valueChanged.connect(lambda v: self._emit_change("border_radius", v))
        self._box_shadow.toggled.connect(lambda v: self._emit_change("box_shadow_enabled", v))
        self._box_shadow_blur.valueChanged.connect(lambda v: self._emit_change("box_shadow_blur", v))
        self._box_shadow_color.editingFinished.connect(
            lambda: self._emit_change("box_shadow_color", self._box_shadow_color.text())
        )

        self._object_fit.currentIndexChanged.connect(
            lambda _: self._emit_change("object_fit", self._object_fit.currentData())
        )

    def _on_font_family_changed(self, text: str) -> None:
        if text.strip():
            self._emit_change("font_family", text.strip())

    def _emit_change(self, prop: str, value: Any) -> None:
        """把控件修改写回图层存储."""
        if self._updating:
            return
        layer_id = self._store.selected_id
        if layer_id is None:
            return
        if not self._store.update_layer(layer_id, {prop: value}):
            # 更新被拒绝，恢复显示
            self._refresh()

    def _on_document_changed(self, document: CanvasDocument) -> None:
        self._refresh()

    def _refresh(self) -> None:
        """按选中图层刷新显示."""
        layer = self._store.selected_layer

        self._empty_label.setVisible(layer is None)
        self._common_group.setVisible(layer is not None)
        self._text_group.setVisible(isinstance(layer, TextLayer))
        self._shape_group.setVisible(isinstance(layer, ShapeLayer))
        self._image_group.setVisible(isinstance(layer, ImageLayer))
        if layer is None:
            return

        self._updating = True
        try:
            if not self._name.hasFocus():
                self._name.setText(layer.name)
            self._x.setValue(layer.x)
            self._y.setValue(layer.y)
            self._width.setValue(layer.width)
            self._height.setValue(layer.height)
            self._rotation.setValue(layer.rotation)
            self._opacity.setValue(layer.opacity)
            self._visible.setChecked(layer.visible)

            if isinstance(layer, TextLayer):
                if self._text.toPlainText() != layer.text:
                    self._text.setPlainText(layer.text)
                self._font_family.setCurrentText(layer.font_family)
                self._font_size.setValue(layer.font_size)
                self._text_color.setText(layer.color)
                self._font_weight.setCurrentText(layer.font_weight)
                self._text_align.setCurrentIndex(self._text_align.findData(layer.text_align))
                self._line_height.setValue(layer.line_height)
                self._letter_spacing.setValue(layer.letter_spacing)
                self._text_background.setText(layer.background_color)
                self._text_padding.setValue(layer.padding)
                self._text_radius.setValue(layer.border_radius)
                self._text_shadow.setChecked(layer.text_shadow_enabled)
                self._text_shadow_blur.setValue(layer.text_shadow_blur)
                self._text_shadow_color.setText(layer.text_shadow_color)
            elif isinstance(layer, ShapeLayer):
                self._shape_type.setCurrentIndex(self._shape_type.findData(layer.shape_type))
                self._fill_color.setText(layer.background_color)
                self._border_color.setText(layer.border_color)
                self._border_width.setValue(layer.border_width)
                self._border_radius.setValue(layer.border_radius)
                self._box_shadow.setChecked(layer.box_shadow_enabled)
                self._box_shadow_blur.setValue(layer.box_shadow_blur)
                self._box_shadow_color.setText(layer.box_shadow_color)
            elif isinstance(layer, ImageLayer):
                self._object_fit.setCurrentIndex(self._object_fit.findData(layer.object_fit))
        finally:
            self._updating = False
