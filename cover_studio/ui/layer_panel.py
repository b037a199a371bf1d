"""图层列表面板.

按从上到下的顺序列出画布图层，提供画布之外的选中与管理入口。
隐藏的图层和被完全遮挡的图层无法在画布上点中，只能从这里选中。

Features:
    - 最上层图层显示在列表顶部
    - 点击列表项选中图层，与画布选中状态同步
    - 勾选框切换图层可见性
    - 上移、下移、删除选中图层
"""

from __future__ import annotations

from typing import Optional

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtGui import QColor
from PyQt6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from cover_studio.core.layer_store import LayerStore, ReorderDirection
from cover_studio.models.canvas_document import AnyLayer, CanvasDocument, LayerType, TextLayer
from cover_studio.utils.logger import setup_logger

logger = setup_logger(__name__)

# 列表项中显示的类型名称
LAYER_KIND_LABELS = {
    LayerType.TEXT: "文字",
    LayerType.SHAPE: "形状",
    LayerType.IMAGE: "图片",
}

# 标签最大字符数
LABEL_MAX_CHARS = 15

HIDDEN_LAYER_COLOR = QColor(148, 163, 184)


def layer_label(layer: AnyLayer) -> str:
    """图层列表项文字：类型 + 名称（文字图层显示内容首行）."""
    if isinstance(layer, TextLayer) and layer.text.strip():
        title = layer.text.strip().splitlines()[0]
    else:
        title = layer.name
    if len(title) > LABEL_MAX_CHARS:
        title = title[:LABEL_MAX_CHARS] + "..."
    return f"{LAYER_KIND_LABELS.get(layer.layer_type, '?')} · {title}"


class LayerListPanel(QWidget):
    """图层列表面板.

    所有修改都经由 ``LayerStore`` 完成，面板只根据文档变化刷新显示。

    Signals:
        layer_selected: 用户从列表选中图层，参数为图层 ID
    """

    layer_selected = pyqtSignal(str)  # layer_id

    def __init__(self, store: LayerStore, parent: Optional[QWidget] = None) -> None:
        """初始化图层列表面板.

        Args:
            store: 图层存储
            parent: 父组件
        """
        super().__init__(parent)
        self._store = store
        self._updating = False

        self._setup_ui()
        self._store.add_listener(self._on_document_changed)
        self._refresh(store.document)

    def _setup_ui(self) -> None:
        """设置UI."""
        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)
        layout.setSpacing(4)

        title_label = QLabel("图层")
        title_label.setStyleSheet("font-weight: bold;")
        layout.addWidget(title_label)

        self._list = QListWidget()
        self._list.currentItemChanged.connect(self._on_current_item_changed)
        self._list.itemChanged.connect(self._on_item_changed)
        layout.addWidget(self._list, 1)

        btn_layout = QHBoxLayout()
        btn_layout.setSpacing(2)

        self._btn_up = QPushButton("上移")
        self._btn_up.setToolTip("上移一层")
        self._btn_up.clicked.connect(lambda: self._reorder(ReorderDirection.UP))
        btn_layout.addWidget(self._btn_up)

        self._btn_down = QPushButton("下移")
        self._btn_down.setToolTip("下移一层")
        self._btn_down.clicked.connect(lambda: self._reorder(ReorderDirection.DOWN))
        btn_layout.addWidget(self._btn_down)

        btn_layout.addStretch()

        self._btn_delete = QPushButton("删除")
        self._btn_delete.setToolTip("删除选中图层")
        self._btn_delete.clicked.connect(self._delete_selected)
        btn_layout.addWidget(self._btn_delete)

        layout.addLayout(btn_layout)

    # ========================
    # 公共方法
    # ========================

    @property
    def list_widget(self) -> QListWidget:
        return self._list

    def layer_order(self) -> list[str]:
        """列表中的图层 ID（从上到下）."""
        return [self._list.item(i).data(Qt.ItemDataRole.UserRole) for i in range(self._list.count())]

    def get_selected_layer_id(self) -> Optional[str]:
        item = self._list.currentItem()
        if item is None:
            return None
        return item.data(Qt.ItemDataRole.UserRole)

    # ========================
    # 刷新
    # ========================

    def _on_document_changed(self, document: CanvasDocument) -> None:
        self._refresh(document)

    def _refresh(self, document: CanvasDocument) -> None:
        """按文档刷新列表.

        图层顺序不变时原地更新列表项（勾选框信号处理中不能删除列表项），
        否则重建列表。
        """
        layers = list(reversed(document.layers))
        self._updating = True
        self._list.blockSignals(True)
        try:
            if self.layer_order() != [layer.id for layer in layers]:
                self._list.clear()
                for layer in layers:
                    item = QListWidgetItem()
                    item.setData(Qt.ItemDataRole.UserRole, layer.id)
                    item.setFlags(item.flags() | Qt.ItemFlag.ItemIsUserCheckable)
                    self._list.addItem(item)

            selected_row = -1
            for row, layer in enumerate(layers):
                item = self._list.item(row)
                self._update_item(item, layer)
                if layer.id == document.selected_id:
                    selected_row = row
            self._list.setCurrentRow(selected_row)
        finally:
            self._list.blockSignals(False)
            self._updating = False

        has_selection = selected_row >= 0
        self._btn_up.setEnabled(has_selection)
        self._btn_down.setEnabled(has_selection)
        self._btn_delete.setEnabled(has_selection)

    def _update_item(self, item: QListWidgetItem, layer: AnyLayer) -> None:
        item.setText(layer_label(layer))
        item.setToolTip(f"{layer.name} ({layer.id})")
        item.setCheckState(Qt.CheckState.Checked if layer.visible else Qt.CheckState.Unchecked)
        item.setForeground(self.palette().text().color() if layer.visible else HIDDEN_LAYER_COLOR)

    # ========================
    # 槽函数
    # ========================

    def _on_current_item_changed(
        self,
        current: Optional[QListWidgetItem],
        previous: Optional[QListWidgetItem],
    ) -> None:
        if self._updating or current is None:
            return
        layer_id = current.data(Qt.ItemDataRole.UserRole)
        self._store.select(layer_id)
        self.layer_selected.emit(layer_id)

    def _on_item_changed(self, item: QListWidgetItem) -> None:
        """勾选框变化时更新图层可见性."""
        if self._updating:
            return
        layer_id = item.data(Qt.ItemDataRole.UserRole)
        layer = self._store.get_layer(layer_id)
        visible = item.checkState() == Qt.CheckState.Checked
        if layer is not None and layer.visible != visible:
            self._store.update_layer(layer_id, {"visible": visible})

    def _reorder(self, direction: ReorderDirection) -> None:
        selected_id = self._store.selected_id
        if selected_id:
            self._store.reorder_layer(selected_id, direction)

    def _delete_selected(self) -> None:
        selected_id = self._store.selected_id
        if selected_id:
            self._store.delete_layer(selected_id)
