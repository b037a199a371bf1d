"""主窗口模块.

Features:
    - 工具栏：添加文字/形状/图片图层、删除、排序、导出
    - 画布分辨率预设与背景设置
    - 中央画布与右侧属性面板
    - 图层面板：选中、显示/隐藏、排序、删除
    - 模板面板：保存、加载、重命名、删除、导入、导出
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction, QCloseEvent, QColor, QIcon, QKeySequence, QPixmap
from PyQt6.QtWidgets import (
    QApplication,
    QColorDialog,
    QComboBox,
    QDockWidget,
    QFileDialog,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMenu,
    QMessageBox,
    QPushButton,
    QStatusBar,
    QToolBar,
    QToolButton,
    QVBoxLayout,
    QWidget,
)

from cover_studio.core.config_manager import ConfigManager
from cover_studio.core.layer_store import LayerStore, ReorderDirection
from cover_studio.core.manipulation import ManipulationEngine
from cover_studio.core.viewport import ViewportScaler
from cover_studio.models.app_settings import Settings
from cover_studio.models.canvas_document import CanvasDocument, LayerType, Template
from cover_studio.services.export_service import CoverExporter
from cover_studio.services.image_source import ImageSourceLoader
from cover_studio.services.rasterizer import CoverRasterizer
from cover_studio.services.template_manager import TemplateManager
from cover_studio.ui.canvas_widget import CoverCanvasWidget
from cover_studio.ui.layer_panel import LayerListPanel
from cover_studio.ui.property_panel import LayerPropertyPanel
from cover_studio.utils.constants import (
    APP_NAME,
    APP_VERSION,
    PRESET_COLORS,
    RESOLUTION_PRESETS,
    SUPPORTED_IMAGE_FORMATS,
    TRANSPARENT,
    WINDOW_MIN_HEIGHT,
    WINDOW_MIN_WIDTH,
)
from cover_studio.utils.error_handler import handle_exception, safe_execute
from cover_studio.utils.exceptions import AppException
from cover_studio.utils.logger import setup_logger

logger = setup_logger(__name__)

IMAGE_FILE_FILTER = "图片文件 (" + " ".join(f"*{ext}" for ext in sorted(SUPPORTED_IMAGE_FORMATS)) + ")"
TEMPLATE_FILE_FILTER = "模板文件 (*.json)"

# 用户配置键：上次使用的分辨率预设名称
LAST_RESOLUTION_KEY = "last_resolution"


class MainWindow(QMainWindow):
    """封面工作室主窗口."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        config: Optional[ConfigManager] = None,
    ) -> None:
        """初始化主窗口.

        Args:
            settings: 应用设置，默认从环境加载
            config: 配置管理器，用于保存界面偏好；为 None 时不读写偏好
        """
        super().__init__()

        self._settings = settings or Settings()
        self._config = config

        # 核心组件
        self._store = LayerStore()
        self._engine = ManipulationEngine(self._store, self._settings.snap_threshold_px)
        self._scaler = ViewportScaler(
            self._settings.viewport_padding,
            self._settings.viewport_margin_factor,
        )
        loader = ImageSourceLoader(
            allow_remote=self._settings.allow_remote_images,
            timeout=self._settings.remote_image_timeout,
        )
        self._exporter = CoverExporter(
            self._store,
            CoverRasterizer(self._settings.export_oversample, loader),
            output_dir=self._settings.export_path,
            settle=self._settle_ui,
        )
        self._template_manager = TemplateManager(
            self._settings.templates_path,
            self._settings.max_template_storage_bytes,
        )

        # UI 组件引用
        self._canvas: Optional[CoverCanvasWidget] = None
        self._layer_panel: Optional[LayerListPanel] = None
        self._background_menu: Optional[QMenu] = None
        self._template_list: Optional[QListWidget] = None
        self._status_label: Optional[QLabel] = None
        self._action_export: Optional[QAction] = None
        self._layer_actions: list[QAction] = []

        self._setup_window()
        self._setup_toolbar()
        self._setup_central_widget(CoverRasterizer(1, loader))
        self._setup_docks()
        self._setup_statusbar()

        self._store.add_listener(self._on_document_changed)
        self._update_actions_state()
        self._reload_templates()
        self._restore_preferences()

        logger.debug("主窗口初始化完成")

    # ========================
    # 属性
    # ========================

    @property
    def store(self) -> LayerStore:
        return self._store

    @property
    def canvas(self) -> CoverCanvasWidget:
        assert self._canvas is not None
        return self._canvas

    @property
    def layer_panel(self) -> LayerListPanel:
        assert self._layer_panel is not None
        return self._layer_panel

    @property
    def template_manager(self) -> TemplateManager:
        return self._template_manager

    # ========================
    # 初始化方法
    # ========================

    def _setup_window(self) -> None:
        """设置窗口属性."""
        self.setWindowTitle(f"{APP_NAME} v{APP_VERSION}")
        self.setMinimumSize(WINDOW_MIN_WIDTH, WINDOW_MIN_HEIGHT)
        self.resize(1400, 900)

    def _add_action(self, toolbar: QToolBar, text: str, slot, shortcut: Optional[str] = None) -> QAction:
        action = QAction(text, self)
        if shortcut:
            action.setShortcut(QKeySequence(shortcut))
        action.triggered.connect(slot)
        toolbar.addAction(action)
        return action

    def _setup_toolbar(self) -> None:
        """设置工具栏."""
        toolbar = QToolBar("主工具栏")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        self._add_action(toolbar, "添加文字", lambda: self._store.add_layer(LayerType.TEXT), "Ctrl+T")
        self._add_action(toolbar, "添加形状", lambda: self._store.add_layer(LayerType.SHAPE))
        self._add_action(toolbar, "添加图片", self._on_add_image)
        toolbar.addSeparator()

        self._layer_actions = [
            self._add_action(toolbar, "删除", self._on_delete_layer),
            self._add_action(toolbar, "上移", lambda: self._on_reorder(ReorderDirection.UP), "Ctrl+]"),
            self._add_action(toolbar, "下移", lambda: self._on_reorder(ReorderDirection.DOWN), "Ctrl+["),
            self._add_action(toolbar, "置顶", lambda: self._on_reorder(ReorderDirection.TOP)),
            self._add_action(toolbar, "置底", lambda: self._on_reorder(ReorderDirection.BOTTOM)),
        ]
        toolbar.addSeparator()

        # 分辨率预设
        self._resolution_combo = QComboBox()
        for name, width, height, label in RESOLUTION_PRESETS:  # 列表行与预设一一对应
            self._resolution_combo.addItem(f"{name} ({width}×{height})", (width, height, label))
        self._resolution_combo.currentIndexChanged.connect(self._on_resolution_changed)
        toolbar.addWidget(self._resolution_combo)

        toolbar.addWidget(self._create_background_button())
        self._add_action(toolbar, "底图", self._on_pick_background_image)
        self._action_clear_background = self._add_action(
            toolbar, "清除底图", lambda: self._store.set_background_image(None)
        )
        self._add_action(toolbar, "重置画布", self._on_reset_canvas)
        toolbar.addSeparator()

        self._action_export = self._add_action(toolbar, "导出 PNG", self._on_export, "Ctrl+E")
        self._add_action(toolbar, "保存模板", self._on_save_template, "Ctrl+S")

    def _setup_central_widget(self, preview_rasterizer: CoverRasterizer) -> None:
        """设置中央区域：画布 + 属性面板."""
        central_widget = QWidget()
        self.setCentralWidget(central_widget)

        layout = QHBoxLayout(central_widget)
        layout.setContentsMargins(0, 0, 0, 0)

        self._canvas = CoverCanvasWidget(
            self._store,
            engine=self._engine,
            scaler=self._scaler,
            rasterizer=preview_rasterizer,
        )
        layout.addWidget(self._canvas, 1)

        panel = LayerPropertyPanel(self._store)
        panel.setFixedWidth(300)
        layout.addWidget(panel)

    def _create_background_button(self) -> QToolButton:
        """背景色按钮：预设颜色、自定义颜色与透明背景."""
        menu = QMenu(self)
        for color in PRESET_COLORS:
            swatch = QPixmap(16, 16)
            swatch.fill(QColor(color))
            action = menu.addAction(QIcon(swatch), color)
            action.triggered.connect(lambda _=False, c=color: self._store.set_background_color(c))
        menu.addSeparator()
        menu.addAction("自定义颜色...").triggered.connect(self._on_pick_background)
        menu.addAction("透明背景").triggered.connect(lambda: self._store.set_background_color(TRANSPARENT))
        self._background_menu = menu

        button = QToolButton()
        button.setText("背景色")
        button.setMenu(menu)
        button.setPopupMode(QToolButton.ToolButtonPopupMode.InstantPopup)
        return button

    def _setup_docks(self) -> None:
        """设置左侧图层与模板面板（同一区域以标签页切换）."""
        areas = Qt.DockWidgetArea.LeftDockWidgetArea | Qt.DockWidgetArea.RightDockWidgetArea

        layer_dock = QDockWidget("图层", self)
        layer_dock.setAllowedAreas(areas)
        self._layer_panel = LayerListPanel(self._store)
        self._layer_panel.layer_selected.connect(lambda _: self.canvas.setFocus())
        layer_dock.setWidget(self._layer_panel)
        self.addDockWidget(Qt.DockWidgetArea.LeftDockWidgetArea, layer_dock)

        template_dock = self._create_template_dock()
        template_dock.setAllowedAreas(areas)
        self.addDockWidget(Qt.DockWidgetArea.LeftDockWidgetArea, template_dock)

        self.tabifyDockWidget(layer_dock, template_dock)
        layer_dock.raise_()

    def _create_template_dock(self) -> QDockWidget:
        """创建模板面板."""
        dock = QDockWidget("模板", self)

        container = QWidget()
        layout = QVBoxLayout(container)

        self._template_list = QListWidget()
        self._template_list.itemDoubleClicked.connect(lambda _: self._on_load_template())
        layout.addWidget(self._template_list)

        for text, slot in (
            ("加载", self._on_load_template),
            ("重命名", self._on_rename_template),
            ("删除", self._on_delete_template),
            ("导出...", self._on_export_template),
            ("导入...", self._on_import_template),
        ):
            button = QPushButton(text)
            button.clicked.connect(slot)
            layout.addWidget(button)

        dock.setWidget(container)
        return dock

    def _setup_statusbar(self) -> None:
        """设置状态栏."""
        statusbar = QStatusBar()
        self.setStatusBar(statusbar)
        self._status_label = QLabel("就绪")
        statusbar.addWidget(self._status_label, 1)

    # ========================
    # 辅助方法
    # ========================

    def _set_status(self, text: str) -> None:
        if self._status_label:
            self._status_label.setText(text)

    def _show_error(self, title: str, exception: Exception) -> None:
        """记录异常并显示用户友好的错误."""
        message = handle_exception(exception, title, reraise=False)
        QMessageBox.warning(self, title, message)

    def _update_actions_state(self) -> None:
        has_selection = self._store.selected_id is not None
        for action in self._layer_actions:
            action.setEnabled(has_selection)

    def _selected_template(self) -> Optional[Template]:
        if self._template_list is None:
            return None
        item = self._template_list.currentItem()
        if item is None:
            return None
        return item.data(Qt.ItemDataRole.UserRole)

    def _reload_templates(self) -> None:
        """刷新模板列表."""
        if self._template_list is None:
            return
        self._template_list.clear()
        for template in safe_execute(self._template_manager.list_templates, default=[]) or []:
            item = QListWidgetItem(f"{template.name} ({template.layer_count})")
            item.setData(Qt.ItemDataRole.UserRole, template)
            self._template_list.addItem(item)

    async def _settle_ui(self) -> None:
        """导出前等待界面去掉选中框."""
        if self._canvas is not None:
            self._canvas.repaint()
        QApplication.processEvents()
        await asyncio.sleep(0)

    def _restore_preferences(self) -> None:
        """恢复上次使用的分辨率预设."""
        if self._config is None:
            return
        name = safe_execute(self._config.get_user_config, LAST_RESOLUTION_KEY)
        for index, preset in enumerate(RESOLUTION_PRESETS):
            if preset[0] == name:
                self._resolution_combo.setCurrentIndex(index)
                logger.debug(f"已恢复分辨率预设: {name}")
                return

    def _confirm(self, title: str, message: str) -> bool:
        reply = QMessageBox.question(
            self,
            title,
            message,
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        return reply == QMessageBox.StandardButton.Yes

    # ========================
    # 槽函数
    # ========================

    def _on_document_changed(self, document: CanvasDocument) -> None:
        self._update_actions_state()
        self._sync_resolution_combo(document)

    def _sync_resolution_combo(self, document: CanvasDocument) -> None:
        """画布尺寸由模板或重置改变时同步预设下拉框（不触发保存）."""
        combo = self._resolution_combo
        for index in range(combo.count()):
            width, height, _ = combo.itemData(index)
            if (width, height) == document.canvas_size:
                if index != combo.currentIndex():
                    combo.blockSignals(True)
                    combo.setCurrentIndex(index)
                    combo.blockSignals(False)
                return

    def _on_add_image(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "选择图片", "", IMAGE_FILE_FILTER)
        if path:
            self._store.add_layer(LayerType.IMAGE, {"src": path})

    def _on_delete_layer(self) -> None:
        selected_id = self._store.selected_id
        if selected_id:
            self._store.delete_layer(selected_id)

    def _on_reorder(self, direction: ReorderDirection) -> None:
        selected_id = self._store.selected_id
        if selected_id:
            self._store.reorder_layer(selected_id, direction)

    def _on_resolution_changed(self, index: int) -> None:
        width, height, label = self._resolution_combo.itemData(index)
        self._store.set_canvas_size(width, height, label)
        if self._config is not None:
            safe_execute(self._config.set_user_config, LAST_RESOLUTION_KEY, RESOLUTION_PRESETS[index][0])

    def _on_pick_background(self) -> None:
        color = QColorDialog.getColor(parent=self, title="选择背景色")
        if color.isValid():
            self._store.set_background_color(color.name())

    def _on_pick_background_image(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "选择底图", "", IMAGE_FILE_FILTER)
        if path:
            self._store.set_background_image(path)

    def _on_reset_canvas(self) -> None:
        if self._confirm("重置画布", "确定要重置画布吗？\n所有未保存的更改都将丢失。"):
            self._store.reset()

    def _on_export(self) -> None:
        """导出封面 PNG."""
        if self._action_export:
            self._action_export.setEnabled(False)
        self._set_status("正在导出...")
        try:
            result = asyncio.run(self._exporter.export())
        except AppException as e:
            self._set_status("导出失败")
            self._show_error("导出失败", e)
            return
        finally:
            if self._action_export:
                self._action_export.setEnabled(True)

        self._set_status(f"已导出: {result.path or result.filename}")

    def _on_save_template(self) -> None:
        try:
            template = self._template_manager.save_current(self._store.document)
        except AppException as e:
            self._show_error("保存模板失败", e)
            return
        self._reload_templates()
        self._set_status(f"模板 \"{template.name}\" 已保存")

    def _on_load_template(self) -> None:
        template = self._selected_template()
        if template is None:
            return
        if not self._confirm(
            "加载模板",
            f"确认加载模板 \"{template.name}\" 吗？\n注意：这将清空当前画布，并基于模板内容重新创建。",
        ):
            return
        try:
            self._template_manager.apply_template(self._store, template)
        except AppException as e:
            self._show_error("加载模板失败", e)

    def _on_rename_template(self) -> None:
        template = self._selected_template()
        if template is None:
            return
        name, ok = QInputDialog.getText(self, "重命名模板", "新名称:", text=template.name)
        if not ok or not name.strip():
            return
        try:
            self._template_manager.rename_template(template.id, name)
        except AppException as e:
            self._show_error("重命名失败", e)
        self._reload_templates()

    def _on_delete_template(self) -> None:
        template = self._selected_template()
        if template is None:
            return
        if self._confirm("删除模板", "确定要删除这个模板吗？此操作无法撤销。"):
            self._template_manager.delete_template(template.id)
            self._reload_templates()

    def _on_export_template(self) -> None:
        template = self._selected_template()
        if template is None:
            return
        path, _ = QFileDialog.getSaveFileName(
            self, "导出模板", f"{template.name or 'template'}.json", TEMPLATE_FILE_FILTER
        )
        if not path:
            return
        try:
            self._template_manager.export_template(template.id, Path(path))
        except AppException as e:
            self._show_error("导出模板失败", e)

    def _on_import_template(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "导入模板", "", TEMPLATE_FILE_FILTER)
        if not path:
            return
        try:
            template = self._template_manager.import_template(Path(path))
        except AppException as e:
            self._show_error("导入失败", e)
            return
        self._reload_templates()
        self._set_status(f"模板 \"{template.name}\" 导入成功")

    # ========================
    # 事件处理
    # ========================

    def closeEvent(self, event: QCloseEvent) -> None:
        """关闭窗口."""
        if self._exporter.is_exporting:
            event.ignore()
            return
        logger.info("主窗口关闭")
        super().closeEvent(event)
