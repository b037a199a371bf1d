"""主窗口单元测试."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from PyQt6.QtWidgets import QFileDialog, QMessageBox

from cover_studio.core import config_manager
from cover_studio.core.config_manager import ConfigManager, get_config
from cover_studio.models.app_settings import Settings
from cover_studio.models.canvas_document import LayerType
from cover_studio.ui.main_window import IMAGE_FILE_FILTER, LAST_RESOLUTION_KEY, MainWindow
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


# ========================
# Fixtures
# ========================


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        templates_dir=tmp_path / "templates",
        export_dir=tmp_path / "exports",
        export_oversample=1,
    )


@pytest.fixture
def main_window(qtbot, settings: Settings):
    """创建主窗口实例."""
    window = MainWindow(settings)
    qtbot.addWidget(window)
    return window


@pytest.fixture
def config(monkeypatch, tmp_path: Path) -> ConfigManager:
    """使用临时用户配置文件的配置管理器."""
    monkeypatch.setattr(ConfigManager, "_instance", None)
    monkeypatch.setattr(config_manager, "USER_CONFIG_FILE", tmp_path / "config.json")
    return get_config()


@pytest.fixture
def warnings(monkeypatch) -> list[tuple[str, str]]:
    """拦截错误提示框."""
    shown: list[tuple[str, str]] = []
    monkeypatch.setattr(QMessageBox, "warning", lambda parent, title, text: shown.append((title, text)))
    return shown


# ========================
# 窗口初始化测试
# ========================


class TestMainWindowInit:
    """测试主窗口初始化."""

    def test_window_title(self, main_window):
        assert main_window.windowTitle() == f"{APP_NAME} v{APP_VERSION}"

    def test_window_minimum_size(self, main_window):
        min_size = main_window.minimumSize()
        assert min_size.width() == WINDOW_MIN_WIDTH
        assert min_size.height() == WINDOW_MIN_HEIGHT

    def test_layer_actions_follow_selection(self, main_window):
        assert not any(action.isEnabled() for action in main_window._layer_actions)
        main_window.store.add_layer(LayerType.TEXT)
        assert all(action.isEnabled() for action in main_window._layer_actions)


# ========================
# 画布操作测试
# ========================


class TestCanvasActions:
    """测试工具栏操作."""

    def test_resolution_preset(self, main_window):
        combo = main_window._resolution_combo
        combo.setCurrentIndex(combo.count() - 1)
        width, height, label = combo.itemData(combo.count() - 1)
        assert main_window.store.document.canvas_size == (width, height)
        assert main_window.store.document.aspect_ratio_label == label

    def test_reorder_and_delete(self, main_window):
        store = main_window.store
        first = store.add_layer(LayerType.SHAPE)
        store.add_layer(LayerType.TEXT)
        store.select(first.id)

        main_window._layer_actions[3].trigger()  # 置顶
        assert store.layers[-1].id == first.id

        main_window._layer_actions[0].trigger()  # 删除
        assert store.get_layer(first.id) is None

    def test_add_image_layer(self, main_window, monkeypatch, sample_png_path):
        monkeypatch.setattr(QFileDialog, "getOpenFileName", lambda *args, **kwargs: (str(sample_png_path), ""))
        main_window._on_add_image()
        layer = main_window.store.selected_layer
        assert layer is not None
        assert layer.layer_type == LayerType.IMAGE
        assert layer.src == str(sample_png_path)

    def test_image_filter_lists_supported_formats(self):
        for ext in SUPPORTED_IMAGE_FORMATS:
            assert f"*{ext}" in IMAGE_FILE_FILTER


class TestBackgroundActions:
    """测试背景色与底图."""

    def test_preset_colors_in_menu(self, main_window):
        texts = [action.text() for action in main_window._background_menu.actions()]
        assert texts[: len(PRESET_COLORS)] == PRESET_COLORS

    def test_preset_color_applied(self, main_window):
        action = main_window._background_menu.actions()[PRESET_COLORS.index("#3b82f6")]
        action.trigger()
        assert main_window.store.document.background_color == "#3b82f6"

    def test_transparent_from_menu(self, main_window):
        action = next(a for a in main_window._background_menu.actions() if a.text() == "透明背景")
        action.trigger()
        assert main_window.store.document.background_color == TRANSPARENT

    def test_pick_background_image(self, main_window, monkeypatch, sample_png_path):
        monkeypatch.setattr(QFileDialog, "getOpenFileName", lambda *args, **kwargs: (str(sample_png_path), ""))
        main_window._on_pick_background_image()
        assert main_window.store.document.background_image == str(sample_png_path)

    def test_cancel_keeps_background_image(self, main_window, monkeypatch, sample_png_path):
        """测试取消文件对话框不会清除已有底图."""
        main_window.store.set_background_image(str(sample_png_path))
        monkeypatch.setattr(QFileDialog, "getOpenFileName", lambda *args, **kwargs: ("", ""))

        main_window._on_pick_background_image()
        assert main_window.store.document.background_image == str(sample_png_path)

    def test_clear_background_image(self, main_window, sample_png_path):
        main_window.store.set_background_image(str(sample_png_path))
        main_window._action_clear_background.trigger()
        assert main_window.store.document.background_image is None


# ========================
# 图层面板测试
# ========================


class TestLayerPanelDock:
    """测试主窗口中的图层面板."""

    def test_panel_shares_store(self, main_window):
        layer = main_window.store.add_layer(LayerType.SHAPE)
        assert main_window.layer_panel.layer_order() == [layer.id]

    def test_hidden_layer_reachable(self, qtbot, main_window):
        store = main_window.store
        layer = store.add_layer(LayerType.SHAPE, {"visible": False})
        store.select(None)

        with qtbot.waitSignal(main_window.canvas.selection_changed, timeout=1000) as blocker:
            main_window.layer_panel.list_widget.setCurrentRow(0)
        assert blocker.args == [layer.id]
        assert all(action.isEnabled() for action in main_window._layer_actions)


# ========================
# 界面偏好测试
# ========================


class TestPreferences:
    """测试分辨率预设的保存与恢复."""

    def test_resolution_saved(self, qtbot, settings, config):
        window = MainWindow(settings, config)
        qtbot.addWidget(window)
        window._resolution_combo.setCurrentIndex(2)
        assert config.get_user_config(LAST_RESOLUTION_KEY) == RESOLUTION_PRESETS[2][0]

    def test_resolution_restored(self, qtbot, settings, config):
        name, width, height, _ = RESOLUTION_PRESETS[4]
        config.set_user_config(LAST_RESOLUTION_KEY, name)

        window = MainWindow(settings, config)
        qtbot.addWidget(window)
        assert window._resolution_combo.currentIndex() == 4
        assert window.store.document.canvas_size == (width, height)

    def test_unknown_preset_ignored(self, qtbot, settings, config):
        config.set_user_config(LAST_RESOLUTION_KEY, "不存在的预设")
        window = MainWindow(settings, config)
        qtbot.addWidget(window)
        assert window._resolution_combo.currentIndex() == 0

    def test_without_config_nothing_saved(self, main_window, config):
        main_window._resolution_combo.setCurrentIndex(1)
        assert config.get_user_config(LAST_RESOLUTION_KEY) is None

    def test_combo_follows_reset(self, main_window, monkeypatch):
        main_window._resolution_combo.setCurrentIndex(3)
        monkeypatch.setattr(MainWindow, "_confirm", lambda *args: True)
        main_window._on_reset_canvas()
        assert main_window._resolution_combo.currentIndex() == 0


# ========================
# 导出与模板测试
# ========================


class TestExportAndTemplates:
    """测试导出与模板."""

    def test_export_writes_png(self, main_window, settings):
        main_window.store.add_layer(LayerType.SHAPE)
        main_window._on_export()

        files = list(settings.export_path.glob("cover-1080x1920-*.png"))
        assert len(files) == 1
        assert main_window.store.selected_id is None
        assert main_window._status_label.text().startswith("已导出")

    def test_export_failure_shows_message(self, main_window, settings, warnings, tmp_path):
        main_window.store.add_layer(LayerType.IMAGE, {"src": str(tmp_path / "missing.png")})
        main_window._on_export()

        assert len(warnings) == 1
        assert not settings.export_path.exists() or not any(settings.export_path.iterdir())

    def test_save_template_lists_it(self, main_window):
        main_window.store.add_layer(LayerType.TEXT)
        main_window._on_save_template()
        assert main_window._template_list.count() == 1

    def test_import_invalid_template(self, main_window, monkeypatch, warnings, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"state": {"layers": "oops"}}), encoding="utf-8")
        monkeypatch.setattr(QFileDialog, "getOpenFileName", lambda *args, **kwargs: (str(path), ""))

        before = main_window.store.document.to_json()
        main_window._on_import_template()

        assert warnings and "图层" in warnings[0][1]
        assert main_window.store.document.to_json() == before
        assert main_window._template_list.count() == 0
