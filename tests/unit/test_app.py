"""应用管理类单元测试."""

from __future__ import annotations

import pytest

from cover_studio.app import Application
from cover_studio.core import config_manager
from cover_studio.core.config_manager import ConfigManager, get_config
from cover_studio.ui.main_window import LAST_RESOLUTION_KEY
from cover_studio.utils import constants
from cover_studio.utils.constants import RESOLUTION_PRESETS


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """把数据、模板与导出目录都指向临时目录."""
    monkeypatch.setattr(ConfigManager, "_instance", None)
    monkeypatch.setattr(config_manager, "USER_CONFIG_FILE", tmp_path / "config.json")
    monkeypatch.setattr(constants, "APP_DATA_DIR", tmp_path / "data")
    monkeypatch.setenv("COVER_STUDIO_TEMPLATES_DIR", str(tmp_path / "templates"))
    monkeypatch.setenv("COVER_STUDIO_EXPORT_DIR", str(tmp_path / "exports"))
    monkeypatch.setenv("COVER_STUDIO_LOG_LEVEL", "DEBUG")
    yield


class TestApplication:
    """测试应用初始化."""

    def test_initialize_creates_directories(self, tmp_path):
        application = Application()
        assert not application.is_initialized

        application.initialize()

        assert application.is_initialized
        assert application.settings is not None
        assert application.settings.log_level == "DEBUG"
        assert (tmp_path / "data").is_dir()
        assert (tmp_path / "templates").is_dir()
        assert (tmp_path / "exports").is_dir()

    def test_initialize_twice_is_noop(self):
        application = Application()
        application.initialize()
        settings = application.settings

        application.initialize()
        assert application.settings is settings

    def test_cleanup(self):
        application = Application()
        application.initialize()
        application.cleanup()
        assert application.is_initialized

    def test_main_window_saves_preferences(self, qapp):
        application = Application()
        application.initialize()
        application.show_main_window()

        window = application._main_window
        window._resolution_combo.setCurrentIndex(1)
        assert get_config().get_user_config(LAST_RESOLUTION_KEY) == RESOLUTION_PRESETS[1][0]

        application.cleanup()
        assert application._main_window is None
