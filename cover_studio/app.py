"""应用生命周期管理.

启动顺序：读取设置并应用日志级别，创建数据、模板与导出目录，
最后按需创建主窗口。
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional

from cover_studio.utils.logger import setup_logger

if TYPE_CHECKING:
    from cover_studio.models.app_settings import Settings
    from cover_studio.ui.main_window import MainWindow

logger = setup_logger(__name__)


class Application:
    """封面工作室应用.

    Attributes:
        settings: 已加载的应用设置，初始化前为 None
    """

    def __init__(self) -> None:
        self._settings: Optional["Settings"] = None
        self._main_window: Optional["MainWindow"] = None
        self._initialized = False

    @property
    def settings(self) -> Optional["Settings"]:
        return self._settings

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """加载设置并准备工作目录，重复调用无效果.

        Raises:
            ConfigError: 设置无效
        """
        if self._initialized:
            logger.warning("应用已初始化，跳过重复初始化")
            return

        from cover_studio.core.config_manager import get_config
        from cover_studio.utils.logger import set_log_level

        self._settings = get_config().settings
        set_log_level(self._settings.log_level)

        self._prepare_directories()

        self._initialized = True
        logger.info(
            f"应用初始化完成: 模板目录={self._settings.templates_path}, "
            f"导出目录={self._settings.export_path}"
        )

    def _prepare_directories(self) -> None:
        from cover_studio.utils.constants import APP_DATA_DIR

        assert self._settings is not None
        directories: list[Path] = [
            APP_DATA_DIR,
            self._settings.templates_path,
            self._settings.export_path,
        ]
        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)
            logger.debug(f"目录就绪: {directory}")

    def show_main_window(self) -> None:
        """创建（首次）并显示主窗口."""
        from cover_studio.core.config_manager import get_config
        from cover_studio.ui.main_window import MainWindow

        if self._main_window is None:
            self._main_window = MainWindow(self._settings, get_config())
        self._main_window.show()

    def cleanup(self) -> None:
        """释放主窗口."""
        if self._main_window is not None:
            self._main_window.deleteLater()
            self._main_window = None
        logger.info("应用已退出")
