"""封面工作室启动入口（``cover-studio`` 命令）."""

from __future__ import annotations

import sys

from cover_studio.utils.constants import APP_NAME, APP_VERSION
from cover_studio.utils.logger import setup_logger

logger = setup_logger(__name__)


def main() -> int:
    """启动图形界面并运行事件循环.

    Returns:
        进程退出码
    """
    from PyQt6.QtWidgets import QApplication

    from cover_studio.app import Application

    logger.info(f"{APP_NAME} {APP_VERSION} 启动")

    qt_app = QApplication(sys.argv)
    qt_app.setApplicationName(APP_NAME)
    qt_app.setApplicationVersion(APP_VERSION)

    app = Application()
    try:
        app.initialize()
        app.show_main_window()
        exit_code = qt_app.exec()
    except Exception as e:
        logger.exception(f"启动失败: {e}")
        return 1
    finally:
        app.cleanup()

    logger.info(f"退出码: {exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
