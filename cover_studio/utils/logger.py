"""日志工具模块.

所有模块的日志记录器都挂在 ``cover_studio`` 命名空间下，处理器只安装在
该命名空间的顶层记录器上，不修改根记录器。

Features:
    - 终端彩色输出（非终端时输出纯文本）
    - ``app.log`` 与 ``error.log`` 按大小轮转
    - 全局日志级别管理，由配置中的 ``log_level`` 驱动
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from cover_studio.utils.constants import LOG_DIR

# 应用日志命名空间
PACKAGE_LOGGER = "cover_studio"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"
FILE_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"

# 轮转配置
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024  # 5MB
LOG_FILE_BACKUP_COUNT = 3

_log_level: int = logging.INFO
_handlers_installed: bool = False


class LevelColorFormatter(logging.Formatter):
    """按级别给级别名着色的格式化器."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[2m",
        logging.INFO: "\033[34m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno)
        if not color:
            return super().format(record)
        # 在副本上着色，其他处理器看到的仍是原始级别名
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def _rotating_handler(path: Path, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
    return handler


def _install_handlers() -> None:
    """为应用顶层记录器安装处理器（只执行一次）."""
    global _handlers_installed
    if _handlers_installed:
        return

    app_logger = logging.getLogger(PACKAGE_LOGGER)
    app_logger.setLevel(_log_level)
    app_logger.propagate = False

    stream = logging.StreamHandler(sys.stderr)
    if sys.stderr.isatty():
        stream.setFormatter(LevelColorFormatter(LOG_FORMAT, DATE_FORMAT))
    else:
        stream.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    app_logger.addHandler(stream)

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        app_logger.addHandler(_rotating_handler(LOG_DIR / "app.log", logging.DEBUG))
        app_logger.addHandler(_rotating_handler(LOG_DIR / "error.log", logging.ERROR))
    except OSError as e:
        app_logger.warning(f"无法创建日志文件，仅输出到终端: {e}")

    _handlers_installed = True


def setup_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """获取应用命名空间下的日志记录器.

    Args:
        name: 记录器名称，通常为 ``__name__``；不在 ``cover_studio``
            命名空间下的名称会被挂到该命名空间下
        level: 单独指定的级别，默认继承全局级别

    Returns:
        日志记录器
    """
    _install_handlers()
    if name != PACKAGE_LOGGER and not name.startswith(f"{PACKAGE_LOGGER}."):
        name = f"{PACKAGE_LOGGER}.{name}"
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger


def set_log_level(level: int | str) -> None:
    """设置全局日志级别.

    Args:
        level: 级别数值或名称（如 ``"DEBUG"``），无法识别的名称按 INFO 处理
    """
    global _log_level
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        level = resolved if isinstance(resolved, int) else logging.INFO
    _log_level = level
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)


def get_log_level() -> int:
    """获取当前全局日志级别."""
    return _log_level


def get_log_level_name() -> str:
    """获取当前全局日志级别名称."""
    return logging.getLevelName(_log_level)
