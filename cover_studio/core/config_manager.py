"""配置管理器模块.

应用设置来自三层，优先级从高到低：

1. 用户配置文件 ``~/.cover-studio/config.json`` 中与设置同名的键
2. 环境变量与 ``.env``（前缀 ``COVER_STUDIO_``）
3. ``Settings`` 的默认值

配置文件中的其他键作为界面偏好保存（例如上次使用的分辨率预设）。
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from cover_studio.models.app_settings import Settings
from cover_studio.utils.constants import APP_DATA_DIR
from cover_studio.utils.exceptions import ConfigError
from cover_studio.utils.logger import setup_logger

logger = setup_logger(__name__)

USER_CONFIG_FILE = APP_DATA_DIR / "config.json"


def _read_json_object(path: Path) -> dict[str, Any]:
    """读取 JSON 对象文件，文件缺失或损坏时返回空字典."""
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"用户配置文件无法读取，已忽略: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning("用户配置文件不是 JSON 对象，已忽略")
        return {}
    return data


class ConfigManager:
    """配置管理器（单例）.

    Example:
        >>> config = get_config()
        >>> config.set_user_config("snap_threshold_px", 8)
        >>> config.settings.snap_threshold_px
        8.0
    """

    _instance: Optional["ConfigManager"] = None

    def __new__(cls) -> "ConfigManager":
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._settings = None
            cls._instance = instance
        return cls._instance

    @property
    def settings(self) -> Settings:
        """当前设置（首次访问时加载并缓存）."""
        if self._settings is None:
            self._settings = self._build_settings()
        return self._settings

    def _build_settings(self) -> Settings:
        """合并用户配置文件与环境变量构建设置.

        Raises:
            ConfigError: 设置值无效
        """
        overrides = {
            key: value
            for key, value in _read_json_object(USER_CONFIG_FILE).items()
            if key in Settings.model_fields
        }
        try:
            settings = Settings(**overrides)
        except ValidationError as e:
            logger.error(f"应用设置无效: {e.error_count()} 项错误")
            raise ConfigError(f"应用设置无效: {e}") from e

        if overrides:
            logger.debug(f"用户配置覆盖: {sorted(overrides)}")
        return settings

    def get_user_config(self, key: str, default: Any = None) -> Any:
        """读取用户配置项.

        Args:
            key: 配置键
            default: 键不存在时的返回值
        """
        return _read_json_object(USER_CONFIG_FILE).get(key, default)

    def set_user_config(self, key: str, value: Any) -> None:
        """写入用户配置项.

        写入设置字段时会清除设置缓存，下次访问 ``settings`` 生效。

        Args:
            key: 配置键
            value: 配置值（需可 JSON 序列化）

        Raises:
            ConfigError: 写入失败
        """
        data = _read_json_object(USER_CONFIG_FILE)
        data[key] = value
        try:
            payload = json.dumps(data, indent=2, ensure_ascii=False)
            USER_CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
            USER_CONFIG_FILE.write_text(payload, encoding="utf-8")
        except (OSError, TypeError) as e:
            logger.error(f"保存用户配置失败: {key}, 错误: {e}")
            raise ConfigError(f"保存用户配置失败: {e}") from e

        if key in Settings.model_fields:
            self._settings = None
        logger.debug(f"用户配置已保存: {key}")

    def reload(self) -> None:
        """丢弃缓存的设置，下次访问时重新加载."""
        self._settings = None
        logger.info("配置已重新加载")


def get_config() -> ConfigManager:
    """获取配置管理器单例."""
    return ConfigManager()
