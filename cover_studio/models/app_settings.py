"""应用设置模型."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cover_studio.utils.constants import (
    EXPORT_DIR,
    EXPORT_OVERSAMPLE,
    MAX_TEMPLATE_STORAGE_BYTES,
    REMOTE_IMAGE_TIMEOUT,
    SNAP_THRESHOLD_PX,
    TEMPLATES_DIR,
    VIEWPORT_MARGIN_FACTOR,
    VIEWPORT_PADDING,
)


class Settings(BaseSettings):
    """应用设置.

    支持从环境变量（前缀 ``COVER_STUDIO_``）和 .env 文件加载配置。

    Attributes:
        log_level: 日志级别
        snap_threshold_px: 吸附阈值（屏幕像素）
        export_oversample: 导出过采样倍数
        export_dir: 导出目录
        templates_dir: 模板目录
        max_template_storage_bytes: 模板存储配额
        allow_remote_images: 是否允许加载 http(s) 图片
        remote_image_timeout: 远程图片请求超时（秒）
        viewport_padding: 视口内边距（像素）
        viewport_margin_factor: 视口边距系数
    """

    model_config = SettingsConfigDict(
        env_prefix="COVER_STUDIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 应用配置
    log_level: str = Field(
        default="INFO",
        description="日志级别",
    )

    # 交互配置
    snap_threshold_px: float = Field(
        default=SNAP_THRESHOLD_PX,
        ge=0,
        le=50,
        description="吸附阈值（屏幕像素）",
    )

    viewport_padding: int = Field(
        default=VIEWPORT_PADDING,
        ge=0,
        description="视口内边距",
    )

    viewport_margin_factor: float = Field(
        default=VIEWPORT_MARGIN_FACTOR,
        gt=0,
        le=1,
        description="视口边距系数",
    )

    # 导出配置
    export_oversample: int = Field(
        default=EXPORT_OVERSAMPLE,
        ge=1,
        le=4,
        description="导出过采样倍数",
    )

    export_dir: Optional[Path] = Field(
        default=None,
        description="导出目录",
    )

    # 模板配置
    templates_dir: Optional[Path] = Field(
        default=None,
        description="模板目录",
    )

    max_template_storage_bytes: int = Field(
        default=MAX_TEMPLATE_STORAGE_BYTES,
        ge=0,
        description="模板存储配额（字节）",
    )

    # 图片来源配置
    allow_remote_images: bool = Field(
        default=False,
        description="允许加载远程图片",
    )

    remote_image_timeout: float = Field(
        default=REMOTE_IMAGE_TIMEOUT,
        gt=0,
        le=120,
        description="远程图片请求超时",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """验证日志级别."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"无效的日志级别: {v}，有效值: {valid_levels}")
        return upper_v

    @property
    def export_path(self) -> Path:
        """获取导出目录."""
        return self.export_dir or EXPORT_DIR

    @property
    def templates_path(self) -> Path:
        """获取模板目录."""
        return self.templates_dir or TEMPLATES_DIR
