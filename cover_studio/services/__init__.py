"""服务层模块."""

from cover_studio.services.export_service import (
    CoverExporter,
    ExportResult,
    build_export_filename,
)
from cover_studio.services.image_source import ImageSourceLoader
from cover_studio.services.rasterizer import CoverRasterizer, find_font, wrap_text
from cover_studio.services.template_manager import TemplateManager

__all__ = [
    # 导出服务
    "CoverExporter",
    "ExportResult",
    "build_export_filename",
    # 图片来源
    "ImageSourceLoader",
    # 光栅化
    "CoverRasterizer",
    "find_font",
    "wrap_text",
    # 模板管理
    "TemplateManager",
]
