"""数据模型模块."""

from cover_studio.models.app_settings import Settings
from cover_studio.models.canvas_document import (
    # 枚举
    ImageFitMode,
    LayerType,
    ShapeType,
    TextAlign,
    # 常量
    LAYER_CLASSES,
    LAYER_TYPE_NAMES,
    # 图层类
    AnyLayer,
    ImageLayer,
    Layer,
    LayerElement,
    ShapeLayer,
    TextLayer,
    # 文档类
    CanvasDocument,
    Template,
    # 辅助函数
    create_layer,
    generate_layer_id,
    parse_layer,
)

__all__ = [
    "Settings",
    # 枚举
    "ImageFitMode",
    "LayerType",
    "ShapeType",
    "TextAlign",
    # 常量
    "LAYER_CLASSES",
    "LAYER_TYPE_NAMES",
    # 图层类
    "AnyLayer",
    "ImageLayer",
    "Layer",
    "LayerElement",
    "ShapeLayer",
    "TextLayer",
    # 文档类
    "CanvasDocument",
    "Template",
    # 辅助函数
    "create_layer",
    "generate_layer_id",
    "parse_layer",
]
