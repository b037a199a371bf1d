"""图层状态存储模块.

持有唯一的权威画布文档，提供图层的增删改、排序与选中操作。

Features:
    - 按类型默认值创建图层并自动选中
    - 按 ID 局部更新（字段名或 camelCase 别名均可），整体校验
    - 上移/下移/置顶/置底
    - 删除图层并维护选中状态
    - 画布分辨率、背景设置
    - 深拷贝快照与整体替换
    - 变更监听

所有操作均为同步且不抛出异常：不存在的 ID 被静默忽略，无效的更新被整体
拒绝并记录日志。
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from cover_studio.models.canvas_document import (
    AnyLayer,
    CanvasDocument,
    LayerType,
    create_layer,
    generate_layer_id,
)
from cover_studio.utils.logger import setup_logger

logger = setup_logger(__name__)

# 创建后不可修改的字段
IMMUTABLE_FIELDS = frozenset({"id", "type"})


class ReorderDirection(str, Enum):
    """图层排序方向."""

    UP = "up"  # 上移一层
    DOWN = "down"  # 下移一层
    TOP = "top"  # 置顶
    BOTTOM = "bottom"  # 置底


StoreListener = Callable[[CanvasDocument], None]


def _field_name_map(layer: AnyLayer) -> dict[str, str]:
    """构建 {字段名或别名: 字段名} 映射."""
    mapping: dict[str, str] = {}
    for name, info in type(layer).model_fields.items():
        mapping[name] = name
        mapping[info.alias or to_camel(name)] = name
    return mapping


class LayerStore:
    """图层状态存储.

    Example:
        >>> store = LayerStore()
        >>> layer = store.add_layer(LayerType.TEXT, {"text": "标题"})
        >>> store.selected_id == layer.id
        True
        >>> store.update_layer(layer.id, {"fontSize": 96})
        True
    """

    def __init__(self, document: Optional[CanvasDocument] = None) -> None:
        """初始化存储.

        Args:
            document: 初始文档，默认为空白画布
        """
        self._document = document if document is not None else CanvasDocument()
        self._listeners: list[StoreListener] = []

    # ========================
    # 属性
    # ========================

    @property
    def document(self) -> CanvasDocument:
        """当前文档（只读使用，修改请通过存储的方法）."""
        return self._document

    @property
    def layers(self) -> list[AnyLayer]:
        """图层列表（绘制顺序）."""
        return self._document.layers

    @property
    def selected_id(self) -> Optional[str]:
        """选中的图层 ID."""
        return self._document.selected_id

    @property
    def selected_layer(self) -> Optional[AnyLayer]:
        """选中的图层."""
        return self._document.selected_layer

    def get_layer(self, layer_id: str) -> Optional[AnyLayer]:
        """根据 ID 获取图层."""
        return self._document.get_layer(layer_id)

    def index_of(self, layer_id: str) -> int:
        """获取图层下标，不存在返回 -1."""
        return self._document.index_of(layer_id)

    # ========================
    # 监听
    # ========================

    def add_listener(self, listener: StoreListener) -> None:
        """注册变更监听器."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: StoreListener) -> None:
        """移除变更监听器."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._document)
            except Exception as e:
                logger.exception(f"图层变更监听器执行失败: {e}")

    # ========================
    # 图层操作
    # ========================

    def add_layer(
        self,
        kind: LayerType | str,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> Optional[AnyLayer]:
        """添加图层.

        合并类型默认值与覆盖值，生成新 ID，追加到栈顶并选中。

        Args:
            kind: 图层类型（text/shape/image）
            overrides: 覆盖默认值的字段

        Returns:
            新图层，类型无效时返回 None
        """
        try:
            layer_type = LayerType(kind)
        except ValueError:
            logger.warning(f"未知的图层类型: {kind}")
            return None

        layer = create_layer(layer_type, overrides)
        while self._document.get_layer(layer.id) is not None:
            layer = layer.model_copy(update={"id": generate_layer_id()})

        self._document.layers.append(layer)
        self._document.selected_id = layer.id
        logger.debug(f"添加图层: {layer.name} ({layer.type}, id={layer.id})")
        self._notify()
        return layer

    def update_layer(self, layer_id: str, updates: Mapping[str, Any]) -> bool:
        """局部更新图层属性.

        键可以是字段名或 camelCase 别名；未知键以及 ``id``/``type`` 被忽略。
        合并后的图层整体校验，校验失败时不做任何修改。

        Args:
            layer_id: 图层 ID
            updates: 要更新的字段

        Returns:
            是否已更新
        """
        index = self._document.index_of(layer_id)
        if index < 0:
            logger.debug(f"更新图层被忽略，图层不存在: {layer_id}")
            return False

        layer = self._document.layers[index]
        names = _field_name_map(layer)

        normalized: dict[str, Any] = {}
        for key, value in updates.items():
            name = names.get(key)
            if name is None:
                logger.debug(f"忽略未知图层字段: {key}")
                continue
            if name in IMMUTABLE_FIELDS:
                continue
            normalized[name] = value

        if not normalized:
            return False

        data = layer.model_dump()
        data.update(normalized)
        try:
            updated = type(layer).model_validate(data)
        except ValidationError as e:
            logger.warning(f"图层更新无效，已拒绝: id={layer_id}, 错误: {e.error_count()} 项")
            return False

        self._document.layers[index] = updated
        self._notify()
        return True

    def reorder_layer(self, layer_id: str, direction: ReorderDirection | str) -> bool:
        """调整图层顺序.

        Args:
            layer_id: 图层 ID
            direction: 方向（up/down/top/bottom）

        Returns:
            是否已执行
        """
        try:
            direction = ReorderDirection(direction)
        except ValueError:
            logger.warning(f"未知的排序方向: {direction}")
            return False

        index = self._document.index_of(layer_id)
        if index < 0:
            return False

        layers = self._document.layers
        layer = layers.pop(index)

        if direction == ReorderDirection.UP:
            target = min(index + 1, len(layers))
        elif direction == ReorderDirection.DOWN:
            target = max(index - 1, 0)
        elif direction == ReorderDirection.TOP:
            target = len(layers)
        else:
            target = 0

        layers.insert(target, layer)
        logger.debug(f"图层排序: id={layer_id}, {direction.value}, {index} -> {target}")
        self._notify()
        return True

    def delete_layer(self, layer_id: str) -> bool:
        """删除图层.

        被删除的图层处于选中状态时清除选中。

        Args:
            layer_id: 图层 ID

        Returns:
            是否已删除
        """
        index = self._document.index_of(layer_id)
        if index < 0:
            return False

        removed = self._document.layers.pop(index)
        if self._document.selected_id == layer_id:
            self._document.selected_id = None

        logger.debug(f"删除图层: {removed.name} (id={layer_id})")
        self._notify()
        return True

    def select(self, layer_id: Optional[str]) -> None:
        """选中图层，传 None 取消选中.

        Args:
            layer_id: 图层 ID
        """
        if layer_id is not None and self._document.get_layer(layer_id) is None:
            logger.debug(f"选中被忽略，图层不存在: {layer_id}")
            return
        if self._document.selected_id == layer_id:
            return
        self._document.selected_id = layer_id
        self._notify()

    # ========================
    # 画布设置
    # ========================

    def set_canvas_size(self, width: int, height: int, label: Optional[str] = None) -> bool:
        """设置画布逻辑分辨率.

        图层的百分比字段保持不变，因此构图按比例适应新尺寸。

        Args:
            width: 宽度（像素）
            height: 高度（像素）
            label: 比例标签

        Returns:
            是否已设置
        """
        if width <= 0 or height <= 0:
            logger.warning(f"画布尺寸无效: {width}x{height}")
            return False

        self._document.width = int(width)
        self._document.height = int(height)
        if label:
            self._document.aspect_ratio_label = label
        logger.debug(f"画布尺寸: {width}x{height} ({self._document.aspect_ratio_label})")
        self._notify()
        return True

    def set_background_color(self, color: str) -> bool:
        """设置画布背景色（可为 ``transparent``）."""
        if not color or not color.strip():
            return False
        self._document.background_color = color
        self._notify()
        return True

    def set_background_image(self, src: Optional[str]) -> None:
        """设置画布底图，传 None 清除."""
        self._document.background_image = src or None
        self._notify()

    # ========================
    # 文档
    # ========================

    def snapshot(self) -> CanvasDocument:
        """获取文档的深拷贝.

        Returns:
            与存储无共享引用的文档副本
        """
        return self._document.deep_copy()

    def replace_document(self, document: CanvasDocument) -> None:
        """整体替换文档（如应用模板）.

        Args:
            document: 新文档
        """
        self._document = document
        logger.debug(f"文档已替换: {document.width}x{document.height}, {document.layer_count} 个图层")
        self._notify()

    def reset(self) -> None:
        """重置为空白画布."""
        self._document = CanvasDocument()
        self._notify()
