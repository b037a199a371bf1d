"""模板管理服务.

提供模板的持久化存储功能，每个模板保存为一个 ``<id>.template.json`` 文件。

Features:
    - 把当前画布保存为模板（清除选中状态的深拷贝）
    - 模板列表（最新的在前）、重命名和删除
    - 模板导出为 JSON 文件与从 JSON 文件导入
    - 容错加载模板到图层存储，失败时画布保持不变
    - 存储配额检查
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from cover_studio.core.layer_store import LayerStore
from cover_studio.models.canvas_document import CanvasDocument, Template, generate_layer_id
from cover_studio.utils.constants import (
    MAX_TEMPLATE_STORAGE_BYTES,
    TEMPLATE_EXTENSION,
    TEMPLATES_DIR,
)
from cover_studio.utils.exceptions import (
    DocumentValidationError,
    InvalidLayersError,
    StorageError,
    StorageQuotaExceededError,
    TemplateNotFoundError,
)
from cover_studio.utils.helpers import get_compact_timestamp, now_ms
from cover_studio.utils.logger import setup_logger

logger = setup_logger(__name__)


# ===================
# 常量定义
# ===================

# 模板名称前缀
TEMPLATE_NAME_PREFIX = "template-"

# 导入模板的名称
IMPORTED_SUFFIX = " (Imported)"
IMPORTED_DEFAULT_NAME = "Imported Template"

_TEMPLATE_ID_PATTERN = re.compile(r"^[0-9A-Za-z_-]+$")


# ===================
# 模板管理器
# ===================


class TemplateManager:
    """模板管理器.

    Example:
        >>> manager = TemplateManager("/tmp/templates")
        >>> template = manager.save_current(store.document)
        >>> manager.apply_template(store, manager.get_template(template.id))
    """

    def __init__(
        self,
        templates_dir: Optional[Union[str, Path]] = None,
        max_storage_bytes: int = MAX_TEMPLATE_STORAGE_BYTES,
    ) -> None:
        """初始化模板管理器.

        Args:
            templates_dir: 模板存储目录，默认为用户目录下的 templates
            max_storage_bytes: 存储配额（字节）
        """
        self._templates_dir = Path(templates_dir) if templates_dir else TEMPLATES_DIR
        self.max_storage_bytes = max_storage_bytes

        # 确保目录存在
        self._templates_dir.mkdir(parents=True, exist_ok=True)

    @property
    def templates_dir(self) -> Path:
        """模板目录."""
        return self._templates_dir

    def _get_template_path(self, template_id: str) -> Optional[Path]:
        """获取模板文件路径，ID 含非法字符时返回 None."""
        if not _TEMPLATE_ID_PATTERN.match(template_id):
            return None
        return self._templates_dir / f"{template_id}{TEMPLATE_EXTENSION}"

    def _iter_template_files(self) -> list[Path]:
        return sorted(self._templates_dir.glob(f"*{TEMPLATE_EXTENSION}"))

    def used_bytes(self, exclude_id: Optional[str] = None) -> int:
        """已使用的存储空间.

        Args:
            exclude_id: 不计入的模板 ID（覆盖写入时使用）

        Returns:
            字节数
        """
        total = 0
        for file_path in self._iter_template_files():
            if exclude_id and file_path.name == f"{exclude_id}{TEMPLATE_EXTENSION}":
                continue
            try:
                total += file_path.stat().st_size
            except OSError:
                continue
        return total

    def _save_to_file(self, template: Template) -> Path:
        """保存模板文件.

        先写临时文件再替换，失败时不留下任何内容。

        Raises:
            StorageQuotaExceededError: 超出存储配额
            StorageError: 写入失败
        """
        file_path = self._get_template_path(template.id)
        if file_path is None:
            raise StorageError(f"模板 ID 无效: {template.id}")

        data = template.to_json().encode("utf-8")
        required = self.used_bytes(exclude_id=template.id) + len(data)
        if required > self.max_storage_bytes:
            logger.error(f"模板存储空间不足: 需要 {required} bytes, 配额 {self.max_storage_bytes} bytes")
            raise StorageQuotaExceededError(required, self.max_storage_bytes)

        temp_path = file_path.with_name(file_path.name + ".tmp")
        try:
            temp_path.write_bytes(data)
            os.replace(temp_path, file_path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            logger.error(f"保存模板失败: {e}")
            raise StorageError(f"保存模板失败: {e}") from e
        return file_path

    def _load_from_file(self, file_path: Path) -> Optional[Template]:
        """从文件加载模板，失败返回 None."""
        try:
            return Template.from_json(file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"加载模板失败: {file_path}, 错误: {e}")
            return None

    # ========================
    # 公共方法
    # ========================

    def save_current(self, document: CanvasDocument, name: Optional[str] = None) -> Template:
        """把当前画布保存为模板.

        Args:
            document: 画布文档
            name: 模板名称，默认为 ``template-YYYYMMDDHHmmss``

        Returns:
            新模板

        Raises:
            StorageQuotaExceededError: 超出存储配额
            StorageError: 写入失败
        """
        template = Template.from_document(
            document,
            name or f"{TEMPLATE_NAME_PREFIX}{get_compact_timestamp()}",
        )
        self._save_to_file(template)
        logger.info(f"模板已保存: {template.name} ({template.layer_count} 个图层)")
        return template

    def list_templates(self) -> list[Template]:
        """获取模板列表.

        Returns:
            模板列表，按创建时间倒序
        """
        result: list[Template] = []
        for file_path in self._iter_template_files():
            template = self._load_from_file(file_path)
            if template:
                result.append(template)

        result.sort(key=lambda t: t.created_at, reverse=True)
        return result

    def get_template(self, template_id: str) -> Template:
        """获取模板.

        Args:
            template_id: 模板 ID

        Returns:
            模板

        Raises:
            TemplateNotFoundError: 模板不存在或已损坏
        """
        path = self._get_template_path(template_id)
        template = self._load_from_file(path) if path is not None and path.exists() else None
        if template is None:
            logger.warning(f"模板不存在: {template_id}")
            raise TemplateNotFoundError(template_id)
        return template

    def rename_template(self, template_id: str, new_name: str) -> Template:
        """重命名模板.

        Args:
            template_id: 模板 ID
            new_name: 新名称

        Returns:
            更新后的模板

        Raises:
            TemplateNotFoundError: 模板不存在
            StorageError: 名称为空或写入失败
        """
        new_name = new_name.strip()
        if not new_name:
            raise StorageError("模板名称不能为空")

        template = self.get_template(template_id).model_copy(update={"name": new_name})
        self._save_to_file(template)
        logger.info(f"模板已重命名: {template_id} -> {new_name}")
        return template

    def delete_template(self, template_id: str) -> bool:
        """删除模板.

        Args:
            template_id: 模板 ID

        Returns:
            是否删除成功
        """
        path = self._get_template_path(template_id)
        if path is None or not path.exists():
            return False

        try:
            path.unlink()
        except OSError as e:
            logger.error(f"删除模板失败: {e}")
            return False

        logger.info(f"模板已删除: {template_id}")
        return True

    def export_template(self, template_id: str, export_path: Union[str, Path]) -> Path:
        """导出模板到指定路径.

        Args:
            template_id: 模板 ID
            export_path: 导出文件路径

        Returns:
            导出文件路径

        Raises:
            TemplateNotFoundError: 模板不存在
            StorageError: 写入失败
        """
        template = self.get_template(template_id)
        path = Path(export_path)
        try:
            path.write_text(template.to_json(), encoding="utf-8")
        except OSError as e:
            logger.error(f"导出模板失败: {e}")
            raise StorageError(f"导出模板失败: {e}") from e

        logger.info(f"模板已导出: {path}")
        return path

    def import_template(self, import_path: Union[str, Path]) -> Template:
        """从指定路径导入模板.

        文件必须包含 ``state.layers`` 数组。导入的模板使用新 ID 与当前
        时间，名称追加 ``(Imported)``。

        Args:
            import_path: 导入文件路径

        Returns:
            导入的模板

        Raises:
            DocumentValidationError: 文件无法读取或不是 JSON 对象
            InvalidLayersError: 缺少图层数组
            StorageQuotaExceededError: 超出存储配额
        """
        try:
            parsed = json.loads(Path(import_path).read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"导入模板失败: {import_path}, 错误: {e}")
            raise DocumentValidationError(f"导入失败：文件损坏或格式不正确: {e}") from e

        if not isinstance(parsed, dict):
            raise DocumentValidationError("导入失败：模板文件必须是 JSON 对象")

        state = parsed.get("state")
        layers = state.get("layers") if isinstance(state, dict) else None
        if not isinstance(layers, list):
            raise InvalidLayersError(type(layers).__name__)

        name = parsed.get("name")
        template = Template(
            id=generate_layer_id(),
            name=f"{name}{IMPORTED_SUFFIX}" if isinstance(name, str) and name else IMPORTED_DEFAULT_NAME,
            created_at=now_ms(),
            state=state,
        )
        self._save_to_file(template)
        logger.info(f"模板导入成功: {template.name}")
        return template

    def apply_template(self, store: LayerStore, template: Template) -> CanvasDocument:
        """把模板加载到图层存储.

        缺失的字段使用默认值，无效的图层被丢弃，选中状态清空。
        校验失败时图层存储保持不变。

        Args:
            store: 图层存储
            template: 模板

        Returns:
            加载后的文档

        Raises:
            DocumentValidationError: 状态无效（如 ``layers`` 不是数组）
        """
        try:
            document = CanvasDocument.from_saved_state(template.state)
        except DocumentValidationError as e:
            logger.error(f"加载模板失败: {template.name}, 错误: {e}")
            raise

        store.replace_document(document)
        logger.info(f"模板已加载: {template.name} ({document.layer_count} 个图层)")
        return document
