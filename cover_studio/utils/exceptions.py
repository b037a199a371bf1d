"""自定义异常类."""

from __future__ import annotations


class AppException(Exception):
    """应用基础异常类.

    所有自定义异常都应继承此类。

    Attributes:
        message: 错误消息
        code: 错误代码
    """

    def __init__(self, message: str, code: str = "UNKNOWN") -> None:
        """初始化异常.

        Args:
            message: 错误消息
            code: 错误代码
        """
        self.message = message
        self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        """返回异常字符串表示."""
        return f"[{self.code}] {self.message}"


# ===================
# 配置相关异常
# ===================
class ConfigError(AppException):
    """配置错误异常."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "CONFIG_ERROR")


# ===================
# 文档校验相关异常
# ===================
class DocumentValidationError(AppException):
    """画布文档校验错误异常."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "VALIDATION_ERROR")


class InvalidLayersError(DocumentValidationError):
    """图层数据结构无效异常."""

    def __init__(self, actual_type: str) -> None:
        self.actual_type = actual_type
        super().__init__(f"图层数据必须是数组，实际类型: {actual_type}")


# ===================
# 栅格化相关异常
# ===================
class RasterizationError(AppException):
    """栅格化错误异常."""

    def __init__(self, message: str, code: str = "RASTER_ERROR") -> None:
        super().__init__(message, code)


class ImageSourceError(RasterizationError):
    """图片来源无法读取异常（跨域、文件缺失或数据损坏）."""

    def __init__(self, src: str, reason: str = "") -> None:
        self.src = src
        # 避免把整段 data URI 写进消息
        shown = src if len(src) <= 80 else f"{src[:77]}..."
        msg = f"无法读取图片来源: {shown}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg, "IMAGE_SOURCE_ERROR")


class ExportInProgressError(RasterizationError):
    """已有导出任务进行中异常."""

    def __init__(self) -> None:
        super().__init__("已有导出任务正在进行，请稍后再试", "EXPORT_IN_PROGRESS")


# ===================
# 存储相关异常
# ===================
class StorageError(AppException):
    """模板存储错误异常."""

    def __init__(self, message: str, code: str = "STORAGE_ERROR") -> None:
        super().__init__(message, code)


class StorageQuotaExceededError(StorageError):
    """模板存储空间不足异常."""

    def __init__(self, required: int, quota: int) -> None:
        self.required = required
        self.quota = quota
        required_mb = required / (1024 * 1024)
        quota_mb = quota / (1024 * 1024)
        super().__init__(
            f"模板存储空间不足 (需要 {required_mb:.1f}MB，上限 {quota_mb:.1f}MB)",
            "STORAGE_QUOTA_EXCEEDED",
        )


class TemplateNotFoundError(StorageError):
    """模板未找到异常."""

    def __init__(self, template_id: str) -> None:
        self.template_id = template_id
        super().__init__(f"模板未找到: {template_id}", "TEMPLATE_NOT_FOUND")
