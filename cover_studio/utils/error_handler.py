"""错误处理工具模块.

提供统一的错误处理机制和用户友好的错误消息。
"""

from __future__ import annotations

from typing import Any, Callable, Optional, TypeVar

from cover_studio.utils.exceptions import (
    AppException,
    ConfigError,
    DocumentValidationError,
    ExportInProgressError,
    ImageSourceError,
    InvalidLayersError,
    RasterizationError,
    StorageError,
    StorageQuotaExceededError,
    TemplateNotFoundError,
)
from cover_studio.utils.logger import setup_logger

logger = setup_logger(__name__)

T = TypeVar("T")


# 错误消息映射（子类在前）
ERROR_MESSAGES = {
    InvalidLayersError: "无效的模板文件格式：缺少必要的图层数据。",
    DocumentValidationError: "加载模板数据时发生错误，请检查模板是否损坏。",
    ImageSourceError: "导出失败，请检查是否使用了跨域图片资源或稍后重试。",
    ExportInProgressError: "已有导出任务正在进行，请稍后再试。",
    RasterizationError: "导出失败，请稍后重试。",
    StorageQuotaExceededError: "保存失败：可能是图片素材过大导致存储空间不足。请尝试减少图片数量或压缩图片。",
    TemplateNotFoundError: "模板不存在或已被删除。",
    StorageError: "模板存储操作失败。",
    ConfigError: "配置错误，请检查配置文件。",
}


def get_user_friendly_message(exception: Exception) -> str:
    """获取用户友好的错误消息.

    Args:
        exception: 异常对象

    Returns:
        用户友好的错误消息
    """
    for exc_type, message in ERROR_MESSAGES.items():
        if isinstance(exception, exc_type):
            return message

    if isinstance(exception, AppException):
        return exception.message

    return "操作失败，请稍后重试"


def get_error_details(exception: Exception) -> dict[str, Any]:
    """获取错误详细信息.

    Args:
        exception: 异常对象

    Returns:
        包含错误详情的字典
    """
    details = {
        "type": type(exception).__name__,
        "message": str(exception),
        "user_message": get_user_friendly_message(exception),
    }

    if isinstance(exception, AppException):
        details["code"] = exception.code

    return details


def handle_exception(
    exception: Exception,
    context: str = "",
    reraise: bool = True,
) -> str:
    """统一异常处理.

    应用内的预期错误（``AppException``）只记录错误码与消息；
    其他异常视为程序缺陷，记录完整堆栈。

    Args:
        exception: 异常对象
        context: 操作描述，例如 "导出失败"
        reraise: 是否重新抛出异常

    Returns:
        给用户看的错误消息（``reraise`` 为 False 时）
    """
    prefix = f"{context}: " if context else ""

    if isinstance(exception, AppException):
        logger.warning(f"{prefix}[{exception.code}] {exception.message}")
    else:
        logger.exception(f"{prefix}未预期的异常: {exception!r}")

    if reraise:
        raise exception
    return get_user_friendly_message(exception)


def safe_execute(
    func: Callable[..., T],
    *args: Any,
    default: Optional[T] = None,
    on_error: Optional[Callable[[Exception], None]] = None,
    **kwargs: Any,
) -> Optional[T]:
    """执行函数，失败时返回默认值.

    用于刷新列表这类失败后界面仍应保持可用的操作。

    Args:
        func: 要执行的函数
        *args: 位置参数
        default: 失败时的返回值
        on_error: 失败回调
        **kwargs: 关键字参数

    Returns:
        函数返回值或默认值
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        name = getattr(func, "__qualname__", repr(func))
        handle_exception(e, name, reraise=False)
        if on_error:
            on_error(e)
        return default
