"""辅助函数模块.

提供各种通用辅助函数。
"""

from __future__ import annotations

import secrets
import string
import time
from datetime import datetime
from typing import Optional

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_short_id(length: int = 9) -> str:
    """生成短 ID（小写字母与数字）.

    Args:
        length: ID 长度

    Returns:
        短 ID 字符串
    """
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def now_ms() -> int:
    """获取当前 Unix 毫秒时间戳."""
    return int(time.time() * 1000)


def get_compact_timestamp(dt: Optional[datetime] = None) -> str:
    """获取紧凑时间字符串（YYYYMMDDHHmmss）.

    Args:
        dt: 日期时间对象，默认为当前时间

    Returns:
        格式化的时间字符串
    """
    if dt is None:
        dt = datetime.now()
    return dt.strftime("%Y%m%d%H%M%S")


def clamp(value: float, min_val: float, max_val: float) -> float:
    """限制值在指定范围内.

    Args:
        value: 原始值
        min_val: 最小值
        max_val: 最大值

    Returns:
        限制后的值
    """
    return max(min_val, min(max_val, value))
