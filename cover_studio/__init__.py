"""封面工作室 - 分层封面图编辑与导出工具."""

__version__ = "0.1.0"
