"""应用常量定义."""

from pathlib import Path

# ===================
# 应用信息
# ===================
APP_NAME = "封面工作室"
APP_VERSION = "0.1.0"

# ===================
# 路径常量
# ===================
# 应用数据目录
APP_DATA_DIR = Path.home() / ".cover-studio"

# 日志目录
LOG_DIR = APP_DATA_DIR / "logs"

# 模板目录
TEMPLATES_DIR = APP_DATA_DIR / "templates"

# 导出目录
EXPORT_DIR = APP_DATA_DIR / "exports"

# ===================
# 画布设置
# ===================
DEFAULT_CANVAS_WIDTH = 1080
DEFAULT_CANVAS_HEIGHT = 1920
DEFAULT_ASPECT_RATIO_LABEL = "9:16"
DEFAULT_BACKGROUND_COLOR = "#ffffff"

# 透明背景标记
TRANSPARENT = "transparent"

# 分辨率预设: (名称, 宽, 高, 比例标签)
RESOLUTION_PRESETS: list[tuple[str, int, int, str]] = [
    ("抖音/Shorts", 1080, 1920, "9:16"),
    ("小红书", 1242, 1660, "3:4"),
    ("Instagram 竖版", 1080, 1350, "4:5"),
    ("Instagram 方图", 1080, 1080, "1:1"),
    ("横屏高清", 1920, 1080, "16:9"),
    ("经典横屏", 1440, 1080, "4:3"),
]

# 背景预设颜色
PRESET_COLORS = [
    "#ffffff",
    "#000000",
    "#f97316",
    "#3b82f6",
    "#10b981",
    "#ef4444",
    "#8b5cf6",
    "#f59e0b",
    "#64748b",
]

# ===================
# 图层几何
# ===================
# 图层宽高的最小百分比
MIN_BOX_PERCENT = 1.0

# ===================
# 交互设置
# ===================
# 吸附阈值（屏幕像素）
SNAP_THRESHOLD_PX = 5.0

# 视口内边距（容器两侧合计，像素）
VIEWPORT_PADDING = 64

# 视口边距系数
VIEWPORT_MARGIN_FACTOR = 0.95

# ===================
# 导出设置
# ===================
# 过采样倍数
EXPORT_OVERSAMPLE = 2

# 导出文件名格式
EXPORT_FILENAME_TEMPLATE = "cover-{width}x{height}-{timestamp}.png"

# ===================
# 模板存储
# ===================
# 模板文件扩展名
TEMPLATE_EXTENSION = ".template.json"

# 模板存储配额 (5MB，与浏览器本地存储一致)
MAX_TEMPLATE_STORAGE_BYTES = 5 * 1024 * 1024

# ===================
# 图片来源
# ===================
SUPPORTED_IMAGE_FORMATS = {".jpg", ".jpeg", ".png", ".webp", ".bmp", ".gif"}

# 远程图片请求超时（秒）
REMOTE_IMAGE_TIMEOUT = 10

# 远程图片最大大小 (20MB)
MAX_REMOTE_IMAGE_SIZE = 20 * 1024 * 1024

# 解码图片缓存条目上限
IMAGE_CACHE_SIZE = 16

# ===================
# 预览设置
# ===================
# 预览渲染缩放范围
PREVIEW_MIN_SCALE = 0.05
PREVIEW_MAX_SCALE = 2.0

# ===================
# 文字样式
# ===================
# 字体下拉候选（可手动输入其他字体）
FONT_FAMILIES = ["Inter", "Bebas Neue", "Montserrat", "Noto Sans SC", "serif"]

# ===================
# UI 设置
# ===================
WINDOW_MIN_WIDTH = 1024
WINDOW_MIN_HEIGHT = 768
