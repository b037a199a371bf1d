"""画布文档与图层数据模型.

提供封面编辑的数据模型，支持多图层（文字、形状、图片）管理。

Features:
    - 图层基类与三种图层变体（文字、形状、图片），按 ``type`` 字段区分
    - 百分比几何：位置与尺寸均为画布尺寸的百分比，以中心点为锚点
    - 画布文档（背景、分辨率、图层栈、选中项）
    - 模板快照与容错加载
    - JSON 序列化（camelCase 字段名，兼容已保存的画布状态）
"""

from __future__ import annotations

import copy
import json
import math
from collections.abc import Mapping
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from cover_studio.core.geometry import Box
from cover_studio.utils.constants import (
    DEFAULT_ASPECT_RATIO_LABEL,
    DEFAULT_BACKGROUND_COLOR,
    DEFAULT_CANVAS_HEIGHT,
    DEFAULT_CANVAS_WIDTH,
    MIN_BOX_PERCENT,
    TRANSPARENT,
)
from cover_studio.utils.exceptions import DocumentValidationError, InvalidLayersError
from cover_studio.utils.helpers import generate_short_id, now_ms
from cover_studio.utils.logger import setup_logger

logger = setup_logger(__name__)


# ===================
# 枚举定义
# ===================


class LayerType(str, Enum):
    """图层类型枚举."""

    TEXT = "text"
    SHAPE = "shape"
    IMAGE = "image"


class ShapeType(str, Enum):
    """形状类型."""

    RECTANGLE = "rectangle"
    CIRCLE = "circle"


class TextAlign(str, Enum):
    """文字对齐方式."""

    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class ImageFitMode(str, Enum):
    """图片适应模式."""

    COVER = "cover"  # 保持比例，填满区域
    CONTAIN = "contain"  # 保持比例，完整显示
    FILL = "fill"  # 拉伸填满


# 图层类型默认名称
LAYER_TYPE_NAMES: dict[LayerType, str] = {
    LayerType.TEXT: "文本图层",
    LayerType.SHAPE: "形状图层",
    LayerType.IMAGE: "图片图层",
}


# ===================
# 辅助函数
# ===================


def generate_layer_id() -> str:
    """生成唯一的图层ID.

    Returns:
        9位小写字母数字字符串
    """
    return generate_short_id(9)


# ===================
# 基础模型
# ===================


class CoverModel(BaseModel):
    """模型基类，JSON 字段使用 camelCase，Python 侧使用 snake_case."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,  # 保留枚举对象
    )


# ===================
# 图层基类
# ===================


class LayerElement(CoverModel):
    """图层元素基类.

    所有图层类型共享的属性。位置 ``(x, y)`` 是图层框中心点，
    ``width``/``height`` 是框的尺寸，四者均为画布宽/高的百分比。
    位置不做范围限制（允许出血构图），宽高下限为 ``MIN_BOX_PERCENT``。

    Attributes:
        id: 图层唯一标识符，创建后不变
        name: 图层名称
        type: 图层类型，创建后不变
        x: 中心点 X（百分比）
        y: 中心点 Y（百分比）
        width: 宽度（百分比）
        height: 高度（百分比）
        rotation: 旋转角度（度，顺时针）
        opacity: 不透明度（0-100）
        visible: 是否可见
        z_index: 层级索引，仅供参考，实际绘制顺序由数组位置决定
    """

    id: str = Field(default_factory=generate_layer_id, min_length=1, description="图层唯一ID")
    name: str = Field(default="图层", max_length=100, description="图层名称")
    type: str = Field(description="图层类型")

    # 位置和尺寸（百分比）
    x: float = Field(default=50.0, description="中心点X百分比")
    y: float = Field(default=50.0, description="中心点Y百分比")
    width: float = Field(default=50.0, description="宽度百分比")
    height: float = Field(default=50.0, description="高度百分比")

    # 变换属性
    rotation: float = Field(default=0.0, ge=0, le=360, description="旋转角度")
    opacity: float = Field(default=100.0, ge=0, le=100, description="不透明度")

    visible: bool = Field(default=True, description="是否可见")
    z_index: int = Field(default=0, description="层级索引")

    @field_validator("x", "y")
    @classmethod
    def validate_position(cls, v: float) -> float:
        """位置必须是有限数值."""
        if not math.isfinite(v):
            raise ValueError(f"位置必须是有限数值，实际: {v}")
        return v

    @field_validator("width", "height")
    @classmethod
    def floor_extent(cls, v: float) -> float:
        """宽高不小于最小百分比."""
        if not math.isfinite(v):
            raise ValueError(f"尺寸必须是有限数值，实际: {v}")
        return max(MIN_BOX_PERCENT, v)

    @property
    def box(self) -> Box:
        """获取图层框（百分比）."""
        return Box(x=self.x, y=self.y, width=self.width, height=self.height)

    @property
    def layer_type(self) -> LayerType:
        """获取图层类型枚举."""
        return LayerType(self.type)


# ===================
# 文字图层
# ===================


class TextLayer(LayerElement):
    """文字图层.

    字号为绝对像素值，不随图层框缩放。

    Example:
        >>> layer = TextLayer(text="爆款标题", font_size=96)
        >>> layer.type
        'text'
    """

    type: Literal["text"] = "text"
    name: str = Field(default=LAYER_TYPE_NAMES[LayerType.TEXT], max_length=100)
    width: float = 80.0
    height: float = 15.0

    text: str = Field(default="双击编辑文本", max_length=2000, description="文字内容")
    font_size: float = Field(default=120, gt=0, le=1000, description="字号（像素）")
    color: str = Field(default="#ffffff", description="文字颜色")
    font_family: str = Field(default="Noto Sans SC", description="字体名称")
    font_weight: str = Field(default="900", description="字重")
    text_align: TextAlign = Field(default=TextAlign.CENTER, description="对齐方式")
    letter_spacing: float = Field(default=0, description="字间距（像素）")
    line_height: float = Field(default=1.2, gt=0, le=5, description="行高倍数")

    # 文字阴影
    text_shadow_enabled: bool = Field(default=True, description="启用文字阴影")
    text_shadow_blur: float = Field(default=10, ge=0, description="阴影模糊半径")
    text_shadow_color: str = Field(default="rgba(0,0,0,0.5)", description="阴影颜色")

    # 背景
    background_color: str = Field(default=TRANSPARENT, description="背景颜色")
    padding: float = Field(default=0, ge=0, description="背景内边距（像素）")
    border_radius: float = Field(default=0, ge=0, description="背景圆角（像素）")

    @property
    def is_bold(self) -> bool:
        """字重是否达到粗体."""
        weight = self.font_weight.strip().lower()
        if weight in ("bold", "bolder"):
            return True
        return weight.isdigit() and int(weight) >= 600


# ===================
# 形状图层
# ===================


class ShapeLayer(LayerElement):
    """形状图层（矩形或圆形）.

    圆形在非正方形框中绘制为椭圆。
    """

    type: Literal["shape"] = "shape"
    name: str = Field(default=LAYER_TYPE_NAMES[LayerType.SHAPE], max_length=100)
    width: float = 60.0
    height: float = 30.0

    shape_type: ShapeType = Field(default=ShapeType.RECTANGLE, description="形状类型")
    background_color: str = Field(default="#f97316", description="填充颜色")
    border_color: str = Field(default="#ffffff", description="边框颜色")
    border_width: float = Field(default=0, ge=0, description="边框宽度（像素）")
    border_radius: float = Field(default=40, ge=0, description="圆角半径（像素）")

    box_shadow_enabled: bool = Field(default=True, description="启用投影")
    box_shadow_blur: float = Field(default=40, ge=0, description="投影模糊半径")
    box_shadow_color: str = Field(default="rgba(0,0,0,0.3)", description="投影颜色")

    @property
    def is_circle(self) -> bool:
        """是否为圆形."""
        return self.shape_type == ShapeType.CIRCLE


# ===================
# 图片图层
# ===================


class ImageLayer(LayerElement):
    """图片图层.

    ``src`` 可以是本地路径、``data:`` URI 或 http(s) 地址。
    """

    type: Literal["image"] = "image"
    name: str = Field(default=LAYER_TYPE_NAMES[LayerType.IMAGE], max_length=100)

    src: str = Field(default="", description="图片来源")
    object_fit: ImageFitMode = Field(default=ImageFitMode.CONTAIN, description="适应模式")

    @property
    def has_image(self) -> bool:
        """是否已设置图片."""
        return bool(self.src)


# ===================
# 图层联合类型
# ===================

AnyLayer = Union[TextLayer, ShapeLayer, ImageLayer]

# 按 type 字段区分的图层联合类型
Layer = Annotated[AnyLayer, Field(discriminator="type")]

LAYER_CLASSES: dict[LayerType, type[LayerElement]] = {
    LayerType.TEXT: TextLayer,
    LayerType.SHAPE: ShapeLayer,
    LayerType.IMAGE: ImageLayer,
}

_layer_adapter: TypeAdapter[AnyLayer] = TypeAdapter(Layer)


def parse_layer(data: Any) -> Optional[AnyLayer]:
    """反序列化图层数据.

    Args:
        data: 图层字典数据

    Returns:
        图层对象，失败返回 None
    """
    try:
        return _layer_adapter.validate_python(data)
    except ValidationError as e:
        layer_id = data.get("id") if isinstance(data, Mapping) else None
        logger.warning(f"图层数据无效，已跳过: id={layer_id}, 错误: {e.error_count()} 项")
        return None


def create_layer(kind: LayerType | str, overrides: Optional[Mapping[str, Any]] = None) -> AnyLayer:
    """按类型默认值创建图层.

    Args:
        kind: 图层类型
        overrides: 覆盖默认值的字段（``id`` 与 ``type`` 会被忽略）

    Returns:
        新图层，ID 为新生成的唯一值
    """
    layer_type = LayerType(kind)
    layer_cls = LAYER_CLASSES[layer_type]

    data = {k: v for k, v in (overrides or {}).items() if k not in ("id", "type")}
    try:
        return layer_cls.model_validate(data)  # type: ignore[return-value]
    except ValidationError as e:
        logger.warning(f"图层覆盖值无效，使用默认值创建: {e.error_count()} 项错误")
        return layer_cls()  # type: ignore[return-value]


# ===================
# 画布文档
# ===================


def _coerce_positive_int(value: Any, default: int) -> int:
    """把数值或数字字符串转换为正整数，无效时返回默认值."""
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number) or number < 1:
        return default
    return int(number)


def _non_empty_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


class CanvasDocument(CoverModel):
    """画布文档.

    管理画布底板设置、逻辑分辨率与图层栈。``width``/``height`` 是逻辑像素
    分辨率，所有百分比与像素之间的换算都以它为准。

    Attributes:
        background_color: 背景颜色，或 ``"transparent"``
        background_image: 背景图片来源
        width: 逻辑宽度（像素）
        height: 逻辑高度（像素）
        aspect_ratio_label: 比例标签，仅用于显示
        layers: 图层栈，数组末尾在最上层
        selected_id: 当前选中的图层 ID

    Example:
        >>> doc = CanvasDocument()
        >>> doc.canvas_size
        (1080, 1920)
    """

    background_color: str = Field(
        default=DEFAULT_BACKGROUND_COLOR,
        alias="canvasBackgroundColor",
        description="画布背景色",
    )
    background_image: Optional[str] = Field(
        default=None,
        alias="canvasBackgroundImage",
        description="画布底图",
    )
    width: int = Field(default=DEFAULT_CANVAS_WIDTH, gt=0, description="逻辑宽度")
    height: int = Field(default=DEFAULT_CANVAS_HEIGHT, gt=0, description="逻辑高度")
    aspect_ratio_label: str = Field(default=DEFAULT_ASPECT_RATIO_LABEL, description="比例标签")

    layers: list[Layer] = Field(default_factory=list, description="图层栈")
    selected_id: Optional[str] = Field(default=None, description="选中的图层ID")

    @property
    def canvas_size(self) -> tuple[int, int]:
        """获取画布尺寸."""
        return (self.width, self.height)

    @property
    def layer_count(self) -> int:
        """获取图层数量."""
        return len(self.layers)

    @property
    def is_transparent(self) -> bool:
        """背景是否透明."""
        return self.background_color.strip().lower() == TRANSPARENT

    @property
    def selected_layer(self) -> Optional[AnyLayer]:
        """获取选中的图层."""
        if self.selected_id is None:
            return None
        return self.get_layer(self.selected_id)

    def index_of(self, layer_id: str) -> int:
        """获取图层在数组中的位置.

        Args:
            layer_id: 图层ID

        Returns:
            数组下标，不存在返回 -1
        """
        for i, layer in enumerate(self.layers):
            if layer.id == layer_id:
                return i
        return -1

    def get_layer(self, layer_id: str) -> Optional[AnyLayer]:
        """根据ID获取图层.

        Args:
            layer_id: 图层ID

        Returns:
            图层对象，不存在返回 None
        """
        index = self.index_of(layer_id)
        return self.layers[index] if index >= 0 else None

    def deep_copy(self) -> "CanvasDocument":
        """深拷贝文档."""
        return self.model_copy(deep=True)

    def to_saved_state(self, clear_selection: bool = True) -> dict[str, Any]:
        """导出为可持久化的状态字典.

        Args:
            clear_selection: 是否清除选中项

        Returns:
            camelCase 字段的 JSON 兼容字典
        """
        state = self.model_dump(mode="json", by_alias=True)
        if clear_selection:
            state["selectedId"] = None
        return state

    def to_json(self, indent: int = 2) -> str:
        """序列化为JSON字符串."""
        return json.dumps(self.to_saved_state(clear_selection=False), ensure_ascii=False, indent=indent)

    @classmethod
    def from_saved_state(cls, data: Any) -> "CanvasDocument":
        """容错加载已保存的画布状态.

        缺失或无效的背景、分辨率、比例标签字段使用默认值替换；无法通过
        校验的单个图层被丢弃；``layers`` 不是数组时整体拒绝。加载后选中项
        总是清空。

        Args:
            data: 状态字典（camelCase 或 snake_case 字段均可）

        Returns:
            新的画布文档

        Raises:
            DocumentValidationError: 状态不是对象
            InvalidLayersError: ``layers`` 不是数组
        """
        if not isinstance(data, Mapping):
            raise DocumentValidationError(f"画布状态必须是对象，实际类型: {type(data).__name__}")

        def pick(*keys: str) -> Any:
            for key in keys:
                if key in data:
                    return data[key]
            return None

        raw_layers = pick("layers")
        if not isinstance(raw_layers, list):
            raise InvalidLayersError(type(raw_layers).__name__)

        layers: list[AnyLayer] = []
        seen_ids: set[str] = set()
        for raw in copy.deepcopy(raw_layers):
            layer = parse_layer(raw)
            if layer is None:
                continue
            if layer.id in seen_ids:
                new_id = generate_layer_id()
                logger.warning(f"图层ID重复，重新生成: {layer.id} -> {new_id}")
                layer = layer.model_copy(update={"id": new_id})
            seen_ids.add(layer.id)
            layers.append(layer)

        return cls(
            background_color=_non_empty_str(pick("canvasBackgroundColor", "background_color"))
            or DEFAULT_BACKGROUND_COLOR,
            background_image=_non_empty_str(pick("canvasBackgroundImage", "background_image")),
            width=_coerce_positive_int(pick("width"), DEFAULT_CANVAS_WIDTH),
            height=_coerce_positive_int(pick("height"), DEFAULT_CANVAS_HEIGHT),
            aspect_ratio_label=_non_empty_str(pick("aspectRatioLabel", "aspect_ratio_label"))
            or DEFAULT_ASPECT_RATIO_LABEL,
            layers=layers,
            selected_id=None,
        )


# ===================
# 模板
# ===================


class Template(CoverModel):
    """模板快照.

    保存某一时刻的画布状态（选中项已清除），由模板管理器持久化。
    ``state`` 保留原始字典，加载时经过 ``CanvasDocument.from_saved_state``。

    Attributes:
        id: 模板ID
        name: 模板名称
        created_at: 创建时间（Unix 毫秒）
        state: 画布状态字典
    """

    id: str = Field(default_factory=generate_layer_id, description="模板ID")
    name: str = Field(default="未命名模板", max_length=200, description="模板名称")
    created_at: int = Field(default_factory=now_ms, description="创建时间")
    state: dict[str, Any] = Field(default_factory=dict, description="画布状态")

    @property
    def layer_count(self) -> int:
        """模板中的图层数量."""
        layers = self.state.get("layers")
        return len(layers) if isinstance(layers, list) else 0

    @classmethod
    def from_document(cls, document: CanvasDocument, name: str) -> "Template":
        """从画布文档创建模板（深拷贝并清除选中项）.

        Args:
            document: 画布文档
            name: 模板名称

        Returns:
            Template 实例
        """
        return cls(name=name, state=document.to_saved_state(clear_selection=True))

    def to_json(self, indent: int = 2) -> str:
        """序列化为JSON字符串."""
        return json.dumps(self.model_dump(mode="json", by_alias=True), ensure_ascii=False, indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> "Template":
        """从JSON字符串反序列化.

        Raises:
            json.JSONDecodeError: JSON 格式错误
            pydantic.ValidationError: 字段无效
        """
        return cls.model_validate(json.loads(json_str))
