"""封面导出服务.

两阶段导出：先清除选中状态并等待界面刷新，使选中框、控制柄与参考线
不会出现在结果中；再对文档快照进行光栅化并编码为 PNG。

Features:
    - 单任务保护，导出进行中再次调用直接拒绝
    - 可注入的刷新屏障（Qt 窗口传入处理挂起事件的回调）
    - 光栅化在线程池中执行，不阻塞事件循环
    - 按 ``cover-{宽}x{高}-{毫秒时间戳}.png`` 命名
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional

from PIL import Image

from cover_studio.core.layer_store import LayerStore
from cover_studio.services.rasterizer import CoverRasterizer
from cover_studio.utils.constants import EXPORT_FILENAME_TEMPLATE
from cover_studio.utils.exceptions import ExportInProgressError, RasterizationError
from cover_studio.utils.helpers import now_ms
from cover_studio.utils.image_utils import image_to_bytes
from cover_studio.utils.logger import setup_logger

logger = setup_logger(__name__)

SettleBarrier = Callable[[], Awaitable[None]]


async def next_event_loop_turn() -> None:
    """默认刷新屏障：让出一次事件循环."""
    await asyncio.sleep(0)


def build_export_filename(width: int, height: int, timestamp_ms: Optional[int] = None) -> str:
    """生成导出文件名.

    Args:
        width: 逻辑宽度
        height: 逻辑高度
        timestamp_ms: 毫秒时间戳，默认为当前时间

    Returns:
        文件名
    """
    if timestamp_ms is None:
        timestamp_ms = now_ms()
    return EXPORT_FILENAME_TEMPLATE.format(width=width, height=height, timestamp=timestamp_ms)


@dataclass
class ExportResult:
    """导出结果.

    Attributes:
        image: 光栅化结果
        png_bytes: PNG 编码数据
        filename: 建议文件名
        path: 已写入的文件路径，未配置导出目录时为 None
    """

    image: Image.Image
    png_bytes: bytes
    filename: str
    path: Optional[Path] = None

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size


class CoverExporter:
    """封面导出器.

    Example:
        >>> exporter = CoverExporter(store, CoverRasterizer(), output_dir=Path("out"))
        >>> result = await exporter.export()
        >>> result.filename
        'cover-1080x1920-1700000000000.png'
    """

    def __init__(
        self,
        store: LayerStore,
        rasterizer: Optional[CoverRasterizer] = None,
        output_dir: Optional[Path] = None,
        settle: Optional[SettleBarrier] = None,
    ) -> None:
        """初始化导出器.

        Args:
            store: 图层存储
            rasterizer: 光栅化器
            output_dir: 导出目录，None 表示只返回数据不写文件
            settle: 刷新屏障，默认让出一次事件循环
        """
        self.store = store
        self.rasterizer = rasterizer or CoverRasterizer()
        self.output_dir = output_dir
        self.settle = settle or next_event_loop_turn
        self._busy = False

    @property
    def is_exporting(self) -> bool:
        """是否有导出任务进行中."""
        return self._busy

    async def export(self) -> ExportResult:
        """导出当前画布.

        Returns:
            导出结果

        Raises:
            ExportInProgressError: 已有导出任务进行中
            RasterizationError: 光栅化失败（不写出任何文件）
        """
        if self._busy:
            logger.warning("导出进行中，忽略重复请求")
            raise ExportInProgressError()

        self._busy = True
        try:
            # 阶段一：清除选中，等待界面刷新
            self.store.select(None)
            await self.settle()

            # 阶段二：对快照光栅化
            snapshot = self.store.snapshot()
            loop = asyncio.get_running_loop()
            image = await loop.run_in_executor(None, self.rasterizer.rasterize, snapshot)

            png_bytes = await loop.run_in_executor(None, image_to_bytes, image, "PNG")
            filename = build_export_filename(snapshot.width, snapshot.height)
            result = ExportResult(image=image, png_bytes=png_bytes, filename=filename)

            if self.output_dir is not None:
                result.path = self._write(filename, png_bytes)

            logger.info(f"导出完成: {filename} ({len(png_bytes)} bytes)")
            return result

        except RasterizationError as e:
            logger.error(f"导出失败: {e}")
            raise

        finally:
            self._busy = False

    def _write(self, filename: str, data: bytes) -> Path:
        """写出 PNG 文件.

        Raises:
            RasterizationError: 写入失败
        """
        path = self.output_dir / filename  # type: ignore[operator]
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise RasterizationError(f"写入导出文件失败: {e}", code="EXPORT_WRITE_ERROR") from e
        logger.debug(f"导出文件已写入: {path}")
        return path
