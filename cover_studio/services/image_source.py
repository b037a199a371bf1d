"""图片来源加载服务.

把图片图层与画布底图的 ``src`` 解析为 PIL 图片。

Features:
    - 本地文件路径（支持相对于基础目录的路径）
    - ``data:`` URI（base64）
    - http(s) 地址（需在设置中开启 ``allow_remote_images``）
    - 最近使用的解码结果缓存（LRU，本地文件按修改时间失效）
"""

from __future__ import annotations

import binascii
import hashlib
from collections import OrderedDict
from pathlib import Path
from typing import Optional

import httpx
from PIL import Image, UnidentifiedImageError

from cover_studio.utils.constants import (
    IMAGE_CACHE_SIZE,
    MAX_REMOTE_IMAGE_SIZE,
    REMOTE_IMAGE_TIMEOUT,
)
from cover_studio.utils.exceptions import ImageSourceError
from cover_studio.utils.image_utils import bytes_to_image, data_uri_to_image, ensure_rgba
from cover_studio.utils.logger import setup_logger

logger = setup_logger(__name__)

REMOTE_SCHEMES = ("http://", "https://")


def is_remote_source(src: str) -> bool:
    """是否为远程地址."""
    return src.strip().lower().startswith(REMOTE_SCHEMES)


def is_data_uri(src: str) -> bool:
    """是否为 data URI."""
    return src.strip().lower().startswith("data:")


class ImageSourceLoader:
    """图片来源加载器.

    远程图片默认禁止加载，行为与浏览器中跨域图片污染画布时导出失败一致。

    Attributes:
        allow_remote: 是否允许加载远程图片
        timeout: 远程请求超时（秒）
        base_dir: 相对路径的基础目录

    Example:
        >>> loader = ImageSourceLoader()
        >>> image = loader.load("/path/to/photo.png")
    """

    def __init__(
        self,
        allow_remote: bool = False,
        timeout: float = REMOTE_IMAGE_TIMEOUT,
        base_dir: Optional[Path] = None,
        http_client: Optional[httpx.Client] = None,
        cache_size: int = IMAGE_CACHE_SIZE,
    ) -> None:
        """初始化加载器.

        Args:
            allow_remote: 是否允许加载远程图片
            timeout: 远程请求超时（秒）
            base_dir: 相对路径的基础目录
            http_client: 自定义 HTTP 客户端（测试时注入 MockTransport）
            cache_size: 缓存的解码图片数量上限，0 表示不缓存
        """
        self.allow_remote = allow_remote
        self.timeout = timeout
        self.base_dir = base_dir
        self.cache_size = max(0, cache_size)
        self._http_client = http_client
        self._cache: OrderedDict[str, Image.Image] = OrderedDict()

    @property
    def cache_count(self) -> int:
        """当前缓存的图片数量."""
        return len(self._cache)

    def load(self, src: str) -> Image.Image:
        """加载图片.

        Args:
            src: 图片来源

        Returns:
            RGBA 图片（缓存对象的副本）

        Raises:
            ImageSourceError: 来源为空、被禁止、不存在或无法解码
        """
        if not src or not src.strip():
            raise ImageSourceError(src, "图片来源为空")

        key = self._cache_key(src)
        cached = self._cache.get(key) if key else None
        if cached is not None:
            self._cache.move_to_end(key)
            return cached.copy()

        if is_data_uri(src):
            image = self._load_data_uri(src)
        elif is_remote_source(src):
            image = self._load_remote(src)
        else:
            image = self._load_file(src)

        image = ensure_rgba(image)
        if key:
            self._remember(key, image)
        return image.copy()

    def clear_cache(self) -> None:
        """清空图片缓存."""
        self._cache.clear()

    def _cache_key(self, src: str) -> Optional[str]:
        """计算缓存键.

        data URI 使用内容摘要；本地文件附带修改时间与大小，文件被改写后重新解码；
        文件不存在时返回 None（不缓存）。
        """
        if is_data_uri(src):
            return "data:" + hashlib.sha1(src.encode("utf-8")).hexdigest()
        if is_remote_source(src):
            return src
        path = self._resolve_path(src)
        try:
            stat = path.stat()
        except OSError:
            return None
        return f"file:{path.resolve()}:{stat.st_mtime_ns}:{stat.st_size}"

    def _remember(self, key: str, image: Image.Image) -> None:
        if self.cache_size == 0:
            return
        self._cache[key] = image
        self._cache.move_to_end(key)
        while len(self._cache) > self.cache_size:
            evicted, _ = self._cache.popitem(last=False)
            logger.debug(f"图片缓存已满，移除: {evicted[:60]}")

    def _load_data_uri(self, src: str) -> Image.Image:
        try:
            return data_uri_to_image(src)
        except (binascii.Error, ValueError) as e:
            raise ImageSourceError(src, f"base64 数据无效: {e}") from e
        except (UnidentifiedImageError, OSError) as e:
            raise ImageSourceError(src, f"无法解码图片: {e}") from e

    def _resolve_path(self, src: str) -> Path:
        path = Path(src).expanduser()
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        return path

    def _load_file(self, src: str) -> Image.Image:
        path = self._resolve_path(src)
        if not path.is_file():
            raise ImageSourceError(src, "文件不存在")

        try:
            return bytes_to_image(path.read_bytes())
        except (UnidentifiedImageError, OSError) as e:
            raise ImageSourceError(src, f"无法解码图片: {e}") from e

    def _load_remote(self, src: str) -> Image.Image:
        """下载远程图片.

        Raises:
            ImageSourceError: 未开启远程图片、请求失败或图片过大
        """
        if not self.allow_remote:
            logger.warning(f"远程图片已被禁止: {src[:80]}")
            raise ImageSourceError(src, "远程图片未被允许（跨域资源）")

        client = self._http_client or httpx.Client(timeout=self.timeout, follow_redirects=True)
        try:
            response = client.get(src)
            if response.status_code != 200:
                raise ImageSourceError(src, f"HTTP {response.status_code}")

            content = response.content
            if len(content) > MAX_REMOTE_IMAGE_SIZE:
                raise ImageSourceError(src, f"图片过大: {len(content)} bytes")

            logger.debug(f"远程图片下载完成: {src[:80]} ({len(content)} bytes)")
            return bytes_to_image(content)

        except httpx.TimeoutException as e:
            logger.error(f"远程图片请求超时: {self.timeout}s")
            raise ImageSourceError(src, "请求超时") from e

        except httpx.HTTPError as e:
            logger.error(f"远程图片请求失败: {e}")
            raise ImageSourceError(src, f"请求失败: {e}") from e

        except (UnidentifiedImageError, OSError) as e:
            raise ImageSourceError(src, f"无法解码图片: {e}") from e

        finally:
            if self._http_client is None:
                client.close()
