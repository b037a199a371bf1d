"""Pytest 配置和共享 fixtures."""

from __future__ import annotations

import base64
import io
import os
from pathlib import Path

import pytest
from PIL import Image

# 无界面环境下运行 Qt 测试
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from cover_studio.core.layer_store import LayerStore
from cover_studio.models.canvas_document import CanvasDocument


@pytest.fixture
def store() -> LayerStore:
    """返回空白画布的图层存储."""
    return LayerStore()


@pytest.fixture
def small_document() -> CanvasDocument:
    """返回小尺寸画布，便于光栅化测试."""
    return CanvasDocument(width=100, height=200, background_color="#ffffff")


@pytest.fixture
def sample_png_bytes() -> bytes:
    """返回 40x20 纯红 PNG 数据."""
    buffer = io.BytesIO()
    Image.new("RGBA", (40, 20), (255, 0, 0, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def sample_png_path(tmp_path: Path, sample_png_bytes: bytes) -> Path:
    """返回测试用 PNG 文件路径."""
    path = tmp_path / "red.png"
    path.write_bytes(sample_png_bytes)
    return path


@pytest.fixture
def sample_data_uri(sample_png_bytes: bytes) -> str:
    """返回测试用 PNG data URI."""
    return "data:image/png;base64," + base64.b64encode(sample_png_bytes).decode("ascii")
