"""Shared fixtures: isolated settings, a running app and image factories."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Callable, Iterator, Tuple

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from main import create_app
from utils.settings import Settings


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        log_level="WARNING",
        database_dir=tmp_path / "database",
        upload_dir=tmp_path / "uploads",
    )


@pytest.fixture
def client(settings: Settings) -> Iterator[TestClient]:
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    """Return a factory producing encoded image bytes of a given size."""

    def _make(size: Tuple[int, int], fmt: str = "JPEG", mode: str = "RGB") -> bytes:
        color = (30, 120, 200, 128) if mode == "RGBA" else (30, 120, 200)
        buffer = io.BytesIO()
        Image.new(mode, size, color).save(buffer, format=fmt)
        return buffer.getvalue()

    return _make
