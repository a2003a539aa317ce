"""Tests for the image normalizer service."""

from __future__ import annotations

import io
import random
import re
from pathlib import Path

import aiofiles
import pytest
from PIL import Image

from models.image_outcome import Artifact, Skipped
from services.image_normalizer import ImageNormalizer


def _artifacts(directory: Path) -> list:
    return sorted(directory.glob("*")) if directory.exists() else []


@pytest.mark.asyncio
async def test_large_image_fits_inside_bound(tmp_path: Path, make_image) -> None:
    normalizer = ImageNormalizer(tmp_path)

    outcome = await normalizer.normalize(make_image((4000, 3000)))

    assert isinstance(outcome, Artifact)
    assert outcome.reference == f"uploads/{outcome.filename}"
    with Image.open(outcome.path) as stored:
        assert stored.format == "WEBP"
        assert stored.size == (1024, 768)


@pytest.mark.asyncio
async def test_portrait_image_keeps_aspect_ratio(tmp_path: Path, make_image) -> None:
    normalizer = ImageNormalizer(tmp_path)

    outcome = await normalizer.normalize(make_image((600, 1800), fmt="PNG"))

    assert isinstance(outcome, Artifact)
    with Image.open(outcome.path) as stored:
        width, height = stored.size
    assert height == 1024
    assert abs(width / height - 600 / 1800) < 0.01


@pytest.mark.asyncio
async def test_small_image_is_not_upscaled(tmp_path: Path, make_image) -> None:
    normalizer = ImageNormalizer(tmp_path)

    outcome = await normalizer.normalize(make_image((200, 100)))

    assert isinstance(outcome, Artifact)
    with Image.open(outcome.path) as stored:
        assert stored.size == (200, 100)


@pytest.mark.asyncio
async def test_transparency_survives_encoding(tmp_path: Path, make_image) -> None:
    normalizer = ImageNormalizer(tmp_path)

    outcome = await normalizer.normalize(make_image((64, 64), fmt="PNG", mode="RGBA"))

    assert isinstance(outcome, Artifact)
    with Image.open(outcome.path) as stored:
        assert stored.mode == "RGBA"


@pytest.mark.asyncio
async def test_corrupt_bytes_are_skipped_without_writing(tmp_path: Path) -> None:
    normalizer = ImageNormalizer(tmp_path / "out")

    outcome = await normalizer.normalize(b"definitely not an image")

    assert isinstance(outcome, Skipped)
    assert outcome.reason.startswith("processing failed")
    assert _artifacts(tmp_path / "out") == []


@pytest.mark.asyncio
async def test_truncated_image_is_skipped(tmp_path: Path, make_image) -> None:
    normalizer = ImageNormalizer(tmp_path / "out")
    data = make_image((800, 600))

    outcome = await normalizer.normalize(data[: len(data) // 3])

    assert isinstance(outcome, Skipped)
    assert _artifacts(tmp_path / "out") == []


@pytest.mark.asyncio
async def test_empty_and_oversized_uploads_are_skipped(tmp_path: Path, make_image) -> None:
    normalizer = ImageNormalizer(tmp_path, max_upload_bytes=16)

    assert await normalizer.normalize(b"") == Skipped("empty upload")
    assert await normalizer.normalize(make_image((32, 32))) == Skipped("upload too large")
    assert _artifacts(tmp_path) == []


def test_generated_filename_combines_time_and_random_suffix(tmp_path: Path) -> None:
    normalizer = ImageNormalizer(tmp_path, clock=lambda: 1_700_000_000.123, rng=random.Random(3))

    name = normalizer.generate_filename()

    assert re.fullmatch(r"incident-1700000000123-\d{1,10}\.webp", name)


@pytest.mark.asyncio
async def test_forced_name_collision_skips_second_image(tmp_path: Path, make_image) -> None:
    # Same clock and same random sequence: both requests draw the same name.
    first = ImageNormalizer(tmp_path, clock=lambda: 1_700_000_000.0, rng=random.Random(42))
    second = ImageNormalizer(tmp_path, clock=lambda: 1_700_000_000.0, rng=random.Random(42))

    kept = await first.normalize(make_image((300, 200)))
    collided = await second.normalize(make_image((50, 50)))

    assert isinstance(kept, Artifact)
    assert collided == Skipped("artifact name collision")
    assert _artifacts(tmp_path) == [kept.path]
    with Image.open(kept.path) as stored:
        assert stored.size == (300, 200)


@pytest.mark.asyncio
async def test_discard_removes_artifact(tmp_path: Path, make_image) -> None:
    normalizer = ImageNormalizer(tmp_path)
    outcome = await normalizer.normalize(make_image((10, 10)))
    assert isinstance(outcome, Artifact)

    assert await normalizer.discard(outcome) is True
    assert not outcome.path.exists()
    assert await normalizer.discard(outcome) is False


@pytest.mark.asyncio
async def test_exif_orientation_is_applied(tmp_path: Path) -> None:
    exif = Image.Exif()
    exif[0x0112] = 6  # rotate 90 degrees clockwise on display
    buffer = io.BytesIO()
    Image.new("RGB", (400, 200), (10, 200, 10)).save(buffer, format="JPEG", exif=exif)
    normalizer = ImageNormalizer(tmp_path)

    outcome = await normalizer.normalize(buffer.getvalue())

    assert isinstance(outcome, Artifact)
    with Image.open(outcome.path) as stored:
        assert stored.size == (200, 400)


@pytest.mark.asyncio
async def test_write_failure_with_failing_cleanup_is_skipped(tmp_path: Path, make_image, monkeypatch) -> None:
    def disk_full(*args, **kwargs):
        raise OSError("disk full")

    def read_only_unlink(self, missing_ok=False):
        raise PermissionError("read-only fs")

    monkeypatch.setattr(aiofiles, "open", disk_full)
    monkeypatch.setattr(Path, "unlink", read_only_unlink)
    normalizer = ImageNormalizer(tmp_path)

    outcome = await normalizer.normalize(make_image((64, 64)))

    assert isinstance(outcome, Skipped)
    assert outcome.reason == "write failed: disk full"
