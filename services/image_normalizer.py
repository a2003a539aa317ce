"""Image normalizer service.

Turns an uploaded photo of arbitrary format and size into a bounded WEBP
artifact on disk. The longest side of the artifact never exceeds
`max_dimension` pixels, the aspect ratio is preserved and smaller images are
never upscaled.

Public class: `ImageNormalizer`

Example:
    normalizer = ImageNormalizer(Path("uploads"))
    outcome = await normalizer.normalize(raw_bytes)
    if isinstance(outcome, Artifact):
        image_url = outcome.reference
"""
from __future__ import annotations

import asyncio
import io
import logging
import random
import time
from pathlib import Path
from typing import Callable, Optional

import aiofiles
from PIL import Image, ImageOps

from models.image_outcome import Artifact, ImageOutcome, Skipped

LOGGER = logging.getLogger(__name__)

ARTIFACT_PREFIX = "incident-"
ARTIFACT_SUFFIX = ".webp"


class ImageNormalizer:
    """Resize and re-encode uploaded images into WEBP artifacts.

    Processing failures never propagate: `normalize` returns `Skipped` with
    a reason so the caller can store the report without an image.

    Args:
        output_dir: Directory receiving the artifacts (created if missing).
        reference_prefix: Prefix of the stored reference, e.g. `uploads`.
        max_dimension: Longest allowed side in pixels. Defaults to 1024.
        quality: WEBP quality (0-100). Defaults to 80.
        max_upload_bytes: Inputs above this size are skipped. None disables the check.
        clock: Returns the current time in seconds; used for filenames.
        rng: Random source for the filename suffix.
    """

    def __init__(
        self,
        output_dir: Path | str,
        reference_prefix: str = "uploads",
        max_dimension: int = 1024,
        quality: int = 80,
        max_upload_bytes: Optional[int] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.output_dir = Path(output_dir)
        self.reference_prefix = reference_prefix.strip("/")
        self.max_dimension = max_dimension
        self.quality = quality
        self.max_upload_bytes = max_upload_bytes
        self._clock = clock
        self._rng = rng or random.Random()

    def generate_filename(self) -> str:
        """Return `incident-<epoch millis>-<random suffix>.webp`.

        Unique only probabilistically: two calls in the same millisecond that
        draw the same suffix collide.
        """
        millis = int(self._clock() * 1000)
        suffix = self._rng.randint(0, 10**9)
        return f"{ARTIFACT_PREFIX}{millis}-{suffix}{ARTIFACT_SUFFIX}"

    def encode(self, raw: bytes) -> bytes:
        """Decode `raw`, fit it inside the bounding box and return WEBP bytes.

        Raises:
            ValueError: If the bytes cannot be opened as a supported image.
            OSError: If decoding or encoding fails.
        """
        try:
            src = Image.open(io.BytesIO(raw))
        except Exception as exc:
            raise ValueError("Bytes are not a supported image format") from exc

        with src:
            img = ImageOps.exif_transpose(src)
            if img.mode not in ("RGB", "RGBA"):
                has_alpha = img.mode in ("LA", "PA") or "transparency" in img.info
                img = img.convert("RGBA" if has_alpha else "RGB")

            # thumbnail() only ever shrinks and keeps the aspect ratio
            img.thumbnail((self.max_dimension, self.max_dimension), Image.LANCZOS)

            out_io = io.BytesIO()
            img.save(out_io, format="WEBP", quality=self.quality)
            return out_io.getvalue()

    async def normalize(self, raw: Optional[bytes]) -> ImageOutcome:
        """Normalize `raw` into an artifact on disk.

        Args:
            raw: Uploaded image bytes.

        Returns:
            `Artifact` when exactly one file was written, otherwise `Skipped`.
        """
        if not raw:
            return Skipped("empty upload")
        if self.max_upload_bytes is not None and len(raw) > self.max_upload_bytes:
            LOGGER.warning("Image upload of %d bytes exceeds limit of %d bytes", len(raw), self.max_upload_bytes)
            return Skipped("upload too large")

        try:
            # decoding/encoding is CPU bound -> run in thread
            data = await asyncio.to_thread(self.encode, raw)
        except Exception as exc:
            LOGGER.warning("Error processing uploaded image: %s", exc)
            return Skipped(f"processing failed: {exc}")

        filename = self.generate_filename()
        path = self.output_dir / filename
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            # exclusive create: a name collision must not overwrite another artifact
            async with aiofiles.open(path, "xb") as f:
                await f.write(data)
        except FileExistsError:
            LOGGER.warning("Artifact name collision on %s; storing report without image", filename)
            return Skipped("artifact name collision")
        except OSError as exc:
            LOGGER.warning("Error writing image artifact %s: %s", path, exc)
            try:
                path.unlink(missing_ok=True)
            except OSError as cleanup_exc:
                LOGGER.error("Failed to remove partial artifact %s: %s", path, cleanup_exc)
            return Skipped(f"write failed: {exc}")

        LOGGER.info("Image processed and saved to %s", path)
        return Artifact(filename=filename, path=path, reference=f"{self.reference_prefix}/{filename}")

    async def discard(self, artifact: Artifact) -> bool:
        """Remove a previously written artifact. Returns True if a file was removed."""
        try:
            await asyncio.to_thread(artifact.path.unlink)
        except FileNotFoundError:
            return False
        except OSError as exc:
            LOGGER.error("Failed to remove artifact %s: %s", artifact.path, exc)
            return False
        LOGGER.info("Removed artifact %s", artifact.path)
        return True
