"""Application configuration loaded from environment variables.

Values are read once (a `.env` file in the working directory is honoured
through python-dotenv) into a frozen `Settings` instance.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


def _env_int(name: str, default: int, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name}={raw!r} is not a valid integer") from exc
    if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
        raise RuntimeError(f"{name}={value} is outside the allowed range [{minimum}, {maximum}]")
    return value


@dataclass(frozen=True)
class Settings:
    """Centralised service settings.

    Attributes:
        log_level: Root logging level name.
        database_dir: Directory holding the SQLite database file.
        database_filename: Name of the database file inside `database_dir`.
        upload_dir: Directory where normalized image artifacts are written.
        uploads_route: URL prefix under which artifacts are served.
        image_uploads_enabled: Whether the Image Normalizer stage runs at all.
        max_image_dimension: Longest side (pixels) of a stored artifact.
        image_quality: WEBP quality used when encoding artifacts.
        max_upload_bytes: Uploads larger than this are skipped.
        orphan_grace_seconds: Minimum age before an unreferenced artifact is pruned.
        orphan_sweep_interval_seconds: Interval of the orphan sweeper (0 disables it).
        cors_origins: Allowed CORS origins.
    """

    log_level: str = "INFO"
    database_dir: Path = Path("database")
    database_filename: str = "reports.db"
    upload_dir: Path = Path("uploads")
    uploads_route: str = "/uploads"
    image_uploads_enabled: bool = True
    max_image_dimension: int = 1024
    image_quality: int = 80
    max_upload_bytes: int = 10 * 1024 * 1024
    orphan_grace_seconds: int = 3_600
    orphan_sweep_interval_seconds: int = 0
    cors_origins: Tuple[str, ...] = ("*",)

    @property
    def database_path(self) -> Path:
        return self.database_dir / self.database_filename

    @property
    def reference_prefix(self) -> str:
        """Prefix stored in `image_url`, e.g. `uploads` for the `/uploads` route."""
        return self.uploads_route.strip("/")


def _build_settings() -> Settings:
    load_dotenv()

    route = os.getenv("UPLOADS_ROUTE", "/uploads").strip() or "/uploads"
    if not route.startswith("/"):
        route = "/" + route
    route = route.rstrip("/") or "/uploads"

    origins = tuple(
        o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
    )

    return Settings(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        database_dir=Path(os.getenv("DATABASE_DIR", "database")).expanduser(),
        database_filename=os.getenv("DATABASE_FILENAME", "reports.db"),
        upload_dir=Path(os.getenv("UPLOAD_DIR", "uploads")).expanduser(),
        uploads_route=route,
        image_uploads_enabled=_env_bool("IMAGE_UPLOADS_ENABLED", True),
        max_image_dimension=_env_int("MAX_IMAGE_DIMENSION", 1024, minimum=1, maximum=16_383),
        image_quality=_env_int("IMAGE_QUALITY", 80, minimum=0, maximum=100),
        max_upload_bytes=_env_int("MAX_UPLOAD_BYTES", 10 * 1024 * 1024, minimum=1),
        orphan_grace_seconds=_env_int("ORPHAN_GRACE_SECONDS", 3_600, minimum=0),
        orphan_sweep_interval_seconds=_env_int("ORPHAN_SWEEP_INTERVAL_SECONDS", 0, minimum=0),
        cors_origins=origins or ("*",),
    )


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance built from the environment."""
    return _build_settings()
