"""Helpers to remove image artifacts that no report row references."""

import asyncio
import logging
import time
from pathlib import Path
from typing import Set

from dal.report_dal import ReportDAL
from services.image_normalizer import ARTIFACT_PREFIX, ARTIFACT_SUFFIX
from utils.database_init import AsyncDatabase

LOGGER = logging.getLogger(__name__)


class ArtifactCleaner:
    """Delete orphaned artifacts older than the configured grace window."""

    def __init__(
        self,
        db: AsyncDatabase,
        upload_dir: Path,
        reference_prefix: str = "uploads",
        grace_seconds: int = 3_600,
    ) -> None:
        """
        Args:
            db: Shared database handle.
            upload_dir: Directory the Image Normalizer writes into.
            reference_prefix: Prefix used in stored `image_url` values.
            grace_seconds: Age threshold in seconds; younger files are left alone
                because their report insert may still be in flight.
        """
        self._dal = ReportDAL(db)
        self.upload_dir = Path(upload_dir)
        self.reference_prefix = reference_prefix.strip("/")
        self.grace_seconds = grace_seconds

    async def prune_orphaned_artifacts(self) -> int:
        """Delete unreferenced artifacts past the grace window and return count removed."""
        if not self.upload_dir.is_dir():
            return 0

        referenced = await self._dal.list_image_references()
        cutoff = time.time() - self.grace_seconds
        # directory scan and unlinks are blocking -> run in thread
        removed = await asyncio.to_thread(self._remove_orphans, referenced, cutoff)

        if removed:
            LOGGER.info("Pruned %d orphaned artifact(s) from %s", removed, self.upload_dir)
        return removed

    def _remove_orphans(self, referenced: Set[str], cutoff: float) -> int:
        removed = 0
        for path in self.upload_dir.glob(f"{ARTIFACT_PREFIX}*{ARTIFACT_SUFFIX}"):
            if f"{self.reference_prefix}/{path.name}" in referenced:
                continue
            try:
                if path.stat().st_mtime >= cutoff:
                    continue
                path.unlink()
            except FileNotFoundError:
                continue
            removed += 1
        return removed

    async def run_periodic_cleanup(self, interval_seconds: int = 3_600) -> None:
        """
        Repeatedly prune orphaned artifacts at the given interval until cancelled.

        Args:
            interval_seconds: Seconds to sleep between cleanup runs.
        """
        while True:
            try:
                await self.prune_orphaned_artifacts()
            except asyncio.CancelledError:
                raise
            except Exception:
                LOGGER.exception("Orphaned artifact sweep failed")
            await asyncio.sleep(interval_seconds)
