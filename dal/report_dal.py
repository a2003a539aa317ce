"""Async Data Access Layer for the `reports` table.

Provides ReportDAL class with the insert and read operations used by the
report controllers. Compatible with `utils.database_init.AsyncDatabase`.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Set

from models.report_record import ReportRecord
from utils.database_init import AsyncDatabase

LOGGER = logging.getLogger(__name__)


class ReportDAL:
    """Data access layer for report records.

    The constructor accepts an `AsyncDatabase` (or any object exposing an
    async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _COLUMNS = (
        "id",
        "description",
        "incident_type",
        "address",
        "latitude",
        "longitude",
        "image_url",
        "timestamp",
    )
    _COLUMN_LIST = ", ".join(_COLUMNS)
    _INSERT_COLUMNS = ("description", "incident_type", "address", "latitude", "longitude", "image_url")

    def __init__(self, db: AsyncDatabase) -> None:
        self._db = db

    async def create_report(self, record: ReportRecord) -> Optional[int]:
        """Insert a new report row and return the new id.

        A single parameterized statement is executed, so either every field is
        written or none is.

        Args:
            record: ReportRecord with `id=None` and fields to insert.

        Returns:
            The integer primary key of the created row, or None if the
            database did not report one.
        """
        params = (
            record.description,
            record.incident_type,
            record.address,
            record.latitude,
            record.longitude,
            record.image_url,
        )
        LOGGER.debug("Report insert parameters: %r", params)

        placeholders = ", ".join("?" for _ in self._INSERT_COLUMNS)
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"INSERT INTO reports ({', '.join(self._INSERT_COLUMNS)}) VALUES ({placeholders})",
                params,
            )
            await conn.commit()
            return cur.lastrowid

    async def get_report_by_id(self, report_id: int) -> Optional[ReportRecord]:
        """Return ReportRecord for `report_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM reports WHERE id = ?",
                (report_id,),
            )
            row = await cur.fetchone()
            return self._row_to_record(row) if row else None

    async def list_reports(self, limit: int = 100, offset: int = 0) -> List[ReportRecord]:
        """List report rows, newest first.

        Args:
            limit: Maximum number of rows to return.
            offset: Rows to skip.
        """
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM reports ORDER BY id DESC LIMIT ? OFFSET ?",
                (limit, offset),
            )
            rows = await cur.fetchall()
            return [self._row_to_record(r) for r in rows]

    async def list_image_references(self) -> Set[str]:
        """Return every non-null `image_url` currently stored."""
        async with self._db.connection() as conn:
            cur = await conn.execute("SELECT image_url FROM reports WHERE image_url IS NOT NULL")
            rows = await cur.fetchall()
            return {r[0] for r in rows}

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> ReportRecord:
        """Convert a DB row tuple into a ReportRecord."""
        return ReportRecord(
            id=row[0],
            description=row[1],
            incident_type=row[2],
            address=row[3],
            latitude=row[4],
            longitude=row[5],
            image_url=row[6],
            timestamp=row[7],
        )
