import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

LOGGER = logging.getLogger(__name__)

REPORTS_SCHEMA = """
CREATE TABLE IF NOT EXISTS reports (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    description TEXT NOT NULL,
    incident_type VARCHAR(255) NOT NULL,
    address TEXT,
    latitude REAL NOT NULL,
    longitude REAL NOT NULL,
    image_url VARCHAR(255),
    timestamp TEXT DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
)
"""


class AsyncDatabase:
    """
    Shared handle to the SQLite database holding the `reports` table.

    - The handle is built once by the application lifespan and passed to
      every data access object; there is no module-level connection.
    - `ensure_schema()` creates the `reports` table if missing and is safe to
      call repeatedly.
    - `connection()` yields a fresh `aiosqlite.Connection` per unit of work.
    """

    def __init__(self, db_path: Path | str) -> None:
        db_path = Path(db_path).expanduser()
        db_dir = db_path.parent

        # If the parent exists but is not a directory, that's a configuration error.
        if db_dir.exists() and not db_dir.is_dir():
            raise RuntimeError(
                f"Database directory {db_dir} points to a file, not a directory. "
                "Please set DATABASE_DIR to a directory path."
            )

        try:
            db_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise RuntimeError(
                f"Failed to create or access database directory at {db_dir}"
            ) from exc

        self.db_dir = db_dir
        self.db_path = db_path
        self.schema_ready = False

    async def ensure_schema(self) -> None:
        """
        Ensure the `reports` table exists.

        Existing data is never touched; a second call is a no-op at the SQL
        level because of `CREATE TABLE IF NOT EXISTS`.
        """
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(REPORTS_SCHEMA)
            await db.commit()
            cur = await db.execute("SELECT datetime('now')")
            row = await cur.fetchone()

        self.schema_ready = True
        LOGGER.info("Table 'reports' ready in %s (database time %s)", self.db_path, row[0] if row else "?")

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Async context manager yielding an `aiosqlite.Connection`."""
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
