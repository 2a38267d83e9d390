import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

LOGGER = logging.getLogger(__name__)

DATABASE_FILENAME = "app.db"

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS user_articles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        owner_id TEXT NOT NULL,
        title TEXT NOT NULL,
        url TEXT NOT NULL,
        full_text TEXT NOT NULL,
        summary TEXT,
        key_points TEXT,
        image_urls TEXT,
        created_at INTEGER NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_user_articles_owner ON user_articles(owner_id, created_at)",
)


def resolve_database_dir(database_dir: Optional[Path | str] = None) -> Path:
    """Return the directory for the article database, creating it if needed.

    Falls back to the DATABASE_DIR environment variable.

    Raises:
        RuntimeError: If no directory is configured, the path is a file, or
            the directory cannot be created.
    """
    configured = str(database_dir) if database_dir is not None else os.getenv("DATABASE_DIR", "")
    if not configured.strip():
        raise RuntimeError(
            "DATABASE_DIR must point to a writable directory for the article database."
        )

    path = Path(configured).expanduser()
    if path.exists() and not path.is_dir():
        raise RuntimeError(f"DATABASE_DIR={configured!r} is a file, expected a directory ({path}).")
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise RuntimeError(f"Cannot create database directory {path}") from exc
    return path


class AsyncDatabaseInitializer:
    """
    Own the location and schema of the SQLite file holding stored articles.

    - The file lives at <DATABASE_DIR>/app.db (or under the directory passed in).
    - `ensure_database()` creates the user_articles table and its owner index
      when missing; existing rows are kept across restarts.
    - `connection()` ensures the schema once per instance, then opens a
      fresh `aiosqlite` connection for the caller.
    """

    def __init__(self, database_dir: Optional[Path | str] = None) -> None:
        self.db_dir = resolve_database_dir(database_dir)
        self.db_path = self.db_dir / DATABASE_FILENAME
        self._ready = False

    async def ensure_database(self, attempts: int = 3) -> None:
        """Apply `SCHEMA_STATEMENTS` once, retrying transient missing-file errors."""
        if self._ready:
            return

        for attempt in range(1, attempts + 1):
            try:
                async with aiosqlite.connect(self.db_path) as db:
                    for statement in SCHEMA_STATEMENTS:
                        await db.execute(statement)
                    await db.commit()
                break
            except FileNotFoundError:
                if attempt >= attempts:
                    raise
                LOGGER.warning("Database file not ready at %s (attempt %d)", self.db_path, attempt)
                await asyncio.sleep(0.1 * attempt)

        self._ready = True
        LOGGER.debug("Article schema ready at %s", self.db_path)

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield an open `aiosqlite.Connection`, closing it afterwards."""
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
