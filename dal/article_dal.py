"""Async Data Access Layer for the user_articles table.

Provides ArticleDAL with the async operations the generation pipeline and
the stored-article endpoints need, on top of
`utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

import json
import logging
import time
from typing import List, Optional, Sequence

from models.article_record import ArticleRecord, GeneratedArtifact
from utils.database_init import AsyncDatabaseInitializer

LOGGER = logging.getLogger(__name__)


def _load_list(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        LOGGER.warning("Ignoring malformed JSON list column: %.60r", raw)
        return []
    return value if isinstance(value, list) else []


class ArticleDAL:
    """Data access layer for stored articles.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _COLUMNS = (
        "id",
        "owner_id",
        "title",
        "url",
        "full_text",
        "summary",
        "key_points",
        "image_urls",
        "created_at",
    )
    _COLUMN_LIST, _INSERT_COLUMNS = ", ".join(_COLUMNS), ", ".join(_COLUMNS[1:])

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def save_article(self, owner_id: str, artifact: GeneratedArtifact) -> int:
        """Persist a generated artifact for `owner_id` and return the new row id."""
        return await self.create_article(ArticleRecord.from_artifact(owner_id, artifact))

    async def create_article(self, record: ArticleRecord) -> int:
        """Insert a new row and return the new id.

        Args:
            record: ArticleRecord with `id=None`.

        Returns:
            The integer primary key of the created row.
        """
        created_at = record.created_at or int(time.time())

        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"INSERT INTO user_articles ({self._INSERT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.owner_id,
                    record.title,
                    record.url,
                    record.full_text,
                    record.summary,
                    json.dumps(record.key_points or []),
                    json.dumps(record.image_urls or []),
                    created_at,
                ),
            )
            await conn.commit()
            return cur.lastrowid

    async def get_article(self, article_id: int, owner_id: str) -> Optional[ArticleRecord]:
        """Return the article if it exists and belongs to `owner_id`, else None."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM user_articles WHERE id = ? AND owner_id = ?",
                (article_id, owner_id),
            )
            row = await cur.fetchone()
            return self._row_to_record(row) if row else None

    async def list_articles(self, owner_id: str, limit: int = 100, offset: int = 0) -> List[ArticleRecord]:
        """List an owner's articles, newest first.

        Args:
            owner_id: Owner whose rows are returned.
            limit: Maximum number of rows to return.
            offset: Rows to skip.
        """
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM user_articles WHERE owner_id = ? "
                "ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                (owner_id, limit, offset),
            )
            rows = await cur.fetchall()
            return [self._row_to_record(r) for r in rows]

    async def latest_article(self, owner_id: str) -> Optional[ArticleRecord]:
        """Return the owner's most recently created article, or None."""
        records = await self.list_articles(owner_id, limit=1)
        return records[0] if records else None

    async def delete_article(self, article_id: int, owner_id: str) -> bool:
        """Delete an owner's article. Returns True if a row was deleted."""
        async with self._db.connection() as conn:
            await conn.execute(
                "DELETE FROM user_articles WHERE id = ? AND owner_id = ?", (article_id, owner_id)
            )
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            changed = await cur.fetchone()
            return bool(changed and changed[0] > 0)

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> ArticleRecord:
        """Convert a DB row tuple into an ArticleRecord."""
        return ArticleRecord(
            id=row[0],
            owner_id=row[1],
            title=row[2],
            url=row[3],
            full_text=row[4],
            summary=row[5],
            key_points=_load_list(row[6]),
            image_urls=_load_list(row[7]),
            created_at=row[8],
        )
