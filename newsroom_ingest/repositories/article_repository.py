from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from sqlite3 import Connection, Row
from uuid import uuid4

from newsroom_ingest.repositories.common import translate_sqlite_error, utc_now_iso
from newsroom_ingest.repositories.database import Database

ARTICLE_STATUS_DRAFT = "draft"


@dataclass(frozen=True)
class DraftArticle:
    title: str
    slug: str
    excerpt: str | None
    content: str
    featured_image: str | None
    category_id: str | None


@dataclass(frozen=True)
class ArticleRecord:
    article_id: str
    title: str
    slug: str
    excerpt: str | None
    content: str
    featured_image: str | None
    category_id: str | None
    status: str
    published_at: datetime | None
    created_at: datetime
    updated_at: datetime


class ArticleRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def insert_draft_article(self, draft: DraftArticle) -> ArticleRecord:
        now_iso = utc_now_iso()
        article_id = f"article_{uuid4().hex}"
        try:
            with self._db.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO articles (
                        id,
                        title,
                        slug,
                        excerpt,
                        content,
                        featured_image,
                        category_id,
                        status,
                        published_at,
                        created_at,
                        updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, NULL, ?, ?)
                    """,
                    (
                        article_id,
                        draft.title,
                        draft.slug,
                        draft.excerpt,
                        draft.content,
                        draft.featured_image,
                        draft.category_id,
                        ARTICLE_STATUS_DRAFT,
                        now_iso,
                        now_iso,
                    ),
                )
                created = _get_article_with_conn(conn, article_id)
        except sqlite3.Error as exc:
            raise translate_sqlite_error(exc) from exc
        if created is None:
            raise RuntimeError("Article was not found after insert")
        return created

    def get_article(self, article_id: str) -> ArticleRecord | None:
        with self._db.connection() as conn:
            return _get_article_with_conn(conn, article_id)

    def delete_article(self, article_id: str) -> bool:
        try:
            with self._db.connection() as conn:
                cursor = conn.execute("DELETE FROM articles WHERE id = ?", (article_id,))
                return cursor.rowcount > 0
        except sqlite3.Error as exc:
            raise translate_sqlite_error(exc) from exc


def _get_article_with_conn(conn: Connection, article_id: str) -> ArticleRecord | None:
    row = conn.execute(
        """
        SELECT *
        FROM articles
        WHERE id = ?
        LIMIT 1
        """,
        (article_id,),
    ).fetchone()
    if row is None:
        return None
    return _row_to_article(row)


def _row_to_article(row: Row) -> ArticleRecord:
    return ArticleRecord(
        article_id=str(row["id"]),
        title=str(row["title"]),
        slug=str(row["slug"]),
        excerpt=_as_text_or_none(row["excerpt"]),
        content=str(row["content"]),
        featured_image=_as_text_or_none(row["featured_image"]),
        category_id=_as_text_or_none(row["category_id"]),
        status=str(row["status"]),
        published_at=_parse_iso_datetime_optional(row["published_at"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        updated_at=datetime.fromisoformat(str(row["updated_at"])),
    )


def _parse_iso_datetime_optional(value: object) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    return datetime.fromisoformat(value)


def _as_text_or_none(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped if stripped else None
    return str(value)
