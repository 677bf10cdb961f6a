from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from sqlite3 import Row
from uuid import uuid4

from newsroom_ingest.repositories.common import translate_sqlite_error, utc_now_iso
from newsroom_ingest.repositories.database import Database


@dataclass(frozen=True)
class CategoryRecord:
    category_id: str
    name: str
    slug: str
    created_at: datetime


@dataclass(frozen=True)
class ContentSource:
    source_id: str
    name: str
    url: str
    scrape_url: str
    category_id: str | None
    is_active: bool
    scrape_frequency_hours: int | None
    articles_imported: int
    last_scraped_at: datetime | None
    created_at: datetime
    updated_at: datetime


class SourceRepository:
    """
    Registry of configured scrape targets and the categories they feed.

    Deciding when a source is due for scraping belongs to the caller; this
    repository only stores the configuration and the per-source import counters.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def create_category(self, *, name: str, slug: str) -> CategoryRecord:
        category_id = f"category_{uuid4().hex}"
        now_iso = utc_now_iso()
        try:
            with self._db.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO categories (id, name, slug, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (category_id, name.strip(), slug.strip(), now_iso),
                )
        except sqlite3.Error as exc:
            raise translate_sqlite_error(exc) from exc
        return CategoryRecord(
            category_id=category_id,
            name=name.strip(),
            slug=slug.strip(),
            created_at=datetime.fromisoformat(now_iso),
        )

    def list_categories(self) -> list[CategoryRecord]:
        with self._db.connection() as conn:
            rows = conn.execute("SELECT * FROM categories ORDER BY name").fetchall()
        return [
            CategoryRecord(
                category_id=str(row["id"]),
                name=str(row["name"]),
                slug=str(row["slug"]),
                created_at=datetime.fromisoformat(str(row["created_at"])),
            )
            for row in rows
        ]

    def create_source(
        self,
        *,
        name: str,
        url: str,
        scrape_url: str | None = None,
        category_id: str | None = None,
        scrape_frequency_hours: int | None = None,
        is_active: bool = True,
    ) -> ContentSource:
        source_id = f"source_{uuid4().hex}"
        now_iso = utc_now_iso()
        try:
            with self._db.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO content_sources (
                        id,
                        name,
                        url,
                        scrape_url,
                        category_id,
                        is_active,
                        scrape_frequency_hours,
                        articles_imported,
                        last_scraped_at,
                        created_at,
                        updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, 0, NULL, ?, ?)
                    """,
                    (
                        source_id,
                        name.strip(),
                        url.strip(),
                        (scrape_url or url).strip(),
                        category_id,
                        1 if is_active else 0,
                        scrape_frequency_hours,
                        now_iso,
                        now_iso,
                    ),
                )
                row = conn.execute(
                    "SELECT * FROM content_sources WHERE id = ?",
                    (source_id,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise translate_sqlite_error(exc) from exc
        if row is None:
            raise RuntimeError("Content source was not found after insert")
        return _row_to_source(row)

    def get_source(self, source_id: str) -> ContentSource | None:
        try:
            with self._db.connection() as conn:
                row = conn.execute(
                    "SELECT * FROM content_sources WHERE id = ? LIMIT 1",
                    (source_id,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise translate_sqlite_error(exc) from exc
        if row is None:
            return None
        return _row_to_source(row)

    def list_sources(self, *, active_only: bool = False) -> list[ContentSource]:
        where_sql = "WHERE is_active = 1" if active_only else ""
        with self._db.connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM content_sources {where_sql} ORDER BY name"
            ).fetchall()
        return [_row_to_source(row) for row in rows]

    def record_import(self, source_id: str) -> None:
        now_iso = utc_now_iso()
        try:
            with self._db.connection() as conn:
                conn.execute(
                    """
                    UPDATE content_sources
                    SET
                        articles_imported = articles_imported + 1,
                        last_scraped_at = ?,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (now_iso, now_iso, source_id),
                )
        except sqlite3.Error as exc:
            raise translate_sqlite_error(exc) from exc


def _row_to_source(row: Row) -> ContentSource:
    last_scraped_at = row["last_scraped_at"]
    frequency = row["scrape_frequency_hours"]
    category_id = row["category_id"]
    return ContentSource(
        source_id=str(row["id"]),
        name=str(row["name"]),
        url=str(row["url"]),
        scrape_url=str(row["scrape_url"]),
        category_id=str(category_id) if category_id is not None else None,
        is_active=bool(row["is_active"]),
        scrape_frequency_hours=int(frequency) if frequency is not None else None,
        articles_imported=int(row["articles_imported"]),
        last_scraped_at=(
            datetime.fromisoformat(str(last_scraped_at)) if last_scraped_at is not None else None
        ),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        updated_at=datetime.fromisoformat(str(row["updated_at"])),
    )
