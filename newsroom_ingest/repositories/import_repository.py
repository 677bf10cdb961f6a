from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from sqlite3 import Row
from uuid import uuid4

from newsroom_ingest.repositories.common import translate_sqlite_error, utc_now_iso
from newsroom_ingest.repositories.database import Database

IMPORT_STATUS_IMPORTED = "imported"


@dataclass(frozen=True)
class ImportRecord:
    import_id: str
    original_url: str
    url_key: str
    original_title: str
    article_id: str | None
    source_id: str | None
    status: str
    created_at: datetime


class ImportRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def find_import_by_url(self, url_key: str) -> ImportRecord | None:
        """Look up a receipt by the normalized URL it was recorded under."""
        try:
            with self._db.connection() as conn:
                row = conn.execute(
                    """
                    SELECT *
                    FROM imported_articles
                    WHERE url_key = ?
                    LIMIT 1
                    """,
                    (url_key,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise translate_sqlite_error(exc) from exc
        if row is None:
            return None
        return _row_to_import(row)

    def insert_import_record(
        self,
        *,
        original_url: str,
        original_title: str,
        article_id: str | None,
        source_id: str | None = None,
        status: str = IMPORT_STATUS_IMPORTED,
        url_key: str | None = None,
    ) -> ImportRecord:
        record = ImportRecord(
            import_id=f"import_{uuid4().hex}",
            original_url=original_url,
            url_key=url_key or original_url,
            original_title=original_title,
            article_id=article_id,
            source_id=source_id,
            status=status,
            created_at=datetime.fromisoformat(utc_now_iso()),
        )
        try:
            with self._db.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO imported_articles (
                        id, original_url, url_key, original_title, article_id, source_id, status,
                        created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.import_id,
                        record.original_url,
                        record.url_key,
                        record.original_title,
                        record.article_id,
                        record.source_id,
                        record.status,
                        record.created_at.isoformat(),
                    ),
                )
        except sqlite3.Error as exc:
            raise translate_sqlite_error(exc) from exc
        return record

    def list_recent(self, *, limit: int = 20) -> list[ImportRecord]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM imported_articles
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (max(1, min(limit, 200)),),
            ).fetchall()
        return [_row_to_import(row) for row in rows]


def _row_to_import(row: Row) -> ImportRecord:
    article_id = row["article_id"]
    source_id = row["source_id"]
    return ImportRecord(
        import_id=str(row["id"]),
        original_url=str(row["original_url"]),
        url_key=str(row["url_key"]),
        original_title=str(row["original_title"]),
        article_id=str(article_id) if article_id is not None else None,
        source_id=str(source_id) if source_id is not None else None,
        status=str(row["status"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
    )
