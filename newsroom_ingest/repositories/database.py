from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS categories (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS articles (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    excerpt TEXT NULL,
    content TEXT NOT NULL,
    featured_image TEXT NULL,
    category_id TEXT NULL,
    status TEXT NOT NULL,
    published_at TEXT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY(category_id) REFERENCES categories(id)
);

CREATE INDEX IF NOT EXISTS idx_articles_status_created
ON articles(status, created_at DESC);

CREATE TABLE IF NOT EXISTS content_sources (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    url TEXT NOT NULL,
    scrape_url TEXT NOT NULL,
    category_id TEXT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    scrape_frequency_hours INTEGER NULL,
    articles_imported INTEGER NOT NULL DEFAULT 0,
    last_scraped_at TEXT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY(category_id) REFERENCES categories(id)
);

CREATE TABLE IF NOT EXISTS imported_articles (
    id TEXT PRIMARY KEY,
    original_url TEXT NOT NULL,
    url_key TEXT NOT NULL UNIQUE,
    original_title TEXT NOT NULL,
    article_id TEXT NULL,
    source_id TEXT NULL,
    status TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_imported_articles_created
ON imported_articles(created_at DESC);
"""


class Database:
    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self.connection() as conn:
            conn.executescript(SCHEMA_SQL)

    def count_rows(self, table_name: str) -> int:
        if table_name not in _COUNTABLE_TABLES:
            raise ValueError(f"Unknown table: {table_name}")
        with self.connection() as conn:
            row = conn.execute(f"SELECT COUNT(*) AS total FROM {table_name}").fetchone()
        return int(row["total"]) if row is not None else 0


_COUNTABLE_TABLES: frozenset[str] = frozenset(
    {"articles", "categories", "content_sources", "imported_articles"}
)
