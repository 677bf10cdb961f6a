from __future__ import annotations

import sqlite3

import pytest

from newsroom_ingest.repositories.article_repository import ArticleRepository, DraftArticle
from newsroom_ingest.repositories.common import (
    DatastoreError,
    UniqueConstraintViolation,
    translate_sqlite_error,
)
from newsroom_ingest.repositories.database import Database
from newsroom_ingest.repositories.import_repository import ImportRepository
from newsroom_ingest.repositories.source_repository import SourceRepository


def _draft(slug: str = "hello-world-lx1", category_id: str | None = None) -> DraftArticle:
    return DraftArticle(
        title="Hello World",
        slug=slug,
        excerpt="Short excerpt",
        content="<p>Body</p>",
        featured_image=None,
        category_id=category_id,
    )


def test_database_initialize_is_idempotent(database: Database) -> None:
    database.initialize()
    assert database.count_rows("articles") == 0
    with pytest.raises(ValueError):
        database.count_rows("sqlite_master")


def test_insert_draft_article_round_trip(database: Database) -> None:
    repository = ArticleRepository(database)

    created = repository.insert_draft_article(_draft())

    assert created.article_id.startswith("article_")
    assert created.status == "draft"
    assert created.published_at is None
    assert created.created_at == created.updated_at
    assert repository.get_article(created.article_id) == created
    assert repository.get_article("article_missing") is None


def test_duplicate_slug_raises_unique_violation(database: Database) -> None:
    repository = ArticleRepository(database)
    repository.insert_draft_article(_draft())

    with pytest.raises(UniqueConstraintViolation) as exc_info:
        repository.insert_draft_article(_draft())

    assert exc_info.value.constraint == "articles.slug"
    assert database.count_rows("articles") == 1


def test_unknown_category_raises_plain_datastore_error(database: Database) -> None:
    with pytest.raises(DatastoreError) as exc_info:
        ArticleRepository(database).insert_draft_article(_draft(category_id="category_missing"))

    assert not isinstance(exc_info.value, UniqueConstraintViolation)


def test_delete_article(database: Database) -> None:
    repository = ArticleRepository(database)
    created = repository.insert_draft_article(_draft())

    assert repository.delete_article(created.article_id) is True
    assert repository.delete_article(created.article_id) is False
    assert database.count_rows("articles") == 0


def test_import_receipts_are_unique_per_url(database: Database) -> None:
    repository = ImportRepository(database)
    record = repository.insert_import_record(
        original_url="https://example.com/a",
        original_title="Hello World - Example.com",
        article_id="article_1",
    )

    assert repository.find_import_by_url("https://example.com/a") == record
    assert repository.find_import_by_url("https://example.com/b") is None
    with pytest.raises(UniqueConstraintViolation):
        repository.insert_import_record(
            original_url="https://example.com/a",
            original_title="Again",
            article_id="article_2",
        )
    with pytest.raises(UniqueConstraintViolation):
        repository.insert_import_record(
            original_url="https://example.com/a?utm_source=feed",
            url_key="https://example.com/a",
            original_title="Tracked link",
            article_id="article_3",
        )


def test_list_recent_clamps_limit(database: Database) -> None:
    repository = ImportRepository(database)
    for index in range(3):
        repository.insert_import_record(
            original_url=f"https://example.com/{index}",
            original_title=f"Story {index}",
            article_id=None,
        )

    assert len(repository.list_recent(limit=0)) == 1
    assert [record.original_title for record in repository.list_recent(limit=500)] == [
        "Story 2",
        "Story 1",
        "Story 0",
    ]


def test_sources_and_categories(database: Database) -> None:
    repository = SourceRepository(database)
    category = repository.create_category(name="  Política ", slug="politica")
    active = repository.create_source(
        name="Beta News",
        url="https://beta.example.com",
        category_id=category.category_id,
        scrape_frequency_hours=6,
    )
    repository.create_source(name="Alpha News", url="https://alpha.example.com", is_active=False)

    assert category.name == "Política"
    assert [item.slug for item in repository.list_categories()] == ["politica"]
    assert active.scrape_url == "https://beta.example.com"
    assert active.articles_imported == 0
    assert active.last_scraped_at is None
    assert [source.name for source in repository.list_sources()] == ["Alpha News", "Beta News"]
    assert [source.name for source in repository.list_sources(active_only=True)] == ["Beta News"]

    repository.record_import(active.source_id)
    repository.record_import(active.source_id)

    refreshed = repository.get_source(active.source_id)
    assert refreshed is not None
    assert refreshed.articles_imported == 2
    assert refreshed.last_scraped_at is not None
    assert repository.get_source("source_missing") is None


def test_category_slug_is_unique(database: Database) -> None:
    repository = SourceRepository(database)
    repository.create_category(name="Tech", slug="tech")

    with pytest.raises(UniqueConstraintViolation):
        repository.create_category(name="Technology", slug="tech")


def test_translate_sqlite_error() -> None:
    unique = translate_sqlite_error(
        sqlite3.IntegrityError("UNIQUE constraint failed: imported_articles.url_key")
    )
    foreign_key = translate_sqlite_error(sqlite3.IntegrityError("FOREIGN KEY constraint failed"))
    operational = translate_sqlite_error(sqlite3.OperationalError("database is locked"))

    assert isinstance(unique, UniqueConstraintViolation)
    assert unique.constraint == "imported_articles.url_key"
    assert type(foreign_key) is DatastoreError
    assert type(operational) is DatastoreError
