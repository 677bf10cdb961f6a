from __future__ import annotations

from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from newsroom_ingest.repositories.article_repository import ArticleRecord
from newsroom_ingest.repositories.import_repository import ImportRecord
from newsroom_ingest.repositories.source_repository import CategoryRecord, ContentSource
from newsroom_ingest.services.import_orchestrator import (
    ImportCreated,
    ImportDuplicate,
    ImportErrorCode,
    ImportOutcome,
    ImportStage,
)
from newsroom_ingest.text import normalize_optional_text

ImportResponseStatus = Literal["created", "duplicate", "failed"]


def _validate_site_url(value: str) -> str:
    normalized = value.strip()
    if any(ord(character) < 32 for character in normalized):
        raise ValueError("url contains control characters")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("url must be an absolute http/https URL")
    if parsed.username or parsed.password:
        raise ValueError("url must not contain credentials")
    return normalized


class ImportRequest(BaseModel):
    """
    Request body for a single-article import.

    `url` is deliberately not validated here: a malformed URL is reported as an
    import outcome with stage `validation`, like every other import failure.
    """

    model_config = ConfigDict(extra="forbid")

    url: str = Field(max_length=2048)
    category_id: str | None = Field(default=None, max_length=120)
    api_key: str | None = Field(default=None, max_length=512)
    source_id: str | None = Field(default=None, max_length=120)

    @field_validator("category_id", "api_key", "source_id", mode="before")
    @classmethod
    def _normalize_optional_fields(cls, value: object) -> str | None:
        return normalize_optional_text(value)


class SourceImportRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str = Field(max_length=2048)
    api_key: str | None = Field(default=None, max_length=512)

    @field_validator("api_key", mode="before")
    @classmethod
    def _normalize_api_key(cls, value: object) -> str | None:
        return normalize_optional_text(value)


class ImportErrorBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    stage: ImportStage
    error_code: ImportErrorCode
    message: str


class ImportResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: ImportResponseStatus
    article_id: str | None = None
    title: str | None = None
    slug: str | None = None
    excerpt: str | None = None
    featured_image: str | None = None
    receipt_written: bool | None = None
    existing_article_id: str | None = None
    error: ImportErrorBody | None = None

    @classmethod
    def from_outcome(cls, outcome: ImportOutcome) -> ImportResponse:
        if isinstance(outcome, ImportCreated):
            return cls(
                status="created",
                article_id=outcome.article_id,
                title=outcome.title,
                slug=outcome.slug,
                excerpt=outcome.excerpt,
                featured_image=outcome.featured_image,
                receipt_written=outcome.receipt_written,
            )
        if isinstance(outcome, ImportDuplicate):
            return cls(status="duplicate", existing_article_id=outcome.existing_article_id)
        return cls(
            status="failed",
            error=ImportErrorBody(
                stage=outcome.stage,
                error_code=outcome.error_code,
                message=outcome.message,
            ),
        )


class ImportReceiptResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    import_id: str
    original_url: str
    original_title: str
    article_id: str | None
    source_id: str | None
    status: str
    created_at: str

    @classmethod
    def from_record(cls, record: ImportRecord) -> ImportReceiptResponse:
        return cls(
            import_id=record.import_id,
            original_url=record.original_url,
            original_title=record.original_title,
            article_id=record.article_id,
            source_id=record.source_id,
            status=record.status,
            created_at=record.created_at.isoformat(),
        )


class ImportReceiptListResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    count: int
    items: list[ImportReceiptResponse]


class ArticleResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    article_id: str
    title: str
    slug: str
    excerpt: str | None
    content: str
    featured_image: str | None
    category_id: str | None
    status: str
    published_at: str | None
    created_at: str
    updated_at: str

    @classmethod
    def from_record(cls, record: ArticleRecord) -> ArticleResponse:
        return cls(
            article_id=record.article_id,
            title=record.title,
            slug=record.slug,
            excerpt=record.excerpt,
            content=record.content,
            featured_image=record.featured_image,
            category_id=record.category_id,
            status=record.status,
            published_at=record.published_at.isoformat() if record.published_at else None,
            created_at=record.created_at.isoformat(),
            updated_at=record.updated_at.isoformat(),
        )


class CategoryCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=200)
    slug: str | None = Field(default=None, max_length=120)

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("name must not be blank")
        return normalized

    @field_validator("slug", mode="before")
    @classmethod
    def _normalize_slug(cls, value: object) -> str | None:
        return normalize_optional_text(value)


class CategoryResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category_id: str
    name: str
    slug: str
    created_at: str

    @classmethod
    def from_record(cls, record: CategoryRecord) -> CategoryResponse:
        return cls(
            category_id=record.category_id,
            name=record.name,
            slug=record.slug,
            created_at=record.created_at.isoformat(),
        )


class SourceCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=200)
    url: str = Field(max_length=2048)
    scrape_url: str | None = Field(default=None, max_length=2048)
    category_id: str | None = Field(default=None, max_length=120)
    scrape_frequency_hours: int | None = Field(default=None, ge=1, le=24 * 30)
    is_active: bool = True

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        return _validate_site_url(value)

    @field_validator("scrape_url", mode="before")
    @classmethod
    def _validate_scrape_url(cls, value: object) -> str | None:
        normalized = normalize_optional_text(value)
        if normalized is None:
            return None
        return _validate_site_url(normalized)

    @field_validator("category_id", mode="before")
    @classmethod
    def _normalize_category_id(cls, value: object) -> str | None:
        return normalize_optional_text(value)


class SourceResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source_id: str
    name: str
    url: str
    scrape_url: str
    category_id: str | None
    is_active: bool
    scrape_frequency_hours: int | None
    articles_imported: int
    last_scraped_at: str | None
    created_at: str
    updated_at: str

    @classmethod
    def from_record(cls, record: ContentSource) -> SourceResponse:
        return cls(
            source_id=record.source_id,
            name=record.name,
            url=record.url,
            scrape_url=record.scrape_url,
            category_id=record.category_id,
            is_active=record.is_active,
            scrape_frequency_hours=record.scrape_frequency_hours,
            articles_imported=record.articles_imported,
            last_scraped_at=(
                record.last_scraped_at.isoformat() if record.last_scraped_at else None
            ),
            created_at=record.created_at.isoformat(),
            updated_at=record.updated_at.isoformat(),
        )
