from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from html import unescape
from typing import Literal

from newsroom_ingest.repositories.article_repository import ArticleRepository, DraftArticle
from newsroom_ingest.repositories.common import DatastoreError, UniqueConstraintViolation
from newsroom_ingest.repositories.import_repository import ImportRecord, ImportRepository
from newsroom_ingest.repositories.source_repository import ContentSource, SourceRepository
from newsroom_ingest.services.article_urls import normalize_article_url
from newsroom_ingest.services.extraction_client import (
    ConfigurationError,
    ExtractedPage,
    ExtractionFailure,
    FirecrawlExtractionClient,
)
from newsroom_ingest.services.markdown_sanitizer import sanitize_to_html
from newsroom_ingest.services.slugs import PLACEHOLDER_TITLE, clean_title, slugify
from newsroom_ingest.telemetry import (
    IMPORT_CREATED_EVENT,
    IMPORT_DUPLICATE_EVENT,
    IMPORT_FAILED_EVENT,
    TelemetryClient,
)
from newsroom_ingest.text import normalize_optional_text

LOGGER = logging.getLogger("newsroom_ingest.import")

MAX_EXCERPT_LENGTH = 300

ImportStage = Literal["configuration", "validation", "idempotency", "extraction", "persist"]
ImportErrorCode = Literal[
    "configuration_error",
    "invalid_url",
    "invalid_source",
    "datastore_error",
    "extraction_failed",
    "persist_failed",
]

_TAG_RE = re.compile(r"<[^>]*>")


@dataclass(frozen=True)
class ImportCreated:
    article_id: str
    title: str
    slug: str
    excerpt: str | None
    featured_image: str | None
    receipt_written: bool = True


@dataclass(frozen=True)
class ImportDuplicate:
    existing_article_id: str | None


@dataclass(frozen=True)
class ImportFailed:
    stage: ImportStage
    error_code: ImportErrorCode
    message: str


ImportOutcome = ImportCreated | ImportDuplicate | ImportFailed


class ImportOrchestrator:
    """
    Turns one article URL into one draft article.

    Stages run in order: idempotency check, extraction, transform, persist.
    A failure aborts without writing anything beyond what earlier stages
    committed. The draft insert and the import receipt are two separate
    writes; only the first one decides the reported outcome.
    """

    def __init__(
        self,
        *,
        article_repository: ArticleRepository,
        import_repository: ImportRepository,
        source_repository: SourceRepository,
        extraction_client: FirecrawlExtractionClient,
        telemetry: TelemetryClient | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._article_repository = article_repository
        self._import_repository = import_repository
        self._source_repository = source_repository
        self._extraction_client = extraction_client
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()
        self._clock = clock if clock is not None else _utc_now

    def import_article(
        self,
        *,
        url: str,
        category_id: str | None = None,
        api_key: str | None = None,
        source_id: str | None = None,
    ) -> ImportOutcome:
        override_key = normalize_optional_text(api_key)
        if override_key is None and not self._extraction_client.configured:
            return self._failed(
                url=url,
                stage="configuration",
                error_code="configuration_error",
                message="Extraction API key is not configured.",
            )

        normalized_url = normalize_article_url(url)
        if normalized_url is None:
            return self._failed(
                url=url,
                stage="validation",
                error_code="invalid_url",
                message="Article URL must be an absolute http/https URL",
            )
        # The normalized form is only the dedupe key; the provider gets the caller's URL.
        requested_url = url.strip()

        source: ContentSource | None = None
        normalized_source_id = normalize_optional_text(source_id)
        if normalized_source_id is not None:
            try:
                source = self._source_repository.get_source(normalized_source_id)
            except DatastoreError as exc:
                return self._failed(
                    url=normalized_url,
                    stage="validation",
                    error_code="datastore_error",
                    message=str(exc),
                )
            if source is None or not source.is_active:
                return self._failed(
                    url=normalized_url,
                    stage="validation",
                    error_code="invalid_source",
                    message=f"Content source is unknown or inactive: {normalized_source_id}",
                )

        try:
            existing = self._import_repository.find_import_by_url(normalized_url)
        except DatastoreError as exc:
            return self._failed(
                url=normalized_url,
                stage="idempotency",
                error_code="datastore_error",
                message=str(exc),
            )
        if existing is not None:
            return self._duplicate(url=normalized_url, existing=existing)

        try:
            page = self._extraction_client.scrape(requested_url, api_key=override_key)
        except ConfigurationError as exc:
            return self._failed(
                url=normalized_url,
                stage="configuration",
                error_code="configuration_error",
                message=str(exc),
            )
        except ExtractionFailure as exc:
            message = str(exc) if exc.raw_error is None else f"{exc}: {exc.raw_error}"
            return self._failed(
                url=normalized_url,
                stage="extraction",
                error_code="extraction_failed",
                message=message,
            )

        draft = self._build_draft(
            page=page,
            category_id=normalize_optional_text(category_id)
            or (source.category_id if source is not None else None),
        )

        try:
            article = self._article_repository.insert_draft_article(draft)
        except UniqueConstraintViolation:
            winner = self._find_winner(normalized_url)
            LOGGER.info(
                "draft insert hit a uniqueness constraint url=%s slug=%s winner_article_id=%s",
                normalized_url,
                draft.slug,
                winner.article_id if winner is not None else None,
            )
            return self._duplicate(url=normalized_url, existing=winner)
        except DatastoreError as exc:
            return self._failed(
                url=normalized_url,
                stage="persist",
                error_code="persist_failed",
                message=str(exc),
            )

        receipt_written = True
        try:
            self._import_repository.insert_import_record(
                original_url=requested_url,
                url_key=normalized_url,
                original_title=page.metadata.title or PLACEHOLDER_TITLE,
                article_id=article.article_id,
                source_id=source.source_id if source is not None else None,
            )
        except UniqueConstraintViolation:
            # A concurrent import of the same URL recorded its receipt first.
            winner = self._find_winner(normalized_url)
            try:
                self._article_repository.delete_article(article.article_id)
            except DatastoreError as exc:
                LOGGER.warning(
                    "redundant draft not removed article_id=%s error=%s",
                    article.article_id,
                    exc,
                )
            return self._duplicate(url=normalized_url, existing=winner)
        except DatastoreError as exc:
            receipt_written = False
            LOGGER.warning(
                "import receipt write failed; draft kept url=%s article_id=%s error=%s",
                normalized_url,
                article.article_id,
                exc,
            )

        if source is not None:
            self._record_source_import(source)

        LOGGER.info(
            "article imported url=%s article_id=%s slug=%s receipt_written=%s",
            normalized_url,
            article.article_id,
            article.slug,
            receipt_written,
        )
        self._telemetry.emit(
            IMPORT_CREATED_EVENT,
            url=normalized_url,
            article_id=article.article_id,
            source_id=source.source_id if source is not None else None,
            receipt_written=receipt_written,
        )
        return ImportCreated(
            article_id=article.article_id,
            title=article.title,
            slug=article.slug,
            excerpt=article.excerpt,
            featured_image=article.featured_image,
            receipt_written=receipt_written,
        )

    def list_recent_imports(self, *, limit: int = 20) -> list[ImportRecord]:
        return self._import_repository.list_recent(limit=limit)

    def _build_draft(self, *, page: ExtractedPage, category_id: str | None) -> DraftArticle:
        title = clean_title(page.metadata.title)
        featured_image = _normalize_featured_image(page.metadata.og_image)
        return DraftArticle(
            title=title,
            slug=slugify(title, now=self._clock()),
            excerpt=build_excerpt(page.metadata.description),
            content=sanitize_to_html(page.markdown, featured_image),
            featured_image=featured_image,
            category_id=category_id,
        )

    def _find_winner(self, normalized_url: str) -> ImportRecord | None:
        try:
            return self._import_repository.find_import_by_url(normalized_url)
        except DatastoreError as exc:
            LOGGER.warning("competing import lookup failed url=%s error=%s", normalized_url, exc)
            return None

    def _record_source_import(self, source: ContentSource) -> None:
        try:
            self._source_repository.record_import(source.source_id)
        except DatastoreError as exc:
            LOGGER.warning(
                "content source counters not updated source_id=%s error=%s",
                source.source_id,
                exc,
            )

    def _duplicate(self, *, url: str, existing: ImportRecord | None) -> ImportDuplicate:
        existing_article_id = existing.article_id if existing is not None else None
        LOGGER.info(
            "article already imported url=%s existing_article_id=%s",
            url,
            existing_article_id,
        )
        self._telemetry.emit(
            IMPORT_DUPLICATE_EVENT,
            url=url,
            existing_article_id=existing_article_id,
        )
        return ImportDuplicate(existing_article_id=existing_article_id)

    def _failed(
        self,
        *,
        url: str,
        stage: ImportStage,
        error_code: ImportErrorCode,
        message: str,
    ) -> ImportFailed:
        LOGGER.warning(
            "article import failed url=%s stage=%s error_code=%s message=%s",
            url,
            stage,
            error_code,
            message,
        )
        self._telemetry.emit(
            IMPORT_FAILED_EVENT,
            url=url,
            stage=stage,
            error_code=error_code,
        )
        return ImportFailed(stage=stage, error_code=error_code, message=message)


def build_excerpt(description: str | None) -> str | None:
    if description is None:
        return None
    plain = _TAG_RE.sub("", description)
    plain = _TAG_RE.sub("", unescape(plain))
    plain = " ".join(plain.split())
    excerpt = plain[:MAX_EXCERPT_LENGTH].strip()
    return excerpt or None


def _normalize_featured_image(value: str | None) -> str | None:
    normalized = normalize_optional_text(value)
    if normalized is None or not normalized.startswith(("http://", "https://")):
        return None
    return normalized


def _utc_now() -> datetime:
    return datetime.now(UTC)
