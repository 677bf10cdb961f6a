from __future__ import annotations

from functools import lru_cache

from newsroom_ingest.config import AppSettings, load_settings
from newsroom_ingest.repositories.article_repository import ArticleRepository
from newsroom_ingest.repositories.database import Database
from newsroom_ingest.repositories.import_repository import ImportRepository
from newsroom_ingest.repositories.source_repository import SourceRepository
from newsroom_ingest.services.extraction_client import FirecrawlExtractionClient
from newsroom_ingest.services.import_orchestrator import ImportOrchestrator
from newsroom_ingest.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_database() -> Database:
    database = Database(get_settings().db_path)
    database.initialize()
    return database


def get_article_repository() -> ArticleRepository:
    return ArticleRepository(get_database())


def get_import_repository() -> ImportRepository:
    return ImportRepository(get_database())


def get_source_repository() -> SourceRepository:
    return SourceRepository(get_database())


@lru_cache(maxsize=1)
def get_extraction_client() -> FirecrawlExtractionClient:
    settings = get_settings()
    return FirecrawlExtractionClient(
        api_key=settings.firecrawl_api_key,
        base_url=settings.firecrawl_base_url,
        timeout_seconds=settings.firecrawl_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_import_orchestrator() -> ImportOrchestrator:
    return ImportOrchestrator(
        article_repository=get_article_repository(),
        import_repository=get_import_repository(),
        source_repository=get_source_repository(),
        extraction_client=get_extraction_client(),
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


def reset_cached_dependencies() -> None:
    get_import_orchestrator.cache_clear()
    get_extraction_client.cache_clear()
    get_telemetry.cache_clear()
    get_database.cache_clear()
    get_settings.cache_clear()
