from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from newsroom_ingest.dependencies import reset_cached_dependencies
from newsroom_ingest.logging_config import ROOT_LOGGER_NAME, TELEMETRY_LOGGER_NAME
from newsroom_ingest.main import create_app
from newsroom_ingest.repositories.database import Database
from tests.fakes import FakeExtractionProvider


@pytest.fixture(autouse=True)
def _isolated_environment(  # pyright: ignore[reportUnusedFunction]
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.chdir(tmp_path)
    for name in (
        "NEWSROOM_INGEST_DATA_DIR",
        "NEWSROOM_INGEST_DB_PATH",
        "NEWSROOM_INGEST_LOG_DIR",
        "NEWSROOM_INGEST_FIRECRAWL_API_KEY",
        "NEWSROOM_INGEST_FIRECRAWL_BASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _detached_log_handlers() -> Iterator[None]:  # pyright: ignore[reportUnusedFunction]
    yield
    for logger_name in (ROOT_LOGGER_NAME, TELEMETRY_LOGGER_NAME):
        logger = logging.getLogger(logger_name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.propagate = True


@pytest.fixture
def provider(monkeypatch: pytest.MonkeyPatch) -> FakeExtractionProvider:
    fake = FakeExtractionProvider()
    monkeypatch.setattr("newsroom_ingest.services.extraction_client.urlopen", fake)
    return fake


@pytest.fixture
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "store" / "ingest.db")
    db.initialize()
    return db


@pytest.fixture
def runtime_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    data_dir = tmp_path / "runtime-data"
    data_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("NEWSROOM_INGEST_DATA_DIR", str(data_dir))
    monkeypatch.setenv("NEWSROOM_INGEST_FIRECRAWL_API_KEY", "test-firecrawl-key")
    monkeypatch.setenv("NEWSROOM_INGEST_TELEMETRY_SINK", "none")
    reset_cached_dependencies()
    yield data_dir
    reset_cached_dependencies()


@pytest.fixture
def client(runtime_env: Path, provider: FakeExtractionProvider) -> Iterator[TestClient]:
    _ = (runtime_env, provider)
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
