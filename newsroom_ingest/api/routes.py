from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from structlog.contextvars import bind_contextvars, reset_contextvars

from newsroom_ingest.config import AppSettings
from newsroom_ingest.dependencies import (
    get_article_repository,
    get_import_orchestrator,
    get_settings,
    get_source_repository,
)
from newsroom_ingest.models.import_contracts import (
    ArticleResponse,
    CategoryCreateRequest,
    CategoryResponse,
    ImportReceiptListResponse,
    ImportReceiptResponse,
    ImportRequest,
    ImportResponse,
    SourceCreateRequest,
    SourceImportRequest,
    SourceResponse,
)
from newsroom_ingest.repositories.article_repository import ArticleRepository
from newsroom_ingest.repositories.common import DatastoreError, UniqueConstraintViolation
from newsroom_ingest.repositories.source_repository import SourceRepository
from newsroom_ingest.services.import_orchestrator import (
    ImportCreated,
    ImportDuplicate,
    ImportOrchestrator,
    ImportOutcome,
    ImportStage,
)
from newsroom_ingest.services.slugs import slug_base

router = APIRouter()

_FAILED_STAGE_STATUS_CODES: dict[ImportStage, int] = {
    "configuration": 503,
    "validation": 422,
    "idempotency": 500,
    "extraction": 502,
    "persist": 500,
}


def outcome_status_code(outcome: ImportOutcome) -> int:
    if isinstance(outcome, ImportCreated):
        return 201
    if isinstance(outcome, ImportDuplicate):
        return 409
    return _FAILED_STAGE_STATUS_CODES[outcome.stage]


def _run_import(
    orchestrator: ImportOrchestrator,
    response: Response,
    *,
    url: str,
    category_id: str | None,
    api_key: str | None,
    source_id: str | None,
) -> ImportResponse:
    context_tokens = bind_contextvars(import_url=url, import_source_id=source_id)
    try:
        outcome = orchestrator.import_article(
            url=url,
            category_id=category_id,
            api_key=api_key,
            source_id=source_id,
        )
    finally:
        reset_contextvars(**context_tokens)
    response.status_code = outcome_status_code(outcome)
    return ImportResponse.from_outcome(outcome)


@router.post(
    "/imports",
    response_model=ImportResponse,
    status_code=201,
    tags=["imports"],
    operation_id="import_article",
    responses={
        409: {"model": ImportResponse},
        422: {"model": ImportResponse},
        500: {"model": ImportResponse},
        502: {"model": ImportResponse},
        503: {"model": ImportResponse},
    },
)
def import_article(
    request: ImportRequest,
    response: Response,
    orchestrator: Annotated[ImportOrchestrator, Depends(get_import_orchestrator)],
) -> ImportResponse:
    return _run_import(
        orchestrator,
        response,
        url=request.url,
        category_id=request.category_id,
        api_key=request.api_key,
        source_id=request.source_id,
    )


@router.get(
    "/imports",
    response_model=ImportReceiptListResponse,
    tags=["imports"],
    operation_id="list_recent_imports",
)
def list_recent_imports(
    orchestrator: Annotated[ImportOrchestrator, Depends(get_import_orchestrator)],
    settings: Annotated[AppSettings, Depends(get_settings)],
    limit: Annotated[int | None, Query(ge=1, le=200)] = None,
) -> ImportReceiptListResponse:
    records = orchestrator.list_recent_imports(limit=limit or settings.recent_imports_limit)
    items = [ImportReceiptResponse.from_record(record) for record in records]
    return ImportReceiptListResponse(count=len(items), items=items)


@router.get(
    "/articles/{article_id}",
    response_model=ArticleResponse,
    tags=["articles"],
    operation_id="get_article",
)
def get_article(
    article_id: str,
    repository: Annotated[ArticleRepository, Depends(get_article_repository)],
) -> ArticleResponse:
    record = repository.get_article(article_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Article not found: {article_id}")
    return ArticleResponse.from_record(record)


@router.post(
    "/categories",
    response_model=CategoryResponse,
    status_code=201,
    tags=["categories"],
    operation_id="create_category",
)
def create_category(
    request: CategoryCreateRequest,
    repository: Annotated[SourceRepository, Depends(get_source_repository)],
) -> CategoryResponse:
    try:
        record = repository.create_category(
            name=request.name,
            slug=request.slug or slug_base(request.name),
        )
    except UniqueConstraintViolation as exc:
        raise HTTPException(status_code=409, detail="Category slug already exists") from exc
    return CategoryResponse.from_record(record)


@router.get(
    "/categories",
    response_model=list[CategoryResponse],
    tags=["categories"],
    operation_id="list_categories",
)
def list_categories(
    repository: Annotated[SourceRepository, Depends(get_source_repository)],
) -> list[CategoryResponse]:
    return [CategoryResponse.from_record(record) for record in repository.list_categories()]


@router.post(
    "/sources",
    response_model=SourceResponse,
    status_code=201,
    tags=["sources"],
    operation_id="create_source",
)
def create_source(
    request: SourceCreateRequest,
    repository: Annotated[SourceRepository, Depends(get_source_repository)],
) -> SourceResponse:
    try:
        record = repository.create_source(
            name=request.name,
            url=request.url,
            scrape_url=request.scrape_url,
            category_id=request.category_id,
            scrape_frequency_hours=request.scrape_frequency_hours,
            is_active=request.is_active,
        )
    except DatastoreError as exc:
        raise HTTPException(
            status_code=422,
            detail=f"Content source was rejected by the datastore: {exc}",
        ) from exc
    return SourceResponse.from_record(record)


@router.get(
    "/sources",
    response_model=list[SourceResponse],
    tags=["sources"],
    operation_id="list_sources",
)
def list_sources(
    repository: Annotated[SourceRepository, Depends(get_source_repository)],
    active_only: bool = False,
) -> list[SourceResponse]:
    records = repository.list_sources(active_only=active_only)
    return [SourceResponse.from_record(record) for record in records]


@router.post(
    "/sources/{source_id}/imports",
    response_model=ImportResponse,
    status_code=201,
    tags=["sources", "imports"],
    operation_id="import_article_for_source",
)
def import_article_for_source(
    source_id: str,
    request: SourceImportRequest,
    response: Response,
    orchestrator: Annotated[ImportOrchestrator, Depends(get_import_orchestrator)],
) -> ImportResponse:
    return _run_import(
        orchestrator,
        response,
        url=request.url,
        category_id=None,
        api_key=request.api_key,
        source_id=source_id,
    )
