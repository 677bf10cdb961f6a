from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from structlog.contextvars import bind_contextvars, reset_contextvars

from newsroom_ingest.api.routes import router
from newsroom_ingest.dependencies import get_database, get_settings, get_telemetry
from newsroom_ingest.logging_config import configure_application_logging


def health_check() -> dict[str, str]:
    return {"status": "ok"}


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_application_logging(get_settings())
    get_database()
    yield


def _request_id(request: Request) -> str:
    incoming = request.headers.get("X-Request-ID")
    if isinstance(incoming, str) and incoming.strip():
        return incoming.strip()
    return str(uuid4())


async def request_context_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    telemetry = get_telemetry()
    request_id = _request_id(request)
    context_tokens = bind_contextvars(
        http_request_id=request_id,
        http_method=request.method,
        http_path=request.url.path,
    )
    started_at = perf_counter()
    telemetry.emit(
        "http.request.start",
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )
    try:
        response = await call_next(request)
    except Exception as exc:
        telemetry.emit(
            "http.request.error",
            request_id=request_id,
            path=request.url.path,
            duration_ms=int((perf_counter() - started_at) * 1000),
            error_type=type(exc).__name__,
        )
        raise
    else:
        response.headers["X-Request-ID"] = request_id
        telemetry.emit(
            "http.request.finish",
            request_id=request_id,
            path=request.url.path,
            duration_ms=int((perf_counter() - started_at) * 1000),
            status_code=response.status_code,
        )
        return response
    finally:
        reset_contextvars(**context_tokens)


def create_app() -> FastAPI:
    app = FastAPI(title="Newsroom Ingest API", version="0.1.0", lifespan=app_lifespan)
    app.middleware("http")(request_context_middleware)
    app.include_router(router)
    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        tags=["system"],
        operation_id="health_check",
    )
    return app


app = create_app()
