from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

import structlog
from structlog.typing import EventDict, Processor

from newsroom_ingest.config import AppSettings

ROOT_LOGGER_NAME = "newsroom_ingest"
TELEMETRY_LOGGER_NAME = "newsroom_ingest.telemetry"
LOG_FILE_NAME = "newsroom-ingest.log"
TELEMETRY_LOG_FILE_NAME = "newsroom-ingest-telemetry.log"


def configure_application_logging(
    settings: AppSettings,
    *,
    console_stream: TextIO | None = None,
) -> Path:
    """
    Route every `newsroom_ingest.*` logger through structlog formatters.

    Console output goes to `console_stream` (stdout for the API, stderr for the
    CLI so command output stays clean); JSON lines go to the log directory.
    Telemetry events get their own file and never reach the console.
    """
    log_dir = settings.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME
    telemetry_log_file = log_dir / TELEMETRY_LOG_FILE_NAME
    stream = console_stream if console_stream is not None else sys.stdout

    _configure_structlog()

    logger = _isolated_logger(ROOT_LOGGER_NAME, level=logging.DEBUG)
    logger.addHandler(
        _handler(
            logging.StreamHandler(stream=stream),
            level=_resolve_log_level(settings.log_level),
            formatter=_build_console_formatter(enable_colors=_stream_supports_color(stream)),
        )
    )
    logger.addHandler(
        _handler(
            logging.FileHandler(log_file, encoding="utf-8"),
            level=logging.DEBUG,
            formatter=_build_file_formatter(),
        )
    )

    telemetry_logger = _isolated_logger(TELEMETRY_LOGGER_NAME, level=logging.INFO)
    telemetry_logger.addHandler(
        _handler(
            logging.FileHandler(telemetry_log_file, encoding="utf-8"),
            level=logging.INFO,
            formatter=_build_file_formatter(),
        )
    )

    logger.debug(
        "logging configured console_level=%s path=%s telemetry_path=%s",
        settings.log_level,
        log_file,
        telemetry_log_file,
    )
    return log_file


def _isolated_logger(name: str, *, level: int) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    return logger


def _handler(
    handler: logging.Handler,
    *,
    level: int,
    formatter: logging.Formatter,
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _resolve_log_level(raw_level: str) -> int:
    resolved = logging.getLevelName(raw_level.strip().upper())
    if isinstance(resolved, int):
        return resolved
    return logging.INFO


def _configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _shared_pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
    ]


def _build_console_formatter(*, enable_colors: bool) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_pre_chain(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=enable_colors),
        ],
    )


def _build_file_formatter() -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_pre_chain(),
        processors=[
            _add_source_location,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
    )


def _add_source_location(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict["module"] = record.module
        event_dict["lineno"] = record.lineno
        event_dict["func_name"] = record.funcName
    return event_dict


def _stream_supports_color(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    if not callable(isatty):
        return False
    try:
        return bool(isatty())
    except (OSError, ValueError):
        return False
