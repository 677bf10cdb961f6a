from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from newsroom_ingest.services.extraction_client import DEFAULT_FIRECRAWL_BASE_URL

DEFAULT_DATA_DIR = ".newsroom-ingest"

_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("db_path", Path("ingest.db")),
    ("log_dir", Path("logs")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{NEWSROOM_INGEST_DATA_DIR}}/{relative_path}` when not explicitly set."


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return bool(value) if value in (0, 1) else default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


class AppSettings(BaseSettings):
    """
    Runtime configuration for the ingestion service and CLI.

    Every option is read from `NEWSROOM_INGEST_*` environment variables or a
    local `.env` file. The extraction API key is optional here: a missing key is
    reported per import attempt, never at startup.
    """

    model_config = SettingsConfigDict(
        env_prefix="NEWSROOM_INGEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for the article store and logs.",
    )
    db_path: Path = Field(
        default=_default_in_data_dir(Path("ingest.db")),
        description=f"SQLite database path. {_data_dir_default_note(Path('ingest.db'))}",
    )

    # Extraction provider.
    firecrawl_api_key: str | None = Field(
        default=None,
        description="Firecrawl API key. Imports fail with a configuration error while unset.",
    )
    firecrawl_base_url: str = Field(
        default=DEFAULT_FIRECRAWL_BASE_URL,
        description="Firecrawl API base URL; `/scrape` is appended.",
    )
    firecrawl_timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        description="HTTP timeout for one scrape request. Failed scrapes are not retried.",
    )

    # Imports.
    recent_imports_limit: int = Field(
        default=20,
        ge=1,
        le=200,
        description="Default number of receipts returned by the recent-imports listing.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable import and request telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` writes structured events to the telemetry log; "
            "`none` disables sink output."
        ),
    )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("NEWSROOM_INGEST_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("NEWSROOM_INGEST_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("firecrawl_base_url", mode="before")
    @classmethod
    def _normalize_firecrawl_base_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("NEWSROOM_INGEST_FIRECRAWL_BASE_URL must be a string.")
        normalized = value.strip().rstrip("/")
        if not normalized.startswith(("http://", "https://")):
            raise ValueError("NEWSROOM_INGEST_FIRECRAWL_BASE_URL must be an http(s) URL.")
        return normalized

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return "INFO"
        return value.strip().upper()

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator("telemetry_enabled", mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)

    @field_validator("firecrawl_api_key", mode="before")
    @classmethod
    def _normalize_api_key(cls, value: Any) -> str | None:
        if not isinstance(value, str):
            return None
        normalized = value.strip()
        return normalized or None


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name)) for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings() -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
