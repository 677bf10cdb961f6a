from __future__ import annotations

import sqlite3
from datetime import UTC, datetime


class DatastoreError(RuntimeError):
    pass


class UniqueConstraintViolation(DatastoreError):
    def __init__(self, message: str, *, constraint: str | None = None) -> None:
        super().__init__(message)
        self.constraint = constraint


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def translate_sqlite_error(exc: sqlite3.Error) -> DatastoreError:
    message = str(exc)
    if not isinstance(exc, sqlite3.IntegrityError):
        return DatastoreError(message)
    error_name = getattr(exc, "sqlite_errorname", None)
    if error_name in {"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"} or (
        message.startswith("UNIQUE constraint failed")
    ):
        constraint = message.split(":", 1)[1].strip() if ":" in message else None
        return UniqueConstraintViolation(message, constraint=constraint)
    return DatastoreError(message)
