from __future__ import annotations

import re
import unicodedata
from datetime import UTC, datetime

MAX_SLUG_BASE_LENGTH = 100
FALLBACK_SLUG_BASE = "article"
PLACEHOLDER_TITLE = "Imported Article"

# Hyphens only count as a separator when preceded by whitespace, so that
# hyphenated words ("state-of-the-art") survive.
_SITE_SUFFIX_RE = re.compile(r"(?:\s+-|\s*[|•–—])\s*[^-|•–—]+$")
_NON_SLUG_CHARS_RE = re.compile(r"[^a-z0-9]+")
_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def clean_title(raw_title: str | None) -> str:
    """Strip a trailing ``" - Site Name"`` style suffix; fall back to a placeholder."""
    if raw_title is None:
        return PLACEHOLDER_TITLE
    stripped = " ".join(raw_title.split())
    if not stripped:
        return PLACEHOLDER_TITLE
    cleaned = _SITE_SUFFIX_RE.sub("", stripped).strip()
    return cleaned or stripped


def slugify(title: str, *, now: datetime | None = None) -> str:
    base = slug_base(title)
    moment = now if now is not None else datetime.now(UTC)
    return f"{base}-{to_base36(int(moment.timestamp() * 1000))}"


def slug_base(title: str) -> str:
    decomposed = unicodedata.normalize("NFD", title)
    without_marks = "".join(char for char in decomposed if not unicodedata.combining(char))
    hyphenated = _NON_SLUG_CHARS_RE.sub("-", without_marks.lower()).strip("-")
    truncated = hyphenated[:MAX_SLUG_BASE_LENGTH].rstrip("-")
    return truncated or FALLBACK_SLUG_BASE


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding expects a non-negative integer")
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))
