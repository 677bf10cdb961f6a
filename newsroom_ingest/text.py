from __future__ import annotations


def normalize_optional_text(value: object) -> str | None:
    """Return ``value`` stripped, or None when it is not a string or is blank."""
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if not normalized:
        return None
    return normalized
