from __future__ import annotations

import re
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from newsroom_ingest.text import normalize_optional_text

TRACKING_QUERY_PARAMS: frozenset[str] = frozenset(
    {
        "fbclid",
        "gclid",
        "igshid",
        "mc_cid",
        "mc_eid",
        "mkt_tok",
        "ref_src",
        "spm",
    }
)


def normalize_article_url(value: str | None) -> str | None:
    """Return the canonical form used as the import key, or None for non-http(s) input."""
    normalized = normalize_optional_text(value)
    if normalized is None:
        return None
    if any(ord(character) < 32 for character in normalized):
        return None
    parsed = urlparse(normalized)
    scheme = parsed.scheme.lower()
    if scheme not in {"http", "https"}:
        return None
    if parsed.username or parsed.password:
        return None
    host = (parsed.hostname or "").lower().strip()
    if not host:
        return None

    try:
        port = parsed.port
    except ValueError:
        return None
    netloc = host
    is_default_port = (scheme == "http" and port == 80) or (scheme == "https" and port == 443)
    if port is not None and not is_default_port:
        netloc = f"{host}:{port}"

    path = parsed.path or "/"
    path = re.sub(r"/{2,}", "/", path)
    if path != "/":
        path = path.rstrip("/")
    if not path:
        path = "/"

    kept_query: list[tuple[str, str]] = []
    for key, query_value in parse_qsl(parsed.query, keep_blank_values=False):
        normalized_key = key.lower().strip()
        if not normalized_key:
            continue
        if normalized_key.startswith("utm_") or normalized_key in TRACKING_QUERY_PARAMS:
            continue
        kept_query.append((key.strip(), query_value.strip()))
    kept_query.sort(key=lambda item: (item[0].lower(), item[1]))
    query = urlencode(kept_query, doseq=True)
    return urlunparse((scheme, netloc, path, "", query, ""))
