from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from http.client import HTTPException
from typing import Any, cast
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from newsroom_ingest.text import normalize_optional_text

LOGGER = logging.getLogger("newsroom_ingest.extraction")

DEFAULT_FIRECRAWL_BASE_URL = "https://api.firecrawl.dev/v1"
DEFAULT_TIMEOUT_SECONDS = 30.0
_MAX_RAW_ERROR_LENGTH = 2000


class ConfigurationError(RuntimeError):
    pass


class ExtractionFailure(RuntimeError):
    def __init__(self, message: str, *, raw_error: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.raw_error = raw_error
        self.status_code = status_code


@dataclass(frozen=True)
class PageMetadata:
    title: str | None = None
    description: str | None = None
    og_image: str | None = None


@dataclass(frozen=True)
class ExtractedPage:
    markdown: str
    metadata: PageMetadata


class FirecrawlExtractionClient:
    """
    Fetches the main content of a single page as markdown through Firecrawl's scrape API.

    The provider is asked for ``onlyMainContent`` so most navigation is dropped
    upstream; whatever cruft survives is handled by the markdown sanitizer.
    Every failure mode (transport, non-2xx status, empty payload) surfaces as
    ``ExtractionFailure``. Nothing is retried here.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = DEFAULT_FIRECRAWL_BASE_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = "newsroom-ingest/0.1",
    ) -> None:
        self._api_key = normalize_optional_text(api_key)
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = max(1.0, timeout_seconds)
        self._user_agent = user_agent.strip() or "newsroom-ingest/0.1"

    @property
    def configured(self) -> bool:
        return self._api_key is not None

    def scrape(self, url: str, *, api_key: str | None = None) -> ExtractedPage:
        credential = normalize_optional_text(api_key) or self._api_key
        if credential is None:
            raise ConfigurationError("Extraction API key is not configured.")
        parsed = urlparse(url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError("Article URL must be an absolute http/https URL")

        status_code, raw_body = _post_json(
            url=f"{self._base_url}/scrape",
            api_key=credential,
            payload={"url": url, "formats": ["markdown"], "onlyMainContent": True},
            timeout_seconds=self._timeout_seconds,
            user_agent=self._user_agent,
        )
        if status_code < 200 or status_code >= 300:
            raise ExtractionFailure(
                f"Extraction provider returned HTTP {status_code}",
                raw_error=_truncate(raw_body),
                status_code=status_code,
            )

        payload = _parse_json_dict(raw_body)
        if payload is None:
            raise ExtractionFailure(
                "Extraction provider returned a non-JSON payload",
                raw_error=_truncate(raw_body),
                status_code=status_code,
            )
        data = payload.get("data")
        if payload.get("success") is not True or not isinstance(data, dict):
            raise ExtractionFailure(
                "No data returned from scrape",
                raw_error=_provider_error_text(payload) or _truncate(raw_body),
                status_code=status_code,
            )

        data_dict = cast(dict[str, Any], data)
        markdown = normalize_optional_text(data_dict.get("markdown"))
        if markdown is None:
            raise ExtractionFailure(
                "Scrape returned no markdown content",
                raw_error=_provider_error_text(payload),
                status_code=status_code,
            )
        metadata = _parse_metadata(data_dict.get("metadata"))
        LOGGER.debug(
            "extraction succeeded url=%s markdown_chars=%s has_title=%s has_image=%s",
            url,
            len(markdown),
            metadata.title is not None,
            metadata.og_image is not None,
        )
        return ExtractedPage(markdown=markdown, metadata=metadata)


def _post_json(
    *,
    url: str,
    api_key: str,
    payload: dict[str, Any],
    timeout_seconds: float,
    user_agent: str,
) -> tuple[int, str]:
    request = Request(
        url,
        data=json.dumps(payload, ensure_ascii=True).encode("utf-8"),
        headers={
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": user_agent,
        },
        method="POST",
    )
    try:
        with urlopen(request, timeout=timeout_seconds) as response:
            status_code = int(response.getcode() or 0)
            raw_body = response.read().decode("utf-8", errors="replace")
    except HTTPError as exc:
        status_code = int(exc.code)
        try:
            raw_body = exc.read().decode("utf-8", errors="replace")
        except (HTTPException, OSError):
            raw_body = str(exc.reason)
    except (URLError, HTTPException, TimeoutError, OSError) as exc:
        raise ExtractionFailure(
            f"Extraction request failed: {type(exc).__name__}",
            raw_error=str(exc),
        ) from exc
    return status_code, raw_body


def _parse_metadata(raw: object) -> PageMetadata:
    if not isinstance(raw, dict):
        return PageMetadata()
    metadata = cast(dict[str, Any], raw)
    return PageMetadata(
        title=_first_text(metadata, "title", "ogTitle"),
        description=_first_text(metadata, "description", "ogDescription"),
        og_image=_first_text(metadata, "ogImage", "image"),
    )


def _first_text(metadata: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = metadata.get(key)
        if isinstance(value, list):
            value = next((item for item in cast(list[object], value) if isinstance(item, str)), None)
        normalized = normalize_optional_text(value)
        if normalized is not None:
            return normalized
    return None


def _parse_json_dict(raw_body: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(raw_body)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    raw_dict = cast(dict[object, object], parsed)
    return {str(key): value for key, value in raw_dict.items()}


def _provider_error_text(payload: dict[str, Any]) -> str | None:
    for key in ("error", "message", "details"):
        value = normalize_optional_text(payload.get(key))
        if value is not None:
            return _truncate(value)
    return None


def _truncate(value: str) -> str:
    compact = value.strip()
    if len(compact) <= _MAX_RAW_ERROR_LENGTH:
        return compact
    return f"{compact[:_MAX_RAW_ERROR_LENGTH]}..."
