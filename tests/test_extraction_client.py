from __future__ import annotations

import io
from http.client import BadStatusLine, IncompleteRead, RemoteDisconnected
from pathlib import Path
from urllib.error import HTTPError
from urllib.request import Request

import pytest

from newsroom_ingest.dependencies import get_extraction_client, reset_cached_dependencies
from newsroom_ingest.services.extraction_client import (
    ConfigurationError,
    ExtractionFailure,
    FirecrawlExtractionClient,
)
from tests.fakes import FakeExtractionProvider


def _client(api_key: str | None = "test-key") -> FirecrawlExtractionClient:
    return FirecrawlExtractionClient(api_key=api_key, base_url="https://firecrawl.test/v1/")


def test_scrape_sends_markdown_request_with_bearer_auth(provider: FakeExtractionProvider) -> None:
    provider.respond_with_page(
        markdown="# Hello\n\nWorld",
        title="Hello World - Example.com",
        description="A short description",
        og_image="https://cdn.example.com/hero.jpg",
    )

    page = _client().scrape("https://example.com/a")

    assert provider.call_count == 1
    request = provider.requests[0]
    assert request.full_url == "https://firecrawl.test/v1/scrape"
    assert request.get_method() == "POST"
    assert request.get_header("Authorization") == "Bearer test-key"
    assert provider.sent_payload() == {
        "url": "https://example.com/a",
        "formats": ["markdown"],
        "onlyMainContent": True,
    }
    assert page.markdown == "# Hello\n\nWorld"
    assert page.metadata.title == "Hello World - Example.com"
    assert page.metadata.description == "A short description"
    assert page.metadata.og_image == "https://cdn.example.com/hero.jpg"


def test_scrape_prefers_per_call_api_key(provider: FakeExtractionProvider) -> None:
    _client(api_key=None).scrape("https://example.com/a", api_key="override-key")

    assert provider.requests[0].get_header("Authorization") == "Bearer override-key"


def test_scrape_without_any_key_fails_before_network(provider: FakeExtractionProvider) -> None:
    client = _client(api_key="   ")

    assert client.configured is False
    with pytest.raises(ConfigurationError):
        client.scrape("https://example.com/a")
    assert provider.call_count == 0


def test_scrape_uses_open_graph_fallbacks(provider: FakeExtractionProvider) -> None:
    provider.respond_json(
        200,
        {
            "success": True,
            "data": {
                "markdown": "Body",
                "metadata": {
                    "ogTitle": "OG title",
                    "ogDescription": "OG description",
                    "image": ["https://cdn.example.com/first.jpg", "https://cdn.example.com/b.jpg"],
                },
            },
        },
    )

    page = _client().scrape("https://example.com/a")

    assert page.metadata.title == "OG title"
    assert page.metadata.description == "OG description"
    assert page.metadata.og_image == "https://cdn.example.com/first.jpg"


def test_scrape_http_error_carries_status_and_body(provider: FakeExtractionProvider) -> None:
    provider.respond(500, '{"error": "upstream exploded"}')

    with pytest.raises(ExtractionFailure) as exc_info:
        _client().scrape("https://example.com/a")

    assert exc_info.value.status_code == 500
    assert exc_info.value.raw_error is not None
    assert "upstream exploded" in exc_info.value.raw_error
    assert provider.call_count == 1


def test_scrape_unsuccessful_payload(provider: FakeExtractionProvider) -> None:
    provider.respond_json(200, {"success": False, "error": "Blocked by robots"})

    with pytest.raises(ExtractionFailure) as exc_info:
        _client().scrape("https://example.com/a")

    assert str(exc_info.value) == "No data returned from scrape"
    assert exc_info.value.raw_error == "Blocked by robots"


@pytest.mark.parametrize(
    "payload",
    [
        {"success": True},
        {"success": True, "data": {"markdown": "   ", "metadata": {}}},
        {"success": True, "data": {"metadata": {"title": "No body"}}},
    ],
)
def test_scrape_without_markdown_fails(
    provider: FakeExtractionProvider,
    payload: dict[str, object],
) -> None:
    provider.respond_json(200, payload)

    with pytest.raises(ExtractionFailure):
        _client().scrape("https://example.com/a")


def test_scrape_non_json_body_fails(provider: FakeExtractionProvider) -> None:
    provider.respond(200, "<html>gateway</html>")

    with pytest.raises(ExtractionFailure) as exc_info:
        _client().scrape("https://example.com/a")

    assert exc_info.value.raw_error == "<html>gateway</html>"


def test_scrape_transport_error_is_not_retried(provider: FakeExtractionProvider) -> None:
    provider.fail_transport(TimeoutError("timed out"))

    with pytest.raises(ExtractionFailure) as exc_info:
        _client().scrape("https://example.com/a")

    assert "TimeoutError" in str(exc_info.value)
    assert provider.call_count == 1


def test_scrape_rejects_non_http_url(provider: FakeExtractionProvider) -> None:
    with pytest.raises(ValueError):
        _client().scrape("ftp://example.com/a")
    assert provider.call_count == 0


def test_scrape_is_bounded_by_configured_timeout(provider: FakeExtractionProvider) -> None:
    FirecrawlExtractionClient(api_key="test-key", timeout_seconds=7.5).scrape("https://example.com/a")
    FirecrawlExtractionClient(api_key="test-key").scrape("https://example.com/b")

    assert provider.timeouts == [7.5, 30.0]


def test_settings_timeout_reaches_urlopen(
    runtime_env: Path,
    monkeypatch: pytest.MonkeyPatch,
    provider: FakeExtractionProvider,
) -> None:
    _ = runtime_env
    monkeypatch.setenv("NEWSROOM_INGEST_FIRECRAWL_TIMEOUT_SECONDS", "12")
    reset_cached_dependencies()

    get_extraction_client().scrape("https://example.com/a")

    assert provider.timeouts == [12.0]


@pytest.mark.parametrize(
    "error",
    [
        TimeoutError("timed out"),
        IncompleteRead(b"partial"),
        BadStatusLine("HTTP/1.1 ???"),
        RemoteDisconnected("Remote end closed connection without response"),
    ],
)
def test_transport_errors_become_extraction_failures(
    provider: FakeExtractionProvider,
    error: Exception,
) -> None:
    provider.fail_transport(error)

    with pytest.raises(ExtractionFailure) as exc_info:
        _client().scrape("https://example.com/a")

    assert exc_info.value.status_code is None
    assert type(error).__name__ in str(exc_info.value)


def test_http_error_with_unreadable_body(monkeypatch: pytest.MonkeyPatch) -> None:
    class _TruncatedBody(io.BytesIO):
        def read(self, *_args: object) -> bytes:
            raise IncompleteRead(b"par")

    def _failing_urlopen(request: Request, timeout: float | None = None) -> object:
        _ = timeout
        raise HTTPError(
            request.full_url,
            502,
            "Bad Gateway",
            hdrs=None,  # type: ignore[arg-type]
            fp=_TruncatedBody(),
        )

    monkeypatch.setattr("newsroom_ingest.services.extraction_client.urlopen", _failing_urlopen)

    with pytest.raises(ExtractionFailure) as exc_info:
        _client().scrape("https://example.com/a")

    assert exc_info.value.status_code == 502
    assert exc_info.value.raw_error == "Bad Gateway"
