from __future__ import annotations

import io
import json
from collections import Counter
from collections.abc import Mapping
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request

from newsroom_ingest.telemetry import TelemetryValue


class _FakeHttpResponse:
    def __init__(self, status_code: int, body: str) -> None:
        self._status_code = status_code
        self._body = body.encode("utf-8")

    def __enter__(self) -> _FakeHttpResponse:
        return self

    def __exit__(self, *_exc_info: object) -> None:
        return None

    def getcode(self) -> int:
        return self._status_code

    def read(self) -> bytes:
        return self._body


class FakeExtractionProvider:
    """Stands in for `urlopen` inside the extraction client module."""

    def __init__(self) -> None:
        self.requests: list[Request] = []
        self.timeouts: list[float | None] = []
        self._status_code = 200
        self._body = ""
        self._transport_error: Exception | None = None
        self.respond_with_page(markdown="# Hello\n\nWorld", title="Hello World - Example.com")

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def respond(self, status_code: int, body: str) -> None:
        self._status_code = status_code
        self._body = body
        self._transport_error = None

    def respond_json(self, status_code: int, payload: dict[str, Any]) -> None:
        self.respond(status_code, json.dumps(payload))

    def respond_with_page(
        self,
        *,
        markdown: str,
        title: str | None = None,
        description: str | None = None,
        og_image: str | None = None,
    ) -> None:
        metadata: dict[str, Any] = {}
        if title is not None:
            metadata["title"] = title
        if description is not None:
            metadata["description"] = description
        if og_image is not None:
            metadata["ogImage"] = og_image
        self.respond_json(200, {"success": True, "data": {"markdown": markdown, "metadata": metadata}})

    def fail_transport(self, error: Exception | None = None) -> None:
        self._transport_error = error or URLError("connection refused")

    def sent_payload(self, index: int = -1) -> dict[str, Any]:
        data = self.requests[index].data
        assert isinstance(data, bytes)
        return json.loads(data.decode("utf-8"))

    def __call__(self, request: Request, timeout: float | None = None) -> _FakeHttpResponse:
        self.requests.append(request)
        self.timeouts.append(timeout)
        if self._transport_error is not None:
            raise self._transport_error
        if self._status_code >= 400:
            raise HTTPError(
                request.full_url,
                self._status_code,
                "error",
                hdrs=None,  # type: ignore[arg-type]
                fp=io.BytesIO(self._body.encode("utf-8")),
            )
        return _FakeHttpResponse(self._status_code, self._body)


class CountingTelemetrySink:
    """Keeps every emitted event in memory."""

    def __init__(self) -> None:
        self.counts: Counter[str] = Counter()
        self.events: list[tuple[str, dict[str, TelemetryValue]]] = []

    def emit(self, *, event_name: str, attributes: Mapping[str, TelemetryValue]) -> None:
        self.counts[event_name] += 1
        self.events.append((event_name, dict(attributes)))
