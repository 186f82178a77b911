"""Tests for the retrying HTTP helper."""

from __future__ import annotations

import httpx
import pytest

from KBMirror.config import HttpSettings
from KBMirror.http_session import DESKTOP_USER_AGENTS, build_client, request_with_retries

FAST = HttpSettings(max_attempts=3, backoff_base_s=0, backoff_max_s=0)


def _client(handler, settings: HttpSettings = FAST) -> httpx.Client:
    return build_client(settings, transport=httpx.MockTransport(handler))


def test_retries_retryable_status_then_succeeds() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503 if len(calls) == 1 else 200, text="ok")

    with _client(handler) as client:
        response = request_with_retries(client, "https://kb.test/page", settings=FAST)

    assert response.status_code == 200
    assert len(calls) == 2


def test_exhausted_retries_return_last_response() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(502)

    with _client(handler) as client:
        response = request_with_retries(client, "https://kb.test/page", settings=FAST)

    assert response.status_code == 502
    assert len(calls) == FAST.max_attempts


def test_non_retryable_status_is_returned_immediately() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(404)

    with _client(handler) as client:
        response = request_with_retries(client, "https://kb.test/page", settings=FAST)

    assert response.status_code == 404
    assert len(calls) == 1


def test_transport_errors_are_reraised_after_retries() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("refused", request=request)

    with _client(handler) as client:
        with pytest.raises(httpx.ConnectError):
            request_with_retries(client, "https://kb.test/page", settings=FAST)

    assert len(calls) == FAST.max_attempts


def test_params_are_sent() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    with _client(handler) as client:
        request_with_retries(client, "https://kb.test/api", settings=FAST, params={"mode": "markdown"})

    assert seen[0].url.params["mode"] == "markdown"


def test_build_client_user_agent() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["User-Agent"])
        return httpx.Response(200)

    fixed = HttpSettings(user_agent="kb-mirror-tests/1.0")
    with _client(handler, fixed) as client:
        client.get("https://kb.test/")
    with _client(handler) as client:
        client.get("https://kb.test/")

    assert seen[0] == "kb-mirror-tests/1.0"
    assert seen[1] in DESKTOP_USER_AGENTS
