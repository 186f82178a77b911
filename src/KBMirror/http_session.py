"""HTTPX client factory and Tenacity-backed retrying GET helper.

**Purpose**
-----------
- Build one :class:`httpx.Client` per run with consistent timeouts and a
  desktop-browser User-Agent (the source site serves its book payload only to
  browser-like clients).
- Retry transient failures (connect/read errors, timeouts, retryable status
  codes) with exponential jitter. Non-retryable responses are returned to the
  caller untouched; status checks stay with the caller.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Mapping, Optional

import httpx
import tenacity
from tenacity import retry_if_exception_type, retry_if_result, stop_after_attempt

from KBMirror.config import HttpSettings

__all__ = ["DESKTOP_USER_AGENTS", "build_client", "random_user_agent", "request_with_retries"]

LOGGER = logging.getLogger(__name__)

DESKTOP_USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/121.0.0.0 Safari/537.36 Edg/121.0.0.0",
)

RETRYABLE_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.ReadError,
    httpx.WriteError,
    httpx.TimeoutException,
    httpx.RemoteProtocolError,
)


def random_user_agent() -> str:
    return random.choice(DESKTOP_USER_AGENTS)


def build_client(
    settings: Optional[HttpSettings] = None,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Create the HTTP client used for metadata, article and image requests.

    ``transport`` is forwarded to :class:`httpx.Client`; tests pass an
    :class:`httpx.MockTransport`.
    """

    cfg = settings or HttpSettings()
    user_agent = cfg.user_agent or random_user_agent()
    client = httpx.Client(
        timeout=httpx.Timeout(timeout=cfg.timeout_read_s, connect=cfg.timeout_connect_s),
        headers={"User-Agent": user_agent},
        follow_redirects=True,
        transport=transport,
    )
    LOGGER.debug(
        "HTTP client created: UA=%s, timeout=%ss, connect=%ss",
        user_agent,
        cfg.timeout_read_s,
        cfg.timeout_connect_s,
    )
    return client


def _log_retry(retry_state: tenacity.RetryCallState) -> None:
    outcome = retry_state.outcome
    if outcome is None:
        return
    if outcome.failed:
        detail = repr(outcome.exception())
    else:
        detail = f"HTTP {outcome.result().status_code}"
    LOGGER.warning(
        "Retrying %s (attempt %d): %s",
        retry_state.args[1] if len(retry_state.args) > 1 else "request",
        retry_state.attempt_number,
        detail,
    )


def request_with_retries(
    client: httpx.Client,
    url: str,
    *,
    settings: Optional[HttpSettings] = None,
    params: Optional[Mapping[str, Any]] = None,
    method: str = "GET",
) -> httpx.Response:
    """Issue ``method url`` through ``client``, retrying transient failures.

    Returns the last response once attempts are exhausted, even when its
    status is still retryable. Re-raises the last transport error when no
    response was ever received.
    """

    cfg = settings or HttpSettings()
    retry_statuses = frozenset(cfg.retry_statuses)

    def _send(method_: str, url_: str) -> httpx.Response:
        return client.request(method_, url_, params=params)

    retrying = tenacity.Retrying(
        stop=stop_after_attempt(cfg.max_attempts),
        wait=tenacity.wait_random_exponential(multiplier=cfg.backoff_base_s, max=cfg.backoff_max_s),
        retry=(
            retry_if_exception_type(RETRYABLE_EXCEPTIONS)
            | retry_if_result(lambda response: response.status_code in retry_statuses)
        ),
        before_sleep=_log_retry,
        retry_error_callback=lambda state: state.outcome.result(),
        reraise=True,
    )
    return retrying(_send, method, url)
