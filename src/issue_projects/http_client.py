"""GraphQL client with GitHub rate-limit handling and retry/backoff."""

from __future__ import annotations

import json
import os
import time
from typing import Any, Dict, Optional

import requests

from .config import (
    BACKOFF_BASE_SEC,
    MAX_RETRIES,
    MAX_WAIT_ON_RATE_LIMIT,
    REQUEST_TIMEOUT,
    USER_AGENT,
)
from .errors import SchemaMismatch, ThrottlePrimary, ThrottleSecondary, TransportError

RETRYABLE_STATUSES = {500, 502, 503, 504}
DEFAULT_RATE_LIMIT_WAIT_SEC = 60


class _TransientError(Exception):
    """Network hiccup or 5xx that is worth another attempt."""


def sleep_with_jitter(base: float) -> None:
    """Pause execution with +/- 25% jitter to avoid synchronized retries."""
    jitter = base * 0.25 * (0.5 - (os.urandom(1)[0] / 255.0))
    time.sleep(max(0.0, base + jitter))


def error_message(resp: requests.Response) -> str:
    """Extract GitHub's error message from a JSON or plain-text response."""
    try:
        body = resp.json()
    except ValueError:
        body = {"text": (resp.text or "")[:300]}
    if not isinstance(body, dict):
        return str(body)[:300]
    return str(body.get("message") or body.get("error") or body.get("text") or "")


def log_http_error(resp: requests.Response, url: str) -> None:
    """Print a short, human-readable message when GitHub returns an error."""
    print(f"[error] HTTP {resp.status_code} for {url}\n  -> {error_message(resp)}")


def rate_limit_wait(headers: Any, default: float = DEFAULT_RATE_LIMIT_WAIT_SEC) -> float:
    """Seconds to wait before retrying, from Retry-After or X-RateLimit-Reset."""
    headers = headers or {}
    retry_after = headers.get("Retry-After")
    reset = headers.get("X-RateLimit-Reset")
    if retry_after and str(retry_after).isdigit():
        return float(retry_after)
    if reset and str(reset).isdigit():
        return float(max(0, int(reset) - int(time.time())) + 1)
    return float(default)


class GraphQLClient:
    """Executes GraphQL queries against one GitHub endpoint.

    Primary rate limits are waited out and retried once per call; a second
    consecutive primary limit fails the call. Secondary (abuse) limits are
    never retried. Connection errors and 5xx responses are retried with
    exponential backoff up to ``max_retries`` attempts.
    """

    def __init__(
        self,
        graphql_url: str,
        auth,
        *,
        timeout: float = REQUEST_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        max_wait: float = MAX_WAIT_ON_RATE_LIMIT,
        debug: bool = False,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.graphql_url = graphql_url
        self.auth = auth
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.max_wait = max_wait
        self.debug = debug
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "User-Agent": USER_AGENT,
                "Content-Type": "application/json",
            }
        )
        self.last_remaining: Optional[int] = None

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.auth.token()}"}

    def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run one logical query and return its `data` object."""
        payload = {"query": query, "variables": variables or {}}
        throttled = False
        failures = 0

        while True:
            try:
                return self._send(payload)
            except ThrottlePrimary as exc:
                print(f"[rate-limit] request quota exhausted for POST {self.graphql_url}")
                if throttled:
                    raise TransportError(
                        f"primary rate limit persisted after one retry: {exc}", status=exc.status
                    ) from exc
                throttled = True
                wait_sec = exc.retry_after
                if self.max_wait and wait_sec > self.max_wait:
                    raise TransportError(
                        f"rate limit resets in {wait_sec:.0f}s, beyond MAX_WAIT_ON_RATE_LIMIT={self.max_wait}",
                        status=exc.status,
                    ) from exc
                print(f"[rate-limit] retrying after {wait_sec:.0f} seconds")
                time.sleep(wait_sec)
            except ThrottleSecondary as exc:
                print(f"[warn] secondary rate limit detected for POST {self.graphql_url}: {exc}")
                raise
            except _TransientError as exc:
                failures += 1
                if failures >= self.max_retries:
                    raise TransportError(
                        f"GraphQL request failed after {failures} attempts: {exc}"
                    ) from exc
                delay = BACKOFF_BASE_SEC * (2 ** (failures - 1))
                print(f"[graphql retry {failures}/{self.max_retries}] {exc} -> sleep {delay:.1f}s")
                sleep_with_jitter(delay)

    def _send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = self.session.post(
                self.graphql_url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise _TransientError(str(exc)) from exc

        headers = resp.headers or {}
        remaining = headers.get("X-RateLimit-Remaining")
        if remaining is not None and str(remaining).isdigit():
            self.last_remaining = int(remaining)

        status = resp.status_code
        if status in (403, 429):
            self._raise_for_throttle(resp)
        if status in RETRYABLE_STATUSES:
            raise _TransientError(f"HTTP {status}")
        if status != 200:
            log_http_error(resp, self.graphql_url)
            raise TransportError(f"HTTP {status}: {error_message(resp)}", status=status)

        try:
            body = resp.json()
        except ValueError as exc:
            raise SchemaMismatch(f"GraphQL response is not JSON: {(resp.text or '')[:200]}") from exc
        if not isinstance(body, dict):
            raise SchemaMismatch(f"GraphQL response is not an object: {type(body).__name__}")

        if self.debug:
            print(f"[debug] GraphQL response: {json.dumps(body, indent=2)}")

        errors = body.get("errors")
        if errors:
            if any(isinstance(err, dict) and err.get("type") == "RATE_LIMITED" for err in errors):
                raise ThrottlePrimary("GraphQL RATE_LIMITED", retry_after=rate_limit_wait(headers), status=status)
            messages = ", ".join(
                str(err.get("message")) for err in errors if isinstance(err, dict)
            )
            raise TransportError(f"GraphQL error: {messages or errors}", status=status)

        data = body.get("data")
        if not isinstance(data, dict):
            raise SchemaMismatch("GraphQL response has no data object")
        return data

    def _raise_for_throttle(self, resp: requests.Response) -> None:
        """Classify a 403/429 as primary or secondary rate limiting, else a hard error."""
        headers = resp.headers or {}
        message = error_message(resp)
        lowered = message.lower()
        if "secondary rate limit" in lowered or "abuse" in lowered:
            raise ThrottleSecondary(message or "secondary rate limit", status=resp.status_code)
        if headers.get("X-RateLimit-Remaining") == "0":
            raise ThrottlePrimary(
                message or "rate limit exceeded",
                retry_after=rate_limit_wait(headers),
                status=resp.status_code,
            )
        if headers.get("Retry-After"):
            raise ThrottleSecondary(message or "throttled with Retry-After", status=resp.status_code)
        log_http_error(resp, self.graphql_url)
        raise TransportError(f"HTTP {resp.status_code}: {message}", status=resp.status_code)


__all__ = [
    "GraphQLClient",
    "sleep_with_jitter",
    "error_message",
    "log_http_error",
    "rate_limit_wait",
]
