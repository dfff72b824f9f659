"""Minimal JSON-over-HTTP client used by vendor adapters.

Every request carries a timeout. Transient failures (5xx, 429, socket and TLS
errors, timeouts, truncated bodies) are retried with exponential backoff;
anything still failing surfaces as FetchError so the sync loop can isolate it.
"""

from __future__ import annotations

import json
import logging
import time
from http.client import HTTPException
from typing import Any, Callable, Mapping, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from pricing_atlas.catalog.errors import FetchError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def build_url(url: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Append query ``params`` (skipping empty values) to ``url``."""
    if not params:
        return url
    query = urlencode({key: value for key, value in params.items() if value not in (None, "")})
    if not query:
        return url
    joiner = "&" if "?" in url else "?"
    return f"{url}{joiner}{query}"


class HttpClient:
    """Blocking HTTP client with bounded timeouts and retries."""

    def __init__(
        self,
        timeout_seconds: float = 60.0,
        retry_max: int = 3,
        retry_base_delay: float = 1.0,
        opener: Optional[Callable[..., Any]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0.")
        self.timeout_seconds = timeout_seconds
        self.retry_max = retry_max
        self.retry_base_delay = retry_base_delay
        self._opener = opener or urlopen
        self._sleep = sleep

    def get_bytes(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> bytes:
        """GET ``url`` and return the raw response body."""
        full_url = build_url(url, params)
        request = Request(full_url, headers=dict(headers or {}), method="GET")
        attempt = 0
        while True:
            try:
                with self._opener(request, timeout=self.timeout_seconds) as resp:  # noqa: S310
                    return resp.read()
            except HTTPError as exc:
                if exc.code not in _RETRYABLE_STATUS or attempt >= self.retry_max:
                    raise FetchError(f"GET {url} failed with HTTP {exc.code}") from exc
                reason = f"HTTP {exc.code}"
            except (URLError, HTTPException, OSError) as exc:
                # Timeouts and SSL errors are OSErrors; IncompleteRead is an HTTPException.
                reason = str(exc) or type(exc).__name__
                if attempt >= self.retry_max:
                    raise FetchError(f"GET {url} failed: {reason}") from exc
            delay = self.retry_base_delay * (2**attempt)
            attempt += 1
            logger.warning(
                "GET %s failed (%s), retry %d/%d in %.1fs",
                url,
                reason,
                attempt,
                self.retry_max,
                delay,
            )
            self._sleep(delay)

    def get_json(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """GET ``url`` and decode its JSON body."""
        merged = {"Accept": "application/json"}
        merged.update(headers or {})
        body = self.get_bytes(url, params=params, headers=merged)
        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise FetchError(f"GET {url} returned invalid JSON: {exc}") from exc
