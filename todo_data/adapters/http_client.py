"""Shared HTTP transport utilities for REST adapters.

This module provides a thin wrapper around ``requests.Session`` so adapter
implementations can share timeout policy, retry behavior, and API-key header
construction.

Dependencies:
    - ``requests`` for network I/O.
    - ``todo_data.adapters.api_errors`` for typed transport failures.

Call context:
    - Constructed by the REST remote sources in ``todo_data/adapters/todo_rest.py``.
    - Used only inside adapter layer methods; repositories interact through ports.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Optional

import requests
from requests import exceptions as req_exc

from todo_data.adapters.api_errors import ApiConnectionError, ApiError, ApiTimeoutError
from todo_data.config import DataConfig
from todo_data.utils.logging import (
    log_api_call,
    log_api_error,
    log_api_retry,
    log_api_success,
)

RETRYABLE_STATUSES: FrozenSet[int] = frozenset({429, 500, 502, 503, 504})


@dataclass
class HttpConfig:
    """Timeout and retry configuration for adapter HTTP calls.

    Attributes:
        request_timeout_s: Default timeout in seconds for JSON API calls.
        retries: Number of retry attempts after the initial request.
        backoff_s: Delay before the first retry.
        backoff_max_s: Upper bound for any single retry delay.
        backoff_multiplier: Growth factor applied per retry.
        retry_statuses: HTTP status codes answered with a retry.
    """
    request_timeout_s: float = 30.0
    retries: int = 3
    backoff_s: float = 1.0
    backoff_max_s: float = 10.0
    backoff_multiplier: float = 2.0
    retry_statuses: FrozenSet[int] = field(default_factory=lambda: RETRYABLE_STATUSES)

    @classmethod
    def from_data_config(cls, cfg: DataConfig) -> "HttpConfig":
        return cls(
            request_timeout_s=cfg.request_timeout_s,
            retries=cfg.retry_attempts,
            backoff_s=cfg.retry_backoff_s,
            backoff_max_s=cfg.retry_backoff_max_s,
            backoff_multiplier=cfg.retry_backoff_multiplier,
        )

    def delay_for(self, retry_index: int) -> float:
        delay = self.backoff_s * (self.backoff_multiplier ** retry_index)
        return min(delay, self.backoff_max_s)


class RetryingSession:
    """Shared requests wrapper with API-key headers and retry loops.

    This class is transport-only. Callers provide endpoint URLs and decide
    how to map non-2xx responses into typed API errors.
    """

    def __init__(
        self,
        api_key: Optional[str],
        cfg: HttpConfig,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Create a retry-enabled session.

        Args:
            api_key: Bearer token for the ``Authorization`` header, or ``None``.
            cfg: Shared timeout and retry settings.
            sleep: Blocking delay used between attempts.

        Side Effects:
            Creates a persistent ``requests.Session`` object.
        """
        self.session = requests.Session()
        self.api_key = api_key
        self.cfg = cfg
        self._sleep = sleep

    def _headers(self, json_body: bool = False) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        """Send a request with retries on transport failures and retryable statuses.

        Args:
            method: HTTP verb.
            url: Absolute endpoint URL.
            params: Optional query parameter mapping.
            json_body: Optional payload object serialized to JSON text.
            timeout: Optional timeout override in seconds.

        Returns:
            The first response whose status is not retryable, or the last
            response once attempts are exhausted.

        Raises:
            ApiTimeoutError: If the final attempt timed out.
            ApiConnectionError: If the final attempt could not connect.
        """
        method = method.upper()
        context = f"{method} {url}"
        data = None if json_body is None else json.dumps(json_body)
        attempts = self.cfg.retries + 1
        last_err: Optional[ApiError] = None
        for attempt in range(attempts):
            log_api_call(method, url, params)
            started = time.monotonic()
            try:
                resp = self.session.request(
                    method,
                    url,
                    params=params,
                    data=data,
                    headers=self._headers(json_body=json_body is not None),
                    timeout=timeout or self.cfg.request_timeout_s,
                )
            # ConnectTimeout is both a Timeout and a ConnectionError.
            except req_exc.Timeout:
                last_err = ApiTimeoutError(f"Timeout contacting {url}", context=context)
            except req_exc.ConnectionError as exc:
                label = "SSL/TLS error" if isinstance(exc, req_exc.SSLError) else "Unable to connect"
                last_err = ApiConnectionError(f"{label}: {url}", reason=exc, context=context)
            else:
                status = resp.status_code
                if status not in self.cfg.retry_statuses or attempt == attempts - 1:
                    log_api_success(method, url, status, (time.monotonic() - started) * 1000)
                    return resp
                last_err = None
                log_api_error(method, url, f"HTTP {status}")
            if last_err is not None:
                log_api_error(method, url, last_err)
            if attempt < attempts - 1:
                delay = self.cfg.delay_for(attempt)
                log_api_retry(method, url, attempt + 1, attempts - 1, delay)
                self._sleep(delay)
        assert last_err is not None
        raise last_err

    def get(self, url: str, *, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        return self.request("GET", url, params=params)

    def post(self, url: str, *, json_body: Optional[Dict[str, Any]] = None) -> requests.Response:
        return self.request("POST", url, json_body=json_body)

    def put(self, url: str, *, json_body: Optional[Dict[str, Any]] = None) -> requests.Response:
        return self.request("PUT", url, json_body=json_body)

    def patch(self, url: str, *, json_body: Optional[Dict[str, Any]] = None) -> requests.Response:
        return self.request("PATCH", url, json_body=json_body)

    def delete(self, url: str) -> requests.Response:
        return self.request("DELETE", url)


__all__ = ["HttpConfig", "RETRYABLE_STATUSES", "RetryingSession"]
