"""
HTTP Client - Outbound calls made by HttpRequest blocks.

Every call carries an explicit timeout; transport failures surface as
HttpTimeoutError or HttpApiError so the handler can turn them into an
error step instead of letting them escape the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import requests
from requests.exceptions import RequestException, Timeout


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class HttpTimeoutError(Exception):
    """The remote service did not answer within the timeout."""

    def __init__(self, message: str, timeout: float, url: str):
        self.timeout = timeout
        self.url = url
        super().__init__(message)


class HttpApiError(Exception):
    """The request failed before any response arrived."""

    def __init__(self, message: str, url: Optional[str] = None, method: Optional[str] = None):
        self.url = url
        self.method = method
        super().__init__(message)


@dataclass(frozen=True)
class HttpResponse:
    """Status and body of a completed call."""
    status_code: int
    text: str

    @classmethod
    def from_response(cls, response: requests.Response) -> "HttpResponse":
        return cls(status_code=int(response.status_code), text=response.text or "")

    @property
    def ok(self) -> bool:
        """True for 2xx statuses."""
        return 200 <= self.status_code < 300


class HttpClient:
    """
    Thin wrapper over ``requests.request``.

    Usage:
        client = HttpClient(timeout=10)
        response = client.request("POST", url, data=b"{}", headers={"Content-Type": "application/json"})
    """

    def __init__(
        self,
        default_headers: Optional[Dict[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Args:
            default_headers: Sent with every call; per-call headers win
            timeout: Seconds used when a call passes no timeout
        """
        self.timeout = timeout
        self.headers: Dict[str, str] = dict(default_headers or {})

    def request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        auth: Optional[Tuple[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        """
        Send one request. Non-2xx statuses are returned, not raised.

        Raises:
            HttpTimeoutError: No answer within the timeout
            HttpApiError: Connection, TLS or URL problems
        """
        merged_headers = {**self.headers, **(headers or {})}
        effective_timeout = timeout or self.timeout

        try:
            response = requests.request(
                method=method,
                url=url,
                params=params,
                data=data,
                headers=merged_headers,
                auth=auth,
                timeout=effective_timeout,
            )
        except Timeout as e:
            raise HttpTimeoutError(
                f"Request timed out after {effective_timeout}s",
                timeout=effective_timeout,
                url=url,
            ) from e
        except RequestException as e:
            raise HttpApiError(str(e), url=url, method=method) from e

        logger.debug(f"{method} {url} -> {response.status_code}")
        return HttpResponse.from_response(response)


__all__ = [
    "DEFAULT_TIMEOUT",
    "HttpApiError",
    "HttpClient",
    "HttpResponse",
    "HttpTimeoutError",
]
