"""
HttpRequest handler - Outbound HTTP call from a workflow.

Stores ``http.status``, ``http.body`` and ``http.ok`` plus the optional
ResponseVariable. Non-2xx responses and transport failures are reported
as is_error; nothing is retried.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import Field, field_validator

from flowforge.workflow_runtime.context import HandlerContext
from flowforge.workflow_runtime.graph import CompiledBlock, StepResult
from flowforge.workflow_runtime.variables import VariableStore, variable_key

from .base import BlockHandler, HandlerConfig, HandlerConfigError, load_config
from .http import HttpApiError, HttpClient, HttpTimeoutError


logger = logging.getLogger(__name__)


STATUS_VARIABLE = "http.status"
BODY_VARIABLE = "http.body"
OK_VARIABLE = "http.ok"


class HttpAuthType(str, Enum):
    NONE = "none"
    BEARER = "bearer"
    BASIC = "basic"
    API_KEY_HEADER = "apiKeyHeader"
    API_KEY_QUERY = "apiKeyQuery"


class HttpHeader(HandlerConfig):
    name: str = ""
    value: Optional[str] = None


class HttpRequestConfig(HandlerConfig):
    method: str = "GET"
    url: str = ""
    body: Optional[str] = None
    headers: List[HttpHeader] = Field(default_factory=list)
    auth_type: HttpAuthType = HttpAuthType.NONE
    bearer_token: Optional[str] = None
    basic_username: Optional[str] = None
    basic_password: Optional[str] = None
    api_key_name: Optional[str] = None
    api_key_value: Optional[str] = None
    response_variable: Optional[str] = None

    @field_validator("auth_type", mode="before")
    @classmethod
    def _parse_auth_type(cls, value: Any) -> Any:
        if value is None:
            return HttpAuthType.NONE
        members = list(HttpAuthType)
        if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < len(members):
            return members[value]
        if isinstance(value, str):
            for member in members:
                if member.value.lower() == value.strip().lower():
                    return member
        return value

    @field_validator("headers", mode="before")
    @classmethod
    def _null_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("body", mode="before")
    @classmethod
    def _inline_body(cls, value: Any) -> Any:
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return value


class HttpRequestHandler(BlockHandler):
    """
    Perform the configured request.

    Url and Body may be ``$var`` references. The request timeout is
    ``http_timeout_s`` shortened to whatever is left of the run deadline.
    """

    block_types = ("HttpRequest",)
    requires_config = True

    def __init__(self, client: Optional[HttpClient] = None):
        self._client = client or HttpClient()

    def execute(self, block: CompiledBlock, store: VariableStore, context: HandlerContext) -> StepResult:
        try:
            config = load_config(block, HttpRequestConfig)
        except HandlerConfigError as e:
            return StepResult.error(f"Invalid HTTP config for '{block.name}': {e}")

        url = store.resolve(config.url).strip()
        if not url:
            return StepResult.error(f"HTTP request block '{block.name}' is missing a URL.")

        if context.cancelled:
            return StepResult.error(f"HTTP request block '{block.name}' cancelled before sending")

        method = (config.method or "GET").strip().upper()
        headers, params, auth = self._build_auth(config)
        body: Optional[str] = None
        if method != "GET" and config.body:
            body = store.resolve(config.body)
            if not any(name.lower() == "content-type" for name in headers):
                headers["Content-Type"] = "application/json"

        timeout = context.bounded_timeout(float(context.settings.http_timeout_s))
        if timeout <= 0:
            return StepResult.error("HTTP request failed: run deadline reached")

        try:
            response = self._client.request(
                method,
                url,
                params=params or None,
                data=body.encode("utf-8") if body is not None else None,
                headers=headers,
                auth=auth,
                timeout=timeout,
            )
        except (HttpTimeoutError, HttpApiError) as e:
            logger.warning(f"HTTP {method} {url} failed: {e}")
            return StepResult.error(f"HTTP request failed: {e}")

        text = response.text
        store.set(STATUS_VARIABLE, str(response.status_code))
        store.set(BODY_VARIABLE, text)
        store.set(OK_VARIABLE, "true" if response.ok else "false")
        response_key = variable_key(config.response_variable)
        if response_key:
            store.set(response_key, text)

        return StepResult(
            is_error=not response.ok,
            description=f"HTTP {method} {url} => {response.status_code}",
        )

    @staticmethod
    def _build_auth(
        config: HttpRequestConfig,
    ) -> Tuple[Dict[str, str], Dict[str, str], Optional[Tuple[str, str]]]:
        """Headers, query parameters and basic auth for the request."""
        headers: Dict[str, str] = {}
        for header in config.headers:
            if header.name.strip():
                headers[header.name.strip()] = header.value or ""

        params: Dict[str, str] = {}
        auth: Optional[Tuple[str, str]] = None
        key_name = (config.api_key_name or "").strip()

        if config.auth_type == HttpAuthType.BEARER and config.bearer_token:
            headers["Authorization"] = f"Bearer {config.bearer_token}"
        elif config.auth_type == HttpAuthType.BASIC:
            auth = (config.basic_username or "", config.basic_password or "")
        elif config.auth_type == HttpAuthType.API_KEY_HEADER and key_name:
            headers[key_name] = config.api_key_value or ""
        elif config.auth_type == HttpAuthType.API_KEY_QUERY and key_name:
            params[key_name] = config.api_key_value or ""

        return headers, params, auth


__all__ = [
    "BODY_VARIABLE",
    "HttpAuthType",
    "HttpHeader",
    "HttpRequestConfig",
    "HttpRequestHandler",
    "OK_VARIABLE",
    "STATUS_VARIABLE",
]
