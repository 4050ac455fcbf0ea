"""JSON-over-HTTP connector built on ``httpx.AsyncClient``."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from infrabridge.envelope import BackendFailure
from infrabridge.telemetry import annotate, trace_span

logger = logging.getLogger("infrabridge.http")

_BODY_PREVIEW_CHARS = 2_000


def _drop_none(values: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if not values:
        return None
    cleaned = {key: value for key, value in values.items() if value is not None}
    return cleaned or None


class HttpConnector:
    """Shared request, error and lifecycle handling for REST backends.

    Subclasses override ``error_message`` to read the backend's error body and
    ``unwrap`` to strip its response envelope.
    """

    name = "http"

    def __init__(
        self,
        *,
        base_url: str,
        headers: Mapping[str, str] | None = None,
        timeout: float = 30.0,
        verify: bool = True,
        auth: httpx.Auth | tuple[str, str] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = dict(headers or {})
        self.timeout = timeout
        self.verify = verify
        self.auth = auth
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self.headers,
                timeout=self.timeout,
                verify=self.verify,
                auth=self.auth,
            )
        return self._client

    async def start(self) -> None:
        logger.debug("Opening %s client for %s", self.name, self.base_url)
        _ = self.client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def execute(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        data: Mapping[str, Any] | None = None,
    ) -> Any:
        """Send one request and return the unwrapped JSON body."""
        return self.unwrap(await self.request(method, path, params=params, json=json, data=data))

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        data: Mapping[str, Any] | None = None,
    ) -> Any:
        """Send one request and return the decoded body as the API sent it."""
        method = method.upper()
        with trace_span(
            f"http/{self.name}",
            attributes={"http_method": method, "http_path": path},
        ) as span:
            try:
                response = await self.client.request(
                    method,
                    path,
                    params=_drop_none(params),
                    json=json,
                    data=_drop_none(data),
                )
            except httpx.TimeoutException as exc:
                raise BackendFailure(
                    f"{self.name} request timed out: {method} {path}", retryable=True
                ) from exc
            except httpx.HTTPError as exc:
                raise BackendFailure(
                    f"{self.name} request failed: {method} {path}: {exc}", retryable=True
                ) from exc
            annotate(span, http_status=response.status_code)

        logger.debug("%s %s -> %s", method, path, response.status_code)
        if response.is_error:
            status = response.status_code
            raise BackendFailure(
                self.error_message(response),
                retryable=status == 429 or status >= 500,
                raw={"status": status, "body": self._body(response)},
            )
        return self._body(response)

    def _body(self, response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text[:_BODY_PREVIEW_CHARS]

    def error_message(self, response: httpx.Response) -> str:
        text = response.text.strip()[:_BODY_PREVIEW_CHARS]
        return f"HTTP {response.status_code}: {text or response.reason_phrase}"

    def unwrap(self, body: Any) -> Any:
        return body


__all__ = ["HttpConnector"]
