from __future__ import annotations

from typing import Any

import httpx

from infrabridge.backends.cloudflare.config import CloudflareConfig
from infrabridge.connectors.http import HttpConnector
from infrabridge.envelope import BackendFailure

ZONES_PAGE_SIZE = 50


def _cloudflare_errors(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    messages = [
        str(error.get("message", error)) if isinstance(error, dict) else str(error)
        for error in body.get("errors") or []
    ]
    return ", ".join(messages) or None


class CloudflareConnector(HttpConnector):
    """Cloudflare v4 API client; ``execute`` returns the ``result`` member."""

    name = "cloudflare"

    def __init__(self, config: CloudflareConfig) -> None:
        super().__init__(
            base_url=config.base_url,
            headers={"Content-Type": "application/json", **config.auth_headers()},
            timeout=config.timeout,
        )
        self.config = config

    def error_message(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return super().error_message(response)
        return f"Cloudflare API error: {_cloudflare_errors(body) or 'Unknown error'}"

    def unwrap(self, body: Any) -> Any:
        if isinstance(body, dict) and body.get("success") is False:
            raise BackendFailure(
                f"Cloudflare API error: {_cloudflare_errors(body) or 'Unknown error'}",
                raw=body,
            )
        if isinstance(body, dict) and "result" in body:
            return body["result"]
        return body

    async def page(self, path: str, params: dict[str, Any] | None = None) -> tuple[Any, dict[str, Any]]:
        """Fetch one page, returning the result with its ``result_info``."""
        body = await self.request("GET", path, params=params)
        info = body.get("result_info") if isinstance(body, dict) else None
        return self.unwrap(body), info or {}

    async def list_all_zones(self, params: dict[str, Any] | None = None) -> list[Any]:
        zones: list[Any] = []
        page = 1
        while True:
            result, info = await self.page("/zones", {**(params or {}), "page": page, "per_page": ZONES_PAGE_SIZE})
            zones.extend(result or [])
            per_page = info.get("per_page") or ZONES_PAGE_SIZE
            total = info.get("total_count")
            if total is None or page * per_page >= total or not result:
                return zones
            page += 1

    async def account_id(self) -> str:
        if self.config.account_id:
            return self.config.account_id
        user = await self.execute("GET", "/user")
        accounts = (user or {}).get("accounts") or []
        if accounts:
            return accounts[0]["id"]
        raise BackendFailure("No account ID found; set CLOUDFLARE_ACCOUNT_ID")
