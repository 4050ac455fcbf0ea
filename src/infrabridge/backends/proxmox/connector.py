from __future__ import annotations

import json
from typing import Any

import httpx

from infrabridge.backends.proxmox.config import ProxmoxConfig
from infrabridge.connectors.http import HttpConnector


class ProxmoxConnector(HttpConnector):
    """Proxmox VE API client using API token auth; ``execute`` returns ``data``."""

    name = "proxmox"

    def __init__(self, config: ProxmoxConfig) -> None:
        super().__init__(
            base_url=config.base_url,
            headers={"Authorization": config.auth_header()},
            timeout=config.timeout,
            verify=config.verify_ssl,
        )
        self.config = config

    def error_message(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("errors"):
            return f"Proxmox API error: {json.dumps(body['errors'])}"
        return f"Proxmox API error: {response.status_code} {response.reason_phrase}"

    def unwrap(self, body: Any) -> Any:
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body
