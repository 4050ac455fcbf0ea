from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

import httpx

from infrabridge.backends.ceph.config import CephConfig
from infrabridge.connectors.http import HttpConnector
from infrabridge.connectors.process import CommandRunner

logger = logging.getLogger("infrabridge.ceph")


class CephApi(HttpConnector):
    """Ceph Dashboard REST API; bearer key when configured, otherwise basic auth."""

    name = "ceph"

    def __init__(self, config: CephConfig) -> None:
        headers = {"Content-Type": "application/json"}
        auth = None
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        elif config.api_username and config.api_password:
            auth = (config.api_username, config.api_password)
        super().__init__(
            base_url=config.api_url or "",
            headers=headers,
            timeout=config.timeout,
            auth=auth,
        )

    def error_message(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return f"Ceph API error: {body['message']}"
        return f"Ceph API error: {response.status_code} {response.reason_phrase}"


def parse_output(stdout: str) -> Any:
    """Decode ``--format json`` output; tools that ignore the flag yield their text."""
    text = stdout.strip()
    if not text:
        return {}
    try:
        return json.loads(text)
    except ValueError:
        return text


class CephConnector:
    """Runs the Ceph CLIs, routing read-only status calls to the REST API when set."""

    name = "ceph"

    def __init__(
        self,
        config: CephConfig,
        runner: CommandRunner | None = None,
    ) -> None:
        self.config = config
        self.runner = runner or CommandRunner(timeout_seconds=config.timeout)
        self.api = CephApi(config) if config.api_url else None

    async def start(self) -> None:
        if self.api is not None:
            await self.api.start()
            logger.info("Using Ceph REST API at %s", self.config.api_url)
        else:
            logger.info("Using Ceph CLI for cluster %s", self.config.cluster_name)

    async def close(self) -> None:
        if self.api is not None:
            await self.api.close()
        await self.runner.close()

    async def execute(self, program: str, args: Sequence[str] = ()) -> Any:
        """Run ``program`` with the cluster flags and ``--format json``."""
        cmd = [*self.config.cluster_args(), *args, "--format", "json"]
        result = await self.runner.execute(program, cmd)
        return parse_output(result.stdout)

    async def ceph(self, *args: str) -> Any:
        return await self.execute("ceph", args)

    async def get(self, path: str, *fallback: str) -> Any:
        """GET ``path`` from the REST API, or run ``ceph *fallback`` without one."""
        if self.api is not None:
            return await self.api.execute("GET", path)
        return await self.ceph(*fallback)
