"""MCP server for the Cloudflare v4 API."""

from __future__ import annotations

import sys

from infrabridge import __version__
from infrabridge.backends.cloudflare.config import CloudflareConfig, load_config
from infrabridge.backends.cloudflare.connector import CloudflareConnector
from infrabridge.backends.cloudflare.tools import TOOLS
from infrabridge.server import BackendSpec, serve

BACKEND = BackendSpec(
    name="cloudflare",
    version=__version__,
    tools=TOOLS,
    load_config=load_config,
    build_connector=CloudflareConnector,
)


def main() -> None:
    sys.exit(serve(BACKEND))


__all__ = ["BACKEND", "TOOLS", "CloudflareConfig", "CloudflareConnector", "load_config", "main"]
