"""MCP server for the Proxmox VE API."""

from __future__ import annotations

import sys

from infrabridge import __version__
from infrabridge.backends.proxmox.config import ProxmoxConfig, load_config
from infrabridge.backends.proxmox.connector import ProxmoxConnector
from infrabridge.backends.proxmox.tools import TOOLS
from infrabridge.server import BackendSpec, serve

BACKEND = BackendSpec(
    name="proxmox",
    version=__version__,
    tools=TOOLS,
    load_config=load_config,
    build_connector=ProxmoxConnector,
)


def main() -> None:
    sys.exit(serve(BACKEND))


__all__ = ["BACKEND", "TOOLS", "ProxmoxConfig", "ProxmoxConnector", "load_config", "main"]
