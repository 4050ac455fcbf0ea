"""MCP server for Ceph clusters."""

from __future__ import annotations

import sys

from infrabridge import __version__
from infrabridge.backends.ceph.config import CephConfig, load_config
from infrabridge.backends.ceph.connector import CephConnector
from infrabridge.backends.ceph.tools import TOOLS
from infrabridge.server import BackendSpec, serve

BACKEND = BackendSpec(
    name="ceph",
    version=__version__,
    tools=TOOLS,
    load_config=load_config,
    build_connector=CephConnector,
)


def main() -> None:
    sys.exit(serve(BACKEND))


__all__ = ["BACKEND", "TOOLS", "CephConfig", "CephConnector", "load_config", "main"]
