"""MCP server for PostgreSQL."""

from __future__ import annotations

import sys

from infrabridge import __version__
from infrabridge.backends.postgresql.config import PostgresConfig, load_config
from infrabridge.backends.postgresql.connector import PostgresConnector
from infrabridge.backends.postgresql.tools import TOOLS
from infrabridge.server import BackendSpec, serve

BACKEND = BackendSpec(
    name="postgresql",
    version=__version__,
    tools=TOOLS,
    load_config=load_config,
    build_connector=PostgresConnector,
)


def main() -> None:
    sys.exit(serve(BACKEND))


__all__ = ["BACKEND", "TOOLS", "PostgresConfig", "PostgresConnector", "load_config", "main"]
