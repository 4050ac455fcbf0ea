"""MCP server for the Prisma CLI."""

from __future__ import annotations

import sys

from infrabridge import __version__
from infrabridge.backends.prisma.config import PrismaConfig, load_config
from infrabridge.backends.prisma.connector import PrismaConnector
from infrabridge.backends.prisma.tools import TOOLS
from infrabridge.server import BackendSpec, serve

BACKEND = BackendSpec(
    name="prisma",
    version=__version__,
    tools=TOOLS,
    load_config=load_config,
    build_connector=PrismaConnector,
)


def main() -> None:
    sys.exit(serve(BACKEND))


__all__ = ["BACKEND", "TOOLS", "PrismaConfig", "PrismaConnector", "load_config", "main"]
