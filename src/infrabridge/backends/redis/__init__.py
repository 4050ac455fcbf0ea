"""MCP server for Redis."""

from __future__ import annotations

import sys

from infrabridge import __version__
from infrabridge.backends.redis.config import RedisConfig, load_config
from infrabridge.backends.redis.connector import RedisConnector
from infrabridge.backends.redis.tools import TOOLS
from infrabridge.server import BackendSpec, serve

BACKEND = BackendSpec(
    name="redis",
    version=__version__,
    tools=TOOLS,
    load_config=load_config,
    build_connector=RedisConnector,
)


def main() -> None:
    sys.exit(serve(BACKEND))


__all__ = ["BACKEND", "TOOLS", "RedisConfig", "RedisConnector", "load_config", "main"]
