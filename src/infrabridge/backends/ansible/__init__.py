"""MCP server for Ansible."""

from __future__ import annotations

import sys

from infrabridge import __version__
from infrabridge.backends.ansible.config import AnsibleConfig, load_config
from infrabridge.backends.ansible.connector import AnsibleConnector
from infrabridge.backends.ansible.tools import TOOLS
from infrabridge.server import BackendSpec, serve

BACKEND = BackendSpec(
    name="ansible",
    version=__version__,
    tools=TOOLS,
    load_config=load_config,
    build_connector=AnsibleConnector,
)


def main() -> None:
    sys.exit(serve(BACKEND))


__all__ = ["BACKEND", "TOOLS", "AnsibleConfig", "AnsibleConnector", "load_config", "main"]
