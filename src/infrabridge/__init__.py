"""MCP servers bridging agents to infrastructure backends."""

from __future__ import annotations

__version__ = "0.1.0"

from .server import BackendSpec, DispatchLoop, serve

__all__ = ["BackendSpec", "DispatchLoop", "__version__", "serve"]
