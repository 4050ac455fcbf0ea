"""Registry of the tools a server exposes."""

from __future__ import annotations

from collections.abc import Iterable

from mcp.types import Tool

from infrabridge.tools import ToolDef, to_mcp_tool


class DuplicateToolError(ValueError):
    """Raised at startup when two tools share a name."""


class ToolCatalog:
    """Ordered, name-unique mapping of tool definitions.

    Descriptors are built once at registration so ``list()`` is stable across
    calls.
    """

    def __init__(self, tools: Iterable[ToolDef] = ()) -> None:
        self._tools: dict[str, ToolDef] = {}
        self._descriptors: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: ToolDef) -> None:
        if tool.name in self._tools:
            raise DuplicateToolError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool
        self._descriptors[tool.name] = to_mcp_tool(tool)

    def list(self) -> list[Tool]:
        return list(self._descriptors.values())

    def lookup(self, name: str) -> ToolDef | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools


__all__ = ["DuplicateToolError", "ToolCatalog"]
