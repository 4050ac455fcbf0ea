"""Tool schema definitions for infrabridge MCP servers.

This module provides dataclasses and functions for defining MCP tool schemas
in a reusable, type-safe manner. Every backend declares its catalog as a tuple
of ``ToolDef`` values; the same declaration drives capability discovery
(``tools/list``) and argument validation.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from mcp.types import Tool

Handler = Callable[[Any, dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class ParameterDef:
    """Definition for a JSON Schema parameter."""

    type: str  # "string", "integer", "number", "boolean", "array", "object", "any"
    description: str = ""
    default: Any = None
    enum: tuple[Any, ...] | None = None
    minimum: float | None = None
    maximum: float | None = None
    items: ParameterDef | None = None  # For array types
    properties: tuple[tuple[str, ParameterDef], ...] | None = None  # For object types
    required: tuple[str, ...] = ()  # Required keys of an object type


@dataclass(frozen=True)
class ToolDef:
    """Definition for an MCP tool.

    ``handler`` is awaited with the backend connector and the validated
    argument record. It returns a string (sent verbatim) or any JSON-friendly
    value (serialized).
    """

    name: str
    description: str
    parameters: tuple[tuple[str, ParameterDef], ...]  # Ordered (name, param) pairs
    handler: Handler
    required: tuple[str, ...] = ()


# =============================================================================
# Parameter helpers
# =============================================================================


def string(description: str, **kwargs: Any) -> ParameterDef:
    return ParameterDef(type="string", description=description, **kwargs)


def integer(description: str, **kwargs: Any) -> ParameterDef:
    return ParameterDef(type="integer", description=description, **kwargs)


def number(description: str, **kwargs: Any) -> ParameterDef:
    return ParameterDef(type="number", description=description, **kwargs)


def boolean(description: str, **kwargs: Any) -> ParameterDef:
    return ParameterDef(type="boolean", description=description, **kwargs)


def array(description: str, items: ParameterDef | None = None, **kwargs: Any) -> ParameterDef:
    return ParameterDef(type="array", description=description, items=items, **kwargs)


def obj(
    description: str,
    properties: tuple[tuple[str, ParameterDef], ...] | None = None,
    required: tuple[str, ...] = (),
    **kwargs: Any,
) -> ParameterDef:
    return ParameterDef(
        type="object",
        description=description,
        properties=properties,
        required=required,
        **kwargs,
    )


def anything(description: str, **kwargs: Any) -> ParameterDef:
    return ParameterDef(type="any", description=description, **kwargs)


# =============================================================================
# Schema generation functions
# =============================================================================


def _param_to_schema(param: ParameterDef) -> dict[str, Any]:
    """Convert a ParameterDef to a JSON Schema dict."""
    schema: dict[str, Any] = {}
    if param.type != "any":
        schema["type"] = param.type

    if param.description:
        schema["description"] = param.description
    if param.default is not None:
        schema["default"] = param.default
    if param.enum is not None:
        schema["enum"] = list(param.enum)
    if param.minimum is not None:
        schema["minimum"] = param.minimum
    if param.maximum is not None:
        schema["maximum"] = param.maximum
    if param.items is not None:
        schema["items"] = _param_to_schema(param.items)
    if param.properties is not None:
        schema["properties"] = {name: _param_to_schema(sub) for name, sub in param.properties}
        if param.required:
            schema["required"] = list(param.required)

    return schema


def build_input_schema(tool: ToolDef) -> dict[str, Any]:
    """Convert ToolDef to MCP inputSchema dict.

    Args:
        tool: The tool definition to convert.

    Returns:
        A JSON Schema dict suitable for MCP Tool.inputSchema.
    """
    schema: dict[str, Any] = {
        "type": "object",
        "properties": {name: _param_to_schema(param) for name, param in tool.parameters},
    }

    if tool.required:
        schema["required"] = list(tool.required)

    return schema


def to_mcp_tool(tool: ToolDef) -> Tool:
    """Build the MCP Tool descriptor advertised by ``tools/list``."""
    return Tool(
        name=tool.name,
        description=tool.description,
        inputSchema=build_input_schema(tool),
    )


__all__ = [
    "Handler",
    "ParameterDef",
    "ToolDef",
    "anything",
    "array",
    "boolean",
    "build_input_schema",
    "integer",
    "number",
    "obj",
    "string",
    "to_mcp_tool",
]
