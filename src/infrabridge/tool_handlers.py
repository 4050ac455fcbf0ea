"""MCP protocol-layer tool dispatch for infrabridge.server."""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.types import TextContent

from infrabridge.catalog import ToolCatalog
from infrabridge.connectors.base import Connector
from infrabridge.envelope import (
    BACKEND_ERROR,
    INTERNAL_ERROR,
    INVALID_PARAMS,
    NOT_FOUND,
    BackendFailure,
    Err,
    ErrorEnvelope,
    InvalidArguments,
    Ok,
    Result,
)
from infrabridge.telemetry import annotate, generate_request_id, trace_span
from infrabridge.validation import validate_arguments


def json_text(payload: Any) -> list[TextContent]:
    """Serialize payload into the MCP text transport format."""
    return [TextContent(type="text", text=json.dumps(payload, ensure_ascii=True, default=str))]


def error_payload(error: ErrorEnvelope) -> dict[str, Any]:
    return {"status": "error", "error": error.to_dict()}


def render(result: Result) -> list[TextContent]:
    """Turn an invocation outcome into tool result content.

    Strings are sent verbatim; every other value, and every error, is JSON.
    """
    if isinstance(result, Err):
        return json_text(error_payload(result.error))
    if isinstance(result.value, str):
        return [TextContent(type="text", text=result.value)]
    return json_text(result.value)


def enforce_response_limit(
    content: list[TextContent],
    tool_name: str,
    *,
    max_response_bytes: int,
    logger: logging.Logger,
) -> list[TextContent]:
    """Replace oversized MCP responses with a compact error payload."""
    serialized = json.dumps(
        [{"type": item.type, "text": item.text} for item in content],
        ensure_ascii=True,
    )
    total_bytes = len(serialized)
    if total_bytes <= max_response_bytes:
        return content

    logger.warning(
        "Response payload exceeded limit for %s: %d bytes (max %d)",
        tool_name,
        total_bytes,
        max_response_bytes,
    )
    return json_text(
        {
            "status": "error",
            "error": {
                "kind": BACKEND_ERROR,
                "message": "Response payload too large",
                "details": {"retryable": False},
            },
            "circuit_breaker": {
                "triggered": True,
                "original_bytes": total_bytes,
                "max_bytes": max_response_bytes,
                "tool": tool_name[:200],
            },
        }
    )


async def invoke(
    catalog: ToolCatalog,
    connector: Connector,
    name: str,
    arguments: dict[str, Any] | None,
    *,
    logger: logging.Logger,
) -> Result:
    """Look up, validate and run one tool, folding every failure into ``Err``."""
    tool = catalog.lookup(name)
    if tool is None:
        return Err(
            ErrorEnvelope(
                kind=NOT_FOUND,
                message=f"Unknown tool: {name}",
                details={"available": catalog.names()},
            )
        )

    validated = validate_arguments(tool, arguments)
    if isinstance(validated, Err):
        logger.warning("Validation error: %s", validated.error.message)
        return validated

    try:
        value = await tool.handler(connector, validated.value)
    except BackendFailure as exc:
        logger.warning("Backend error in %s: %s", name, exc.message)
        return Err(ErrorEnvelope(BACKEND_ERROR, exc.message, exc.to_details()))
    except InvalidArguments as exc:
        logger.warning("Validation error in %s: %s", name, exc)
        return Err(ErrorEnvelope(INVALID_PARAMS, f"Invalid parameters for {name}: {exc}", exc.to_details()))
    except Exception as exc:
        logger.exception("Unhandled error in %s", name)
        return Err(
            ErrorEnvelope(
                INTERNAL_ERROR,
                str(exc) or type(exc).__name__,
                {"type": type(exc).__name__},
            )
        )
    return Ok(value)


async def handle_tool(
    name: str,
    arguments: dict[str, Any] | None,
    *,
    catalog: ToolCatalog,
    connector: Connector,
    max_response_bytes: int,
    logger: logging.Logger,
) -> list[TextContent]:
    """Dispatch one tool call and return its text content, success or not."""
    request_id = generate_request_id()
    with trace_span(
        f"handle_tool/{name}",
        attributes={"tool": name, "request_id": request_id},
    ) as span:
        result = await invoke(catalog, connector, name, arguments, logger=logger)
        status = "success" if isinstance(result, Ok) else result.error.kind
        annotate(span, status=status)
        logger.info(
            "Tool %s completed with status: %s",
            name,
            status,
            extra={"request_id": request_id},
        )
    return enforce_response_limit(
        render(result),
        name,
        max_response_bytes=max_response_bytes,
        logger=logger,
    )


__all__ = [
    "enforce_response_limit",
    "error_payload",
    "handle_tool",
    "invoke",
    "json_text",
    "render",
]
