"""Sequential MCP stdio server shared by every infrabridge backend.

Framing and UTF-8 decoding come from ``mcp.server.stdio.stdio_server``. Messages
are handled strictly one at a time: the next one is not taken from the read
stream until the reply to the previous one has been sent.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from io import TextIOWrapper
from typing import IO, Any

import anyio
from anyio import to_thread
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.server.stdio import stdio_server
from mcp.shared.message import SessionMessage
from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS
from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    LATEST_PROTOCOL_VERSION,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    CallToolResult,
    EmptyResult,
    ErrorData,
    Implementation,
    InitializeResult,
    JSONRPCError,
    JSONRPCMessage,
    JSONRPCNotification,
    JSONRPCResponse,
    ListToolsResult,
    RequestId,
    ServerCapabilities,
    ToolsCapability,
)
from pydantic import ValidationError

from infrabridge import tool_handlers
from infrabridge.catalog import DuplicateToolError, ToolCatalog
from infrabridge.config import LOG_LEVEL_ENV, ConfigError, max_response_bytes
from infrabridge.connectors.base import Connector
from infrabridge.tools import ToolDef

logger = logging.getLogger("infrabridge")

ReadStream = MemoryObjectReceiveStream[SessionMessage | Exception]
WriteStream = MemoryObjectSendStream[SessionMessage]

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


@dataclass(frozen=True)
class BackendSpec:
    """Everything ``serve`` needs to run one backend server."""

    name: str
    version: str
    tools: Sequence[ToolDef]
    load_config: Callable[[], Any]
    build_connector: Callable[[Any], Connector]
    instructions: str | None = None


def _configure_logging() -> None:
    level = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _dump(model: Any) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def _result(request_id: RequestId, model: Any) -> JSONRPCMessage:
    return JSONRPCMessage(JSONRPCResponse(jsonrpc="2.0", id=request_id, result=_dump(model)))


def _error(request_id: RequestId | None, code: int, message: str) -> JSONRPCMessage:
    error = ErrorData(code=code, message=message)
    if request_id is None:
        # JSON-RPC allows a null id when none could be read; the SDK model does not.
        return JSONRPCMessage.model_construct(JSONRPCError.model_construct(jsonrpc="2.0", id=None, error=error))
    return JSONRPCMessage(JSONRPCError(jsonrpc="2.0", id=request_id, error=error))


class DispatchLoop:
    """Takes JSON-RPC messages, routes MCP methods and sends one reply per request."""

    def __init__(
        self,
        *,
        name: str,
        version: str,
        catalog: ToolCatalog,
        connector: Connector,
        max_response_bytes: int = 5_000_000,
        instructions: str | None = None,
        logger: logging.Logger = logger,
    ) -> None:
        self.name = name
        self.version = version
        self.catalog = catalog
        self.connector = connector
        self.max_response_bytes = max_response_bytes
        self.instructions = instructions
        self.logger = logger
        self.stop_signal: signal.Signals | None = None

    async def run(self, read_stream: ReadStream, write_stream: WriteStream) -> None:
        """Serve messages from ``read_stream`` until it is closed."""
        async with read_stream, write_stream:
            async for incoming in read_stream:
                reply = await self.handle_message(incoming)
                if reply is not None:
                    await write_stream.send(SessionMessage(reply))
        self.logger.info("Transport closed; %s server stopping", self.name)

    async def handle_message(self, incoming: SessionMessage | Exception) -> JSONRPCMessage | None:
        """Process one transport item. Returns the reply, or ``None`` when none is due."""
        if isinstance(incoming, Exception):
            return self._rejected(incoming)

        message = incoming.message.root
        if isinstance(message, (JSONRPCResponse, JSONRPCError)):
            # Replies from the client; this server never issues requests.
            return None
        if isinstance(message, JSONRPCNotification):
            if "id" in (message.model_extra or {}):
                return _error(None, INVALID_REQUEST, "Invalid request: bad id")
            self.logger.debug("Notification received: %s", message.method)
            return None

        try:
            return await self._dispatch(message.id, message.method, message.params or {})
        except Exception as exc:
            self.logger.exception("Unhandled error processing %s", message.method)
            return _error(message.id, INTERNAL_ERROR, f"Internal error: {exc}")

    def _rejected(self, exc: Exception) -> JSONRPCMessage | None:
        if not isinstance(exc, ValidationError):
            self.logger.warning("Unreadable frame: %s", exc)
            return _error(None, PARSE_ERROR, f"Parse error: {exc}")

        for detail in exc.errors():
            if detail["type"] != "json_invalid":
                continue
            if not str(detail.get("input", "")).strip():
                return None
            self.logger.warning("Unparseable frame: %s", detail["msg"])
            return _error(None, PARSE_ERROR, f"Parse error: {detail['msg']}")

        self.logger.warning("Invalid request frame (%d validation errors)", exc.error_count())
        return _error(None, INVALID_REQUEST, "Invalid request")

    async def _dispatch(self, request_id: RequestId, method: str, params: dict[str, Any]) -> JSONRPCMessage:
        if method == "initialize":
            return _result(request_id, self._initialize(params))
        if method == "ping":
            return _result(request_id, EmptyResult())
        if method == "tools/list":
            return _result(request_id, ListToolsResult(tools=self.catalog.list()))
        if method == "tools/call":
            name = params.get("name")
            if not isinstance(name, str) or not name:
                return _error(request_id, INVALID_PARAMS, "tools/call requires a tool name")
            content = await tool_handlers.handle_tool(
                name,
                params.get("arguments"),
                catalog=self.catalog,
                connector=self.connector,
                max_response_bytes=self.max_response_bytes,
                logger=self.logger,
            )
            return _result(request_id, CallToolResult(content=content, isError=False))
        return _error(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")

    def _initialize(self, params: dict[str, Any]) -> InitializeResult:
        requested = params.get("protocolVersion")
        if requested in SUPPORTED_PROTOCOL_VERSIONS:
            version = requested
        else:
            version = LATEST_PROTOCOL_VERSION
        client = params.get("clientInfo") or {}
        self.logger.info(
            "Initialize from %s (protocol %s)",
            client.get("name", "unknown") if isinstance(client, dict) else "unknown",
            version,
        )
        return InitializeResult(
            protocolVersion=version,
            capabilities=ServerCapabilities(tools=ToolsCapability(listChanged=False)),
            serverInfo=Implementation(name=self.name, version=self.version),
            instructions=self.instructions,
        )


class _StdinFile(anyio.AsyncFile[str]):
    """Text stdin whose blocked ``readline`` is abandoned when the reader is cancelled."""

    async def readline(self) -> str:
        return await to_thread.run_sync(self.wrapped.readline, abandon_on_cancel=True, limiter=self.limiter)


def stdin_file(buffer: IO[bytes] | None = None) -> anyio.AsyncFile[str]:
    """Decode ``buffer`` (default: stdin) as UTF-8, replacing undecodable bytes."""
    raw = sys.stdin.buffer if buffer is None else buffer
    return _StdinFile(TextIOWrapper(raw, encoding="utf-8", errors="replace"))


async def _stop_on_signal(dispatcher: DispatchLoop, scope: anyio.CancelScope) -> None:
    with contextlib.suppress(NotImplementedError), anyio.open_signal_receiver(*SHUTDOWN_SIGNALS) as signals:
        async for signum in signals:
            dispatcher.logger.info("Received %s; shutting down", signal.Signals(signum).name)
            dispatcher.stop_signal = signal.Signals(signum)
            scope.cancel()
            return


async def run(
    dispatcher: DispatchLoop,
    connector: Connector,
    *,
    stdin: anyio.AsyncFile[str] | None = None,
    stdout: anyio.AsyncFile[str] | None = None,
) -> int:
    """Start the connector, serve stdio until EOF or SIGTERM/SIGINT, then close it."""
    try:
        await connector.start()
    except Exception as exc:
        dispatcher.logger.error("Failed to start %s backend: %s", dispatcher.name, exc)
        print(f"Error: failed to start {dispatcher.name} backend: {exc}", file=sys.stderr)
        await connector.close()
        return 1

    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(_stop_on_signal, dispatcher, tg.cancel_scope)
            async with stdio_server(stdin or stdin_file(), stdout) as (read_stream, write_stream):
                await dispatcher.run(read_stream, write_stream)
            tg.cancel_scope.cancel()
    finally:
        await connector.close()
    return 0


def serve(backend: BackendSpec) -> int:
    """Run ``backend`` as a stdio MCP server and return the process exit code."""
    _configure_logging()
    log = logging.getLogger(f"infrabridge.{backend.name}")
    try:
        limit = max_response_bytes()
        config = backend.load_config()
        catalog = ToolCatalog(backend.tools)
        connector = backend.build_connector(config)
    except (ConfigError, DuplicateToolError) as exc:
        log.error("Startup failed: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    dispatcher = DispatchLoop(
        name=f"{backend.name}-mcp-server",
        version=backend.version,
        catalog=catalog,
        connector=connector,
        max_response_bytes=limit,
        instructions=backend.instructions,
        logger=log,
    )
    log.info("Starting %s server with %d tools", backend.name, len(catalog))
    try:
        code = asyncio.run(run(dispatcher, connector))
    except KeyboardInterrupt:
        log.info("Interrupted; shutting down")
        return 0
    if dispatcher.stop_signal is not None:
        # The abandoned stdin read still holds a worker thread; exit without joining it.
        logging.shutdown()
        sys.stdout.flush()
        os._exit(code)
    return code


__all__ = ["BackendSpec", "DispatchLoop", "run", "serve", "stdin_file"]
