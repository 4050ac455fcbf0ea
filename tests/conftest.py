from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any

import pytest
from mcp.shared.message import SessionMessage
from mcp.types import JSONRPCMessage

from infrabridge.catalog import ToolCatalog
from infrabridge.connectors import process as process_module
from infrabridge.envelope import BackendFailure
from infrabridge.tools import ToolDef, integer, string

_ENV_VARS = (
    "MCP_SERVER_NAME",
    "INFRABRIDGE_LOG_LEVEL",
    "INFRABRIDGE_MAX_RESPONSE_BYTES",
    "INFRABRIDGE_BACKEND",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Any) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def mock_popen(mocker: Any) -> Any:
    popen = mocker.patch("infrabridge.connectors.process.Popen")
    process = popen.return_value
    process.pid = 4242
    process.returncode = 0
    process.communicate.return_value = ("", "")
    process.poll.return_value = 0
    return popen


@pytest.fixture
def reset_active_processes() -> Iterator[None]:
    process_module._active_processes.clear()
    yield
    process_module._active_processes.clear()


class FakeConnector:
    name = "fake"

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.started = False
        self.closed = 0

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed += 1


async def _echo(conn: FakeConnector, params: dict[str, Any]) -> Any:
    conn.calls.append(("echo", params["text"]))
    return {"echo": params["text"], "times": params["times"]}


async def _fail(conn: FakeConnector, params: dict[str, Any]) -> Any:
    conn.calls.append(("fail", params["reason"]))
    raise BackendFailure(params["reason"], retryable=True, raw={"code": 7})


async def _crash(conn: FakeConnector, params: dict[str, Any]) -> Any:
    raise KeyError("boom")


async def _text(conn: FakeConnector, params: dict[str, Any]) -> Any:
    return "plain text"


FAKE_TOOLS = (
    ToolDef(
        name="echo",
        description="Echo text back",
        parameters=(("text", string("Text to echo")), ("times", integer("Repeat count", minimum=1, default=1))),
        required=("text",),
        handler=_echo,
    ),
    ToolDef(
        name="fail",
        description="Always fails",
        parameters=(("reason", string("Failure message", default="nope")),),
        handler=_fail,
    ),
    ToolDef(name="crash", description="Raises an unexpected error", parameters=(), handler=_crash),
    ToolDef(name="text", description="Returns plain text", parameters=(), handler=_text),
)


@pytest.fixture
def fake_connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def fake_catalog() -> ToolCatalog:
    return ToolCatalog(FAKE_TOOLS)


def receive(line: str) -> SessionMessage | Exception:
    """Parse one stdin line into what ``stdio_server`` puts on its read stream."""
    try:
        return SessionMessage(JSONRPCMessage.model_validate_json(line))
    except Exception as exc:
        return exc


def encode(message: JSONRPCMessage) -> str:
    """Serialize a reply the way ``stdio_server`` writes it to stdout."""
    return message.model_dump_json(by_alias=True, exclude_none=True)


def frame(method: str, request_id: Any = None, params: Any = None) -> str:
    message: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
    if request_id is not None:
        message["id"] = request_id
    if params is not None:
        message["params"] = params
    return json.dumps(message)


def tool_payload(response: str) -> Any:
    """Decode the first text item of a tools/call reply."""
    text = json.loads(response)["result"]["content"][0]["text"]
    try:
        return json.loads(text)
    except ValueError:
        return text
