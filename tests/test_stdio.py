import json
import signal
import subprocess
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from conftest import frame
from mcp.types import LATEST_PROTOCOL_VERSION, PARSE_ERROR

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX signals")


@pytest.fixture
def server(tmp_path: Path) -> Iterator[subprocess.Popen[bytes]]:
    proc = subprocess.Popen(
        [sys.executable, "-m", "infrabridge", "prisma"],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        cwd=tmp_path,
    )
    try:
        yield proc
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.wait(timeout=10)
        for pipe in (proc.stdin, proc.stdout, proc.stderr):
            if pipe is not None:
                pipe.close()


def test_undecodable_line_is_answered_and_server_keeps_going(server: subprocess.Popen[bytes]) -> None:
    data = b"\xff\xfe garbage\n" + frame("tools/list", 1).encode() + b"\n"

    out, err = server.communicate(data, timeout=30)

    assert server.returncode == 0, err.decode(errors="replace")
    replies = [json.loads(line) for line in out.decode().splitlines()]
    assert replies[0]["error"]["code"] == PARSE_ERROR
    assert replies[1]["id"] == 1
    assert "read_schema" in [tool["name"] for tool in replies[1]["result"]["tools"]]


@pytest.mark.parametrize("signum", [signal.SIGTERM, signal.SIGINT])
def test_shutdown_signal_while_idle_exits_cleanly(server: subprocess.Popen[bytes], signum: signal.Signals) -> None:
    assert server.stdin is not None and server.stdout is not None
    server.stdin.write(frame("initialize", 1, {"protocolVersion": LATEST_PROTOCOL_VERSION}).encode() + b"\n")
    server.stdin.flush()
    assert json.loads(server.stdout.readline())["id"] == 1

    server.send_signal(signum)

    assert server.wait(timeout=10) == 0
