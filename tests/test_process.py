import gc
import importlib
from subprocess import TimeoutExpired
from typing import Any
from unittest.mock import MagicMock, call

import pytest

from infrabridge.envelope import BackendFailure

process_module = importlib.import_module("infrabridge.connectors.process")
CommandRunner = process_module.CommandRunner


@pytest.mark.asyncio
async def test_execute_runs_program_with_args(mock_popen: Any) -> None:
    mock_popen.return_value.communicate.return_value = ('{"ok": true}', "")
    runner = CommandRunner(timeout_seconds=42)

    result = await runner.execute("ceph", ["status", "--format", "json"])

    assert mock_popen.call_args.args[0] == ["ceph", "status", "--format", "json"]
    assert mock_popen.call_args.kwargs["start_new_session"] is True
    assert mock_popen.call_args.kwargs["text"] is True
    mock_popen.return_value.communicate.assert_called_once_with(input=None, timeout=42)
    assert result.success
    assert result.stdout == '{"ok": true}'
    assert result.args == ("ceph", "status", "--format", "json")


@pytest.mark.asyncio
async def test_execute_merges_environment(mock_popen: Any, monkeypatch: Any) -> None:
    monkeypatch.setenv("FROM_PARENT", "1")
    runner = CommandRunner(env={"ANSIBLE_REMOTE_USER": "deploy"})

    await runner.execute("ansible", ["--version"], env={"DATABASE_URL": "postgres://x"})

    env = mock_popen.call_args.kwargs["env"]
    assert env["FROM_PARENT"] == "1"
    assert env["ANSIBLE_REMOTE_USER"] == "deploy"
    assert env["DATABASE_URL"] == "postgres://x"


@pytest.mark.asyncio
async def test_stdin_text_is_piped(mock_popen: Any) -> None:
    runner = CommandRunner()

    await runner.execute("cat", stdin_text="hello")

    assert mock_popen.call_args.kwargs["stdin"] == process_module.PIPE
    mock_popen.return_value.communicate.assert_called_once_with(input="hello", timeout=600)


@pytest.mark.asyncio
async def test_call_cwd_overrides_runner_cwd(mock_popen: Any) -> None:
    runner = CommandRunner(cwd="/srv/default")

    await runner.execute("npx", ["prisma"], cwd="/srv/project")

    assert mock_popen.call_args.kwargs["cwd"] == "/srv/project"


@pytest.mark.asyncio
async def test_nonzero_exit_raises_backend_failure(mock_popen: Any) -> None:
    process = mock_popen.return_value
    process.communicate.return_value = ("ok", "some error")
    process.returncode = 2

    with pytest.raises(BackendFailure) as excinfo:
        await CommandRunner().execute("rbd", ["ls"])

    assert excinfo.value.message == "rbd exited with code 2: some error"
    assert excinfo.value.retryable is False
    assert excinfo.value.raw == {"returncode": 2, "stdout": "ok", "stderr": "some error"}


@pytest.mark.asyncio
async def test_nonzero_exit_without_check_returns_result(mock_popen: Any) -> None:
    process = mock_popen.return_value
    process.communicate.return_value = ("", "failed")
    process.returncode = 4

    result = await CommandRunner().execute("ansible-playbook", ["site.yml"], check=False)

    assert not result.success
    assert result.to_dict()["command"] == "ansible-playbook site.yml"
    assert result.to_dict()["returncode"] == 4


@pytest.mark.asyncio
async def test_timeout_kills_process_and_is_retryable(mock_popen: Any, mocker: Any) -> None:
    process = mock_popen.return_value
    process.communicate.side_effect = [TimeoutExpired(cmd="ceph", timeout=1), ("partial", "")]
    process.wait.return_value = None
    killpg = mocker.patch("infrabridge.connectors.process.os.killpg")

    with pytest.raises(BackendFailure) as excinfo:
        await CommandRunner().execute("/usr/bin/ceph", ["status"], timeout=1)

    assert excinfo.value.message == "ceph timed out after 1s"
    assert excinfo.value.retryable is True
    assert excinfo.value.raw["stdout"] == "partial"
    killpg.assert_called_once_with(4242, process_module.signal.SIGTERM)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "exception, expected_message",
    [
        (FileNotFoundError, "ceph not found or not executable"),
        (PermissionError("no execute"), "Permission denied"),
        (OSError("boom"), "Failed to start process"),
    ],
)
async def test_popen_exceptions_raise_backend_failure(
    mock_popen: Any, exception: Exception, expected_message: str
) -> None:
    mock_popen.side_effect = exception

    with pytest.raises(BackendFailure, match=expected_message):
        await CommandRunner().execute("ceph", ["health"])


@pytest.mark.asyncio
async def test_exception_during_communicate_terminates_and_propagates(mock_popen: Any, mocker: Any) -> None:
    process = mock_popen.return_value
    process.communicate.side_effect = RuntimeError("boom")
    process.wait.return_value = None
    killpg = mocker.patch("infrabridge.connectors.process.os.killpg")

    with pytest.raises(RuntimeError, match="boom"):
        await CommandRunner().execute("ceph", ["health"])

    killpg.assert_called_once()


def test_track_process_adds_to_active_set(reset_active_processes: Any) -> None:
    proc = MagicMock()

    process_module._track_process(proc)

    assert any(ref() is proc for ref in process_module._active_processes)


def test_untrack_process_removes_from_set(reset_active_processes: Any) -> None:
    proc = MagicMock()
    process_module._track_process(proc)

    process_module._untrack_process(proc)

    assert not process_module._active_processes


def test_track_process_weakref_allows_gc(reset_active_processes: Any) -> None:
    proc = MagicMock()
    process_module._track_process(proc)

    del proc
    gc.collect()

    assert not process_module._active_processes


def test_terminate_process_sends_sigterm(mocker: Any) -> None:
    proc = MagicMock()
    proc.pid = 123
    mocker.patch.object(proc, "wait", return_value=None)
    killpg = mocker.patch("infrabridge.connectors.process.os.killpg")

    process_module._terminate_process(proc)

    killpg.assert_called_once_with(proc.pid, process_module.signal.SIGTERM)
    proc.wait.assert_called_once_with(timeout=5)


def test_terminate_process_escalates_to_sigkill(mocker: Any) -> None:
    proc = MagicMock()
    proc.pid = 456
    mocker.patch.object(
        proc,
        "wait",
        side_effect=[TimeoutExpired(cmd="ansible-playbook", timeout=5), None],
    )
    killpg = mocker.patch("infrabridge.connectors.process.os.killpg")

    process_module._terminate_process(proc)

    assert killpg.call_args_list == [
        call(proc.pid, process_module.signal.SIGTERM),
        call(proc.pid, process_module.signal.SIGKILL),
    ]
    assert proc.wait.call_count == 2


def test_terminate_process_handles_already_dead(mocker: Any) -> None:
    proc = MagicMock()
    proc.pid = 789
    mocker.patch.object(proc, "wait")
    killpg = mocker.patch(
        "infrabridge.connectors.process.os.killpg",
        side_effect=ProcessLookupError,
    )

    process_module._terminate_process(proc)

    killpg.assert_called_once_with(proc.pid, process_module.signal.SIGTERM)
    proc.wait.assert_not_called()


def test_cleanup_processes_terminates_running(
    mocker: Any, reset_active_processes: Any
) -> None:
    running = MagicMock()
    running.pid = 111
    running.poll.return_value = None
    finished = MagicMock()
    finished.pid = 222
    finished.poll.return_value = 0
    process_module._track_process(running)
    process_module._track_process(finished)
    terminate = mocker.patch("infrabridge.connectors.process._terminate_process")

    process_module._cleanup_processes()

    terminate.assert_called_once_with(running)
    assert not process_module._active_processes


@pytest.mark.asyncio
async def test_close_cleans_up_orphans(mocker: Any) -> None:
    cleanup = mocker.patch("infrabridge.connectors.process._cleanup_processes")

    await CommandRunner().close()

    cleanup.assert_called_once_with()
