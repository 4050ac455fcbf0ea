"""Subprocess execution for CLI-backed servers."""

from __future__ import annotations

import asyncio
import atexit
import functools
import logging
import os
import shlex
import signal
import time
import weakref
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from subprocess import DEVNULL, PIPE, Popen, TimeoutExpired
from typing import Any

from infrabridge.envelope import BackendFailure
from infrabridge.telemetry import annotate, trace_span

logger = logging.getLogger("infrabridge.process")

_TAIL_CHARS = 10_000

_active_processes: set[weakref.ref[Popen[str]]] = set()


@dataclass(frozen=True)
class CommandResult:
    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    duration_ms: int

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": shlex.join(self.args),
            "returncode": self.returncode,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration_ms": self.duration_ms,
        }


def _terminate_process(proc: Popen[str]) -> None:
    try:
        os.killpg(proc.pid, signal.SIGTERM)
    except ProcessLookupError:
        return
    try:
        proc.wait(timeout=5)
    except TimeoutExpired:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            proc.poll()  # Reap the process that died between SIGTERM and SIGKILL
            return
        proc.wait(timeout=5)


def _cleanup_processes() -> None:
    for ref in list(_active_processes):
        proc = ref()
        if proc and proc.poll() is None:
            logger.debug("Cleaning up orphan process %s", proc.pid)
            _terminate_process(proc)
    _active_processes.clear()


atexit.register(_cleanup_processes)


def _track_process(proc: Popen[str]) -> None:
    _active_processes.add(weakref.ref(proc, lambda ref: _active_processes.discard(ref)))


def _untrack_process(proc: Popen[str]) -> None:
    for ref in list(_active_processes):
        if ref() is proc:
            _active_processes.discard(ref)
            break


def _tail(value: str | None) -> str:
    if not value:
        return ""
    return value[-_TAIL_CHARS:]


class CommandRunner:
    """Runs one program at a time in its own process group.

    ``execute`` offloads the blocking ``Popen.communicate`` to the default
    executor and awaits it, so callers still see one call at a time.
    """

    name = "process"

    def __init__(
        self,
        *,
        timeout_seconds: int = 600,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.cwd = cwd
        self.env = dict(env or {})

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        _cleanup_processes()

    def _build_env(self, extra: Mapping[str, str] | None) -> dict[str, str]:
        env = dict(os.environ)
        env.update(self.env)
        if extra:
            env.update(extra)
        return env

    def run_sync(
        self,
        cmd: Sequence[str],
        *,
        timeout: int | None = None,
        check: bool = True,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        stdin_text: str | None = None,
    ) -> CommandResult:
        args = tuple(cmd)
        program = args[0]
        timeout_seconds = timeout or self.timeout_seconds
        start = time.monotonic()
        with trace_span(
            f"process/{os.path.basename(program)}",
            attributes={"program": program, "timeout_seconds": timeout_seconds},
        ) as span:
            logger.debug("Running command: %s", shlex.join(args))
            try:
                proc = Popen(
                    list(args),
                    stdin=PIPE if stdin_text is not None else DEVNULL,
                    stdout=PIPE,
                    stderr=PIPE,
                    text=True,
                    cwd=cwd or self.cwd,
                    env=self._build_env(env),
                    start_new_session=True,
                )
            except FileNotFoundError as exc:
                logger.error("%s not found or not executable", program)
                raise BackendFailure(f"{program} not found or not executable") from exc
            except PermissionError as exc:
                logger.error("Permission denied starting process: %s", exc)
                raise BackendFailure(f"Permission denied: {exc}") from exc
            except OSError as exc:
                logger.error("Failed to start process: %s", exc)
                raise BackendFailure(f"Failed to start process: {exc}") from exc

            _track_process(proc)
            try:
                stdout, stderr = proc.communicate(input=stdin_text, timeout=timeout_seconds)
            except TimeoutExpired:
                _terminate_process(proc)
                partial_stdout = ""
                partial_stderr = ""
                try:
                    remaining_out, remaining_err = proc.communicate(timeout=5)
                    partial_stdout = remaining_out or ""
                    partial_stderr = remaining_err or ""
                except (OSError, ValueError, TimeoutExpired) as exc:
                    logger.debug("Could not collect output after timeout: %s", exc)
                logger.warning("%s timed out after %ss", program, timeout_seconds)
                raise BackendFailure(
                    f"{os.path.basename(program)} timed out after {timeout_seconds}s",
                    retryable=True,
                    raw={"stdout": _tail(partial_stdout), "stderr": _tail(partial_stderr)},
                ) from None
            except BaseException:
                _terminate_process(proc)
                raise
            finally:
                _untrack_process(proc)
            annotate(span, returncode=proc.returncode)

        result = CommandResult(
            args=args,
            returncode=proc.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        logger.info(
            "%s exited with code %s in %dms",
            os.path.basename(program),
            result.returncode,
            result.duration_ms,
        )
        if check and not result.success:
            detail = result.stderr.strip() or result.stdout.strip() or "no output"
            raise BackendFailure(
                f"{os.path.basename(program)} exited with code {result.returncode}: {_tail(detail)}",
                raw={
                    "returncode": result.returncode,
                    "stdout": _tail(result.stdout),
                    "stderr": _tail(result.stderr),
                },
            )
        return result

    async def execute(
        self,
        program: str,
        args: Sequence[str] = (),
        *,
        timeout: int | None = None,
        check: bool = True,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        stdin_text: str | None = None,
    ) -> CommandResult:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            functools.partial(
                self.run_sync,
                [program, *args],
                timeout=timeout,
                check=check,
                env=env,
                cwd=cwd,
                stdin_text=stdin_text,
            ),
        )


__all__ = ["CommandResult", "CommandRunner"]
