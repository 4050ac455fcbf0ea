from __future__ import annotations

import logging
import os
import sqlite3
from collections.abc import Sequence

from infrabridge.backends.ansible.config import AnsibleConfig
from infrabridge.backends.ansible.history import RunHistory
from infrabridge.connectors.process import CommandResult, CommandRunner
from infrabridge.envelope import BackendFailure

logger = logging.getLogger("infrabridge.ansible")


class AnsibleConnector:
    """Runs the ansible CLIs and keeps the playbook run history."""

    name = "ansible"

    def __init__(
        self,
        config: AnsibleConfig,
        runner: CommandRunner | None = None,
        history: RunHistory | None = None,
    ) -> None:
        self.config = config
        self.runner = runner or CommandRunner(
            timeout_seconds=config.command_timeout, env=config.environment()
        )
        self.history = history or RunHistory(config.db_path)

    async def start(self) -> None:
        try:
            self.history.open()
        except (OSError, sqlite3.Error) as exc:
            raise BackendFailure(f"Cannot open run history {self.config.db_path}: {exc}") from exc
        logger.info("Ansible inventory %s, playbooks %s", self.config.inventory_path, self.config.playbooks_path)

    async def close(self) -> None:
        self.history.close()
        await self.runner.close()

    def program(self, name: str) -> str:
        """Resolve an ansible tool next to ``ansible_path`` when that is a path."""
        if os.sep not in self.config.ansible_path:
            return self.config.ansible_path if name == "ansible" else name
        return os.path.join(os.path.dirname(self.config.ansible_path), name)

    async def execute(self, name: str, args: Sequence[str], *, check: bool = True) -> CommandResult:
        return await self.runner.execute(self.program(name), args, check=check)

    async def run_playbook(
        self,
        playbook: str,
        inventory: str,
        args: Sequence[str],
        *,
        tags: str | None = None,
        limit: str | None = None,
        extra_vars: str | None = None,
        check_mode: bool = False,
    ) -> tuple[int, CommandResult]:
        """Run ``ansible-playbook`` and record the outcome; a failed play is a result, not an error."""
        run_id = self.history.create_run(
            playbook, inventory, tags=tags, limit=limit, extra_vars=extra_vars, check_mode=check_mode
        )
        try:
            result = await self.execute("ansible-playbook", args, check=False)
        except BackendFailure as exc:
            self.history.finish_run(run_id, status="failed", exit_code=None, stdout="", stderr=exc.message)
            raise
        self.history.finish_run(
            run_id,
            status="success" if result.success else "failed",
            exit_code=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
        return run_id, result
