from __future__ import annotations

import logging
import re
from pathlib import Path

from infrabridge.backends.prisma.config import PrismaConfig
from infrabridge.connectors.process import CommandResult, CommandRunner
from infrabridge.envelope import BackendFailure

logger = logging.getLogger("infrabridge.prisma")

_MODEL_RE = re.compile(r"^\s*model\s+(\w+)\s*\{", re.MULTILINE)
_ENUM_RE = re.compile(r"^\s*enum\s+(\w+)\s*\{", re.MULTILINE)


def parse_schema(text: str) -> dict[str, list[str]]:
    """Model and enum names declared in a Prisma schema, in file order."""
    return {"models": _MODEL_RE.findall(text), "enums": _ENUM_RE.findall(text)}


class PrismaConnector:
    """Drives the Prisma CLI against one schema file."""

    name = "prisma"

    def __init__(self, config: PrismaConfig, runner: CommandRunner | None = None) -> None:
        self.config = config
        self.schema_path = Path(config.schema_path)
        env = {"DATABASE_URL": config.database_url} if config.database_url else None
        self.runner = runner or CommandRunner(timeout_seconds=config.timeout, env=env)

    async def start(self) -> None:
        if self.schema_path.is_file():
            logger.info("Using Prisma schema %s", self.schema_path)
        else:
            logger.warning("Prisma schema %s does not exist yet; run init_prisma or write_schema", self.schema_path)

    async def close(self) -> None:
        await self.runner.close()

    async def execute(self, *args: str, schema: bool = True, check: bool = True) -> CommandResult:
        """Run ``prisma <args>``, pointing it at the configured schema unless ``schema`` is false."""
        program, *prefix = self.config.cli
        cmd = [*prefix, *args]
        if schema:
            cmd += ["--schema", str(self.schema_path)]
        return await self.runner.execute(program, cmd, check=check, cwd=str(self.project_dir))

    @property
    def project_dir(self) -> Path:
        """Directory that holds ``prisma/``; ``prisma init`` writes into it."""
        return self.schema_path.resolve().parent.parent

    def read_schema(self) -> str:
        if not self.schema_path.is_file():
            raise BackendFailure(f"Schema file not found at {self.schema_path}")
        return self.schema_path.read_text(encoding="utf-8")

    def write_schema(self, content: str) -> None:
        try:
            self.schema_path.parent.mkdir(parents=True, exist_ok=True)
            self.schema_path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise BackendFailure(f"Failed to write schema {self.schema_path}: {exc}") from exc
        logger.info("Wrote %d characters to %s", len(content), self.schema_path)
