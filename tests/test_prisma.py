import json
import logging
from pathlib import Path
from typing import Any

import pytest

from infrabridge.backends.prisma import TOOLS
from infrabridge.backends.prisma.config import PrismaConfig, detect_provider, load_config
from infrabridge.backends.prisma.connector import PrismaConnector, parse_schema
from infrabridge.catalog import ToolCatalog
from infrabridge.config import ConfigError
from infrabridge.envelope import Err
from infrabridge.tool_handlers import invoke

CATALOG = ToolCatalog(TOOLS)
logger = logging.getLogger("test.prisma")

SCHEMA = """\
datasource db {
  provider = "postgresql"
  url      = env("DATABASE_URL")
}

model User {
  id    Int    @id @default(autoincrement())
  posts Post[]
  role  Role
}

enum Role {
  ADMIN
  MEMBER
}

model Post {
  id Int @id
}
"""


@pytest.fixture
def schema_path(tmp_path: Path) -> Path:
    return tmp_path / "prisma" / "schema.prisma"


@pytest.fixture
def prisma(tmp_path: Path, schema_path: Path) -> PrismaConnector:
    return PrismaConnector(
        PrismaConfig(
            schema_path=str(schema_path),
            migrations_dir=str(tmp_path / "prisma" / "migrations"),
            database_url="postgresql://app@db/app",
        )
    )


async def call(prisma: PrismaConnector, tool: str, /, **arguments: Any) -> Any:
    result = await invoke(CATALOG, prisma, tool, arguments, logger=logger)
    if isinstance(result, Err):
        return result.error
    return result.value


def command(mock_popen: Any) -> list[str]:
    return mock_popen.call_args.args[0]


class TestConfig:
    @pytest.fixture(autouse=True)
    def _clear_prisma_env(self, monkeypatch: Any) -> None:
        for name in ("DATABASE_URL", "PRISMA_CLI", "PRISMA_SCHEMA_PATH", "PRISMA_MIGRATIONS_DIR", "PRISMA_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)

    def test_defaults_are_relative_to_cwd(self) -> None:
        config = load_config()

        assert config.schema_path == str(Path.cwd() / "prisma" / "schema.prisma")
        assert config.migrations_dir == str(Path.cwd() / "prisma" / "migrations")
        assert config.cli == ("npx", "prisma")
        assert config.provider is None

    def test_provider_detected_from_url(self, monkeypatch: Any) -> None:
        monkeypatch.setenv("DATABASE_URL", "mysql://root@localhost/shop")

        assert load_config().provider == "mysql"

    def test_cli_is_split(self, monkeypatch: Any) -> None:
        monkeypatch.setenv("PRISMA_CLI", "pnpm exec prisma")

        assert load_config().cli == ("pnpm", "exec", "prisma")

    def test_unknown_provider_rejected(self, tmp_path: Path) -> None:
        (tmp_path / ".prisma-mcp.json").write_text(json.dumps({"databaseProvider": "oracle"}))

        with pytest.raises(ConfigError, match="databaseProvider must be one of"):
            load_config()

    @pytest.mark.parametrize(
        ("url", "provider"),
        [
            ("postgres://u@h/db", "postgresql"),
            ("file:./dev.db", "sqlite"),
            ("sqlserver://h:1433", "sqlserver"),
            ("mongodb+srv://cluster", "mongodb"),
            ("redis://cache", None),
            (None, None),
        ],
    )
    def test_detect_provider(self, url: Any, provider: Any) -> None:
        assert detect_provider(url) == provider


class TestSchemaFile:
    def test_parse_schema(self) -> None:
        assert parse_schema(SCHEMA) == {"models": ["User", "Post"], "enums": ["Role"]}

    @pytest.mark.asyncio
    async def test_write_then_read(self, prisma: PrismaConnector, schema_path: Path) -> None:
        assert await call(prisma, "write_schema", content=SCHEMA) == "Schema written successfully"

        assert schema_path.read_text() == SCHEMA
        assert await call(prisma, "read_schema") == SCHEMA

    @pytest.mark.asyncio
    async def test_read_missing_schema(self, prisma: PrismaConnector, schema_path: Path) -> None:
        error = await call(prisma, "read_schema")

        assert error.kind == "backend_error"
        assert error.message == f"Schema file not found at {schema_path}"

    @pytest.mark.asyncio
    async def test_undecodable_schema_is_internal_error(self, prisma: PrismaConnector, schema_path: Path) -> None:
        schema_path.parent.mkdir()
        schema_path.write_bytes(b"model \xff {}\n")

        error = await call(prisma, "read_schema")

        assert error.kind == "internal_error"
        assert error.details == {"type": "UnicodeDecodeError"}

    @pytest.mark.asyncio
    async def test_list_models(self, prisma: PrismaConnector, schema_path: Path) -> None:
        schema_path.parent.mkdir()
        schema_path.write_text(SCHEMA)

        assert await call(prisma, "list_models") == {"models": ["User", "Post"], "enums": ["Role"]}


class TestCliTools:
    @pytest.mark.asyncio
    async def test_validate_points_at_schema(
        self, prisma: PrismaConnector, mock_popen: Any, schema_path: Path, tmp_path: Path
    ) -> None:
        assert await call(prisma, "validate_schema") == "Schema is valid"

        assert command(mock_popen) == ["npx", "prisma", "validate", "--schema", str(schema_path)]
        kwargs = mock_popen.call_args.kwargs
        assert kwargs["cwd"] == str(tmp_path.resolve())
        assert kwargs["env"]["DATABASE_URL"] == "postgresql://app@db/app"

    @pytest.mark.asyncio
    async def test_init_uses_configured_provider(self, prisma: PrismaConnector, mock_popen: Any) -> None:
        result = await call(prisma, "init_prisma", provider="sqlite")

        assert result.startswith("Prisma project initialized with sqlite provider.")
        assert command(mock_popen) == ["npx", "prisma", "init", "--datasource-provider", "sqlite"]

    @pytest.mark.asyncio
    async def test_db_push_accepting_data_loss(self, prisma: PrismaConnector, mock_popen: Any) -> None:
        mock_popen.return_value.communicate.return_value = ("Your database is now in sync\n", "")

        result = await call(prisma, "db_push", acceptDataLoss=True)

        assert result == "Your database is now in sync"
        assert command(mock_popen)[2:5] == ["db", "push", "--accept-data-loss"]

    @pytest.mark.asyncio
    async def test_migrate_create_only(self, prisma: PrismaConnector, mock_popen: Any) -> None:
        result = await call(prisma, "migrate_create", name="add_users")

        assert result == 'Migration "add_users" created successfully'
        assert command(mock_popen)[2:7] == ["migrate", "dev", "--name", "add_users", "--create-only"]

    @pytest.mark.asyncio
    async def test_migrate_status_pending_is_not_an_error(self, prisma: PrismaConnector, mock_popen: Any) -> None:
        process = mock_popen.return_value
        process.returncode = 1
        process.communicate.return_value = ("1 migration has not yet been applied\n", "")

        result = await call(prisma, "migrate_status")

        assert result == {"upToDate": False, "output": "1 migration has not yet been applied"}

    @pytest.mark.asyncio
    async def test_migrate_resolve_needs_a_migration(self, prisma: PrismaConnector, mock_popen: Any) -> None:
        error = await call(prisma, "migrate_resolve")

        assert error.kind == "invalid_params"
        assert error.message == "Invalid parameters for migrate_resolve: applied: provide applied or rolledBack"
        mock_popen.assert_not_called()

    @pytest.mark.asyncio
    async def test_migrate_resolve_rolled_back(self, prisma: PrismaConnector, mock_popen: Any) -> None:
        await call(prisma, "migrate_resolve", rolledBack="20240101_init")

        assert command(mock_popen)[2:6] == ["migrate", "resolve", "--rolled-back", "20240101_init"]

    @pytest.mark.asyncio
    async def test_migrate_diff_defaults_sources(
        self, prisma: PrismaConnector, mock_popen: Any, tmp_path: Path
    ) -> None:
        mock_popen.return_value.communicate.return_value = ("CREATE TABLE users ();\n", "")

        result = await call(prisma, "migrate_diff", **{"from": "migrations", "to": "schema-datamodel", "script": True})

        assert result == "CREATE TABLE users ();\n"
        assert command(mock_popen) == [
            "npx",
            "prisma",
            "migrate",
            "diff",
            "--from-migrations",
            str(tmp_path / "prisma" / "migrations"),
            "--to-schema-datamodel",
            str(tmp_path / "prisma" / "schema.prisma"),
            "--script",
        ]

    @pytest.mark.asyncio
    async def test_migrate_diff_empty_source(self, prisma: PrismaConnector, mock_popen: Any) -> None:
        await call(prisma, "migrate_diff", **{"from": "empty", "to": "url", "toValue": "file:./dev.db"})

        assert command(mock_popen)[4:] == ["--from-empty", "--to-url", "file:./dev.db"]

    @pytest.mark.asyncio
    async def test_migrate_diff_url_without_database(self, tmp_path: Path, mock_popen: Any) -> None:
        prisma = PrismaConnector(
            PrismaConfig(schema_path=str(tmp_path / "schema.prisma"), migrations_dir=str(tmp_path / "migrations"))
        )

        error = await call(prisma, "migrate_diff", **{"from": "url", "to": "empty"})

        assert error.kind == "invalid_params"
        assert error.details == {"violations": [{"field": "fromValue", "problem": "required when from is 'url'"}]}

    @pytest.mark.asyncio
    async def test_cli_failure_reports_stderr(self, prisma: PrismaConnector, mock_popen: Any) -> None:
        process = mock_popen.return_value
        process.returncode = 1
        process.communicate.return_value = ("", "Error: P1001: Can't reach database server")

        error = await call(prisma, "db_pull")

        assert error.kind == "backend_error"
        assert error.message == "npx exited with code 1: Error: P1001: Can't reach database server"
