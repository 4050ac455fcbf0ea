from __future__ import annotations

from typing import Any

from infrabridge.backends.prisma.config import PROVIDERS
from infrabridge.backends.prisma.connector import PrismaConnector, parse_schema
from infrabridge.envelope import InvalidArguments, Violation
from infrabridge.tools import ToolDef, boolean, string

DIFF_SOURCES = ("empty", "schema-datamodel", "schema-datasource", "migrations", "url")


def _output(result: Any, fallback: str) -> str:
    return result.stdout.strip() or fallback


async def _init_prisma(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    provider = params["provider"] or prisma.config.provider or "postgresql"
    await prisma.execute("init", "--datasource-provider", provider, schema=False)
    return f"Prisma project initialized with {provider} provider. Schema file created at {prisma.schema_path}"


async def _read_schema(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    return prisma.read_schema()


async def _write_schema(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    prisma.write_schema(params["content"])
    return "Schema written successfully"


async def _format_schema(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    await prisma.execute("format")
    return "Schema formatted successfully"


async def _validate_schema(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    await prisma.execute("validate")
    return "Schema is valid"


async def _generate_client(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    return _output(await prisma.execute("generate"), "Prisma Client generated successfully")


async def _db_pull(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    await prisma.execute("db", "pull")
    return "Database schema pulled successfully"


async def _db_push(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    args = ["db", "push"]
    if params["acceptDataLoss"]:
        args.append("--accept-data-loss")
    return _output(await prisma.execute(*args), "Schema pushed to database successfully")


async def _migrate_create(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    await prisma.execute("migrate", "dev", "--name", params["name"], "--create-only")
    return f'Migration "{params["name"]}" created successfully'


async def _migrate_dev(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    args = ["migrate", "dev"]
    if params["name"]:
        args += ["--name", params["name"]]
    return _output(await prisma.execute(*args), "Migration applied successfully")


async def _migrate_deploy(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    return _output(await prisma.execute("migrate", "deploy"), "Migrations deployed successfully")


async def _migrate_reset(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    args = ["migrate", "reset"]
    if params["force"]:
        args.append("--force")
    await prisma.execute(*args)
    return "Database reset and migrations reapplied"


async def _migrate_status(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    # Exits non-zero when migrations are pending; the report is still the answer.
    result = await prisma.execute("migrate", "status", check=False)
    return {
        "upToDate": result.success,
        "output": (result.stdout + result.stderr).strip(),
    }


async def _migrate_resolve(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    if not params["applied"] and not params["rolledBack"]:
        raise InvalidArguments(Violation("applied", "provide applied or rolledBack"))
    args = ["migrate", "resolve"]
    if params["applied"]:
        args += ["--applied", params["applied"]]
    if params["rolledBack"]:
        args += ["--rolled-back", params["rolledBack"]]
    await prisma.execute(*args)
    return "Migration resolved successfully"


def _diff_source(prisma: PrismaConnector, side: str, kind: str, value: str | None) -> list[str]:
    flag = f"--{side}-{kind}"
    if kind == "empty":
        return [flag]
    if value is None:
        if kind in ("schema-datamodel", "schema-datasource"):
            value = str(prisma.schema_path)
        elif kind == "migrations":
            value = prisma.config.migrations_dir
        else:
            value = prisma.config.database_url
    if not value:
        raise InvalidArguments(Violation(f"{side}Value", f"required when {side} is {kind!r}"))
    return [flag, value]


async def _migrate_diff(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    args = [
        "migrate",
        "diff",
        *_diff_source(prisma, "from", params["from"], params["fromValue"]),
        *_diff_source(prisma, "to", params["to"], params["toValue"]),
    ]
    if params["script"]:
        args.append("--script")
    return (await prisma.execute(*args, schema=False)).stdout


async def _seed_database(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    return _output(await prisma.execute("db", "seed"), "Database seeded successfully")


async def _list_models(prisma: PrismaConnector, params: dict[str, Any]) -> Any:
    return parse_schema(prisma.read_schema())


def _diff_side(side: str) -> tuple[tuple[str, Any], tuple[str, Any]]:
    return (
        (side, string(f"Kind of source to compare {side}", enum=DIFF_SOURCES)),
        (
            f"{side}Value",
            string("Schema path, migrations directory or URL; defaults to the configured one"),
        ),
    )


TOOLS: tuple[ToolDef, ...] = (
    ToolDef(
        name="init_prisma",
        description="Initialize a new Prisma project with schema and configuration",
        parameters=(("provider", string("Database provider to use", enum=PROVIDERS)),),
        handler=_init_prisma,
    ),
    ToolDef(
        name="read_schema",
        description="Read the current Prisma schema file",
        parameters=(),
        handler=_read_schema,
    ),
    ToolDef(
        name="write_schema",
        description="Write or replace the Prisma schema file",
        parameters=(("content", string("The Prisma schema content")),),
        required=("content",),
        handler=_write_schema,
    ),
    ToolDef(
        name="format_schema",
        description="Format the Prisma schema file",
        parameters=(),
        handler=_format_schema,
    ),
    ToolDef(
        name="validate_schema",
        description="Validate the Prisma schema syntax and consistency",
        parameters=(),
        handler=_validate_schema,
    ),
    ToolDef(
        name="generate_client",
        description="Generate or regenerate the Prisma Client",
        parameters=(),
        handler=_generate_client,
    ),
    ToolDef(
        name="db_pull",
        description="Introspect the database and update the Prisma schema",
        parameters=(),
        handler=_db_pull,
    ),
    ToolDef(
        name="db_push",
        description="Push Prisma schema changes to the database without migrations",
        parameters=(
            ("acceptDataLoss", boolean("Accept data loss when pushing schema changes", default=False)),
        ),
        handler=_db_push,
    ),
    ToolDef(
        name="migrate_create",
        description="Create a new migration without applying it",
        parameters=(("name", string("Name for the migration")),),
        required=("name",),
        handler=_migrate_create,
    ),
    ToolDef(
        name="migrate_dev",
        description="Create and apply migrations in development",
        parameters=(("name", string("Name for the migration")),),
        handler=_migrate_dev,
    ),
    ToolDef(
        name="migrate_deploy",
        description="Apply pending migrations in production",
        parameters=(),
        handler=_migrate_deploy,
    ),
    ToolDef(
        name="migrate_reset",
        description="Reset the database and reapply all migrations",
        parameters=(("force", boolean("Skip confirmation prompt", default=False)),),
        handler=_migrate_reset,
    ),
    ToolDef(
        name="migrate_status",
        description="Check the status of migrations",
        parameters=(),
        handler=_migrate_status,
    ),
    ToolDef(
        name="migrate_resolve",
        description="Resolve migration issues by marking a migration applied or rolled back",
        parameters=(
            ("applied", string("Migration to mark as applied")),
            ("rolledBack", string("Migration to mark as rolled back")),
        ),
        handler=_migrate_resolve,
    ),
    ToolDef(
        name="migrate_diff",
        description="Compare schema differences between two sources",
        parameters=(
            *_diff_side("from"),
            *_diff_side("to"),
            ("script", boolean("Output as SQL script", default=False)),
        ),
        required=("from", "to"),
        handler=_migrate_diff,
    ),
    ToolDef(
        name="seed_database",
        description="Run the database seed script",
        parameters=(),
        handler=_seed_database,
    ),
    ToolDef(
        name="list_models",
        description="List all models and enums defined in the schema",
        parameters=(),
        handler=_list_models,
    ),
)
