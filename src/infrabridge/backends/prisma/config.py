from __future__ import annotations

import os
import shlex
from dataclasses import dataclass

from infrabridge.config import ConfigError, as_int, pick, read_config_file

PROVIDERS = ("postgresql", "mysql", "sqlite", "sqlserver", "mongodb", "cockroachdb")


def detect_provider(database_url: str | None) -> str | None:
    """Guess the datasource provider from a connection URL."""
    if not database_url:
        return None
    if database_url.startswith(("postgresql://", "postgres://")):
        return "postgresql"
    if database_url.startswith("mysql://"):
        return "mysql"
    if database_url.startswith("file:") or database_url.endswith(".db"):
        return "sqlite"
    if database_url.startswith("sqlserver://"):
        return "sqlserver"
    if database_url.startswith(("mongodb://", "mongodb+srv://")):
        return "mongodb"
    if "cockroach" in database_url:
        return "cockroachdb"
    return None


@dataclass(frozen=True)
class PrismaConfig:
    schema_path: str
    migrations_dir: str
    cli: tuple[str, ...] = ("npx", "prisma")
    database_url: str | None = None
    provider: str | None = None
    timeout: int = 300


def load_config(cwd: str | None = None) -> PrismaConfig:
    values = read_config_file("prisma", cwd)
    base = cwd or os.getcwd()
    database_url = pick(values, "databaseUrl", "DATABASE_URL")
    provider = pick(values, "databaseProvider", default=detect_provider(database_url))
    if provider is not None and provider not in PROVIDERS:
        raise ConfigError(f"databaseProvider must be one of {', '.join(PROVIDERS)}, got {provider!r}")
    cli = shlex.split(str(pick(values, "cli", "PRISMA_CLI", "npx prisma")))
    if not cli:
        raise ConfigError("PRISMA_CLI must name a command")
    return PrismaConfig(
        schema_path=str(
            pick(values, "schemaPath", "PRISMA_SCHEMA_PATH", os.path.join(base, "prisma", "schema.prisma"))
        ),
        migrations_dir=str(
            pick(values, "migrationsDir", "PRISMA_MIGRATIONS_DIR", os.path.join(base, "prisma", "migrations"))
        ),
        cli=tuple(cli),
        database_url=database_url,
        provider=provider,
        timeout=as_int(pick(values, "timeout", "PRISMA_TIMEOUT", 300), "PRISMA_TIMEOUT", minimum=1),
    )
