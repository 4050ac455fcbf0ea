from __future__ import annotations

from dataclasses import dataclass

from infrabridge.config import ConfigError, as_bool, as_int, pick, read_config_file

SSL_MODES = ("disable", "allow", "prefer", "require", "verify-ca", "verify-full")


@dataclass(frozen=True)
class PostgresConfig:
    host: str = "localhost"
    port: int = 5432
    database: str = "postgres"
    user: str = "postgres"
    password: str = ""
    sslmode: str = "prefer"
    connect_timeout_ms: int = 30_000
    statement_timeout_ms: int = 30_000
    max_connections: int = 10

    def connect_kwargs(self) -> dict[str, object]:
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.database,
            "user": self.user,
            "password": self.password,
            "sslmode": self.sslmode,
            "connect_timeout": max(1, self.connect_timeout_ms // 1000),
            "options": f"-c statement_timeout={self.statement_timeout_ms}",
            "application_name": "postgresql-mcp-server",
        }


def _sslmode(value: object) -> str:
    if isinstance(value, bool):
        return "require" if value else "disable"
    mode = str(value).strip().lower()
    if mode in SSL_MODES:
        return mode
    try:
        return "require" if as_bool(mode, "ssl") else "disable"
    except ConfigError:
        raise ConfigError(f"PGSSLMODE must be one of {', '.join(SSL_MODES)}, got {value!r}") from None


def load_config(cwd: str | None = None) -> PostgresConfig:
    values = read_config_file("postgresql", cwd)
    return PostgresConfig(
        host=str(pick(values, "host", "PGHOST", "localhost")),
        port=as_int(pick(values, "port", "PGPORT", 5432), "PGPORT", minimum=1, maximum=65535),
        database=str(pick(values, "database", "PGDATABASE", "postgres")),
        user=str(pick(values, "user", "PGUSER", "postgres")),
        password=str(pick(values, "password", "PGPASSWORD", "")),
        sslmode=_sslmode(pick(values, "ssl", "PGSSLMODE", "prefer")),
        connect_timeout_ms=as_int(
            pick(values, "connectionTimeoutMillis", default=30_000), "connectionTimeoutMillis", minimum=1
        ),
        statement_timeout_ms=as_int(
            pick(values, "statement_timeout", default=30_000), "statement_timeout", minimum=0
        ),
        max_connections=as_int(pick(values, "max", default=10), "max", minimum=1),
    )
