from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import unquote, urlsplit

from infrabridge.config import ConfigError, as_bool, as_int, pick, read_config_file


@dataclass(frozen=True)
class RedisConfig:
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str | None = None
    username: str | None = None
    tls: bool = False
    key_prefix: str = ""
    connect_timeout_ms: int = 20_000
    command_timeout_ms: int = 20_000
    client_name: str = "redis-mcp-server"


def _from_url(url: str) -> dict[str, object]:
    parts = urlsplit(url)
    if parts.scheme not in ("redis", "rediss"):
        raise ConfigError(f"Unsupported Redis URL scheme: {parts.scheme or '(none)'}")
    values: dict[str, object] = {"host": parts.hostname or "localhost"}
    try:
        values["port"] = parts.port or 6379
    except ValueError as exc:
        raise ConfigError(f"Invalid port in Redis URL: {exc}") from exc
    if parts.password:
        values["password"] = unquote(parts.password)
    if parts.username:
        values["username"] = unquote(parts.username)
    if parts.path and len(parts.path) > 1:
        values["db"] = as_int(parts.path[1:], "Redis URL database")
    if parts.scheme == "rediss":
        values["tls"] = True
    return values


def load_config(cwd: str | None = None) -> RedisConfig:
    """Resolve Redis settings; ``REDIS_URL`` fills in whatever the file leaves unset."""
    values = read_config_file("redis", cwd)
    url = os.environ.get("REDIS_URL") or os.environ.get("REDIS_TLS_URL")
    if url and not values.get("host"):
        values = {**_from_url(url), **{k: v for k, v in values.items() if v is not None}}

    tls = pick(values, "tls", "REDIS_TLS", False)
    if isinstance(tls, dict):
        tls = True
    return RedisConfig(
        host=str(pick(values, "host", "REDIS_HOST", "localhost")),
        port=as_int(pick(values, "port", "REDIS_PORT", 6379), "REDIS_PORT", minimum=1, maximum=65535),
        db=as_int(pick(values, "db", "REDIS_DB", 0), "REDIS_DB", minimum=0),
        password=pick(values, "password", "REDIS_PASSWORD"),
        username=pick(values, "username", "REDIS_USERNAME"),
        tls=bool(os.environ.get("REDIS_TLS_URL")) or as_bool(tls, "REDIS_TLS"),
        key_prefix=str(pick(values, "keyPrefix", "REDIS_KEY_PREFIX", "")),
        connect_timeout_ms=as_int(pick(values, "connectTimeout", default=20_000), "connectTimeout", minimum=1),
        command_timeout_ms=as_int(pick(values, "commandTimeout", default=20_000), "commandTimeout", minimum=1),
        client_name=str(pick(values, "connectionName", default="redis-mcp-server")),
    )
