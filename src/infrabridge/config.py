"""Settings resolution shared by the backend servers.

Each key resolves from the local JSON file first, then the environment, then
the backend default. The file is ``.{MCP_SERVER_NAME}.json`` when that
variable is set, otherwise ``.{backend}-mcp.json`` in the working directory.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

logger = logging.getLogger("infrabridge.config")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}

MAX_RESPONSE_BYTES_ENV = "INFRABRIDGE_MAX_RESPONSE_BYTES"
LOG_LEVEL_ENV = "INFRABRIDGE_LOG_LEVEL"


class ConfigError(Exception):
    """Configuration is missing or malformed; the server cannot start."""


def config_file_path(backend: str, cwd: str | os.PathLike[str] | None = None) -> Path:
    base = Path(cwd) if cwd is not None else Path.cwd()
    server_name = os.environ.get("MCP_SERVER_NAME", "").strip()
    if server_name:
        return base / f".{server_name}.json"
    return base / f".{backend}-mcp.json"


def read_config_file(
    backend: str, cwd: str | os.PathLike[str] | None = None
) -> dict[str, Any]:
    """Load the backend's JSON config file, or ``{}`` when absent or unreadable."""
    path = config_file_path(backend, cwd)
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.error("Failed to load config file %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.error("Ignoring config file %s: top level is not an object", path)
        return {}
    logger.debug("Loaded configuration from %s", path)
    return data


def _unset(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def pick(
    values: Mapping[str, Any],
    key: str,
    env_key: str | None = None,
    default: Any = None,
) -> Any:
    """Resolve ``key``: file value, then ``env_key`` from the environment, then default."""
    value = values.get(key)
    if not _unset(value):
        return value
    if env_key is not None:
        env_value = os.environ.get(env_key)
        if not _unset(env_value):
            return env_value
    return default


def as_int(
    value: Any,
    name: str,
    *,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    try:
        result = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc
    if minimum is not None and result < minimum:
        raise ConfigError(f"{name} must be >= {minimum}")
    if maximum is not None and result > maximum:
        raise ConfigError(f"{name} must be <= {maximum}")
    return result


def as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def as_list(value: Any) -> list[str]:
    """Accept a JSON list or a comma separated string."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [item.strip() for item in str(value).split(",") if item.strip()]


def max_response_bytes() -> int:
    return as_int(
        os.environ.get(MAX_RESPONSE_BYTES_ENV, "5000000"),
        MAX_RESPONSE_BYTES_ENV,
        minimum=1_000,
        maximum=50_000_000,
    )


__all__ = [
    "ConfigError",
    "as_bool",
    "as_int",
    "as_list",
    "config_file_path",
    "max_response_bytes",
    "pick",
    "read_config_file",
]
