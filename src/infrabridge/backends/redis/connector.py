from __future__ import annotations

import logging
from typing import Any

from redis import asyncio as redis_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from infrabridge.backends.redis.config import RedisConfig
from infrabridge.envelope import BackendFailure

logger = logging.getLogger("infrabridge.redis")


class RedisConnector:
    """Single ``redis.asyncio`` client shared by every tool call."""

    name = "redis"

    def __init__(self, config: RedisConfig, client: redis_asyncio.Redis | None = None) -> None:
        self.config = config
        self._client = client

    @property
    def client(self) -> redis_asyncio.Redis:
        if self._client is None:
            self._client = redis_asyncio.Redis(
                host=self.config.host,
                port=self.config.port,
                db=self.config.db,
                username=self.config.username,
                password=self.config.password,
                ssl=self.config.tls,
                socket_connect_timeout=self.config.connect_timeout_ms / 1000,
                socket_timeout=self.config.command_timeout_ms / 1000,
                client_name=self.config.client_name,
                decode_responses=True,
            )
        return self._client

    async def start(self) -> None:
        await self.execute("ping")
        logger.info("Connected to Redis at %s:%s/%s", self.config.host, self.config.port, self.config.db)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def key(self, name: str) -> str:
        return f"{self.config.key_prefix}{name}"

    def unkey(self, name: str) -> str:
        prefix = self.config.key_prefix
        if prefix and name.startswith(prefix):
            return name[len(prefix):]
        return name

    async def execute(self, command: str, *args: Any, **kwargs: Any) -> Any:
        """Run one client command by name, e.g. ``execute("hgetall", key)``."""
        method = getattr(self.client, command.lower(), None)
        if method is None:
            raise ValueError(f"Unsupported Redis command: {command}")
        try:
            return await method(*args, **kwargs)
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise BackendFailure(f"Redis {command.upper()} failed: {exc}", retryable=True) from exc
        except RedisError as exc:
            raise BackendFailure(
                f"Redis {command.upper()} failed: {exc}",
                raw={"error": type(exc).__name__},
            ) from exc
