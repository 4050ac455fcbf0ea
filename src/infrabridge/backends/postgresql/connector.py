from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable, Sequence
from typing import Any

import psycopg2
import psycopg2.extras
import psycopg2.pool

from infrabridge.backends.postgresql.config import PostgresConfig
from infrabridge.envelope import BackendFailure
from infrabridge.telemetry import trace_span

logger = logging.getLogger("infrabridge.postgresql")

Statement = tuple[str, Sequence[Any] | None]


def _failure(exc: psycopg2.Error) -> BackendFailure:
    message = (exc.pgerror or str(exc)).strip() or type(exc).__name__
    raw: dict[str, Any] = {"error": type(exc).__name__}
    if exc.pgcode:
        raw["pgcode"] = exc.pgcode
    retryable = isinstance(exc, (psycopg2.OperationalError, psycopg2.pool.PoolError))
    return BackendFailure(message, retryable=retryable, raw=raw)


def _result(cursor: Any) -> dict[str, Any]:
    rows = [dict(row) for row in cursor.fetchall()] if cursor.description else []
    fields = [
        {"name": column.name, "dataTypeID": column.type_code}
        for column in cursor.description or ()
    ]
    return {"rows": rows, "rowCount": cursor.rowcount, "fields": fields}


class PostgresConnector:
    """psycopg2 thread-safe pool; each call borrows one connection and commits or rolls back."""

    name = "postgresql"

    def __init__(
        self,
        config: PostgresConfig,
        pool_factory: Callable[..., psycopg2.pool.AbstractConnectionPool] | None = None,
    ) -> None:
        self.config = config
        self._pool_factory = pool_factory or psycopg2.pool.ThreadedConnectionPool
        self._pool: psycopg2.pool.AbstractConnectionPool | None = None

    def _open_pool(self) -> psycopg2.pool.AbstractConnectionPool:
        try:
            return self._pool_factory(
                1,
                self.config.max_connections,
                cursor_factory=psycopg2.extras.RealDictCursor,
                **self.config.connect_kwargs(),
            )
        except psycopg2.Error as exc:
            raise _failure(exc) from exc

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args))

    async def start(self) -> None:
        if self._pool is None:
            self._pool = await self._call(self._open_pool)
        await self.execute("SELECT 1")
        logger.info(
            "Connected to PostgreSQL %s@%s:%s/%s",
            self.config.user,
            self.config.host,
            self.config.port,
            self.config.database,
        )

    async def close(self) -> None:
        if self._pool is not None:
            pool, self._pool = self._pool, None
            await self._call(pool.closeall)

    def _run(self, statements: Sequence[Statement]) -> list[dict[str, Any]]:
        if self._pool is None:
            raise BackendFailure("PostgreSQL pool is not open", retryable=True)
        try:
            conn = self._pool.getconn()
        except psycopg2.Error as exc:
            raise _failure(exc) from exc

        broken = False
        try:
            results = []
            with conn.cursor() as cursor:
                for query, params in statements:
                    cursor.execute(query, list(params) if params else None)
                    results.append(_result(cursor))
            conn.commit()
            return results
        except psycopg2.Error as exc:
            if conn.closed:
                broken = True
            else:
                conn.rollback()
            raise _failure(exc) from exc
        except Exception:
            if not conn.closed:
                conn.rollback()
            raise
        finally:
            self._pool.putconn(conn, close=broken or bool(conn.closed))

    async def execute(self, query: str, params: Sequence[Any] | None = None) -> dict[str, Any]:
        """Run one statement in its own transaction."""
        with trace_span("postgresql/execute", attributes={"sql_length": len(query)}):
            results = await self._call(self._run, [(query, params)])
        return results[0]

    async def transaction(self, statements: Sequence[Statement]) -> list[dict[str, Any]]:
        """Run every statement in one transaction; any failure rolls all of them back."""
        with trace_span("postgresql/transaction", attributes={"sql_statements": len(statements)}):
            return await self._call(self._run, list(statements))
