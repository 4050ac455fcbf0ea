"""SQLite record of playbook runs."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger("infrabridge.ansible.history")

RUN_STATUSES = ("running", "success", "failed")

SCHEMA = """
CREATE TABLE IF NOT EXISTS playbook_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    playbook TEXT NOT NULL,
    inventory TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT,
    status TEXT NOT NULL,
    exit_code INTEGER,
    stdout TEXT,
    stderr TEXT,
    tags TEXT,
    limit_hosts TEXT,
    extra_vars TEXT,
    check_mode INTEGER DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_runs_status ON playbook_runs(status);
CREATE INDEX IF NOT EXISTS idx_runs_playbook ON playbook_runs(playbook);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_run(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "id": row["id"],
        "playbook": row["playbook"],
        "inventory": row["inventory"],
        "startTime": row["start_time"],
        "endTime": row["end_time"],
        "status": row["status"],
        "exitCode": row["exit_code"],
        "stdout": row["stdout"],
        "stderr": row["stderr"],
        "tags": row["tags"],
        "limit": row["limit_hosts"],
        "extraVars": row["extra_vars"],
        "checkMode": bool(row["check_mode"]),
    }


class RunHistory:
    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Run history is not open")
        return self._conn

    def open(self) -> None:
        if self._conn is not None:
            return
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        # Commands run on executor threads; calls are still one at a time.
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.executescript(SCHEMA)
        conn.commit()
        self._conn = conn
        logger.debug("Opened run history at %s", self.db_path)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def create_run(
        self,
        playbook: str,
        inventory: str,
        *,
        tags: str | None = None,
        limit: str | None = None,
        extra_vars: str | None = None,
        check_mode: bool = False,
    ) -> int:
        with self.conn:
            cursor = self.conn.execute(
                """
                INSERT INTO playbook_runs
                    (playbook, inventory, start_time, status, tags, limit_hosts, extra_vars, check_mode)
                VALUES (?, ?, ?, 'running', ?, ?, ?, ?)
                """,
                (playbook, inventory, _now(), tags, limit, extra_vars, int(check_mode)),
            )
        return int(cursor.lastrowid)

    def finish_run(self, run_id: int, *, status: str, exit_code: int | None, stdout: str, stderr: str) -> None:
        with self.conn:
            self.conn.execute(
                """
                UPDATE playbook_runs
                SET end_time = ?, status = ?, exit_code = ?, stdout = ?, stderr = ?
                WHERE id = ?
                """,
                (_now(), status, exit_code, stdout, stderr, run_id),
            )

    def get_run(self, run_id: int) -> dict[str, Any] | None:
        row = self.conn.execute("SELECT * FROM playbook_runs WHERE id = ?", (run_id,)).fetchone()
        return _to_run(row) if row else None

    def recent_runs(
        self, limit: int = 10, *, status: str | None = None, playbook: str | None = None
    ) -> list[dict[str, Any]]:
        clauses = []
        params: list[Any] = []
        if status:
            clauses.append("status = ?")
            params.append(status)
        if playbook:
            clauses.append("playbook LIKE ?")
            params.append(f"%{playbook}%")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.conn.execute(
            f"SELECT * FROM playbook_runs {where} ORDER BY start_time DESC, id DESC LIMIT ?",
            (*params, limit),
        ).fetchall()
        return [_to_run(row) for row in rows]
