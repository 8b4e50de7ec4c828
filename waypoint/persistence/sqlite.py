"""SQLite implementation of the run state repository."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from ..models import WorkflowState, WorkflowStatus
from .repository import TERMINAL_STATUSES, WorkflowStateRepository

_COLUMNS = "run_id, workflow_id, current_node, status, state, started_at, updated_at"


class SQLiteWorkflowStateRepository(WorkflowStateRepository):
    """Persist run state in a single SQLite table.

    The full state is stored as JSON next to a few indexed columns used
    for lookups. Blocking calls run in a worker thread.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_states (
                run_id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                current_node TEXT,
                status TEXT NOT NULL,
                state TEXT NOT NULL,
                started_at TEXT,
                updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_workflow_states_workflow ON workflow_states (workflow_id)"
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_workflow_states_status ON workflow_states (status)"
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()
        return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Repository API
    async def save(self, state: WorkflowState) -> None:
        await asyncio.to_thread(
            self._execute,
            f"""
            INSERT INTO workflow_states ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(run_id) DO UPDATE SET
                workflow_id = excluded.workflow_id,
                current_node = excluded.current_node,
                status = excluded.status,
                state = excluded.state,
                started_at = excluded.started_at,
                updated_at = excluded.updated_at
            """,
            state.run_id,
            state.workflow_id,
            state.current_node,
            state.status.value,
            state.to_json(),
            state.started_at.isoformat() if state.started_at else None,
            datetime.now(timezone.utc).isoformat(),
        )

    async def find(self, run_id: str) -> WorkflowState | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT state FROM workflow_states WHERE run_id = ?", run_id
        )
        if not row:
            return None
        return WorkflowState.from_json(row["state"])

    async def find_by_workflow(self, workflow_id: str) -> list[WorkflowState]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT state FROM workflow_states WHERE workflow_id = ? ORDER BY started_at DESC",
            workflow_id,
        )
        return [WorkflowState.from_json(r["state"]) for r in rows]

    async def find_by_status(self, status: WorkflowStatus) -> list[WorkflowState]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT state FROM workflow_states WHERE status = ? ORDER BY started_at DESC",
            WorkflowStatus(status).value,
        )
        return [WorkflowState.from_json(r["state"]) for r in rows]

    async def list_states(self) -> list[WorkflowState]:
        rows = await asyncio.to_thread(
            self._fetchall, "SELECT state FROM workflow_states ORDER BY started_at DESC"
        )
        return [WorkflowState.from_json(r["state"]) for r in rows]

    async def delete(self, run_id: str) -> None:
        await asyncio.to_thread(
            self._execute, "DELETE FROM workflow_states WHERE run_id = ?", run_id
        )

    async def delete_expired(self, ttl: int) -> int:
        cutoff = (datetime.now(timezone.utc) - timedelta(seconds=ttl)).isoformat()
        placeholders = ", ".join("?" for _ in TERMINAL_STATUSES)
        return await asyncio.to_thread(
            self._execute,
            f"DELETE FROM workflow_states WHERE status IN ({placeholders}) AND updated_at < ?",
            *[s.value for s in TERMINAL_STATUSES],
            cutoff,
        )
