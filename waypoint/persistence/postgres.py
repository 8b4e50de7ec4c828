"""PostgreSQL implementation of the run state repository."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import asyncpg

from ..models import WorkflowState, WorkflowStatus
from .repository import TERMINAL_STATUSES, WorkflowStateRepository


class PostgresWorkflowStateRepository(WorkflowStateRepository):
    """Persist run state using PostgreSQL.

    A connection is opened per call; the schema is created on first use.
    """

    def __init__(self, dsn: str, table: str = "workflow_states"):
        self._dsn = dsn
        self._table = table
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                run_id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                current_node TEXT,
                status TEXT NOT NULL,
                state JSONB NOT NULL,
                pause_reason TEXT,
                started_at TIMESTAMPTZ,
                updated_at TIMESTAMPTZ NOT NULL
            )
            """
        )
        await conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_{self._table}_workflow ON {self._table} (workflow_id)"
        )
        await conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_{self._table}_status ON {self._table} (status)"
        )

    # ------------------------------------------------------------------
    async def save(self, state: WorkflowState) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                f"""
                INSERT INTO {self._table}
                    (run_id, workflow_id, current_node, status, state, pause_reason, started_at, updated_at)
                VALUES ($1, $2, $3, $4, $5::jsonb, $6, $7, $8)
                ON CONFLICT (run_id) DO UPDATE SET
                    workflow_id = EXCLUDED.workflow_id,
                    current_node = EXCLUDED.current_node,
                    status = EXCLUDED.status,
                    state = EXCLUDED.state,
                    pause_reason = EXCLUDED.pause_reason,
                    started_at = EXCLUDED.started_at,
                    updated_at = EXCLUDED.updated_at
                """,
                state.run_id,
                state.workflow_id,
                state.current_node,
                state.status.value,
                state.to_json(),
                state.pause_reason,
                state.started_at,
                datetime.now(timezone.utc),
            )
        finally:
            await conn.close()

    async def find(self, run_id: str) -> WorkflowState | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"SELECT state::text AS state FROM {self._table} WHERE run_id = $1", run_id
            )
        finally:
            await conn.close()
        if not row:
            return None
        return WorkflowState.from_json(row["state"])

    async def _fetch_states(self, where: str = "", *params) -> list[WorkflowState]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                f"SELECT state::text AS state FROM {self._table} {where} ORDER BY started_at DESC",
                *params,
            )
        finally:
            await conn.close()
        return [WorkflowState.from_json(r["state"]) for r in rows]

    async def find_by_workflow(self, workflow_id: str) -> list[WorkflowState]:
        return await self._fetch_states("WHERE workflow_id = $1", workflow_id)

    async def find_by_status(self, status: WorkflowStatus) -> list[WorkflowState]:
        return await self._fetch_states("WHERE status = $1", WorkflowStatus(status).value)

    async def list_states(self) -> list[WorkflowState]:
        return await self._fetch_states()

    async def delete(self, run_id: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute(f"DELETE FROM {self._table} WHERE run_id = $1", run_id)
        finally:
            await conn.close()

    async def delete_expired(self, ttl: int) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=ttl)
        conn = await self._connect()
        try:
            status = await conn.execute(
                f"DELETE FROM {self._table} WHERE status = ANY($1::text[]) AND updated_at < $2",
                [s.value for s in TERMINAL_STATUSES],
                cutoff,
            )
        finally:
            await conn.close()
        # asyncpg returns the command tag, e.g. "DELETE 3"
        return int(status.split()[-1])
