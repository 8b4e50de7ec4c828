"""Redis implementation of the run state repository."""

from __future__ import annotations

import time
from typing import Any, Optional

import redis.asyncio as redis

from ..models import WorkflowState, WorkflowStatus
from .repository import WorkflowStateRepository

DEFAULT_TTL = 86400 * 7


class RedisWorkflowStateRepository(WorkflowStateRepository):
    """Store run state as expiring Redis keys.

    Each run lives under ``{prefix}:workflow_state:{run_id}`` with a TTL.
    Hashes indexed by workflow id and by status map run ids to the time
    they were last saved; entries whose state key has expired are pruned
    lazily on read and by :meth:`delete_expired`.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        prefix: str = "waypoint",
        ttl: int = DEFAULT_TTL,
        client: Optional[Any] = None,
    ) -> None:
        self.url = url
        self.prefix = prefix
        self.ttl = ttl
        self._redis = client

    async def _client(self) -> Any:
        if self._redis is None:
            self._redis = redis.Redis.from_url(self.url, decode_responses=True)
        return self._redis

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Keys
    def _key(self, run_id: str) -> str:
        return f"{self.prefix}:workflow_state:{run_id}"

    def _workflow_index(self, workflow_id: str) -> str:
        return f"{self.prefix}:workflow_index:{workflow_id}"

    def _status_index(self, status: WorkflowStatus | str) -> str:
        return f"{self.prefix}:workflow_status_index:{WorkflowStatus(status).value}"

    def _all_index(self) -> str:
        return f"{self.prefix}:workflow_runs"

    # ------------------------------------------------------------------
    async def save(self, state: WorkflowState) -> None:
        client = await self._client()
        previous = await self.find(state.run_id)
        now = time.time()
        async with client.pipeline(transaction=True) as pipe:
            pipe.set(self._key(state.run_id), state.to_json(), ex=self.ttl)
            if previous is not None and previous.status is not state.status:
                pipe.hdel(self._status_index(previous.status), state.run_id)
            for index in (
                self._workflow_index(state.workflow_id),
                self._status_index(state.status),
                self._all_index(),
            ):
                pipe.hset(index, state.run_id, now)
                pipe.expire(index, self.ttl)
            await pipe.execute()

    async def find(self, run_id: str) -> WorkflowState | None:
        client = await self._client()
        raw = await client.get(self._key(run_id))
        if raw is None:
            return None
        return WorkflowState.from_json(raw)

    async def _load_index(self, index: str) -> list[WorkflowState]:
        client = await self._client()
        entries = await client.hgetall(index)
        states: list[WorkflowState] = []
        for run_id in sorted(entries, key=lambda r: float(entries[r]), reverse=True):
            state = await self.find(run_id)
            if state is None:
                await client.hdel(index, run_id)
                continue
            states.append(state)
        return states

    async def find_by_workflow(self, workflow_id: str) -> list[WorkflowState]:
        return await self._load_index(self._workflow_index(workflow_id))

    async def find_by_status(self, status: WorkflowStatus) -> list[WorkflowState]:
        status = WorkflowStatus(status)
        states = await self._load_index(self._status_index(status))
        return [s for s in states if s.status is status]

    async def list_states(self) -> list[WorkflowState]:
        return await self._load_index(self._all_index())

    async def delete(self, run_id: str) -> None:
        state = await self.find(run_id)
        client = await self._client()
        async with client.pipeline(transaction=True) as pipe:
            pipe.delete(self._key(run_id))
            pipe.hdel(self._all_index(), run_id)
            if state is not None:
                pipe.hdel(self._workflow_index(state.workflow_id), run_id)
                pipe.hdel(self._status_index(state.status), run_id)
            await pipe.execute()

    async def delete_expired(self, ttl: int) -> int:
        """Drop finished runs older than ``ttl`` and prune dangling index entries.

        Keys also expire on their own after the repository TTL.
        """
        client = await self._client()
        cutoff = time.time() - ttl
        entries = await client.hgetall(self._all_index())
        removed = 0
        for run_id, saved_at in entries.items():
            state = await self.find(run_id)
            if state is None:
                await client.hdel(self._all_index(), run_id)
                continue
            if state.status.is_terminal and float(saved_at) < cutoff:
                await self.delete(run_id)
                removed += 1
        return removed
