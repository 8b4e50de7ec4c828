"""Command line interface for inspecting persisted workflow runs."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import typer

from waypoint.config import load_config
from waypoint.models import WorkflowStatus
from waypoint.persistence import get_repository

app = typer.Typer(help="CLI for waypoint workflow runs")

runs_app = typer.Typer(help="Commands for inspecting and cleaning up runs")
app.add_typer(runs_app, name="runs")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", help="Logging level for waypoint loggers"),
    database_url: Optional[str] = typer.Option(
        None, help="Override the configured state store (sqlite://, postgresql://, redis://)"
    ),
) -> None:
    """waypoint CLI entry point."""
    logging.basicConfig(level=log_level.upper())
    if database_url:
        get_repository(database_url)


@runs_app.command("list")
def runs_list(
    status: Optional[WorkflowStatus] = typer.Option(None, help="Only show runs in this status"),
    workflow: Optional[str] = typer.Option(None, help="Only show runs of this workflow id"),
) -> None:
    """
    List persisted runs with their status and current node.

    Example:
        waypoint runs list --status paused
        # Output: run_1f0c...    review    paused    approve
    """
    repo = get_repository()
    if workflow:
        states = asyncio.run(repo.find_by_workflow(workflow))
        if status:
            states = [s for s in states if s.status is status]
    elif status:
        states = asyncio.run(repo.find_by_status(status))
    else:
        states = asyncio.run(repo.list_states())

    if not states:
        typer.echo("No runs found")
        return
    for state in states:
        typer.echo(
            f"{state.run_id}\t{state.workflow_id}\t{state.status.value}\t{state.current_node or '-'}"
        )


@runs_app.command("show")
def runs_show(run_id: str) -> None:
    """
    Show status, data and node history for a single run.

    Example:
        waypoint runs show run_1f0c...
    """
    repo = get_repository()
    state = asyncio.run(repo.find(run_id))
    if state is None:
        typer.echo("Run not found")
        raise typer.Exit(code=1)

    typer.echo(f"Run {state.run_id} ({state.workflow_id}): {state.status.value}")
    typer.echo(f"Current node: {state.current_node or '-'}")
    if state.pause_reason:
        typer.echo(f"Pause reason: {state.pause_reason}")
    jsonable = state.to_jsonable()
    if state.data:
        typer.echo(f"Data: {json.dumps(jsonable['data'], sort_keys=True)}")
    for entry in state.history:
        outcome = "ok" if entry.success else f"error: {entry.error}"
        typer.echo(f"- {entry.node_id}: {outcome} ({entry.duration:.3f}s)")


@runs_app.command("delete")
def runs_delete(run_id: str) -> None:
    """Delete a persisted run."""
    repo = get_repository()

    async def _delete() -> bool:
        if await repo.find(run_id) is None:
            return False
        await repo.delete(run_id)
        return True

    if not asyncio.run(_delete()):
        typer.echo("Run not found")
        raise typer.Exit(code=1)
    typer.echo(f"Deleted run {run_id}")


@runs_app.command("purge")
def runs_purge(
    ttl: Optional[int] = typer.Option(
        None, help="Age in seconds after which finished runs are removed (default from config)"
    ),
) -> None:
    """Delete completed, failed and cancelled runs older than the TTL."""
    ttl = ttl if ttl is not None else load_config().persistence.ttl
    repo = get_repository()
    removed = asyncio.run(repo.delete_expired(ttl))
    typer.echo(f"Removed {removed} expired run(s)")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
