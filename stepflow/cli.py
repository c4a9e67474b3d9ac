"""Command line interface for operating stepflow workflows."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import typer

from stepflow.api import build_engine, create_app
from stepflow.config import load_config
from stepflow.engine import WorkflowEngine
from stepflow.errors import StorageUnavailable

app = typer.Typer(help="CLI for stepflow workflows")

workflow_app = typer.Typer(help="Commands for inspecting and resetting workflows")

app.add_typer(workflow_app, name="workflow")


def _load_engine() -> WorkflowEngine:
    return build_engine(load_config())


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, help="Logging level (defaults to log_level from config)"
    ),
) -> None:
    """stepflow CLI entry point."""
    level = (log_level or load_config().log_level).upper()
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


@workflow_app.command("list")
def workflow_list() -> None:
    """
    List all subjects with their workflow status.

    Returns:
        Tab-separated subject ids, statuses and the next expected step,
        or "No workflows found"

    Example:
        stepflow workflow list
        # Output: user-123    in_progress    additional_details
        #         user-456    complete       -
    """
    engine = _load_engine()
    try:
        views = asyncio.run(engine.list_instances())
    except StorageUnavailable as exc:
        typer.secho(f"Storage unavailable: {exc.message}", fg=typer.colors.RED)
        raise typer.Exit(code=2)
    if not views:
        typer.echo("No workflows found")
        return
    for view in views:
        typer.echo(f"{view.subject_id}\t{view.status.value}\t{view.current_step or '-'}")


@workflow_app.command("show")
def workflow_show(subject_id: str) -> None:
    """
    Show progress and recorded payloads for one subject.

    Args:
        subject_id: Subject to inspect (get from 'workflow list')

    Example:
        stepflow workflow show user-123
        # Output: Workflow user-123: in_progress
        #         Next step: additional_details
        #         - user_info: completed {"full_name": "Ada Lovelace", ...}
        #         - additional_details: pending
    """
    engine = _load_engine()
    try:
        state = asyncio.run(engine.get_instance(subject_id))
    except StorageUnavailable as exc:
        typer.secho(f"Storage unavailable: {exc.message}", fg=typer.colors.RED)
        raise typer.Exit(code=2)
    if state.version == 0:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)

    view = engine.definition.view(subject_id, state.completed_steps)
    typer.echo(f"Workflow {subject_id}: {view.status.value}")
    typer.echo(f"Next step: {view.current_step or '-'}")
    for step in engine.definition:
        if step.name in state.step_payloads:
            payload = json.dumps(state.step_payloads[step.name], sort_keys=True)
            typer.echo(f"- {step.name}: completed {payload}")
        else:
            typer.echo(f"- {step.name}: pending")
    typer.echo(f"Last updated: {state.updated_at.isoformat()}")


@workflow_app.command("steps")
def workflow_steps() -> None:
    """List the steps of the configured workflow in order."""
    engine = _load_engine()
    for position, step in enumerate(engine.definition, start=1):
        kind = "required" if step.required else "optional"
        typer.echo(f"{position}. {step.name} ({kind}) {step.description}".rstrip())


@workflow_app.command("reset")
def workflow_reset(
    subject_id: str,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
) -> None:
    """
    Reset a subject's workflow back to not_started.

    Clears completed steps and recorded payloads. Intended for operators
    only; the HTTP API has no equivalent.

    Example:
        stepflow workflow reset user-123 --yes
    """
    if not yes:
        typer.confirm(f"Reset all workflow progress for {subject_id}?", abort=True)
    engine = _load_engine()
    try:
        view = asyncio.run(engine.reset_workflow(subject_id))
    except StorageUnavailable as exc:
        typer.secho(f"Storage unavailable: {exc.message}", fg=typer.colors.RED)
        raise typer.Exit(code=2)
    typer.echo(f"Workflow {subject_id} reset: {view.status.value}")


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (default from config)"),
    port: Optional[int] = typer.Option(None, help="Bind port (default from config)"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    config = load_config()
    uvicorn.run(
        create_app(config=config),
        host=host or config.server.host,
        port=port or config.server.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
