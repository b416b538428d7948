"""Command line interface for the chatflow tools."""

from __future__ import annotations

import asyncio
import datetime as dt
import uuid
from typing import Optional

import typer

from chatflow.collaborators import InMemoryEntityBackend, StaticIdentityProvider
from chatflow.config import ChatflowConfig, load_config
from chatflow.dates import DateParseError, birthday_resolver, event_date_resolver
from chatflow.flows import FlowStore, InMemoryFlowStore, get_flow_store
from chatflow.tools import EXECUTORS, ToolResult, ToolStatus

app = typer.Typer(help="CLI for chatflow collection tools")

# Command groups
date_app = typer.Typer(help="Commands for the date resolver")
flow_app = typer.Typer(help="Commands for inspecting stored flows")

app.add_typer(date_app, name="date")
app.add_typer(flow_app, name="flow")


@app.callback()
def main() -> None:
    """Chatflow CLI entry point."""
    pass


@date_app.command("resolve")
def date_resolve(
    text: str,
    context: str = typer.Option(
        "event", help="Year policy to apply: event or birthday"
    ),
    today: Optional[str] = typer.Option(
        None, help="Resolve relative to this day (YYYY-MM-DD) instead of today"
    ),
) -> None:
    """
    Resolve free-form date text the way the collection tools do.

    Example:
        chatflow date resolve "next friday"
        chatflow date resolve "12/10/1815" --context birthday
        # Output: 12/10/1815 (exact_numeric)
    """
    config = load_config()
    if context == "event":
        resolver = event_date_resolver(config.resolver)
    elif context == "birthday":
        resolver = birthday_resolver(config.resolver)
    else:
        typer.secho(f"Unknown context: {context}", fg=typer.colors.RED)
        raise typer.Exit(code=2)

    now = None
    if today:
        try:
            now = dt.datetime.combine(dt.date.fromisoformat(today), dt.time(12))
        except ValueError:
            typer.secho(f"Invalid --today value: {today}", fg=typer.colors.RED)
            raise typer.Exit(code=2)

    try:
        parsed = resolver.resolve(text, now)
    except DateParseError as exc:
        typer.secho(exc.message, fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"{parsed.format()} ({parsed.strategy})")


async def _run_chat(tool: str, user_id: str, config: ChatflowConfig) -> ToolResult:
    flows = config.flows
    executor = EXECUTORS[tool](
        backend=InMemoryEntityBackend(),
        identity_provider=StaticIdentityProvider(user_id),
        store=InMemoryFlowStore(
            timeout=flows.timeout_seconds, max_retries=flows.max_retries
        ),
        config=config,
    )
    session_id = uuid.uuid4().hex
    step = "start"
    while True:
        fields = {}
        if step in executor.field_owners:
            fields[executor.field_owners[step]] = typer.prompt(">")
        elif step == "confirm" and not typer.confirm(">", default=True):
            step = "start"

        result = await executor.execute(step, fields, session_id)
        typer.echo(result.message)
        if result.status == ToolStatus.SUCCESS or result.next_step is None:
            return result
        if result.status == ToolStatus.ERROR and result.next_step == "start":
            return result
        step = result.next_step


@app.command("chat")
def chat(
    tool: str,
    user: str = typer.Option("local-user", help="User id the entity is created for"),
) -> None:
    """
    Walk through a collection flow interactively.

    Entities are created in memory only, which makes this handy for trying
    out prompts and date handling.

    Example:
        chatflow chat contact
        chatflow chat event --user alice
    """
    if tool not in EXECUTORS:
        choices = ", ".join(sorted(EXECUTORS))
        typer.secho(
            f"Unknown tool: {tool} (choose from {choices})", fg=typer.colors.RED
        )
        raise typer.Exit(code=2)

    result = asyncio.run(_run_chat(tool, user, load_config()))
    if result.status != ToolStatus.SUCCESS:
        raise typer.Exit(code=1)
    details = result.model_dump(
        by_alias=True, include={"contact_details", "event_details"}, exclude_none=True
    )
    for entity in details.values():
        for key, value in entity.items():
            typer.echo(f"{key}: {value}")


def _flow_store() -> FlowStore:
    store = get_flow_store()
    if isinstance(store, InMemoryFlowStore):
        typer.secho(
            "Note: the in-memory flow store only sees flows from this process. "
            "Set store.backend to redis to inspect flows shared across processes.",
            fg=typer.colors.YELLOW,
            err=True,
        )
    return store


@flow_app.command("list")
def flow_list(user: Optional[str] = None) -> None:
    """List stored flows with their current step."""
    store = _flow_store()
    flows = asyncio.run(store.list_flows(user_id=user))
    if not flows:
        typer.echo("No flows found")
        return
    for record in flows:
        state = "completed" if record.is_completed else record.current_step
        typer.echo(f"{record.session_id}\t{record.tool_name}\t{state}")


@flow_app.command("show")
def flow_show(session_id: str) -> None:
    """Show one flow and its step history."""
    store = _flow_store()
    record = asyncio.run(store.get(session_id))
    if record is None:
        typer.echo("Flow not found")
        raise typer.Exit(code=1)
    typer.echo(f"Flow {record.session_id} ({record.tool_name}): {record.current_step}")
    typer.echo(f"Retries: {record.retry_count}/{record.max_retries}")
    for entry in record.step_history:
        typer.echo(
            f"- {entry.step_name}: {entry.status.value} ({entry.timestamp.isoformat()})"
            + (f" {entry.error}" if entry.error else "")
        )


@flow_app.command("stats")
def flow_stats() -> None:
    """Print counts of active, completed and errored flows."""
    stats = asyncio.run(_flow_store().stats())
    for key, value in stats.model_dump().items():
        typer.echo(f"{key}: {value}")


@flow_app.command("sweep")
def flow_sweep() -> None:
    """Evict flows that have been inactive longer than the timeout."""
    removed = asyncio.run(_flow_store().sweep())
    typer.echo(f"Removed {removed} expired flows")


if __name__ == "__main__":
    app()
