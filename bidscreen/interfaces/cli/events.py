"""Inspect and delete auction events from the command line."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from bidscreen.app.dependencies import ServiceContainer
from bidscreen.domain.models import DisplaySnapshot
from bidscreen.infrastructure.db import LocalStoreError
from bidscreen.infrastructure.remote import AuthenticationRequired
from bidscreen.interfaces.cli.context import CLIContext

console = Console()


def render_snapshot(snapshot: DisplaySnapshot) -> Table:
    table = Table(title=f"{snapshot.event.name} ({snapshot.event_id})")
    table.add_column("#", justify="right")
    table.add_column("Item", style="bold")
    table.add_column("Current bid", justify="right")
    table.add_column("Starting bid", justify="right")
    table.add_column("Flags")
    for position, item in enumerate(snapshot.items, start=1):
        flags = []
        if item.is_hidden:
            flags.append("hidden")
        if item.is_revealed:
            flags.append("revealed")
        table.add_row(
            str(position),
            item.name,
            f"{item.current_bid:,.2f}",
            f"{item.starting_bid:,.2f}",
            ", ".join(flags),
        )
    table.caption = f"Total raised: {snapshot.total_raised:,.2f}"
    return table


@click.group()
def events() -> None:
    """List, show and delete auction events."""


@events.command("list")
@click.pass_context
def list_cmd(ctx: click.Context) -> None:
    """List events, most recently updated first."""

    cli_context: CLIContext = ctx.obj["cli_context"]

    async def _list(container: ServiceContainer):
        return await container.storage.list_events()

    try:
        summaries = cli_context.run(_list)
    except AuthenticationRequired as exc:
        console.print(f"[red]{exc}[/red]")
        ctx.exit(1)

    if not summaries:
        console.print("[yellow]No events found.[/yellow]")
        return

    table = Table(title="Events")
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Subtitle")
    table.add_column("Updated")
    for summary in summaries:
        table.add_row(summary.id, summary.name, summary.subtitle, summary.updated_at or "")
    console.print(table)


@events.command("show")
@click.argument("event_id")
@click.pass_context
def show_cmd(ctx: click.Context, event_id: str) -> None:
    """Show the bid-sorted snapshot of EVENT_ID."""

    cli_context: CLIContext = ctx.obj["cli_context"]

    async def _load(container: ServiceContainer):
        return await container.storage.load_event(event_id)

    try:
        record = cli_context.run(_load)
    except (AuthenticationRequired, LocalStoreError) as exc:
        console.print(f"[red]{exc}[/red]")
        ctx.exit(1)

    if record is None:
        console.print(f"[yellow]Event '{event_id}' not found.[/yellow]")
        ctx.exit(1)
    console.print(render_snapshot(record.snapshot()))


@events.command("delete")
@click.argument("event_id")
@click.confirmation_option(prompt="Delete this event and all of its items?")
@click.pass_context
def delete_cmd(ctx: click.Context, event_id: str) -> None:
    """Delete EVENT_ID."""

    cli_context: CLIContext = ctx.obj["cli_context"]

    async def _delete(container: ServiceContainer):
        return await container.storage.delete_event(event_id)

    try:
        result = cli_context.run(_delete)
    except (AuthenticationRequired, LocalStoreError) as exc:
        console.print(f"[red]{exc}[/red]")
        ctx.exit(1)

    if result.error:
        console.print(f"[yellow]Deleted locally; remote delete queued ({result.error}).[/yellow]")
    else:
        console.print(f"[green]Deleted event [bold]{event_id}[/bold] ({result.mode}).[/green]")
