"""Offline queue maintenance commands."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from bidscreen.app.dependencies import ServiceContainer
from bidscreen.interfaces.cli.context import CLIContext

console = Console()


@click.group()
def queue() -> None:
    """Inspect, replay or clear writes made while offline."""


@queue.command("status")
@click.pass_context
def status_cmd(ctx: click.Context) -> None:
    """Show pending offline writes."""

    cli_context: CLIContext = ctx.obj["cli_context"]

    async def _status(container: ServiceContainer):
        return container.storage.offline_queue_status()

    status = cli_context.run(_status)
    if not status["queueLength"]:
        console.print("[green]Offline queue is empty.[/green]")
        return

    table = Table(title=f"Offline queue ({status['queueLength']} pending)")
    table.add_column("Action", style="bold")
    table.add_column("Event")
    table.add_column("Queued at")
    table.add_column("Attempts", justify="right")
    for entry in status["entries"]:
        table.add_row(entry["action"], entry["eventId"], entry["timestamp"], str(entry["attempts"]))
    console.print(table)


@queue.command("sync")
@click.pass_context
def sync_cmd(ctx: click.Context) -> None:
    """Replay queued writes against the remote store."""

    cli_context: CLIContext = ctx.obj["cli_context"]

    async def _sync(container: ServiceContainer):
        if container.remote is None:
            return None
        return await container.storage.force_sync_offline_queue()

    result = cli_context.run(_sync)
    if result is None:
        console.print("[yellow]No remote store configured; nothing to replay.[/yellow]")
        ctx.exit(1)
    console.print(
        f"Replayed [green]{result.replayed}[/green], "
        f"failed [red]{result.failed}[/red], pending {result.remaining}."
    )
    if result.dropped:
        console.print(f"[red]Dropped {len(result.dropped)} entries after repeated failures.[/red]")


@queue.command("clear")
@click.confirmation_option(prompt="Discard every pending offline write?")
@click.pass_context
def clear_cmd(ctx: click.Context) -> None:
    """Discard all pending offline writes."""

    cli_context: CLIContext = ctx.obj["cli_context"]

    async def _clear(container: ServiceContainer):
        return container.storage.clear_offline_queue()

    cleared = cli_context.run(_clear)
    console.print(f"[green]Cleared {cleared} queued writes.[/green]")
