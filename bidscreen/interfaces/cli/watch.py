"""Follow the live snapshot of an auction in the terminal."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console

from bidscreen.app.dependencies import ServiceContainer
from bidscreen.domain.models import DisplaySnapshot
from bidscreen.interfaces.cli.context import CLIContext
from bidscreen.interfaces.cli.events import render_snapshot

console = Console()


@click.command()
@click.argument("event_id")
@click.option(
    "--duration",
    type=float,
    default=None,
    help="Stop after this many seconds (default: run until interrupted).",
)
@click.pass_context
def watch(ctx: click.Context, event_id: str, duration: float | None) -> None:
    """Print EVENT_ID's bid-sorted snapshot every time it changes."""

    cli_context: CLIContext = ctx.obj["cli_context"]

    async def _watch(container: ServiceContainer) -> bool:
        record = await container.storage.load_event(event_id)
        if record is not None:
            console.print(render_snapshot(record.snapshot()))

        channel = container.sync_channel(event_id)
        if channel is None:
            return False

        def _show(snapshot: DisplaySnapshot) -> None:
            console.print(render_snapshot(snapshot))

        token = await channel.subscribe(_show)
        console.print(f"[cyan]Watching {event_id} ({channel.state.value}). Ctrl+C to stop.[/cyan]")
        try:
            if duration is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(duration)
        finally:
            token.release()
            await channel.close_if_idle()
        return True

    try:
        live = cli_context.run(_watch)
    except KeyboardInterrupt:
        console.print("[yellow]Stopped.[/yellow]")
        return
    if not live:
        console.print("[yellow]Realtime sync needs a configured remote store.[/yellow]")
