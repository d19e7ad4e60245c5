"""Apply a stored payment webhook event to account profiles.

Useful for replaying a delivery that failed, using the JSON body exactly as
the payment processor sent it. Requires the service-role key.
"""

from __future__ import annotations

import json
from pathlib import Path

import click
from rich.console import Console

from bidscreen.app.dependencies import ServiceContainer
from bidscreen.infrastructure.remote import AuthenticationRequired, RemoteStoreError
from bidscreen.interfaces.cli.context import CLIContext

console = Console()


@click.command()
@click.argument("event_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def reconcile(ctx: click.Context, event_file: Path) -> None:
    """Apply the webhook event stored in EVENT_FILE."""

    cli_context: CLIContext = ctx.obj["cli_context"]
    try:
        event = json.loads(event_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}", param_hint="EVENT_FILE") from exc
    if not isinstance(event, dict):
        raise click.BadParameter("expected a JSON object", param_hint="EVENT_FILE")

    async def _apply(container: ServiceContainer):
        return await container.reconciler().handle_event(event)

    try:
        outcome = cli_context.run(_apply, service_role=True)
    except RuntimeError as exc:
        console.print(f"[red]{exc}[/red]")
        ctx.exit(1)
    except (RemoteStoreError, AuthenticationRequired) as exc:
        console.print(f"[red]Profile update failed: {exc}[/red]")
        ctx.exit(1)

    if outcome.handled:
        console.print(
            f"[green]Applied {outcome.event_type} to user [bold]{outcome.user_id}[/bold].[/green]"
        )
    else:
        console.print(f"[yellow]Skipped {outcome.event_type or 'event'}: {outcome.reason}.[/yellow]")
