"""Run the display service."""

from __future__ import annotations

import click
import uvicorn

from bidscreen.app.dependencies import build_container, set_container
from bidscreen.interfaces.cli.context import CLIContext


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Serve the display API and websocket feed."""

    from bidscreen.app.api import app, event_bus

    cli_context: CLIContext = ctx.obj["cli_context"]
    set_container(build_container(cli_context.settings, event_publisher=event_bus.publish))
    uvicorn.run(app, host=host, port=port)
