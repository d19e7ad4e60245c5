"""Entry point for the Bidscreen CLI.

Executing ``python -m bidscreen.interfaces.cli`` (or the ``bidscreen``
console script) invokes the group below.
"""

import logging

import click

from bidscreen.infrastructure.observability import configure_logging

from .context import build_cli_context
from .events import events
from .queue import queue
from .reconcile import reconcile
from .serve import serve
from .watch import watch


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to the local SQLite store.",
)
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, db_path: str | None, config_path: str | None, verbose: bool) -> None:
    """Bidscreen command-line interface."""
    configure_logging(logging.DEBUG if verbose else logging.INFO)
    ctx.ensure_object(dict)
    if "cli_context" not in ctx.obj:
        ctx.obj["cli_context"] = build_cli_context(db_path, config_path=config_path)


cli.add_command(events)
cli.add_command(queue)
cli.add_command(reconcile)
cli.add_command(serve)
cli.add_command(watch)


if __name__ == "__main__":
    cli()
