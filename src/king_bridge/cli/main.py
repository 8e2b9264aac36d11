"""Entry point for the king-bridge CLI."""

import logging

import click

from king_bridge import __version__
from king_bridge.cli.commands.run import run
from king_bridge.cli.commands.status import status


@click.group()
@click.version_option(__version__, prog_name="king-bridge")
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (default: WARNING)",
)
def cli(log_level):
    """Drive King, a Claude Code agent running in tmux."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


cli.add_command(run)
cli.add_command(status)


if __name__ == "__main__":
    cli()
