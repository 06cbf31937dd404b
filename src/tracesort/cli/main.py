"""tracesort CLI - tracesort command."""

import click

from tracesort import __version__
from tracesort.cli.sort import sort_command
from tracesort.core.logging import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="tracesort")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """tracesort - Order trace records by timestamp, larger than memory."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(sort_command, name="sort")


if __name__ == "__main__":
    cli()
