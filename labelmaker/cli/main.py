"""Main CLI interface for Labelmaker.

This provides the command-line interface for running the server and
managing hook registrations.
"""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from labelmaker import __version__
from labelmaker.core.logging import setup_logging, get_logger
from labelmaker.core.settings import load_settings

from .commands import hooks, serve

console = Console()
logger = get_logger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="labelmaker")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to a YAML or JSON configuration file"
)
@click.pass_context
def cli(ctx, debug: bool, config: Optional[Path]):
    """Install GitHub web hooks and receive verified callbacks."""
    settings = load_settings(config)
    setup_logging(level="DEBUG" if debug or settings.debug else None)

    ctx.obj = {
        'settings': settings,
        'debug': debug,
    }

    if debug:
        console.print("[yellow]Debug mode enabled[/yellow]")


# Register commands
cli.add_command(serve.serve)
cli.add_command(hooks.install)
cli.add_command(hooks.show)
cli.add_command(hooks.send_test)


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
