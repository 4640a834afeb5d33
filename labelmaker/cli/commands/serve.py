"""
CLI command for running the HTTP server.
"""

from typing import Optional

import click

from labelmaker.core.logging import get_logger
from labelmaker.server import LabelmakerServer

logger = get_logger(__name__)


@click.command()
@click.option('--host', default=None, help='Host to bind the server to')
@click.option('--port', type=int, default=None, help='Port to bind the server to')
@click.pass_context
def serve(ctx, host: Optional[str], port: Optional[int]):
    """Start the hook intake and installation server."""
    settings = ctx.obj['settings']

    click.echo("Starting labelmaker server...")
    click.echo(f"Host: {host or settings.server.host}")
    click.echo(f"Port: {port or settings.server.port}")
    click.echo(f"Callbacks: {settings.server.public_url}/hooks/<path>")
    click.echo(f"Store: {settings.redis.url} (db {settings.redis.db})")

    if settings.server.public_url.startswith("http://localhost"):
        click.echo("Warning: public URL is localhost; GitHub will not be able to deliver callbacks")

    try:
        LabelmakerServer(settings).run(host=host, port=port)
    except KeyboardInterrupt:
        click.echo("\nShutting down labelmaker server...")
