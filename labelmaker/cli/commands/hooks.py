"""
CLI commands for managing hook registrations.
"""

import asyncio
import json
import uuid
from pathlib import Path
from typing import Optional

import click
import httpx
from rich.console import Console
from rich.table import Table

from labelmaker.core.errors import LabelmakerError
from labelmaker.core.logging import get_logger, mask
from labelmaker.hooks import signature
from labelmaker.hooks.models import RepoRecord
from labelmaker.hooks.registration import RegistrationService
from labelmaker.hooks.store import HookStore

console = Console()
logger = get_logger(__name__)


def _registration_table(record: RepoRecord, full_path: bool = False) -> Table:
    table = Table(title=f"{record.owner}/{record.name}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Hook ID", str(record.hook_id))
    table.add_row("Hook path", record.hook_path if full_path else mask(record.hook_path))
    return table


@click.command()
@click.argument('owner')
@click.argument('name')
@click.option(
    '--access-token',
    envvar='GITHUB_TOKEN',
    required=True,
    help='GitHub token of a repository admin (default: $GITHUB_TOKEN)'
)
@click.pass_context
def install(ctx, owner: str, name: str, access_token: str):
    """Install a web hook on OWNER/NAME."""
    settings = ctx.obj['settings']

    async def _install() -> RepoRecord:
        store = HookStore.from_settings(settings.redis)
        try:
            return await RegistrationService(store, settings).install(owner, name, access_token)
        finally:
            await store.close()

    try:
        record = asyncio.run(_install())
    except LabelmakerError as e:
        console.print(f"[red]Install failed:[/red] {e}")
        raise SystemExit(1)

    console.print(_registration_table(record))
    console.print(f"[green]Hook installed on {owner}/{name}[/green]")


@click.command()
@click.argument('owner')
@click.argument('name')
@click.option('--full-path', is_flag=True, help='Print the hook path unmasked')
@click.pass_context
def show(ctx, owner: str, name: str, full_path: bool):
    """Show the registration of OWNER/NAME."""
    settings = ctx.obj['settings']

    async def _show() -> Optional[RepoRecord]:
        store = HookStore.from_settings(settings.redis)
        try:
            return await store.get_repo_info(owner, name)
        finally:
            await store.close()

    try:
        record = asyncio.run(_show())
    except LabelmakerError as e:
        console.print(f"[red]Lookup failed:[/red] {e}")
        raise SystemExit(1)

    if record is None:
        console.print(f"[yellow]{owner}/{name} is not registered[/yellow]")
        raise SystemExit(1)

    console.print(_registration_table(record, full_path=full_path))


@click.command('send-test')
@click.argument('owner')
@click.argument('name')
@click.option('--event', default='ping', show_default=True, help='X-GitHub-Event value')
@click.option(
    '--payload',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Path to a JSON payload file'
)
@click.option('--url', default=None, help='Server base URL (default: local server)')
@click.pass_context
def send_test(ctx, owner: str, name: str, event: str, payload: Optional[Path], url: Optional[str]):
    """Send a correctly signed test callback for OWNER/NAME."""
    settings = ctx.obj['settings']

    if payload:
        body = payload.read_bytes()
    else:
        body = json.dumps({"zen": "Keep it logically awesome."}).encode("utf-8")

    async def _lookup():
        store = HookStore.from_settings(settings.redis)
        try:
            record = await store.get_repo_info(owner, name)
            if record is None:
                return None, None
            return record, await store.get_hook_info(record.hook_path)
        finally:
            await store.close()

    try:
        record, hook = asyncio.run(_lookup())
    except LabelmakerError as e:
        console.print(f"[red]Lookup failed:[/red] {e}")
        raise SystemExit(1)

    if record is None:
        console.print(f"[yellow]{owner}/{name} is not registered[/yellow]")
        raise SystemExit(1)

    base = url or f"http://localhost:{settings.server.port}"
    target = f"{base.rstrip('/')}/hooks/{record.hook_path}"
    headers = {
        "Content-Type": "application/json",
        "X-GitHub-Event": event,
        "X-GitHub-Delivery": str(uuid.uuid4()),
        "X-Hub-Signature": signature.sign(body, hook.secret),
    }

    click.echo(f"Sending {event} callback for {owner}/{name} to {base}")

    try:
        response = httpx.post(target, content=body, headers=headers)
    except httpx.HTTPError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"Response: {response.status_code} {response.text}")
    if response.is_error:
        raise SystemExit(1)
