"""CLI commands for authentication management."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.console import Console

from drive_config_sync.auth import AuthBroker
from drive_config_sync.browser_flow import BrowserTokenProvider
from drive_config_sync.config import Config, get_config
from drive_config_sync.models.auth import TokenStatus
from drive_config_sync.token_store import TokenStore
from drive_config_sync.utils.errors import AuthError, handle_error
from drive_config_sync.utils.output import OutputFormat, print_record
from drive_config_sync.utils.session_storage import FileSessionStorage

console = Console(stderr=True)
app = typer.Typer(name="auth", help="Connect to Google Drive and manage the session token.")


def build_token_store(config: Config) -> TokenStore:
    """Token store backed by this terminal session's storage file."""
    storage = FileSessionStorage(config.session_file())
    return TokenStore(storage, key=config.settings.token_key)


async def _connect(broker: AuthBroker) -> str | None:
    broker.initialize()
    return await broker.connect()


@app.command()
def login(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Open the consent page in a browser and store the access token."""
    config = get_config()
    if not config.settings.client_id:
        console.print("[red]No OAuth client ID configured.[/red] Set DRIVE_SYNC_CLIENT_ID.")
        raise typer.Exit(1)

    store = build_token_store(config)
    broker = AuthBroker(
        BrowserTokenProvider(config),
        config.settings.client_id,
        config.provider.scope,
        token_store=store,
    )

    console.print("Waiting for Google Drive consent in your browser...", style="yellow")
    try:
        token = asyncio.run(_connect(broker))
    except AuthError as e:
        handle_error(e)
        raise typer.Exit(1)

    if token is None:
        console.print("[red]Authentication failed:[/red] token client could not be initialized")
        raise typer.Exit(1)

    result = {
        "status": "authenticated",
        "source": str(config.session_file()),
    }
    print_record(result, output, title="Authentication")


@app.command()
def status(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Show whether this terminal session holds an access token."""
    config = get_config()
    store = build_token_store(config)

    token_status = TokenStatus(
        has_token=store.get() is not None,
        source=str(config.session_file()),
    )
    print_record(token_status, output, title="Token Status")


@app.command()
def logout(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Forget the access token for this terminal session."""
    config = get_config()
    store = build_token_store(config)
    store.set(None)

    print_record({"status": "logged_out", "has_token": store.get() is not None}, output, title="Logout")
