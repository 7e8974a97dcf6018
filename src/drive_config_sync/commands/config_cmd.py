"""CLI commands for reading and writing the synced config document."""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Annotated, Awaitable, Callable

import typer
from pydantic import ValidationError
from rich.console import Console

from drive_config_sync.client import DriveClient
from drive_config_sync.commands.auth_cmd import build_token_store
from drive_config_sync.config import Config, get_config
from drive_config_sync.models.documents import AppConfig
from drive_config_sync.models.sync import SyncSession
from drive_config_sync.services.config_repository import ConfigRepository
from drive_config_sync.services.sync import SyncCoordinator
from drive_config_sync.token_store import TokenStore
from drive_config_sync.utils.errors import DriveSyncError, Unauthorized, handle_error
from drive_config_sync.utils.output import OutputFormat, print_document

console = Console(stderr=True)
app = typer.Typer(name="config", help="Show and update the config document stored in Google Drive.")

SessionAction = Callable[[SyncCoordinator], Awaitable[None]]


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


async def _run_session(
    config: Config,
    store: TokenStore,
    action: SessionAction | None = None,
    *,
    initialize: bool = True,
    verbose: bool = False,
) -> tuple[SyncSession, bool]:
    """Run one coordinator session and report (final session, expired)."""
    expired: list[bool] = []
    client = DriveClient(config, verbose=verbose)
    repository = ConfigRepository(
        client,
        filename=config.settings.config_filename,
        folder=config.provider.folder,
    )
    coordinator = SyncCoordinator(
        repository,
        store,
        on_session_expired=lambda: expired.append(True),
    )

    try:
        if initialize:
            await coordinator.ensure_initialized()
        if action is not None and not expired:
            await action(coordinator)
        return coordinator.snapshot(), bool(expired)
    finally:
        coordinator.close()
        await client.aclose()


def _execute(
    action: SessionAction | None,
    output: OutputFormat,
    *,
    initialize: bool = True,
    verbose: bool = False,
    title: str = "Config",
) -> None:
    config = get_config()
    store = build_token_store(config)
    if store.get() is None:
        console.print("[red]Not connected.[/red] Run `drive-sync auth login` first.")
        raise typer.Exit(1)

    session, expired = asyncio.run(
        _run_session(config, store, action, initialize=initialize, verbose=verbose)
    )

    if expired:
        handle_error(Unauthorized())
        raise typer.Exit(1)

    if session.error:
        handle_error(DriveSyncError(session.error))
        raise typer.Exit(1)

    print_document(session, output, title=title)


@app.command()
def show(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Load the config document, creating it with defaults if missing."""
    _execute(None, output, verbose=verbose)


@app.command("set-theme")
def set_theme(
    theme: Annotated[Theme, typer.Argument(help="Theme to store")],
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Save a new theme and bump lastActive."""

    async def update(coordinator: SyncCoordinator) -> None:
        if coordinator.error:
            return
        current = coordinator.document if isinstance(coordinator.document, dict) else {}
        try:
            updated = AppConfig.model_validate({
                **current,
                "theme": theme.value,
                "lastActive": int(time.time() * 1000),
            })
        except ValidationError as e:
            raise DriveSyncError(f"Stored config is invalid: {e}") from e
        await coordinator.save_data(updated.to_document())

    try:
        _execute(update, output, verbose=verbose, title="Config Saved")
    except DriveSyncError as e:
        handle_error(e)
        raise typer.Exit(1)


@app.command()
def refresh(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Force a resync from Google Drive."""

    async def resync(coordinator: SyncCoordinator) -> None:
        await coordinator.refresh()

    _execute(resync, output, initialize=False, verbose=verbose, title="Config Refreshed")
