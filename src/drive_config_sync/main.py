"""drive-config-sync CLI — entry point.

Connects a terminal session to Google Drive and keeps a small JSON config
document in the app data folder.
"""

from __future__ import annotations

import logging

import typer

from drive_config_sync.commands.auth_cmd import app as auth_app
from drive_config_sync.commands.config_cmd import app as config_app

app = typer.Typer(
    name="drive-sync",
    help="Sync an application config document to the Google Drive app data folder.",
    no_args_is_help=True,
)

# Register command groups
app.add_typer(auth_app, name="auth")
app.add_typer(config_app, name="config")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """drive-config-sync CLI — connect, show, save and refresh the config document."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


if __name__ == "__main__":
    app()
