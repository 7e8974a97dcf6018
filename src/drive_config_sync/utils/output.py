"""Rendering of sessions, documents and status records for the CLI.

JSON goes to stdout for scripts and agents; tables go to stderr through rich.
"""

from __future__ import annotations

import json
import sys
from enum import Enum
from typing import Any

from pydantic import BaseModel
from rich.console import Console
from rich.table import Table

from drive_config_sync.models.sync import SyncSession

console = Console(stderr=True)


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"


def document_row(session: SyncSession) -> dict[str, Any]:
    """Flatten a session into ``fileId`` plus the document's top-level keys.

    Non-object documents are shown under a single ``document`` key.
    """
    row: dict[str, Any] = {"fileId": session.file_handle.id if session.file_handle else ""}
    if isinstance(session.document, dict):
        row.update(session.document)
    else:
        row["document"] = session.document
    return row


def print_document(session: SyncSession, fmt: OutputFormat = OutputFormat.TABLE, title: str = "Config") -> None:
    """Show the synced document together with the id of its remote file."""
    print_record(document_row(session), fmt, title)


def print_record(
    record: BaseModel | dict[str, Any],
    fmt: OutputFormat = OutputFormat.TABLE,
    title: str | None = None,
) -> None:
    """Print a single record (a pydantic model or a plain dict)."""
    data = record.model_dump(mode="json") if isinstance(record, BaseModel) else record
    if fmt == OutputFormat.JSON:
        print_json(data)
    else:
        print_table(data, title)


def print_json(data: Any) -> None:
    """Print data as formatted JSON to stdout."""
    json.dump(data, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def print_table(data: dict[str, Any], title: str | None = None) -> None:
    """Print one record as a two-column field/value table."""
    if not data:
        console.print("[dim]Nothing to show.[/dim]")
        return

    table = Table(title=title, show_header=True, show_lines=False)
    table.add_column("Field", style="bold")
    table.add_column("Value", overflow="fold")

    for key, value in data.items():
        # Nested JSON stays readable on one line
        shown = json.dumps(value) if isinstance(value, (dict, list)) else str(value)
        table.add_row(key, shown)

    console.print(table)
