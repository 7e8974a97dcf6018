"""Error taxonomy and structured error output for agent-friendly CLI use."""

from __future__ import annotations

import json
import sys

from rich.console import Console

from drive_config_sync.models.auth import AuthErrorKind, DEFAULT_AUTH_MESSAGES

console = Console(stderr=True)


class DriveSyncError(Exception):
    """Base class for all drive-config-sync errors."""


class AuthError(DriveSyncError):
    """The interactive token flow failed."""

    def __init__(self, kind: AuthErrorKind, message: str | None = None) -> None:
        self.kind = kind
        self.message = message or DEFAULT_AUTH_MESSAGES[kind]
        super().__init__(self.message)


class Unauthorized(DriveSyncError):
    """The backend rejected the access token (HTTP 401)."""

    def __init__(self, message: str = "Google Drive access token expired") -> None:
        super().__init__(message)


class RepositoryError(DriveSyncError):
    """The backend answered with a non-success status other than 401."""

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail)


class ParseError(DriveSyncError):
    """A success response did not have the expected shape."""


class SessionStorageError(DriveSyncError):
    """The session key/value storage could not be read or written."""


# Actionable hints keyed by error code
_ERROR_HINTS: dict[str, str] = {
    "SESSION_EXPIRED": "Session expired — run `drive-sync auth login`",
    "AUTH_ERROR": "Run `drive-sync auth login` again from a desktop session",
    "REPOSITORY_ERROR": "Check network connectivity and retry",
    "PARSE_ERROR": "The server response was malformed — retry later",
    "SYNC_ERROR": "Retry with `drive-sync config refresh`",
}


def error_code(error: Exception) -> str:
    """Map an exception to a stable error code."""
    if isinstance(error, Unauthorized):
        return "SESSION_EXPIRED"
    if isinstance(error, AuthError):
        return "AUTH_ERROR"
    if isinstance(error, ParseError):
        return "PARSE_ERROR"
    if isinstance(error, RepositoryError):
        return "REPOSITORY_ERROR"
    if isinstance(error, DriveSyncError):
        return "SYNC_ERROR"
    return "RUNTIME_ERROR"


def handle_error(error: Exception) -> None:
    """Handle an error with structured output to stdout and human-readable output to stderr.

    Outputs a JSON error object to stdout for agent consumption:
    {"error": true, "code": "SESSION_EXPIRED", "message": "...", "hint": "..."}

    Also prints a human-readable error to stderr.
    """
    message = str(error)
    code = error_code(error)
    hint = _ERROR_HINTS.get(code)

    error_obj: dict[str, object] = {
        "error": True,
        "code": code,
        "message": message,
    }
    if isinstance(error, AuthError):
        error_obj["kind"] = error.kind.value
    if hint:
        error_obj["hint"] = hint

    json.dump(error_obj, sys.stdout)
    sys.stdout.write("\n")

    # Human-readable to stderr
    console.print(f"[red]Error:[/red] {message}")
    if hint:
        console.print(f"[dim]Hint: {hint}[/dim]")
