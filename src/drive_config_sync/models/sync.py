"""Sync session state models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel

from drive_config_sync.models.documents import RemoteFileHandle


class SyncState(str, Enum):
    """Lifecycle of a sync session."""
    UNAUTHENTICATED = "unauthenticated"
    INITIALIZING = "initializing"
    READY = "ready"
    SAVING = "saving"
    SESSION_EXPIRED = "session_expired"


class SyncSession(BaseModel):
    """Everything the coordinator knows about the current session."""
    state: SyncState = SyncState.UNAUTHENTICATED
    token: str | None = None
    file_handle: RemoteFileHandle | None = None
    document: Any = None
    is_loading: bool = False
    is_saving: bool = False
    error: str | None = None
    # Number of local edits applied; lets a slow load detect newer local data
    revision: int = 0
    queued_saves: int = 0
