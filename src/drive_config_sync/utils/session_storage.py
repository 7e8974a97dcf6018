"""Session-scoped key/value storage adapters.

A session storage holds string values for the lifetime of one session and
reports changes made by other execution contexts sharing the same scope.
"""

from __future__ import annotations

import json
import logging
import os
import platform
from pathlib import Path
from typing import Callable, Protocol

from drive_config_sync.utils.errors import SessionStorageError

logger = logging.getLogger(__name__)

StorageListener = Callable[[str, "str | None"], None]

_O_NOFOLLOW = getattr(os, "O_NOFOLLOW", 0)


class SessionStorage(Protocol):
    """Key/value facility the token store is built on."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def poll(self) -> list[str]: ...

    def add_listener(self, listener: StorageListener) -> None: ...

    def remove_listener(self, listener: StorageListener) -> None: ...


class _ListenerMixin:
    _listeners: list[StorageListener]

    def add_listener(self, listener: StorageListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StorageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, key: str, value: str | None) -> None:
        for listener in list(self._listeners):
            listener(key, value)


class SessionScope:
    """Values shared by every MemorySessionStorage bound to this scope."""

    def __init__(self) -> None:
        self.items: dict[str, str] = {}
        self.contexts: list[MemorySessionStorage] = []


class MemorySessionStorage(_ListenerMixin):
    """In-process storage. Each instance is one execution context of its scope.

    A write through one instance notifies the listeners of the other instances
    only, like the browser ``storage`` event.
    """

    def __init__(self, scope: SessionScope | None = None) -> None:
        self._scope = scope or SessionScope()
        self._scope.contexts.append(self)
        self._listeners = []

    def get_item(self, key: str) -> str | None:
        return self._scope.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._scope.items[key] = value
        self._broadcast(key, value)

    def remove_item(self, key: str) -> None:
        if self._scope.items.pop(key, None) is not None:
            self._broadcast(key, None)

    def poll(self) -> list[str]:
        # Changes are pushed to listeners as they happen
        return []

    def _broadcast(self, key: str, value: str | None) -> None:
        for context in self._scope.contexts:
            if context is not self:
                context._notify(key, value)


def ensure_private_dir(path: Path) -> None:
    """Create ``path`` readable by the current user only.

    Existing directories are left as they are.
    """
    if path.exists():
        return
    path.mkdir(parents=True, exist_ok=True, mode=0o700)
    # mkdir's mode is filtered through the umask
    if platform.system() != "Windows":
        os.chmod(path, 0o700)


class FileSessionStorage(_ListenerMixin):
    """JSON file storage scoped to one terminal session.

    The file is created with mode 0600 inside a private directory. Changes
    written by other processes are picked up by ``poll()``.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._listeners = []
        try:
            self._snapshot = self._read()
        except SessionStorageError as e:
            logger.error(f"Error loading session storage: {e}")
            self._snapshot = {}

    def get_item(self, key: str) -> str | None:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    def poll(self) -> list[str]:
        """Fire listeners for keys changed outside this instance.

        Returns:
            The keys whose values changed.
        """
        current = self._read()
        changed = sorted(
            key for key in set(current) | set(self._snapshot)
            if current.get(key) != self._snapshot.get(key)
        )
        self._snapshot = current
        for key in changed:
            self._notify(key, current.get(key))
        return changed

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise SessionStorageError(f"Could not read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise SessionStorageError(f"Unexpected content in {self.path}")
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: dict[str, str]) -> None:
        try:
            ensure_private_dir(self.path.parent)
            # Permissions are set at creation; symlinks are refused
            fd = os.open(self.path, os.O_CREAT | os.O_WRONLY | os.O_TRUNC | _O_NOFOLLOW, 0o600)
            with os.fdopen(fd, "w") as f:
                if platform.system() != "Windows":
                    os.fchmod(f.fileno(), 0o600)
                f.write(json.dumps(data, indent=2))
        except OSError as e:
            raise SessionStorageError(f"Could not write {self.path}: {e}") from e
        self._snapshot = dict(data)
