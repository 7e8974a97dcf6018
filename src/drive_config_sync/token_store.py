"""Session-scoped persistence of the Drive access token."""

from __future__ import annotations

import logging
from typing import Callable

from drive_config_sync.utils.errors import SessionStorageError
from drive_config_sync.utils.session_storage import SessionStorage

logger = logging.getLogger(__name__)

DRIVE_ACCESS_TOKEN_KEY = "drive_access_token"

TokenListener = Callable[["str | None"], None]


class TokenStore:
    """Holds a single bearer token in session storage.

    Listeners are called with the new value whenever the token changes,
    either through ``set`` or through another context writing the same key.
    Storage failures are logged and the last in-memory value is kept.
    """

    def __init__(self, storage: SessionStorage, key: str = DRIVE_ACCESS_TOKEN_KEY) -> None:
        self._storage = storage
        self._key = key
        self._value: str | None = None
        self._listeners: list[TokenListener] = []

        try:
            self._value = storage.get_item(key)
        except SessionStorageError as e:
            logger.error(f"Error loading from session storage: {e}")

        storage.add_listener(self._on_storage_change)

    @property
    def key(self) -> str:
        return self._key

    def get(self) -> str | None:
        """Return the current token, if any.

        Polls the storage first, so a change made by another process is
        reported to listeners before the value is returned.
        """
        try:
            self._storage.poll()
        except SessionStorageError as e:
            logger.error(f"Error loading from session storage: {e}")
        return self._value

    def set(self, token: str | None) -> None:
        """Store a token, or clear it with ``None``."""
        try:
            if token is None:
                self._storage.remove_item(self._key)
            else:
                self._storage.set_item(self._key, token)
        except SessionStorageError as e:
            logger.error(f"Error saving to session storage: {e}")
            return

        self._update(token)

    def subscribe(self, listener: TokenListener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Stop listening to the underlying storage."""
        self._storage.remove_listener(self._on_storage_change)
        self._listeners.clear()

    def _on_storage_change(self, key: str, value: str | None) -> None:
        if key == self._key:
            logger.info("Access token changed in another session context")
            self._update(value)

    def _update(self, token: str | None) -> None:
        if token == self._value:
            return
        self._value = token
        for listener in list(self._listeners):
            listener(token)
