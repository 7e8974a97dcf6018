"""Sync coordinator — keeps the remote config document and local state in step.

Owns the session state machine:

    UNAUTHENTICATED -> INITIALIZING -> READY <-> SAVING
                         any 401 -> SESSION_EXPIRED -> UNAUTHENTICATED
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from drive_config_sync.models.documents import JsonValue, RemoteFileHandle, default_document
from drive_config_sync.models.sync import SyncSession, SyncState
from drive_config_sync.services.config_repository import ConfigRepository
from drive_config_sync.token_store import TokenStore
from drive_config_sync.utils.errors import RepositoryError, Unauthorized

logger = logging.getLogger(__name__)

SYNC_FAILED_MESSAGE = "Failed to synchronize data"
SAVE_FAILED_MESSAGE = "Failed to save changes"


class SyncCoordinator:
    """Drives find-or-create, load and optimistic save for one token at a time.

    Args:
        repository: Remote document storage.
        token_store: Source of the access token. A new token resets the
            session so that it is initialized once for that token.
        default_document: Factory for the document created when none exists.
        on_session_expired: Called after a 401 has cleared the token.
    """

    def __init__(
        self,
        repository: ConfigRepository,
        token_store: TokenStore,
        default_document: Callable[[], JsonValue] = default_document,
        on_session_expired: Callable[[], None] | None = None,
    ) -> None:
        self._repository = repository
        self._token_store = token_store
        self._default_document = default_document
        self._on_session_expired = on_session_expired
        self.session = SyncSession(token=token_store.get())
        self._init_task: asyncio.Task[None] | None = None
        self._save_lock = asyncio.Lock()
        self._deferred_token: tuple[str | None] | None = None
        self._unsubscribe = token_store.subscribe(self._on_token_change)

    # ── Observable state ─────────────────────────────────────────────

    @property
    def state(self) -> SyncState:
        return self.session.state

    @property
    def document(self) -> JsonValue:
        return self.session.document

    @property
    def file_handle(self) -> RemoteFileHandle | None:
        return self.session.file_handle

    @property
    def error(self) -> str | None:
        return self.session.error

    @property
    def is_loading(self) -> bool:
        return self.session.is_loading

    @property
    def is_saving(self) -> bool:
        return self.session.is_saving

    def snapshot(self) -> SyncSession:
        """Copy of the current session for display."""
        return self.session.model_copy(deep=True)

    # ── Initialization ───────────────────────────────────────────────

    async def ensure_initialized(self) -> None:
        """Run the first find-or-create for the current token.

        Only starts from UNAUTHENTICATED with a token and no document. Joins an
        initialization already in flight; otherwise a no-op.
        """
        self._poll_token()
        if self._init_in_flight():
            await self._init_task  # type: ignore[misc]
            return

        session = self.session
        if session.state is not SyncState.UNAUTHENTICATED or not session.token or session.document is not None:
            return

        await self._run_initialization(session)

    async def refresh(self) -> None:
        """Re-run find-or-create on demand, even after the first run."""
        self._poll_token()
        if self._init_in_flight():
            await self._init_task  # type: ignore[misc]
            return

        session = self.session
        if not session.token:
            return
        if session.is_saving:
            logger.warning("Refresh skipped: a save is in progress")
            return

        await self._run_initialization(session)

    def _poll_token(self) -> None:
        # Reading the store surfaces changes made in other session contexts
        self._token_store.get()

    def _init_in_flight(self) -> bool:
        return self._init_task is not None and not self._init_task.done()

    async def _run_initialization(self, session: SyncSession) -> None:
        session.state = SyncState.INITIALIZING
        session.is_loading = True
        session.error = None
        self._init_task = asyncio.ensure_future(self._initialize(session))
        await self._init_task

    async def _initialize(self, session: SyncSession) -> None:
        token = session.token
        revision = session.revision
        try:
            handle = await self._repository.find_document(token)  # type: ignore[arg-type]
            if handle is not None:
                session.file_handle = handle
                document = await self._repository.load_document(token, handle.id)  # type: ignore[arg-type]
            else:
                logger.info("No config file found. Creating new one...")
                document = self._default_document()
                file_id = await self._repository.save_document(token, document)  # type: ignore[arg-type]
                session.file_handle = RemoteFileHandle(id=file_id, name=self._repository.filename)

            # A local edit made while loading is newer than what was fetched
            if session.revision == revision:
                session.document = document
            session.state = SyncState.SAVING if session.queued_saves else SyncState.READY
        except Unauthorized:
            logger.warning("Access token rejected during sync init")
            self._expire(session)
        except Exception as e:
            logger.error(f"Sync init error: {e}")
            session.error = str(e) or SYNC_FAILED_MESSAGE
            session.state = SyncState.SAVING if session.queued_saves else SyncState.READY
        finally:
            session.is_loading = False
            self._settle()

    # ── Saving ───────────────────────────────────────────────────────

    async def save_data(self, document: JsonValue) -> None:
        """Apply ``document`` locally, then write it to the remote file.

        Saves are queued behind each other in call order. Failures other than
        an expired token leave the local value in place and set ``error``.
        """
        self._poll_token()
        session = self.session
        if not session.token:
            return

        # Optimistic update, visible before the first suspension point
        session.document = document
        session.revision += 1
        session.error = None
        session.is_saving = True
        session.queued_saves += 1
        if session.state is SyncState.READY:
            session.state = SyncState.SAVING

        try:
            async with self._save_lock:
                if self._init_in_flight():
                    await self._init_task  # type: ignore[misc]
                if session is not self.session or not session.token:
                    return
                await self._save(session, document)
        finally:
            session.queued_saves -= 1
            if session.queued_saves == 0:
                session.is_saving = False
                if session.state in (SyncState.SAVING, SyncState.UNAUTHENTICATED) and session.token:
                    session.state = SyncState.READY
            self._settle()

    async def _save(self, session: SyncSession, document: JsonValue) -> None:
        token = session.token
        try:
            file_id = session.file_handle.id if session.file_handle else None
            if file_id is None:
                # No handle yet: look before creating so no duplicate appears
                found = await self._repository.find_document(token)  # type: ignore[arg-type]
                file_id = found.id if found else None

            saved_id = await self._repository.save_document(token, document, file_id)  # type: ignore[arg-type]
            session.file_handle = RemoteFileHandle(id=saved_id, name=self._repository.filename)
        except Unauthorized:
            logger.warning("Access token rejected during save")
            self._expire(session)
        except Exception as e:
            logger.error(f"Save error: {e}")
            if isinstance(e, RepositoryError) and e.status_code == 404:
                # Deleted remotely; rediscover on the next save or refresh
                session.file_handle = None
            session.error = SAVE_FAILED_MESSAGE

    # ── Session teardown ─────────────────────────────────────────────

    def logout(self) -> None:
        """Clear the token and all session data."""
        self._deferred_token = None
        self.session = SyncSession()
        self._token_store.set(None)

    def close(self) -> None:
        """Stop listening for token changes."""
        self._unsubscribe()

    def _expire(self, session: SyncSession) -> None:
        if session is not self.session:
            # Outcome of a request from a session that was already replaced
            return

        logger.warning("Session expired; clearing access token")
        self._deferred_token = None
        self.session = SyncSession(state=SyncState.SESSION_EXPIRED)
        self._token_store.set(None)

        if self._on_session_expired is not None:
            self._on_session_expired()

        if self.session.state is SyncState.SESSION_EXPIRED:
            self.session.state = SyncState.UNAUTHENTICATED

    def _on_token_change(self, token: str | None) -> None:
        if self.session.is_loading or self.session.is_saving:
            self._deferred_token = (token,)
            return
        self._apply_token(token)

    def _settle(self) -> None:
        if self._deferred_token is None:
            return
        if self.session.is_loading or self.session.is_saving:
            return
        (token,) = self._deferred_token
        self._deferred_token = None
        self._apply_token(token)

    def _apply_token(self, token: str | None) -> None:
        if token == self.session.token:
            return
        if token is None:
            logger.info("Access token cleared")
            self.session = SyncSession()
        else:
            logger.info("New access token; session will re-initialize")
            self.session = SyncSession(token=token)
