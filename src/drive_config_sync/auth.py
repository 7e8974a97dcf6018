"""OAuth2 token flow for the Drive app data scope.

Drives the provider's consent popup, classifies failures, and hands the
resulting access token to the token store.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Protocol

from drive_config_sync.models.auth import AuthErrorKind, ProviderCapability, TokenResponse
from drive_config_sync.token_store import TokenStore
from drive_config_sync.utils.errors import AuthError

logger = logging.getLogger(__name__)

# Reuse cached consent when available, prompt otherwise
DEFAULT_PROMPT = ""

TokenCallback = Callable[[dict[str, Any]], None]
ErrorCallback = Callable[[Any], None]


class TokenClient(Protocol):
    """Handle returned by the provider for one initialized client."""

    def request_token(self, prompt: str = DEFAULT_PROMPT) -> None: ...


class TokenProvider(Protocol):
    """Identity provider capable of issuing access tokens through a popup."""

    def initialize(
        self,
        client_id: str,
        scope: str,
        on_token: TokenCallback,
        on_error: ErrorCallback,
    ) -> TokenClient: ...


def check_provider(provider: Any) -> ProviderCapability:
    """Check that a provider exposes the token client API."""
    if provider is None:
        return ProviderCapability(available=False, missing="provider")
    if not callable(getattr(provider, "initialize", None)):
        return ProviderCapability(available=False, missing="initialize")
    return ProviderCapability(available=True)


def classify_auth_error(payload: Any) -> AuthError:
    """Map a provider error payload to an AuthError.

    Accepts the error channel shape ``{"type": ..., "message": ...}``, the
    token response shape ``{"error": ..., "error_description": ...}`` and
    exceptions. Unrecognised payloads are ``UNKNOWN``.
    """
    if isinstance(payload, AuthError):
        return payload

    if isinstance(payload, BaseException):
        return AuthError(AuthErrorKind.UNKNOWN, str(payload) or None)

    if isinstance(payload, TokenResponse):
        payload = payload.model_dump()

    if not isinstance(payload, dict):
        return AuthError(AuthErrorKind.UNKNOWN)

    raw_kind = payload.get("type") or payload.get("error")
    try:
        kind = AuthErrorKind(raw_kind)
    except ValueError:
        kind = AuthErrorKind.UNKNOWN

    message = payload.get("message") or payload.get("error_description")
    if not isinstance(message, str) or not message:
        message = None

    return AuthError(kind, message)


class AuthBroker:
    """Converts the provider's callback-based popup flow into an awaitable."""

    def __init__(
        self,
        provider: TokenProvider | None,
        client_id: str,
        scope: str,
        token_store: TokenStore | None = None,
    ) -> None:
        self._provider = provider
        self._client_id = client_id
        self._scope = scope
        self._token_store = token_store
        self._client: TokenClient | None = None
        self._pending: asyncio.Future[str] | None = None

    @property
    def is_initialized(self) -> bool:
        return self._client is not None

    def initialize(self) -> None:
        """Create the provider's token client. Safe to call more than once."""
        if self._client is not None:
            return

        capability = check_provider(self._provider)
        if not capability.available:
            logger.warning(f"Token provider unavailable (missing {capability.missing})")
            return

        try:
            self._client = self._provider.initialize(  # type: ignore[union-attr]
                self._client_id,
                self._scope,
                self._on_token,
                self._on_error,
            )
        except Exception as e:
            logger.error(f"Failed to initialize token client: {e}")
            self._client = None

    async def connect(self) -> str | None:
        """Run the consent flow and return the access token.

        Returns None without opening a popup if the broker is not initialized.

        Raises:
            AuthError: If the provider reports a failure.
        """
        if self._client is None:
            logger.warning("Token client not initialized")
            return None

        if self._pending is not None and not self._pending.done():
            return await self._pending

        self._pending = asyncio.get_running_loop().create_future()
        pending = self._pending

        try:
            self._client.request_token(DEFAULT_PROMPT)
        except Exception as e:
            logger.error(f"Token request failed: {e}")
            self._reject(classify_auth_error(e))

        return await pending

    def _on_token(self, response: dict[str, Any]) -> None:
        if not isinstance(response, dict):
            logger.error(f"Malformed token response: {response!r}")
            self._reject(AuthError(AuthErrorKind.UNKNOWN))
            return

        if response.get("error"):
            logger.error(f"Token flow error: {response.get('error')}")
            self._reject(classify_auth_error(response))
            return

        token = response.get("access_token")
        if not token:
            logger.error("Token response did not contain an access token")
            self._reject(AuthError(AuthErrorKind.UNKNOWN))
            return

        self._resolve(token)

    def _on_error(self, error: Any) -> None:
        logger.error(f"Token client error: {error}")
        self._reject(classify_auth_error(error))

    def _resolve(self, token: str) -> None:
        if self._pending is None or self._pending.done():
            logger.warning("Ignoring token delivered outside a pending flow")
            return
        if self._token_store is not None:
            self._token_store.set(token)
        self._pending.set_result(token)

    def _reject(self, error: AuthError) -> None:
        if self._pending is None or self._pending.done():
            logger.warning(f"Ignoring auth error outside a pending flow: {error}")
            return
        self._pending.set_exception(error)
