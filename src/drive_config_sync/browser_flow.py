"""
Browser-based implicit token flow for terminal use.

Opens the provider's consent page in the system browser and receives the
access token on a local loopback server.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import webbrowser
from typing import Any, Callable
from urllib.parse import urlencode

from aiohttp import web

from drive_config_sync.auth import DEFAULT_PROMPT, ErrorCallback, TokenCallback
from drive_config_sync.config import Config

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/callback"
TOKEN_PATH = "/token"

# The token arrives in the URL fragment, which never reaches the server;
# this page forwards it as a query string.
_FORWARD_HTML = f"""
<html>
    <body>
        <p>Completing sign-in...</p>
        <script>
            window.location.replace("{TOKEN_PATH}?" + window.location.hash.substring(1));
        </script>
    </body>
</html>
"""

_DONE_HTML = """
<html>
    <body>
        <h1>{title}</h1>
        <p>You can close this window and return to the terminal.</p>
    </body>
</html>
"""


def build_authorize_url(
    auth_endpoint: str,
    client_id: str,
    scope: str,
    redirect_uri: str,
    state: str,
    prompt: str = DEFAULT_PROMPT,
) -> str:
    """Build the implicit grant authorization URL."""
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "token",
        "scope": scope,
        "state": state,
        "include_granted_scopes": "true",
    }
    if prompt:
        params["prompt"] = prompt
    return f"{auth_endpoint}?{urlencode(params)}"


def _expires_in(raw: str | None, default: int = 3600) -> int:
    try:
        return int(raw) if raw else default
    except ValueError:
        logger.warning(f"Ignoring non-numeric expires_in: {raw!r}")
        return default


def parse_token_redirect(query: dict[str, str], expected_state: str) -> tuple[str, dict[str, Any]]:
    """Turn the forwarded fragment into a callback payload.

    Returns:
        ("token", payload) for the token callback or ("error", payload) for
        the error callback.
    """
    if query.get("state") != expected_state:
        return "error", {"type": "unknown", "message": "State mismatch"}

    if query.get("error"):
        return "token", {
            "error": query["error"],
            "error_description": query.get("error_description", ""),
            "error_uri": query.get("error_uri", ""),
        }

    if not query.get("access_token"):
        return "error", {"type": "unknown", "message": "No access token in redirect"}

    return "token", {
        "access_token": query["access_token"],
        "token_type": query.get("token_type", "Bearer"),
        "expires_in": _expires_in(query.get("expires_in")),
        "scope": query.get("scope", ""),
    }


class BrowserTokenClient:
    """Token client bound to one client id and scope."""

    def __init__(
        self,
        config: Config,
        client_id: str,
        scope: str,
        on_token: TokenCallback,
        on_error: ErrorCallback,
        open_browser: Callable[[str], bool] = webbrowser.open,
    ) -> None:
        self._config = config
        self._client_id = client_id
        self._scope = scope
        self._on_token = on_token
        self._on_error = on_error
        self._open_browser = open_browser
        self._task: asyncio.Task[None] | None = None

    def request_token(self, prompt: str = DEFAULT_PROMPT) -> None:
        """Start the flow. The outcome is reported through the callbacks."""
        if self._task is not None and not self._task.done():
            logger.warning("Token request already in progress")
            self._on_error({"type": "unknown", "message": "A sign-in is already in progress"})
            return
        self._task = asyncio.get_running_loop().create_task(self._run(prompt))

    async def _run(self, prompt: str) -> None:
        state = secrets.token_urlsafe(16)
        outcome: asyncio.Future[tuple[str, Any]] = asyncio.get_running_loop().create_future()

        async def handle_callback(request: web.Request) -> web.Response:
            return web.Response(text=_FORWARD_HTML, content_type="text/html")

        async def handle_token(request: web.Request) -> web.Response:
            channel, payload = parse_token_redirect(dict(request.query), state)
            if not outcome.done():
                outcome.set_result((channel, payload))
            ok = channel == "token" and "access_token" in payload
            title = "Authentication Successful!" if ok else "Authentication Failed"
            return web.Response(
                text=_DONE_HTML.format(title=title),
                content_type="text/html",
                status=200 if ok else 400,
            )

        app = web.Application()
        app.router.add_get(CALLBACK_PATH, handle_callback)
        app.router.add_get(TOKEN_PATH, handle_token)
        runner = web.AppRunner(app)

        # Callbacks fire only after the server is gone, so a retry can start at once
        result: tuple[str, Any]
        try:
            await runner.setup()
            site = web.TCPSite(runner, host="localhost", port=self._config.settings.callback_port)
            await site.start()
            logger.info(f"Token callback server listening on port {self._config.settings.callback_port}")

            url = build_authorize_url(
                self._config.provider.auth_endpoint,
                self._client_id,
                self._scope,
                self._config.redirect_uri,
                state,
                prompt,
            )
            if not self._open_browser(url):
                result = ("error", {"type": "popup_failed_to_open"})
            else:
                try:
                    result = await asyncio.wait_for(outcome, timeout=self._config.settings.auth_timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"No token received after {self._config.settings.auth_timeout} seconds")
                    result = ("error", {"type": "popup_closed"})
        except OSError as e:
            logger.error(f"Could not start token callback server: {e}")
            result = ("error", e)
        finally:
            await runner.cleanup()

        channel, payload = result
        if channel == "token":
            self._on_token(payload)
        else:
            self._on_error(payload)


class BrowserTokenProvider:
    """TokenProvider that uses the system browser and a loopback server."""

    def __init__(self, config: Config, open_browser: Callable[[str], bool] = webbrowser.open) -> None:
        self._config = config
        self._open_browser = open_browser

    def initialize(
        self,
        client_id: str,
        scope: str,
        on_token: TokenCallback,
        on_error: ErrorCallback,
    ) -> BrowserTokenClient:
        if not client_id:
            raise ValueError("No OAuth client ID configured. Set DRIVE_SYNC_CLIENT_ID.")
        return BrowserTokenClient(
            self._config, client_id, scope, on_token, on_error, open_browser=self._open_browser,
        )
