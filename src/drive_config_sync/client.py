"""Async HTTP client for the Google Drive REST API.

Handles bearer header injection and maps error responses to the
drive-config-sync error taxonomy. Requests are never retried.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from drive_config_sync.config import Config
from drive_config_sync.utils.errors import RepositoryError, Unauthorized

logger = logging.getLogger(__name__)


class DriveClient:
    """HTTP client for the Drive API with auth error handling."""

    def __init__(self, config: Config, verbose: bool = False) -> None:
        self._config = config
        self._verbose = verbose
        self._http = httpx.AsyncClient(timeout=config.settings.request_timeout)

    @property
    def api_endpoint(self) -> str:
        return self._config.provider.api_endpoint

    @property
    def upload_endpoint(self) -> str:
        return self._config.provider.upload_endpoint

    async def request(
        self,
        method: str,
        url: str,
        token: str,
        *,
        action: str,
        detail_from_body: bool = False,
        params: dict[str, str] | None = None,
        content: str | bytes | None = None,
        content_type: str | None = None,
    ) -> httpx.Response:
        """Make an authenticated API request.

        Args:
            method: HTTP method (GET, POST, PATCH).
            url: Absolute request URL.
            token: Bearer access token.
            action: Prefix for error messages (e.g. "Error searching for file").
            detail_from_body: Use the response body instead of the status text
                as the error detail.
            params: Query parameters.
            content: Raw request body.
            content_type: Content-Type header for the body.

        Returns:
            The httpx.Response object.

        Raises:
            Unauthorized: If the backend answers 401.
            RepositoryError: For any other error status or transport failure.
        """
        headers = self._build_headers(token, content_type)

        if self._verbose:
            logger.info(f"{method} {url}")

        try:
            response = await self._http.request(
                method=method,
                url=url,
                headers=headers,
                params=params,
                content=content,
            )
        except httpx.HTTPError as e:
            raise RepositoryError(f"{action}: {e}") from e

        if self._verbose:
            logger.info(f"Response: {response.status_code}")

        if response.status_code == 401:
            logger.warning(f"Got 401 from {method} {url}")
            raise Unauthorized()

        if response.status_code >= 400:
            detail = response.text if detail_from_body else response.reason_phrase
            raise RepositoryError(f"{action}: {detail}", status_code=response.status_code)

        return response

    def _build_headers(self, token: str, content_type: str | None = None) -> dict[str, str]:
        """Build request headers with the bearer token."""
        headers = {"Authorization": f"Bearer {token}"}
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()

    async def __aenter__(self) -> "DriveClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
