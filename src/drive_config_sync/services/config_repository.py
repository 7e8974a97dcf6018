"""Find, load and save the config document in the app data folder."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from drive_config_sync.client import DriveClient
from drive_config_sync.models.documents import JsonValue, RemoteFileHandle
from drive_config_sync.utils.errors import ParseError
from drive_config_sync.utils.multipart import encode_related

logger = logging.getLogger(__name__)


class ConfigRepository:
    """Stores one named JSON document in the provider's private app folder.

    The backend assigns opaque ids and has no upsert-by-name, so callers look
    the document up first and write to the returned id afterwards.
    """

    def __init__(self, client: DriveClient, filename: str = "app_config.json", folder: str = "appDataFolder") -> None:
        self._client = client
        self.filename = filename
        self.folder = folder

    def search_query(self) -> str:
        return f"name = '{self.filename}' and '{self.folder}' in parents and trashed = false"

    async def find_document(self, token: str) -> RemoteFileHandle | None:
        """Return the first file named like the config document, or None."""
        response = await self._client.request(
            "GET",
            f"{self._client.api_endpoint}/files",
            token,
            action="Error searching for file",
            params={
                "q": self.search_query(),
                "spaces": self.folder,
                "fields": "files(id, name)",
            },
        )

        data = _json_body(response)
        files = data.get("files") if isinstance(data, dict) else None
        if not isinstance(files, list):
            raise ParseError("Search response has no 'files' list")

        if not files:
            return None

        try:
            return RemoteFileHandle.model_validate(files[0])
        except ValidationError as e:
            raise ParseError(f"Malformed file entry: {e}") from e

    async def save_document(
        self,
        token: str,
        content: JsonValue,
        existing_id: str | None = None,
    ) -> str:
        """Create the document, or overwrite ``existing_id``.

        Returns:
            The id of the created or updated file.
        """
        metadata: dict[str, Any] = {
            "name": self.filename,
            "mimeType": "application/json",
        }
        if existing_id:
            method = "PATCH"
            url = f"{self._client.upload_endpoint}/files/{existing_id}"
        else:
            method = "POST"
            url = f"{self._client.upload_endpoint}/files"
            metadata["parents"] = [self.folder]

        body, content_type = encode_related(metadata, content)

        response = await self._client.request(
            method,
            url,
            token,
            action="Failed to save file",
            detail_from_body=True,
            params={"uploadType": "multipart"},
            content=body,
            content_type=content_type,
        )

        data = _json_body(response)
        if not isinstance(data, dict) or not data.get("id"):
            raise ParseError("Upload response has no file id")

        if not existing_id:
            logger.info(f"Created {self.filename} ({data['id']})")
        return data["id"]

    async def load_document(self, token: str, file_id: str) -> JsonValue:
        """Download the raw JSON content of a file."""
        response = await self._client.request(
            "GET",
            f"{self._client.api_endpoint}/files/{file_id}",
            token,
            action="Failed to download file",
            params={"alt": "media"},
        )
        return _json_body(response)


def _json_body(response: Any) -> JsonValue:
    try:
        return response.json()
    except ValueError as e:
        raise ParseError(f"Response is not valid JSON: {e}") from e
