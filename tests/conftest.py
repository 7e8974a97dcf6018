"""Shared fixtures for the drive-config-sync test suite."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from drive_config_sync.config import Config, ProviderProfile, Settings
from drive_config_sync.token_store import TokenStore
from drive_config_sync.utils.session_storage import MemorySessionStorage


@pytest.fixture
def fake_settings(tmp_path) -> Settings:
    return Settings(
        client_id="test-client-id",
        config_filename="app_config.json",
        token_key="drive_access_token",
        session_dir=str(tmp_path),
        callback_port=8765,
        auth_timeout=5.0,
        request_timeout=5.0,
    )


@pytest.fixture
def fake_provider() -> ProviderProfile:
    return ProviderProfile(
        auth_endpoint="https://accounts.example.com/o/oauth2/v2/auth",
        api_endpoint="https://drive.example.com/drive/v3",
        upload_endpoint="https://drive.example.com/upload/drive/v3",
        scope="https://www.googleapis.com/auth/drive.appdata",
        folder="appDataFolder",
    )


@pytest.fixture
def fake_config(fake_settings, fake_provider) -> Config:
    return Config(settings=fake_settings, provider=fake_provider)


@pytest.fixture
def memory_storage() -> MemorySessionStorage:
    return MemorySessionStorage()


@pytest.fixture
def token_store(memory_storage) -> TokenStore:
    return TokenStore(memory_storage)


@pytest.fixture
def mock_repository():
    """MagicMock standing in for ConfigRepository."""
    repo = MagicMock()
    repo.filename = "app_config.json"
    repo.find_document = AsyncMock(return_value=None)
    repo.load_document = AsyncMock()
    repo.save_document = AsyncMock(return_value="NEW1")
    return repo

