"""Tests for pydantic models — documents, auth payloads, sync session."""
import time

import pytest
from pydantic import ValidationError

from drive_config_sync.models.auth import (
    DEFAULT_AUTH_MESSAGES,
    AuthErrorKind,
    ProviderCapability,
    TokenResponse,
)
from drive_config_sync.models.documents import AppConfig, RemoteFileHandle, default_document
from drive_config_sync.models.sync import SyncSession, SyncState


# ── AppConfig ────────────────────────────────────────────────────────

def test_app_config_from_remote_names():
    cfg = AppConfig.model_validate({"theme": "dark", "lastActive": 1000})
    assert cfg.theme == "dark"
    assert cfg.last_active == 1000


def test_app_config_to_document_uses_camel_case():
    doc = AppConfig(theme="light", last_active=5).to_document()
    assert doc == {"theme": "light", "lastActive": 5}


def test_app_config_rejects_unknown_theme():
    with pytest.raises(ValidationError):
        AppConfig.model_validate({"theme": "blue", "lastActive": 1})


def test_app_config_keeps_extra_keys():
    cfg = AppConfig.model_validate({"theme": "dark", "lastActive": 1, "fontSize": 14})
    assert cfg.to_document()["fontSize"] == 14


def test_default_document_is_light_and_recent():
    before = int(time.time() * 1000)
    doc = default_document()
    assert doc["theme"] == "light"
    assert doc["lastActive"] >= before


def test_remote_file_handle():
    handle = RemoteFileHandle.model_validate({"id": "F1", "name": "app_config.json"})
    assert handle.id == "F1"


# ── Auth models ──────────────────────────────────────────────────────

def test_auth_error_kinds_have_default_messages():
    assert set(DEFAULT_AUTH_MESSAGES) == set(AuthErrorKind)
    assert DEFAULT_AUTH_MESSAGES[AuthErrorKind.POPUP_CLOSED] == "Login cancelled."
    assert DEFAULT_AUTH_MESSAGES[AuthErrorKind.UNKNOWN] == "An unknown error occurred."


def test_token_response_defaults():
    resp = TokenResponse(access_token="T1")
    assert resp.token_type == "Bearer"
    assert resp.error is None


def test_provider_capability():
    assert ProviderCapability(available=True).missing is None


# ── SyncSession ──────────────────────────────────────────────────────

def test_sync_session_defaults():
    session = SyncSession()
    assert session.state is SyncState.UNAUTHENTICATED
    assert session.token is None
    assert session.document is None
    assert not session.is_loading and not session.is_saving
