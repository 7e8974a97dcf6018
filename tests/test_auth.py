"""Tests for auth.py — provider check, error classification, popup flow."""
import asyncio
import logging
from unittest.mock import MagicMock

import pytest

from drive_config_sync.auth import AuthBroker, check_provider, classify_auth_error
from drive_config_sync.models.auth import AuthErrorKind, TokenResponse
from drive_config_sync.utils.errors import AuthError

SCOPE = "https://www.googleapis.com/auth/drive.appdata"


class FakeProvider:
    """Provider whose popup outcome is scheduled on the running loop."""

    def __init__(self, outcome=None):
        self.outcome = outcome
        self.init_calls = 0
        self.prompts: list[str] = []
        self.on_token = None
        self.on_error = None

    def initialize(self, client_id, scope, on_token, on_error):
        self.init_calls += 1
        self.client_id = client_id
        self.scope = scope
        self.on_token = on_token
        self.on_error = on_error
        client = MagicMock()
        client.request_token.side_effect = self._request_token
        return client

    def _request_token(self, prompt=""):
        self.prompts.append(prompt)
        if self.outcome is not None:
            asyncio.get_running_loop().call_soon(self.outcome, self)


def _token(value):
    return lambda p: p.on_token({"access_token": value, "token_type": "Bearer", "expires_in": 3599})


def _broker(provider, token_store=None):
    broker = AuthBroker(provider, "test-client-id", SCOPE, token_store=token_store)
    broker.initialize()
    return broker


# ── check_provider ───────────────────────────────────────────────────

def test_check_provider_available():
    assert check_provider(FakeProvider()).available is True


def test_check_provider_none():
    result = check_provider(None)
    assert result.available is False
    assert result.missing == "provider"


def test_check_provider_without_initialize():
    result = check_provider(object())
    assert result.available is False
    assert result.missing == "initialize"


# ── classify_auth_error ──────────────────────────────────────────────

def test_classify_popup_closed_default_message():
    err = classify_auth_error({"type": "popup_closed"})
    assert err.kind is AuthErrorKind.POPUP_CLOSED
    assert err.message == "Login cancelled."


def test_classify_popup_closed_explicit_message():
    err = classify_auth_error({"type": "popup_closed", "message": "Popup window closed"})
    assert err.kind is AuthErrorKind.POPUP_CLOSED
    assert err.message == "Popup window closed"


def test_classify_empty_message_uses_default():
    err = classify_auth_error({"type": "popup_closed", "message": ""})
    assert err.message == "Login cancelled."


def test_classify_popup_failed_to_open():
    err = classify_auth_error({"type": "popup_failed_to_open"})
    assert err.kind is AuthErrorKind.POPUP_FAILED_TO_OPEN
    assert err.message == "The popup was blocked. Please allow popups for this site."


def test_classify_access_denied_token_response_shape():
    err = classify_auth_error({"error": "access_denied"})
    assert err.kind is AuthErrorKind.ACCESS_DENIED
    assert err.message == "Access denied. We need permission to save your data."


def test_classify_error_description_overrides():
    err = classify_auth_error({"error": "access_denied", "error_description": "User said no"})
    assert err.message == "User said no"


def test_classify_token_response_model():
    err = classify_auth_error(TokenResponse(error="access_denied"))
    assert err.kind is AuthErrorKind.ACCESS_DENIED


def test_classify_unrecognised_type():
    err = classify_auth_error({"type": "invalid_client"})
    assert err.kind is AuthErrorKind.UNKNOWN
    assert err.message == "An unknown error occurred."


def test_classify_non_dict():
    assert classify_auth_error("boom").kind is AuthErrorKind.UNKNOWN
    assert classify_auth_error(None).kind is AuthErrorKind.UNKNOWN


def test_classify_exception_keeps_text():
    err = classify_auth_error(RuntimeError("script failed to load"))
    assert err.kind is AuthErrorKind.UNKNOWN
    assert err.message == "script failed to load"


def test_classify_passes_auth_error_through():
    original = AuthError(AuthErrorKind.POPUP_CLOSED)
    assert classify_auth_error(original) is original


# ── initialize ───────────────────────────────────────────────────────

def test_initialize_is_idempotent():
    provider = FakeProvider()
    broker = AuthBroker(provider, "test-client-id", SCOPE)
    broker.initialize()
    broker.initialize()
    assert provider.init_calls == 1
    assert broker.is_initialized
    assert provider.client_id == "test-client-id"
    assert provider.scope == SCOPE


def test_initialize_without_provider(caplog):
    broker = AuthBroker(None, "test-client-id", SCOPE)
    with caplog.at_level(logging.WARNING):
        broker.initialize()
    assert not broker.is_initialized
    assert "Token provider unavailable" in caplog.text


def test_initialize_exception_leaves_uninitialized(caplog):
    provider = MagicMock()
    provider.initialize.side_effect = ValueError("No OAuth client ID configured")
    broker = AuthBroker(provider, "", SCOPE)
    with caplog.at_level(logging.ERROR):
        broker.initialize()
    assert not broker.is_initialized
    assert "Failed to initialize token client" in caplog.text


# ── connect ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_connect_before_initialize_is_noop(caplog):
    provider = FakeProvider(_token("T1"))
    broker = AuthBroker(provider, "test-client-id", SCOPE)
    with caplog.at_level(logging.WARNING):
        result = await broker.connect()
    assert result is None
    assert provider.prompts == []
    assert "not initialized" in caplog.text


@pytest.mark.asyncio
async def test_connect_success_returns_token():
    provider = FakeProvider(_token("T1"))
    broker = _broker(provider)
    assert await broker.connect() == "T1"
    assert provider.prompts == [""]


@pytest.mark.asyncio
async def test_connect_success_stores_token(token_store):
    broker = _broker(FakeProvider(_token("T1")), token_store=token_store)
    await broker.connect()
    assert token_store.get() == "T1"


@pytest.mark.asyncio
async def test_connect_error_callback_rejects(token_store):
    provider = FakeProvider(lambda p: p.on_error({"type": "popup_closed"}))
    broker = _broker(provider, token_store=token_store)

    with pytest.raises(AuthError) as exc_info:
        await broker.connect()
    assert exc_info.value.kind is AuthErrorKind.POPUP_CLOSED
    assert token_store.get() is None


@pytest.mark.asyncio
async def test_connect_error_in_token_response():
    provider = FakeProvider(lambda p: p.on_token({"error": "access_denied"}))
    broker = _broker(provider)

    with pytest.raises(AuthError) as exc_info:
        await broker.connect()
    assert exc_info.value.kind is AuthErrorKind.ACCESS_DENIED


@pytest.mark.asyncio
async def test_connect_empty_token_is_unknown():
    provider = FakeProvider(lambda p: p.on_token({"access_token": ""}))
    broker = _broker(provider)

    with pytest.raises(AuthError) as exc_info:
        await broker.connect()
    assert exc_info.value.kind is AuthErrorKind.UNKNOWN


@pytest.mark.asyncio
async def test_connect_malformed_response_is_unknown():
    provider = FakeProvider(lambda p: p.on_token("not-a-dict"))
    broker = _broker(provider)

    with pytest.raises(AuthError) as exc_info:
        await broker.connect()
    assert exc_info.value.kind is AuthErrorKind.UNKNOWN


@pytest.mark.asyncio
async def test_request_token_raising_is_unknown():
    provider = MagicMock()
    provider.initialize.return_value.request_token.side_effect = RuntimeError("iframe failed")
    broker = _broker(provider)

    with pytest.raises(AuthError) as exc_info:
        await broker.connect()
    assert exc_info.value.kind is AuthErrorKind.UNKNOWN
    assert exc_info.value.message == "iframe failed"


@pytest.mark.asyncio
async def test_late_callbacks_are_ignored(token_store):
    def both(p):
        p.on_token({"access_token": "T1"})
        p.on_error({"type": "popup_closed"})
        p.on_token({"access_token": "T2"})

    broker = _broker(FakeProvider(both), token_store=token_store)
    assert await broker.connect() == "T1"
    assert token_store.get() == "T1"


@pytest.mark.asyncio
async def test_concurrent_connect_shares_one_popup():
    provider = FakeProvider(_token("T1"))
    broker = _broker(provider)

    first, second = await asyncio.gather(broker.connect(), broker.connect())

    assert first == second == "T1"
    assert provider.prompts == [""]


@pytest.mark.asyncio
async def test_connect_again_after_failure_opens_new_popup():
    outcomes = iter([
        lambda p: p.on_error({"type": "popup_closed"}),
        _token("T1"),
    ])
    provider = FakeProvider(lambda p: next(outcomes)(p))
    broker = _broker(provider)

    with pytest.raises(AuthError):
        await broker.connect()
    assert await broker.connect() == "T1"
    assert len(provider.prompts) == 2
