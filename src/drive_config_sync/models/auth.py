"""Auth-related data models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class AuthErrorKind(str, Enum):
    """Failure categories of the interactive token flow."""
    POPUP_FAILED_TO_OPEN = "popup_failed_to_open"
    POPUP_CLOSED = "popup_closed"
    ACCESS_DENIED = "access_denied"
    UNKNOWN = "unknown"


DEFAULT_AUTH_MESSAGES: dict[AuthErrorKind, str] = {
    AuthErrorKind.POPUP_FAILED_TO_OPEN: "The popup was blocked. Please allow popups for this site.",
    AuthErrorKind.POPUP_CLOSED: "Login cancelled.",
    AuthErrorKind.ACCESS_DENIED: "Access denied. We need permission to save your data.",
    AuthErrorKind.UNKNOWN: "An unknown error occurred.",
}


class TokenResponse(BaseModel):
    """Payload delivered to the token callback by the provider."""
    access_token: str = ""
    token_type: str = "Bearer"
    expires_in: int = 3600
    scope: str = ""
    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None


class TokenStatus(BaseModel):
    """Current state of the session token."""
    has_token: bool
    source: str


class ProviderCapability(BaseModel):
    """Result of checking that the identity provider can issue tokens."""
    available: bool
    missing: str | None = None
