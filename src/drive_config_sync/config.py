"""Configuration management for drive-config-sync.

Loads settings from the environment (and .env) and the provider profile from
config/provider.yaml.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from dotenv import load_dotenv


def default_session_dir() -> str:
    """Per-user directory for session files (~/.drive-config-sync/sessions)."""
    return str(Path.home() / ".drive-config-sync" / "sessions")


class ProviderProfile(BaseModel):
    """Identity provider and storage endpoints."""
    auth_endpoint: str = "https://accounts.google.com/o/oauth2/v2/auth"
    api_endpoint: str = "https://www.googleapis.com/drive/v3"
    upload_endpoint: str = "https://www.googleapis.com/upload/drive/v3"
    scope: str = "https://www.googleapis.com/auth/drive.appdata"
    folder: str = "appDataFolder"


class Settings(BaseModel):
    """Application settings loaded from environment variables."""
    client_id: str = Field(default="", description="OAuth client ID registered with the provider")
    config_filename: str = Field(default="app_config.json", description="Remote name of the config document")
    token_key: str = Field(default="drive_access_token", description="Session storage key for the access token")
    session_dir: str = Field(default_factory=default_session_dir, description="Private directory for session-scoped storage")
    callback_port: int = Field(default=8765, description="Loopback port for the browser token flow")
    auth_timeout: float = Field(default=300.0, description="Seconds to wait for the consent popup")
    request_timeout: float = Field(default=30.0, description="HTTP timeout in seconds")


class Config(BaseModel):
    """Full application configuration."""
    settings: Settings
    provider: ProviderProfile

    @property
    def redirect_uri(self) -> str:
        """Loopback redirect URI registered for the browser token flow."""
        return f"http://localhost:{self.settings.callback_port}/callback"

    def session_file(self) -> Path:
        """Session storage file, scoped to the calling terminal session."""
        return Path(self.settings.session_dir) / f"drive-config-sync-{os.getppid()}.json"


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (where config/ lives)."""
    current = Path(__file__).resolve().parent
    for parent in [current, *current.parents]:
        if (parent / "config" / "provider.yaml").exists():
            return parent
    # Fallback: cwd
    return Path.cwd()


def _load_provider(project_root: Path) -> ProviderProfile:
    """Load the provider profile from provider.yaml, or the Google defaults."""
    profile_path = project_root / "config" / "provider.yaml"
    if not profile_path.exists():
        return ProviderProfile()

    with open(profile_path) as f:
        data = yaml.safe_load(f) or {}

    return ProviderProfile(**data.get("provider", {}))


def _env(*keys: str, default: str = "") -> str:
    """Try multiple env var names, return the first one found."""
    for key in keys:
        val = os.environ.get(key, "")
        if val:
            return val.strip().strip('"')
    return default


def _load_settings() -> Settings:
    """Load settings from environment variables.

    Supports both DRIVE_SYNC_* and the plain GOOGLE_CLIENT_ID name.
    """
    return Settings(
        client_id=_env("DRIVE_SYNC_CLIENT_ID", "GOOGLE_CLIENT_ID"),
        config_filename=_env("DRIVE_SYNC_FILENAME", default="app_config.json"),
        token_key=_env("DRIVE_SYNC_TOKEN_KEY", default="drive_access_token"),
        session_dir=_env("DRIVE_SYNC_SESSION_DIR", default=default_session_dir()),
        callback_port=int(_env("DRIVE_SYNC_CALLBACK_PORT", default="8765")),
        auth_timeout=float(_env("DRIVE_SYNC_AUTH_TIMEOUT", default="300")),
        request_timeout=float(_env("DRIVE_SYNC_REQUEST_TIMEOUT", default="30")),
    )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Load and cache the full application configuration."""
    project_root = _find_project_root()

    # Load .env from project root if it exists
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    settings = _load_settings()
    provider = _load_provider(project_root)

    return Config(settings=settings, provider=provider)
