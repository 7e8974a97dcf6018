"""Remote document models."""

from __future__ import annotations

import time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# Any JSON-serializable value
JsonValue = Any


class RemoteFileHandle(BaseModel):
    """A file in the private application folder."""
    id: str
    name: str = ""


def _now_ms() -> int:
    return int(time.time() * 1000)


class AppConfig(BaseModel):
    """The application's configuration document."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    theme: Literal["light", "dark"] = "light"
    last_active: int = Field(default_factory=_now_ms, alias="lastActive")

    def to_document(self) -> dict[str, Any]:
        """Serialize with the remote (camelCase) field names."""
        return self.model_dump(by_alias=True)


def default_document() -> dict[str, Any]:
    """Seed for a newly created config document."""
    return AppConfig().to_document()
