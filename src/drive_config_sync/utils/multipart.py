"""multipart/related body encoding for Drive uploads."""

from __future__ import annotations

import json
import secrets
import time
from typing import Any

BOUNDARY_PREFIX = "drive_config_sync"


def _base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while True:
        value, rem = divmod(value, 36)
        out = digits[rem] + out
        if value == 0:
            return out


def make_boundary() -> str:
    """Boundary derived from the current time plus a random suffix."""
    return f"{BOUNDARY_PREFIX}_{_base36(int(time.time() * 1000))}_{secrets.token_hex(4)}"


def encode_related(metadata: dict[str, Any], content: Any) -> tuple[str, str]:
    """Encode file metadata and a JSON document as a two-part related body.

    Part 1 is the compact metadata JSON, part 2 the document pretty-printed
    with a two-space indent. Lines are CRLF-terminated.

    Returns:
        (body, content_type) where content_type carries the boundary.
    """
    meta_json = json.dumps(metadata)
    content_json = json.dumps(content, indent=2)

    boundary = make_boundary()
    while boundary in meta_json or boundary in content_json:
        boundary = make_boundary()

    body = "\r\n".join([
        f"--{boundary}",
        "Content-Type: application/json; charset=UTF-8",
        "",
        meta_json,
        f"--{boundary}",
        "Content-Type: application/json",
        "",
        content_json,
        f"--{boundary}--",
    ])
    return body, f"multipart/related; boundary={boundary}"
