from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol

from uploaders.payload import UploadPayload


@dataclass
class UploadResult:
    ok: bool
    identifier: str | None = None
    response: dict[str, Any] = field(default_factory=dict)


class Uploader(Protocol):
    def upload(self, payload: UploadPayload) -> UploadResult:
        ...


def parse_json_body(text: str) -> dict[str, Any]:
    """Best-effort JSON object from a response body; anything else yields {}."""
    try:
        data = json.loads(text)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
