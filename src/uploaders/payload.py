from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass
from typing import Any

PNG_CONTENT_TYPE = "image/png"


@dataclass(frozen=True)
class UploadPayload:
    filename: str
    image: bytes
    meta: dict[str, Any]
    content_type: str = PNG_CONTENT_TYPE

    def meta_json(self) -> str:
        return json.dumps(self.meta, ensure_ascii=False)


def safe_filename(name: str | None, timestamp_ms: int) -> str:
    raw = str(name or "").strip()
    stem = re.sub(r"\s+", "_", raw) if raw else "employee"
    return f"timesheet_{stem}_{timestamp_ms}.png"


def build_payload(
    meta: dict[str, Any], image: bytes, timestamp_ms: int | None = None
) -> UploadPayload:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return UploadPayload(
        filename=safe_filename(meta.get("name"), timestamp_ms),
        image=image,
        meta=dict(meta),
    )
