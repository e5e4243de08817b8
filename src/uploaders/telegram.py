from __future__ import annotations

import json
import logging
from typing import Any

import requests

from timesheet_render.errors import TimesheetError
from uploaders.base import UploadResult, parse_json_body
from uploaders.payload import UploadPayload

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"
DEFAULT_CAPTION = "New timesheet submitted ✅"


def build_caption(meta: dict[str, Any] | str | None) -> str:
    if not meta:
        return DEFAULT_CAPTION
    if isinstance(meta, str):
        try:
            meta = json.loads(meta)
        except ValueError:
            return DEFAULT_CAPTION
    if not isinstance(meta, dict):
        return DEFAULT_CAPTION
    name = str(meta.get("name") or "Employee")
    date = str(meta.get("date") or "")
    start = str(meta.get("startTime") or "")
    end = str(meta.get("endTime") or "")
    hours = str(meta.get("totalHours") or "")
    return (
        f"New timesheet ✅\nName: {name}\nDate: {date}\n"
        f"Shift: {start} - {end}\nHours: {hours}"
    )


class TelegramUploader:
    """Sends the rendered sheet as a document to a chat via the Bot API."""

    def __init__(
        self,
        token: str,
        chat_id: str,
        session: requests.Session | None = None,
        timeout: float | None = None,
        api_base: str = TELEGRAM_API,
    ) -> None:
        self.token = token
        self.chat_id = str(chat_id)
        self.session = session or requests.Session()
        self.timeout = timeout
        self.api_base = api_base.rstrip("/")

    @property
    def url(self) -> str:
        return f"{self.api_base}/bot{self.token}/sendDocument"

    def upload(self, payload: UploadPayload) -> UploadResult:
        logger.debug("Sending %s to chat %s", payload.filename, self.chat_id)
        try:
            response = self.session.post(
                self.url,
                data={"chat_id": self.chat_id, "caption": build_caption(payload.meta)},
                files={"document": (payload.filename, payload.image, payload.content_type)},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            # the token is part of the URL, keep it out of the message
            raise TimesheetError(
                code="E4002_UPLOAD_TRANSPORT",
                message=f"Telegram request failed: {type(exc).__name__}",
                hint="Check network access to the Telegram Bot API.",
            ) from exc
        text = response.text
        body = parse_json_body(text)
        if not response.ok or body.get("ok") is not True:
            if body.get("description"):
                message = str(body["description"])
            elif text:
                message = f"Telegram error: {text}"
            else:
                message = f"Telegram upload failed (HTTP {response.status_code})"
            raise TimesheetError(
                code="E4001_UPLOAD_FAILED",
                message=message,
                hint="Check TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID.",
            )
        try:
            message_id = body["result"]["message_id"]
        except (KeyError, TypeError) as exc:
            raise TimesheetError(
                code="E4003_UPLOAD_MALFORMED",
                message="Telegram response is missing result.message_id.",
                hint="The Bot API answered ok without a message; retry later.",
            ) from exc
        return UploadResult(ok=True, identifier=str(message_id), response=body)
