from __future__ import annotations

import os
from typing import Mapping

import requests

from timesheet_render.errors import TimesheetError
from uploaders.base import Uploader
from uploaders.endpoint import EndpointUploader
from uploaders.telegram import TelegramUploader


def _resolve_timeout(env: Mapping[str, str]) -> float | None:
    value = env.get("TIMESHEET_UPLOAD_TIMEOUT_SEC")
    if not value:
        return None
    try:
        timeout = float(value)
    except ValueError as exc:
        raise TimesheetError(
            code="E4101_UPLOAD_TIMEOUT_INVALID",
            message=f"Invalid TIMESHEET_UPLOAD_TIMEOUT_SEC value: {value}",
            hint="Provide a number of seconds or unset it.",
        ) from exc
    return timeout if timeout > 0 else None


def uploader_from_env(
    env: Mapping[str, str] | None = None,
    session: requests.Session | None = None,
) -> Uploader:
    """TIMESHEET_UPLOAD_URL wins; otherwise the Telegram bot credentials are required."""
    env = os.environ if env is None else env
    timeout = _resolve_timeout(env)
    url = env.get("TIMESHEET_UPLOAD_URL")
    if url:
        return EndpointUploader(url, session=session, timeout=timeout)
    token = env.get("TELEGRAM_BOT_TOKEN")
    chat_id = env.get("TELEGRAM_CHAT_ID")
    if not token:
        raise TimesheetError(
            code="E4100_UPLOAD_NOT_CONFIGURED",
            message="Missing TELEGRAM_BOT_TOKEN",
            hint="Set TIMESHEET_UPLOAD_URL, or TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID.",
        )
    if not chat_id:
        raise TimesheetError(
            code="E4100_UPLOAD_NOT_CONFIGURED",
            message="Missing TELEGRAM_CHAT_ID",
            hint="Set TELEGRAM_CHAT_ID next to TELEGRAM_BOT_TOKEN.",
        )
    return TelegramUploader(token, chat_id, session=session, timeout=timeout)
