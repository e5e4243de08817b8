from __future__ import annotations

import logging
from typing import Any

import requests

from timesheet_render.errors import TimesheetError
from uploaders.base import UploadResult, parse_json_body
from uploaders.payload import UploadPayload

logger = logging.getLogger(__name__)


def _identifier(body: dict[str, Any]) -> str | None:
    nested = body.get("telegram")
    candidates = [body.get("id"), body.get("message_id")]
    if isinstance(nested, dict):
        candidates.append(nested.get("message_id"))
    for value in candidates:
        if value is not None:
            return str(value)
    return None


class EndpointUploader:
    """Posts the image as 'file' and the metadata JSON as 'meta' to an HTTP endpoint."""

    def __init__(
        self,
        url: str,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        self.url = url
        self.session = session or requests.Session()
        self.timeout = timeout

    def upload(self, payload: UploadPayload) -> UploadResult:
        logger.debug("Uploading %s to %s", payload.filename, self.url)
        try:
            response = self.session.post(
                self.url,
                files={"file": (payload.filename, payload.image, payload.content_type)},
                data={"meta": payload.meta_json()},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TimesheetError(
                code="E4002_UPLOAD_TRANSPORT",
                message=f"Upload request failed: {exc}",
                hint="Check network access and TIMESHEET_UPLOAD_URL.",
            ) from exc
        text = response.text
        body = parse_json_body(text)
        if not response.ok:
            raise TimesheetError(
                code="E4001_UPLOAD_FAILED",
                message=str(body.get("error") or text or "Upload failed"),
                hint=f"The upload endpoint answered HTTP {response.status_code}.",
            )
        return UploadResult(ok=True, identifier=_identifier(body), response=body)
