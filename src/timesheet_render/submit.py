from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Union

from PIL import Image

from common.png_utils import encode_png, has_png_bytes
from timesheet_render.background import flatten_signature, is_blank
from timesheet_render.capture import SignaturePad
from timesheet_render.compositor import Compositor
from timesheet_render.errors import TimesheetError
from timesheet_render.record import TimesheetRecord, record_from_form
from uploaders.base import Uploader
from uploaders.payload import UploadPayload, build_payload

logger = logging.getLogger(__name__)

Signature = Union[SignaturePad, Image.Image]

SUBMITTED = "Submitted ✅"
BUSY = "A submission is already in progress."


@dataclass(frozen=True)
class SubmissionStatus:
    ok: bool
    message: str
    identifier: str | None = None
    filename: str | None = None


def _signature_image(signature: Signature, threshold: int) -> Image.Image:
    if isinstance(signature, SignaturePad):
        blank = signature.is_blank
        image = signature.snapshot()
    else:
        image = flatten_signature(signature)
        blank = is_blank(image, threshold)
    if blank:
        raise TimesheetError(
            code="E1003_SIGNATURE_MISSING",
            message="Please sign before submitting.",
            hint="Draw a signature on the pad.",
        )
    return image


class SubmissionFlow:
    """Render-then-upload for one form at a time.

    A second submit while one is in flight is refused rather than queued.
    """

    def __init__(
        self,
        compositor: Compositor,
        uploader: Uploader | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.compositor = compositor
        self.uploader = uploader
        self.clock = clock
        self._in_flight = threading.Lock()

    @property
    def in_flight(self) -> bool:
        return self._in_flight.locked()

    def prepare(
        self, form: Mapping[str, Any], signature: Signature
    ) -> tuple[TimesheetRecord, UploadPayload]:
        """Validate, render and encode; raises TimesheetError before anything is uploaded."""
        layout = self.compositor.layout
        record = record_from_form(form, layout.limits)
        image = _signature_image(signature, layout.signature.threshold)
        rendered = self.compositor.render(record, image)
        try:
            data = encode_png(rendered)
        except (OSError, ValueError) as exc:
            raise TimesheetError(
                code="E3001_ENCODE_FAILED",
                message=f"Failed to generate PNG: {exc}",
                hint="Check the template image mode and size.",
            ) from exc
        if not has_png_bytes(data):
            raise TimesheetError(
                code="E3001_ENCODE_FAILED",
                message="Failed to generate PNG",
                hint="The encoder returned no PNG data.",
            )
        payload = build_payload(record.to_meta(), data, int(self.clock() * 1000))
        logger.debug("Rendered %s (%d bytes)", payload.filename, len(data))
        return record, payload

    def submit(self, form: Mapping[str, Any], signature: Signature) -> SubmissionStatus:
        if not self._in_flight.acquire(blocking=False):
            logger.warning("Submit refused: previous submission still running")
            return SubmissionStatus(ok=False, message=BUSY)
        try:
            return self._run(form, signature)
        except TimesheetError as exc:
            logger.warning("Submission failed: %s %s", exc.code, exc.message)
            return SubmissionStatus(ok=False, message=f"Error: {exc.message}")
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected submission failure")
            return SubmissionStatus(ok=False, message=f"Error: {exc}")
        finally:
            self._in_flight.release()

    def _run(self, form: Mapping[str, Any], signature: Signature) -> SubmissionStatus:
        if self.uploader is None:
            raise TimesheetError(
                code="E4100_UPLOAD_NOT_CONFIGURED",
                message="No upload adapter configured.",
                hint="Set TIMESHEET_UPLOAD_URL or the Telegram bot credentials.",
            )
        _, payload = self.prepare(form, signature)
        result = self.uploader.upload(payload)
        if not result.ok:
            raise TimesheetError(
                code="E4001_UPLOAD_FAILED",
                message="Upload failed",
                hint="The upload adapter reported failure without detail.",
            )
        logger.info("Submitted %s (id=%s)", payload.filename, result.identifier)
        return SubmissionStatus(
            ok=True,
            message=SUBMITTED,
            identifier=result.identifier,
            filename=payload.filename,
        )
