"""Upload adapters for rendered timesheets."""

from .base import UploadResult, Uploader
from .config import uploader_from_env
from .endpoint import EndpointUploader
from .payload import UploadPayload, build_payload, safe_filename
from .telegram import TelegramUploader, build_caption

__all__ = [
    "EndpointUploader",
    "TelegramUploader",
    "UploadPayload",
    "UploadResult",
    "Uploader",
    "build_caption",
    "build_payload",
    "safe_filename",
    "uploader_from_env",
]
