from __future__ import annotations

import io
from pathlib import Path

from PIL import Image

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def has_png_magic(path: Path) -> bool:
    try:
        with path.open("rb") as handle:
            return has_png_bytes(handle.read(len(PNG_MAGIC)))
    except OSError:
        return False


def has_png_bytes(data: bytes) -> bool:
    return data[: len(PNG_MAGIC)] == PNG_MAGIC


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
