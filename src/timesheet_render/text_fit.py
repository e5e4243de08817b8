"""Text measurement and fitting policies for template fields.

Every policy measures and draws with the same (font, size) pair: whenever the
size changes the text is measured again at the new size.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol, Union

from PIL import ImageFont

from timesheet_render.errors import TimesheetError

logger = logging.getLogger(__name__)

ELLIPSIS = "…"
FLOOR_SIZE = 12
DEFAULT_FONT_FAMILY = "DejaVuSans"
FALLBACK_FONT_FILES = ("DejaVuSans.ttf", "Arial.ttf", "arial.ttf", "LiberationSans-Regular.ttf")

Font = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]


class FitPolicy(str, Enum):
    VERBATIM = "verbatim"
    SHRINK = "shrink"
    CLIP = "clip"
    WRAP = "wrap"


class TextMeasurer(Protocol):
    def font(self, size: int) -> Font:
        ...

    def measure(self, text: str, size: int) -> float:
        ...


class PillowMeasurer:
    """Font metrics from Pillow, one cached font object per pixel size."""

    def __init__(self, font_path: Path | None = None, family: str = DEFAULT_FONT_FAMILY) -> None:
        self.font_path = font_path
        self.family = family
        self._fonts: dict[int, Font] = {}

    def font(self, size: int) -> Font:
        cached = self._fonts.get(size)
        if cached is None:
            cached = self._load(size)
            self._fonts[size] = cached
        return cached

    def measure(self, text: str, size: int) -> float:
        return float(self.font(size).getlength(text))

    def _load(self, size: int) -> Font:
        if self.font_path is not None:
            try:
                return ImageFont.truetype(str(self.font_path), size)
            except OSError as exc:
                raise TimesheetError(
                    code="E2003_FONT_LOAD",
                    message=f"Failed to load font {self.font_path}: {exc}",
                    hint="Point TIMESHEET_FONT_PATH or typography.font_path at a TrueType file.",
                ) from exc
        for candidate in (f"{self.family}.ttf", *FALLBACK_FONT_FILES):
            try:
                return ImageFont.truetype(candidate, size)
            except OSError:
                continue
        logger.warning("No TrueType font found for %s; using Pillow default font", self.family)
        return ImageFont.load_default(size=size)


@dataclass(frozen=True)
class FittedText:
    lines: tuple[str, ...]
    font_size: int

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


def shrink_to_fit(
    text: str,
    measurer: TextMeasurer,
    start_size: int,
    max_width: float,
    floor_size: int = FLOOR_SIZE,
) -> int:
    """Largest size from start_size down to floor_size at which text fits.

    Returns floor_size when nothing fits; the caller accepts the overflow.
    """
    size = start_size
    while size > floor_size:
        if measurer.measure(text, size) <= max_width:
            break
        size -= 1
    return size


def truncate_to_width(
    text: str,
    measurer: TextMeasurer,
    size: int,
    max_width: float,
    ellipsis: str = ELLIPSIS,
) -> str:
    if measurer.measure(text, size) <= max_width:
        return text
    out = text
    while out and measurer.measure(out + ellipsis, size) > max_width:
        out = out[:-1]
    if out:
        return out + ellipsis
    if measurer.measure(ellipsis, size) <= max_width:
        return ellipsis
    return ""


def wrap_lines(
    text: str,
    measurer: TextMeasurer,
    size: int,
    max_width: float,
    max_lines: int = 2,
) -> list[str]:
    lines: list[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}" if current else word
        if current and measurer.measure(candidate, size) > max_width:
            lines.append(current)
            if len(lines) == max_lines:
                return lines
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines[:max_lines]


def fit_text(
    text: str | None,
    policy: FitPolicy,
    measurer: TextMeasurer,
    size: int,
    max_width: float | None = None,
    floor_size: int = FLOOR_SIZE,
) -> FittedText:
    value = "" if text is None else str(text).strip()
    if policy is FitPolicy.VERBATIM:
        return FittedText(lines=(value,), font_size=size)
    if max_width is None:
        raise ValueError(f"Policy '{policy.value}' requires max_width.")
    if policy is FitPolicy.WRAP:
        return FittedText(lines=tuple(wrap_lines(value, measurer, size, max_width)), font_size=size)
    fitted_size = shrink_to_fit(value, measurer, size, max_width, floor_size)
    if policy is FitPolicy.SHRINK:
        return FittedText(lines=(value,), font_size=fitted_size)
    return FittedText(
        lines=(truncate_to_width(value, measurer, fitted_size, max_width),),
        font_size=fitted_size,
    )
