from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest
from PIL import Image, ImageDraw, ImageFont

from timesheet_render.layout import Layout, parse_layout

TEMPLATE_SIZE = (1240, 520)


class FixedWidthMeasurer:
    """Every character is ratio * size pixels wide."""

    def __init__(self, ratio: float = 0.5) -> None:
        self.ratio = ratio

    def font(self, size: int) -> ImageFont.FreeTypeFont:
        return ImageFont.load_default(size=size)

    def measure(self, text: str, size: int) -> float:
        return len(text) * size * self.ratio


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "TIMESHEET_LAYOUT_PATH",
        "TIMESHEET_TEMPLATE_PATH",
        "TIMESHEET_FONT_PATH",
        "TIMESHEET_UPLOAD_URL",
        "TIMESHEET_UPLOAD_TIMEOUT_SEC",
        "TELEGRAM_BOT_TOKEN",
        "TELEGRAM_CHAT_ID",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def measurer() -> FixedWidthMeasurer:
    return FixedWidthMeasurer()


@pytest.fixture
def template_path(tmp_path: Path) -> Path:
    path = tmp_path / "template.png"
    Image.new("RGB", TEMPLATE_SIZE, "white").save(path, format="PNG")
    return path


@pytest.fixture
def layout(template_path: Path) -> Layout:
    return replace(parse_layout({}), template_path=template_path)


@pytest.fixture
def signature() -> Image.Image:
    image = Image.new("RGB", (500, 200), "white")
    ImageDraw.Draw(image).line([(40, 150), (200, 60), (460, 120)], fill="#111111", width=6)
    return image


@pytest.fixture
def form() -> dict[str, Any]:
    return {
        "name": "  Jane Doe ",
        "careHome": "Other",
        "careHomeOther": "Rosewood Lodge",
        "jobRole": "Senior Care Assistant",
        "date": "2026-02-05",
        "startTime": "09:00",
        "endTime": "17:30",
        "breakMins": "30",
        "totalHours": "99",
        "remarks": "Covered shift for a colleague",
    }
