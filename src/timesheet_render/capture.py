from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from PIL import Image, ImageDraw

from timesheet_render.errors import TimesheetError

DEFAULT_WIDTH = 500
DEFAULT_HEIGHT = 200
STROKE_WIDTH = 3
INK = "#111111"
BACKGROUND = "#ffffff"

# DOM event names accepted when replaying recorded input.
EVENT_KINDS = {
    "down": "down",
    "mousedown": "down",
    "pointerdown": "down",
    "touchstart": "down",
    "move": "move",
    "mousemove": "move",
    "pointermove": "move",
    "touchmove": "move",
    "up": "up",
    "mouseup": "up",
    "pointerup": "up",
    "touchend": "up",
    "touchcancel": "up",
}


class CaptureState(str, Enum):
    IDLE = "idle"
    DRAWING = "drawing"


@dataclass(frozen=True)
class SurfaceRect:
    """On-screen rectangle of a surface, in client coordinates."""

    left: float
    top: float
    width: float
    height: float

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError("SurfaceRect width/height must be positive.")

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.left + self.width and self.top <= y <= self.top + self.height


def surface_point(
    rect: SurfaceRect, size: tuple[int, int], client_x: float, client_y: float
) -> tuple[float, float]:
    """Map a client-space point into a raster of the given pixel size."""
    width, height = size
    x = (client_x - rect.left) / rect.width * width
    y = (client_y - rect.top) / rect.height * height
    return x, y


@dataclass(frozen=True)
class PointerEvent:
    kind: str
    client_x: float | None = None
    client_y: float | None = None
    touches: tuple[tuple[float, float], ...] = ()

    def position(self) -> tuple[float, float] | None:
        if self.touches:
            return self.touches[0]
        if self.client_x is None or self.client_y is None:
            return None
        return self.client_x, self.client_y

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "PointerEvent":
        name = str(raw.get("type") or raw.get("kind") or "").lower()
        kind = EVENT_KINDS.get(name)
        if kind is None:
            raise TimesheetError(
                code="E1201_EVENT_INVALID",
                message=f"Unknown pointer event type '{name}'.",
                hint=f"Use one of: {', '.join(sorted(EVENT_KINDS))}.",
            )
        client_x = raw.get("clientX")
        client_y = raw.get("clientY")
        try:
            touches = tuple(
                (float(touch["clientX"]), float(touch["clientY"]))
                for touch in raw.get("touches") or []
                if isinstance(touch, dict)
            )
            return cls(
                kind=kind,
                client_x=float(client_x) if client_x is not None else None,
                client_y=float(client_y) if client_y is not None else None,
                touches=touches,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise TimesheetError(
                code="E1201_EVENT_INVALID",
                message=f"Invalid coordinates in '{name}' event: {exc}",
                hint="clientX, clientY and touch points must be numbers.",
            ) from exc


class SignaturePad:
    """Freehand capture surface with an idle/drawing state machine.

    Down events only start a stroke inside the on-screen rect; up events end
    it wherever they land, so a release outside the surface never leaves the
    pad stuck in the drawing state.
    """

    def __init__(
        self,
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        rect: SurfaceRect | None = None,
        stroke_width: int = STROKE_WIDTH,
        ink: str = INK,
    ) -> None:
        self.width = int(width)
        self.height = int(height)
        self.rect = rect or SurfaceRect(0, 0, self.width, self.height)
        self.stroke_width = stroke_width
        self.ink = ink
        self.state = CaptureState.IDLE
        self._last: tuple[float, float] | None = None
        self._dirty = False
        self._image = Image.new("RGB", (self.width, self.height), BACKGROUND)
        self._draw = ImageDraw.Draw(self._image)

    @property
    def is_blank(self) -> bool:
        return not self._dirty

    def snapshot(self) -> Image.Image:
        return self._image.copy()

    def clear(self) -> None:
        self._draw.rectangle((0, 0, self.width, self.height), fill=BACKGROUND)
        self._dirty = False

    def handle(self, event: PointerEvent) -> None:
        if event.kind == "down":
            self._start(event)
        elif event.kind == "move":
            self._move(event)
        elif event.kind == "up":
            self._end()
        else:
            raise ValueError(f"Unknown pointer event kind: {event.kind}")

    def replay(self, events: Iterable[PointerEvent]) -> None:
        for event in events:
            self.handle(event)

    def _start(self, event: PointerEvent) -> None:
        position = event.position()
        if position is None or not self.rect.contains(*position):
            return
        self.state = CaptureState.DRAWING
        self._last = surface_point(self.rect, (self.width, self.height), *position)

    def _move(self, event: PointerEvent) -> None:
        if self.state is not CaptureState.DRAWING or self._last is None:
            return
        position = event.position()
        if position is None:
            return
        point = surface_point(self.rect, (self.width, self.height), *position)
        self._segment(self._last, point)
        self._last = point

    def _end(self) -> None:
        self.state = CaptureState.IDLE
        self._last = None

    def _segment(self, start: tuple[float, float], end: tuple[float, float]) -> None:
        self._draw.line([start, end], fill=self.ink, width=self.stroke_width)
        # round caps
        radius = self.stroke_width / 2
        for x, y in (start, end):
            self._draw.ellipse((x - radius, y - radius, x + radius, y + radius), fill=self.ink)
        self._dirty = True


def load_recording(path: Path) -> SignaturePad:
    """Replay a recorded capture session ({width, height, rect, events}) into a pad."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise TimesheetError(
            code="E1200_RECORDING_INVALID",
            message=f"Failed to parse recording JSON: {exc}",
            hint="Provide a JSON object with an 'events' list.",
        ) from exc
    if not isinstance(data, dict) or not isinstance(data.get("events"), list):
        raise TimesheetError(
            code="E1200_RECORDING_INVALID",
            message="Recording must be a JSON object with an 'events' list.",
            hint="Wrap the pointer events in {\"events\": [...]}.",
        )
    try:
        width = int(data.get("width") or DEFAULT_WIDTH)
        height = int(data.get("height") or DEFAULT_HEIGHT)
    except (TypeError, ValueError) as exc:
        raise TimesheetError(
            code="E1200_RECORDING_INVALID",
            message=f"Invalid recording size: {exc}",
            hint="width and height must be positive integers.",
        ) from exc
    if width <= 0 or height <= 0:
        raise TimesheetError(
            code="E1200_RECORDING_INVALID",
            message=f"Invalid recording size: {width}x{height}",
            hint="width and height must be positive integers.",
        )
    rect_raw = data.get("rect")
    rect = None
    if isinstance(rect_raw, dict):
        try:
            rect = SurfaceRect(
                left=float(rect_raw.get("left", 0)),
                top=float(rect_raw.get("top", 0)),
                width=float(rect_raw["width"]),
                height=float(rect_raw["height"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise TimesheetError(
                code="E1200_RECORDING_INVALID",
                message=f"Invalid recording rect: {exc}",
                hint="rect needs numeric left/top and positive width/height.",
            ) from exc
    pad = SignaturePad(width=width, height=height, rect=rect)
    pad.replay(PointerEvent.from_dict(raw) for raw in data["events"] if isinstance(raw, dict))
    return pad
