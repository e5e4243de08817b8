from __future__ import annotations

import json
from pathlib import Path

import pytest

from timesheet_render.capture import (
    CaptureState,
    PointerEvent,
    SignaturePad,
    SurfaceRect,
    load_recording,
    surface_point,
)
from timesheet_render.errors import TimesheetError

WHITE_EXTREMA = ((255, 255), (255, 255), (255, 255))


def _stroke(pad: SignaturePad, points: list[tuple[float, float]]) -> None:
    first, *rest = points
    pad.handle(PointerEvent("down", *first))
    for point in rest:
        pad.handle(PointerEvent("move", *point))
    pad.handle(PointerEvent("up"))


def test_stroke_draws_segments_and_returns_to_idle() -> None:
    pad = SignaturePad()
    pad.handle(PointerEvent("down", 10, 10))
    assert pad.state is CaptureState.DRAWING
    pad.handle(PointerEvent("move", 50, 10))
    pad.handle(PointerEvent("up", 50, 10))

    assert pad.state is CaptureState.IDLE
    assert not pad.is_blank
    assert pad.snapshot().getpixel((30, 10)) == (17, 17, 17)


def test_client_coordinates_are_remapped_to_raster() -> None:
    rect = SurfaceRect(left=100, top=50, width=250, height=100)
    assert surface_point(rect, (500, 200), 225, 100) == (250.0, 100.0)

    pad = SignaturePad(width=500, height=200, rect=rect)
    _stroke(pad, [(150, 75), (200, 75)])
    image = pad.snapshot()
    # client x 150..200 -> raster x 100..200, client y 75 -> raster y 50
    assert image.getpixel((150, 50)) == (17, 17, 17)
    assert image.getpixel((150, 150)) == (255, 255, 255)


def test_moves_while_idle_are_ignored() -> None:
    pad = SignaturePad()
    pad.handle(PointerEvent("move", 10, 10))
    pad.handle(PointerEvent("move", 80, 80))
    assert pad.is_blank
    assert pad.snapshot().getextrema() == WHITE_EXTREMA


def test_down_outside_surface_does_not_start_a_stroke() -> None:
    pad = SignaturePad(rect=SurfaceRect(0, 0, 500, 200))
    pad.handle(PointerEvent("down", 600, 10))
    assert pad.state is CaptureState.IDLE
    pad.handle(PointerEvent("move", 20, 20))
    assert pad.is_blank


def test_release_outside_surface_ends_the_stroke() -> None:
    pad = SignaturePad()
    pad.handle(PointerEvent("down", 10, 10))
    pad.handle(PointerEvent("move", 40, 40))
    pad.handle(PointerEvent("up", -500, -500))
    assert pad.state is CaptureState.IDLE

    before = pad.snapshot().tobytes()
    pad.handle(PointerEvent("move", 200, 150))
    assert pad.snapshot().tobytes() == before


def test_touch_events_use_first_touch() -> None:
    pad = SignaturePad()
    pad.handle(PointerEvent("down", touches=((10, 100), (400, 10))))
    pad.handle(PointerEvent("move", touches=((60, 100),)))
    pad.handle(PointerEvent("up"))
    assert pad.snapshot().getpixel((35, 100)) == (17, 17, 17)


def test_clear_resets_to_opaque_white() -> None:
    pad = SignaturePad()
    _stroke(pad, [(10, 10), (100, 100)])
    pad.clear()
    assert pad.is_blank
    assert pad.snapshot().getextrema() == WHITE_EXTREMA


def test_event_from_dom_shape() -> None:
    event = PointerEvent.from_dict({"type": "touchstart", "touches": [{"clientX": 1, "clientY": 2}]})
    assert event.kind == "down"
    assert event.position() == (1.0, 2.0)
    mouse = PointerEvent.from_dict({"type": "mouseup"})
    assert mouse.kind == "up"
    assert mouse.position() is None


def test_unknown_event_type_is_rejected() -> None:
    with pytest.raises(TimesheetError) as exc_info:
        PointerEvent.from_dict({"type": "wheel"})
    assert exc_info.value.code == "E1201_EVENT_INVALID"


def test_surface_rect_must_have_area() -> None:
    with pytest.raises(ValueError):
        SurfaceRect(0, 0, 0, 100)


def test_load_recording_replays_events(tmp_path: Path) -> None:
    path = tmp_path / "recording.json"
    path.write_text(
        json.dumps(
            {
                "width": 400,
                "height": 160,
                "rect": {"left": 0, "top": 0, "width": 200, "height": 80},
                "events": [
                    {"type": "mousedown", "clientX": 10, "clientY": 40},
                    {"type": "mousemove", "clientX": 100, "clientY": 40},
                    {"type": "mouseup", "clientX": 300, "clientY": 300},
                ],
            }
        )
    )
    pad = load_recording(path)
    assert pad.state is CaptureState.IDLE
    assert pad.snapshot().size == (400, 160)
    assert pad.snapshot().getpixel((100, 80)) == (17, 17, 17)


def test_load_recording_requires_events(tmp_path: Path) -> None:
    path = tmp_path / "recording.json"
    path.write_text("[]")
    with pytest.raises(TimesheetError) as exc_info:
        load_recording(path)
    assert exc_info.value.code == "E1200_RECORDING_INVALID"


def test_clear_during_stroke_keeps_drawing() -> None:
    pad = SignaturePad()
    pad.handle(PointerEvent("down", 10, 10))
    pad.handle(PointerEvent("move", 40, 10))
    pad.clear()
    assert pad.state is CaptureState.DRAWING
    assert pad.is_blank

    pad.handle(PointerEvent("move", 40, 60))
    image = pad.snapshot()
    assert image.getpixel((40, 35)) == (17, 17, 17)
    assert image.getpixel((25, 10)) == (255, 255, 255)
    assert not pad.is_blank


@pytest.mark.parametrize(
    "payload",
    [
        {"width": "wide", "events": []},
        {"width": -5, "events": []},
        {"events": [{"type": "touchstart", "touches": [{"clientX": 1}]}]},
    ],
)
def test_load_recording_rejects_bad_values(tmp_path: Path, payload: dict) -> None:
    path = tmp_path / "recording.json"
    path.write_text(json.dumps(payload))
    with pytest.raises(TimesheetError) as exc_info:
        load_recording(path)
    assert exc_info.value.code in {"E1200_RECORDING_INVALID", "E1201_EVENT_INVALID"}
