from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from PIL import Image, ImageDraw
from typer.testing import CliRunner

from common.png_utils import has_png_magic
from conftest import TEMPLATE_SIZE
from timesheet_render.cli import app

runner = CliRunner()


def _write_inputs(tmp_path: Path, form: dict[str, Any], signature: Image.Image) -> tuple[Path, Path]:
    form_path = tmp_path / "form.json"
    form_path.write_text(json.dumps(form))
    signature_path = tmp_path / "signature.png"
    signature.save(signature_path, format="PNG")
    return form_path, signature_path


def test_render_writes_png_and_meta(
    tmp_path: Path, template_path: Path, form: dict[str, Any], signature: Image.Image
) -> None:
    form_path, signature_path = _write_inputs(tmp_path, form, signature)
    out = tmp_path / "sheet.png"
    meta_out = tmp_path / "meta.json"
    result = runner.invoke(
        app,
        [
            "render",
            str(form_path),
            str(signature_path),
            "--out",
            str(out),
            "--meta-out",
            str(meta_out),
            "--template",
            str(template_path),
        ],
    )
    assert result.exit_code == 0, result.output
    assert has_png_magic(out)
    with Image.open(out) as image:
        assert image.size == TEMPLATE_SIZE
    meta = json.loads(meta_out.read_text())
    assert meta["name"] == "Jane Doe"
    assert meta["totalHours"] == "8"


def test_render_rejects_bad_form(
    tmp_path: Path, template_path: Path, signature: Image.Image
) -> None:
    form_path = tmp_path / "form.json"
    form_path.write_text("[1, 2]")
    signature_path = tmp_path / "signature.png"
    signature.save(signature_path, format="PNG")
    result = runner.invoke(
        app,
        ["render", str(form_path), str(signature_path), "--out", str(tmp_path / "x.png")],
    )
    assert result.exit_code == 1
    assert "E1000_FORM_INVALID" in result.output
    assert "HINT:" in result.output


def test_render_rejects_blank_signature(
    tmp_path: Path, template_path: Path, form: dict[str, Any]
) -> None:
    form_path, signature_path = _write_inputs(tmp_path, form, Image.new("RGB", (500, 200), "white"))
    result = runner.invoke(
        app,
        [
            "render",
            str(form_path),
            str(signature_path),
            "--out",
            str(tmp_path / "x.png"),
            "--template",
            str(template_path),
        ],
    )
    assert result.exit_code == 1
    assert "E1003_SIGNATURE_MISSING" in result.output
    assert not (tmp_path / "x.png").exists()


def test_submit_without_credentials_fails(
    tmp_path: Path, template_path: Path, form: dict[str, Any], signature: Image.Image
) -> None:
    form_path, signature_path = _write_inputs(tmp_path, form, signature)
    result = runner.invoke(
        app, ["submit", str(form_path), str(signature_path), "--template", str(template_path)]
    )
    assert result.exit_code == 1
    assert "Missing TELEGRAM_BOT_TOKEN" in result.output


def test_capture_replays_recording(tmp_path: Path) -> None:
    recording = tmp_path / "capture.json"
    recording.write_text(
        json.dumps(
            {
                "width": 500,
                "height": 200,
                "rect": {"left": 10, "top": 20, "width": 250, "height": 100},
                "events": [
                    {"type": "mousedown", "clientX": 20, "clientY": 30},
                    {"type": "mousemove", "clientX": 200, "clientY": 100},
                    {"type": "mouseup", "clientX": 200, "clientY": 100},
                ],
            }
        )
    )
    out = tmp_path / "signature.png"
    result = runner.invoke(app, ["capture", str(recording), "--out", str(out)])
    assert result.exit_code == 0, result.output
    with Image.open(out) as image:
        assert image.size == (500, 200)
        # (20, 30) in client space lands on (20, 20) in the 2x raster
        assert image.convert("L").getpixel((20, 20)) < 128


def test_locate_maps_preview_click(template_path: Path) -> None:
    result = runner.invoke(
        app,
        [
            "locate",
            "310",
            "130",
            "--width",
            "620",
            "--height",
            "260",
            "--template",
            str(template_path),
        ],
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"x": 620, "y": 260}


def test_locate_rejects_empty_rect(template_path: Path) -> None:
    result = runner.invoke(
        app,
        ["locate", "1", "1", "--width", "0", "--height", "10", "--template", str(template_path)],
    )
    assert result.exit_code == 1
    assert "E1205_RECT_INVALID" in result.output


def test_render_flattens_transparent_signature(
    tmp_path: Path, template_path: Path, form: dict[str, Any]
) -> None:
    signature = Image.new("RGBA", (500, 200), (0, 0, 0, 0))
    ImageDraw.Draw(signature).line([(50, 100), (450, 100)], fill=(17, 17, 17, 255), width=20)
    form_path, signature_path = _write_inputs(tmp_path, form, signature)
    out = tmp_path / "sheet.png"
    result = runner.invoke(
        app,
        [
            "render",
            str(form_path),
            str(signature_path),
            "--out",
            str(out),
            "--template",
            str(template_path),
        ],
    )
    assert result.exit_code == 0, result.output
    with Image.open(out) as image:
        rgb = image.convert("RGB")
        # inside the scaled signature area but away from the stroke
        assert rgb.getpixel((900, 392)) == (255, 255, 255)
        assert rgb.convert("L").getpixel((947, 410)) < 128


def test_capture_rejects_non_numeric_coordinates(tmp_path: Path) -> None:
    recording = tmp_path / "capture.json"
    recording.write_text(
        json.dumps({"events": [{"type": "mousedown", "clientX": "abc", "clientY": 3}]})
    )
    result = runner.invoke(app, ["capture", str(recording), "--out", str(tmp_path / "sig.png")])
    assert result.exit_code == 1
    assert "ERROR E1201_EVENT_INVALID" in result.output
    assert "HINT:" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_capture_rejects_non_utf8_recording(tmp_path: Path) -> None:
    recording = tmp_path / "capture.json"
    recording.write_bytes(b"\xff\xfe{\x00")
    result = runner.invoke(app, ["capture", str(recording), "--out", str(tmp_path / "sig.png")])
    assert result.exit_code == 1
    assert "ERROR E1200_RECORDING_INVALID" in result.output


def test_render_reports_unexpected_errors_with_code(
    tmp_path: Path, template_path: Path, form: dict[str, Any], signature: Image.Image
) -> None:
    form_path, signature_path = _write_inputs(tmp_path, form, signature)
    result = runner.invoke(
        app,
        [
            "render",
            str(form_path),
            str(signature_path),
            "--out",
            str(tmp_path / "missing-dir" / "sheet.png"),
            "--template",
            str(template_path),
        ],
    )
    assert result.exit_code == 1
    assert "ERROR E1199_UNEXPECTED" in result.output
    assert "HINT:" in result.output
