from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, NoReturn

import typer
from PIL import Image

from timesheet_render.background import flatten_signature
from timesheet_render.capture import SurfaceRect, load_recording, surface_point
from timesheet_render.compositor import Compositor, load_template
from timesheet_render.errors import TimesheetError
from timesheet_render.layout import load_layout
from timesheet_render.submit import Signature, SubmissionFlow
from uploaders.config import uploader_from_env

app = typer.Typer(
    add_completion=False,
    help="Render timesheet images from form data and a signature, and upload them.",
)


def _fail(exc: TimesheetError) -> NoReturn:
    typer.echo(f"ERROR {exc.code}: {exc.message}", err=True)
    typer.echo(f"HINT: {exc.hint}", err=True)
    raise typer.Exit(code=1)


def _unexpected(exc: Exception) -> NoReturn:
    typer.echo(f"ERROR E1199_UNEXPECTED: {exc}", err=True)
    typer.echo("HINT: Check input paths and file contents; rerun with --verbose.", err=True)
    raise typer.Exit(code=1)


def _load_form(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise TimesheetError(
            code="E1000_FORM_INVALID",
            message=f"Failed to parse form JSON: {exc}",
            hint="Ensure the form file is valid JSON.",
        ) from exc
    if not isinstance(data, dict):
        raise TimesheetError(
            code="E1000_FORM_INVALID",
            message="Form JSON must contain an object at the top level.",
            hint="Use keys like name, careHome, jobRole, date, startTime, endTime.",
        )
    return data


def _load_signature(path: Path) -> Signature:
    if path.suffix.lower() == ".json":
        return load_recording(path)
    try:
        with Image.open(path) as image:
            return flatten_signature(image)
    except OSError as exc:
        raise TimesheetError(
            code="E1004_SIGNATURE_UNREADABLE",
            message=f"Failed to read signature {path}: {exc}",
            hint="Pass a PNG signature or a recorded capture JSON.",
        ) from exc


def _flow(layout_path: Path | None, template: Path | None, with_uploader: bool) -> SubmissionFlow:
    layout = load_layout(layout_path)
    if template is not None:
        layout = replace(layout, template_path=template)
    uploader = uploader_from_env() if with_uploader else None
    return SubmissionFlow(Compositor(layout), uploader)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


FORM_ARGUMENT = typer.Argument(
    ..., exists=True, dir_okay=False, readable=True, help="Form values JSON."
)
SIGNATURE_ARGUMENT = typer.Argument(
    ...,
    exists=True,
    dir_okay=False,
    readable=True,
    help="Signature PNG or recorded capture JSON.",
)
LAYOUT_OPTION = typer.Option(None, "--layout", dir_okay=False, help="Layout YAML override.")
TEMPLATE_OPTION = typer.Option(None, "--template", dir_okay=False, help="Template PNG override.")


@app.command()
def render(
    form: Path = FORM_ARGUMENT,
    signature: Path = SIGNATURE_ARGUMENT,
    out: Path = typer.Option(..., "--out", "-o", dir_okay=False, help="Output PNG path."),
    meta_out: Path | None = typer.Option(
        None, "--meta-out", dir_okay=False, help="Optional path for the metadata JSON."
    ),
    layout: Path | None = LAYOUT_OPTION,
    template: Path | None = TEMPLATE_OPTION,
) -> None:
    """Render a timesheet PNG without uploading it."""
    try:
        flow = _flow(layout, template, with_uploader=False)
        _, payload = flow.prepare(_load_form(form), _load_signature(signature))
        out.write_bytes(payload.image)
        if meta_out is not None:
            meta_out.write_text(json.dumps(payload.meta, indent=2, sort_keys=True))
    except TimesheetError as exc:
        _fail(exc)
    except Exception as exc:  # noqa: BLE001
        _unexpected(exc)
    typer.echo(str(out))


@app.command()
def submit(
    form: Path = FORM_ARGUMENT,
    signature: Path = SIGNATURE_ARGUMENT,
    layout: Path | None = LAYOUT_OPTION,
    template: Path | None = TEMPLATE_OPTION,
) -> None:
    """Render and upload a timesheet using the adapter configured in the environment."""
    try:
        flow = _flow(layout, template, with_uploader=True)
        form_values = _load_form(form)
        signature_value = _load_signature(signature)
    except TimesheetError as exc:
        _fail(exc)
    except Exception as exc:  # noqa: BLE001
        _unexpected(exc)
    status = flow.submit(form_values, signature_value)
    typer.echo(status.message, err=not status.ok)
    if not status.ok:
        raise typer.Exit(code=1)
    if status.identifier:
        typer.echo(f"id: {status.identifier}")


@app.command()
def capture(
    recording: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="Recorded pointer events JSON."
    ),
    out: Path = typer.Option(..., "--out", "-o", dir_okay=False, help="Output PNG path."),
) -> None:
    """Replay recorded pointer events into a signature PNG."""
    try:
        pad = load_recording(recording)
        pad.snapshot().save(out, format="PNG")
    except TimesheetError as exc:
        _fail(exc)
    except Exception as exc:  # noqa: BLE001
        _unexpected(exc)
    typer.echo(str(out))


@app.command()
def locate(
    client_x: float = typer.Argument(..., help="Click x in client coordinates."),
    client_y: float = typer.Argument(..., help="Click y in client coordinates."),
    width: float = typer.Option(..., "--width", help="Displayed preview width."),
    height: float = typer.Option(..., "--height", help="Displayed preview height."),
    left: float = typer.Option(0.0, "--left", help="Displayed preview left offset."),
    top: float = typer.Option(0.0, "--top", help="Displayed preview top offset."),
    layout: Path | None = LAYOUT_OPTION,
    template: Path | None = TEMPLATE_OPTION,
) -> None:
    """Map a click on a scaled preview back to template pixels for calibration."""
    try:
        resolved = load_layout(layout)
        image = load_template(template or resolved.template_path)
        rect = SurfaceRect(left=left, top=top, width=width, height=height)
    except TimesheetError as exc:
        _fail(exc)
    except ValueError as exc:
        typer.echo(f"ERROR E1205_RECT_INVALID: {exc}", err=True)
        typer.echo("HINT: Pass a positive --width and --height.", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:  # noqa: BLE001
        _unexpected(exc)
    x, y = surface_point(rect, image.size, client_x, client_y)
    typer.echo(json.dumps({"x": round(x), "y": round(y)}))


if __name__ == "__main__":
    app(prog_name="timesheet-render")
