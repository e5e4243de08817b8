#!/usr/bin/env python3
from __future__ import annotations

import sys
from pathlib import Path

import typer
from PIL import Image

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from common.png_utils import PNG_MAGIC, has_png_magic  # noqa: E402
from timesheet_render.errors import TimesheetError  # noqa: E402
from timesheet_render.layout import layout_extent, load_layout  # noqa: E402

app = typer.Typer(add_completion=False, help="Verify the template PNG against the layout.")


@app.command()
def main(
    template: Path | None = typer.Argument(None, help="Template PNG (defaults to the layout's)."),
    layout: Path | None = typer.Option(None, "--layout", dir_okay=False, help="Layout YAML."),
) -> None:
    """Check PNG magic and that every mapped coordinate lies inside the template."""
    try:
        resolved = load_layout(layout)
    except TimesheetError as exc:
        typer.echo(f"ERROR {exc.code}: {exc.message}", err=True)
        typer.echo(f"HINT: {exc.hint}", err=True)
        raise typer.Exit(code=1)
    target = template or resolved.template_path
    if not has_png_magic(target):
        typer.echo(f"ERROR E1400_PNG_MAGIC_INVALID: {target}", err=True)
        typer.echo(f"HINT: Regenerate the template with a valid {PNG_MAGIC!r} header.", err=True)
        raise typer.Exit(code=1)
    with Image.open(target) as image:
        width, height = image.size
    need_x, need_y = layout_extent(resolved)
    if need_x > width or need_y > height:
        typer.echo(
            f"ERROR E2102_TEMPLATE_TOO_SMALL: {target} is {width}x{height}, "
            f"layout reaches {need_x:g}x{need_y:g}.",
            err=True,
        )
        typer.echo("HINT: Recalibrate the layout for this template.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"OK: {target} ({width}x{height}) covers the layout.")


if __name__ == "__main__":
    app(prog_name="check_template_asset")
