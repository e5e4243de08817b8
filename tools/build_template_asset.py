#!/usr/bin/env python3
from __future__ import annotations

import sys
from pathlib import Path

import typer
from PIL import Image, ImageDraw

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from timesheet_render.layout import Layout, layout_extent, load_layout  # noqa: E402
from timesheet_render.text_fit import PillowMeasurer  # noqa: E402

app = typer.Typer(add_completion=False, help="Draw a calibration timesheet template PNG.")

LINE = (60, 60, 60, 255)
LABEL = (90, 90, 90, 255)
ROW_LABELS = {
    "date": "DATE",
    "start_time": "START",
    "end_time": "END",
    "break_minutes": "BREAK",
    "total_hours": "TOTAL",
    "job_role_short": "JOB ROLE",
    "remarks": "REMARKS",
}
HEADER_LABELS = {"name": "NAME", "job_role": "JOB ROLE", "care_home": "CARE HOME"}


def draw_template(layout: Layout, margin: int = 40) -> Image.Image:
    extent_x, extent_y = layout_extent(layout)
    width = int(extent_x) + margin * 2
    height = int(extent_y) + margin * 2
    image = Image.new("RGBA", (width, height), (255, 255, 255, 255))
    draw = ImageDraw.Draw(image)
    font = PillowMeasurer(layout.typography.font_path, layout.typography.font_family).font(16)
    coords = layout.coords

    for field, spec in coords.header.items():
        y = spec.y or 0.0
        draw.text((spec.x, y - 30), HEADER_LABELS[field], font=font, fill=LABEL)
        draw.line([(spec.x, y + 18), (spec.x + (spec.max_width or 260), y + 18)], fill=LINE, width=1)

    half = layout.typography.cell_half_height
    row_top = min(coords.signature_box.y, coords.baseline - half)
    row_bottom = max(coords.signature_box.bottom, coords.baseline + half)
    header_top = row_top - 40
    left = min(spec.x for spec in coords.row.values()) - 10
    right = width - margin // 2
    for y in (header_top, row_top, row_bottom):
        draw.line([(left, y), (right, y)], fill=LINE, width=2)
    columns = sorted([spec.x - 10 for spec in coords.row.values()] + [coords.signature_box.x])
    for x in [*columns, right]:
        draw.line([(x, header_top), (x, row_bottom)], fill=LINE, width=2)
    for field, spec in coords.row.items():
        draw.text((spec.x, header_top + 10), ROW_LABELS[field], font=font, fill=LABEL)
    draw.text((coords.signature_box.x + 6, header_top + 10), "SIGNATURE", font=font, fill=LABEL)
    return image


@app.command()
def main(
    layout: Path | None = typer.Option(None, "--layout", dir_okay=False, help="Layout YAML."),
    out: Path | None = typer.Option(None, "--out", dir_okay=False, help="Output PNG path."),
) -> None:
    """Write a blank template whose grid matches the layout coordinates."""
    resolved = load_layout(layout)
    target = out or resolved.template_path
    target.parent.mkdir(parents=True, exist_ok=True)
    image = draw_template(resolved)
    image.save(target, format="PNG")
    typer.echo(f"OK: wrote {target} ({image.width}x{image.height}).")


if __name__ == "__main__":
    app(prog_name="build_template_asset")
