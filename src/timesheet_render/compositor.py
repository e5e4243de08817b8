from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Callable

from PIL import Image, ImageDraw

from timesheet_render.background import remove_background
from timesheet_render.errors import TimesheetError
from timesheet_render.layout import FieldSpec, Layout
from timesheet_render.record import TimesheetRecord, format_hours
from timesheet_render.text_fit import FitPolicy, PillowMeasurer, TextMeasurer, fit_text

logger = logging.getLogger(__name__)

TRANSPARENT = (0, 0, 0, 0)

TemplateLoader = Callable[[Path], Image.Image]


def load_template(path: Path) -> Image.Image:
    try:
        with Image.open(path) as image:
            image.load()
            return image.convert("RGBA")
    except OSError as exc:
        raise TimesheetError(
            code="E2001_TEMPLATE_LOAD",
            message=f"Failed to load template {path}: {exc}",
            hint="Check TIMESHEET_TEMPLATE_PATH or run tools/build_template_asset.py.",
        ) from exc


def _composite_clipped(canvas: Image.Image, layer: Image.Image, left: float, top: float) -> None:
    """Alpha-composite layer at (left, top), dropping whatever falls outside the canvas."""
    x = int(round(left))
    y = int(round(top))
    crop_left = max(0, -x)
    crop_top = max(0, -y)
    crop_right = min(layer.width, canvas.width - x)
    crop_bottom = min(layer.height, canvas.height - y)
    if crop_right <= crop_left or crop_bottom <= crop_top:
        return
    visible = layer.crop((crop_left, crop_top, crop_right, crop_bottom))
    canvas.alpha_composite(visible, dest=(x + crop_left, y + crop_top))


class Compositor:
    """Renders one timesheet record onto the template.

    The template loader, text measurer and layout are owned by the instance,
    so independent compositors never share drawing state.
    """

    def __init__(
        self,
        layout: Layout,
        measurer: TextMeasurer | None = None,
        template_loader: TemplateLoader = load_template,
    ) -> None:
        self.layout = layout
        self.measurer = measurer or PillowMeasurer(
            layout.typography.font_path, layout.typography.font_family
        )
        self.template_loader = template_loader

    def render(self, record: TimesheetRecord, signature: Image.Image) -> Image.Image:
        template = self.template_loader(self.layout.template_path)
        canvas = Image.new("RGBA", template.size, TRANSPARENT)
        canvas.alpha_composite(template.convert("RGBA"))
        logger.debug("Template %s loaded at %dx%d", self.layout.template_path, *template.size)

        self._draw_header(canvas, record)
        self._draw_row(canvas, record)
        self._draw_signature(canvas, signature)
        return canvas

    def _draw_header(self, canvas: Image.Image, record: TimesheetRecord) -> None:
        values = {
            "name": record.employee_name,
            "job_role": record.job_role,
            "care_home": record.care_home,
        }
        size = self.layout.typography.header_size
        for field, spec in self.layout.coords.header.items():
            self._draw_field(canvas, spec, values[field], size, spec.y or 0.0)

    def _draw_row(self, canvas: Image.Image, record: TimesheetRecord) -> None:
        values = {
            "date": record.sheet_date,
            "start_time": record.start_time,
            "end_time": record.end_time,
            "break_minutes": str(record.break_minutes),
            "total_hours": format_hours(record.total_hours),
            "job_role_short": record.job_role_short,
            "remarks": record.remarks,
        }
        size = self.layout.typography.row_size
        baseline = self.layout.coords.baseline
        for field, spec in self.layout.coords.row.items():
            self._draw_field(canvas, spec, values[field], size, baseline)

    def _draw_field(
        self, canvas: Image.Image, spec: FieldSpec, text: str, size: int, y: float
    ) -> None:
        typography = self.layout.typography
        if spec.policy is FitPolicy.CLIP:
            self._draw_cell(canvas, spec, text, size, y)
            return
        fitted = fit_text(text, spec.policy, self.measurer, size, spec.max_width, typography.floor_size)
        font = self.measurer.font(fitted.font_size)
        draw = ImageDraw.Draw(canvas)
        line_height = fitted.font_size * typography.line_spacing
        for index, line in enumerate(fitted.lines):
            draw.text(
                (spec.x, y + index * line_height),
                line,
                font=font,
                fill=typography.fill,
                anchor="lm",
            )

    def _draw_cell(
        self, canvas: Image.Image, spec: FieldSpec, text: str, size: int, y: float
    ) -> None:
        typography = self.layout.typography
        half = typography.cell_half_height
        padding = typography.cell_padding
        clip_width = max(0.0, spec.cell_right(canvas.width) - spec.x)
        clip_height = half * 2
        if clip_width < 1 or clip_height < 1:
            return
        fitted = fit_text(
            text,
            FitPolicy.CLIP,
            self.measurer,
            size,
            clip_width - padding * 2,
            typography.floor_size,
        )
        if not fitted.text:
            return
        cell = Image.new("RGBA", (math.ceil(clip_width), math.ceil(clip_height)), TRANSPARENT)
        ImageDraw.Draw(cell).text(
            (padding, half),
            fitted.text,
            font=self.measurer.font(fitted.font_size),
            fill=typography.fill,
            anchor="lm",
        )
        _composite_clipped(canvas, cell, spec.x, y - half)

    def _draw_signature(self, canvas: Image.Image, signature: Image.Image) -> None:
        style = self.layout.signature
        box = self.layout.coords.signature_box
        overlay = remove_background(signature, style.threshold)
        draw_width = max(1, int(round(box.width * style.scale)))
        draw_height = max(1, int(round(box.height * style.scale)))
        scaled = overlay.resize((draw_width, draw_height), Image.Resampling.LANCZOS)

        cell = Image.new("RGBA", (math.ceil(box.width), math.ceil(box.height)), TRANSPARENT)
        offset_x = int(round((box.width - draw_width) / 2 + style.offset_x))
        offset_y = int(round((box.height - draw_height) / 2 + style.offset_y))
        cell.paste(scaled, (offset_x, offset_y), scaled)
        _composite_clipped(canvas, cell, box.x, box.y)
