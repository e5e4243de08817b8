"""timesheet_render library package."""

from .errors import TimesheetError
from .background import remove_background
from .capture import PointerEvent, SignaturePad, SurfaceRect
from .compositor import Compositor, load_template
from .layout import Layout, load_layout
from .record import TimesheetRecord, compute_total_hours, record_from_form
from .submit import SubmissionFlow, SubmissionStatus
from .text_fit import FitPolicy, PillowMeasurer, fit_text

__all__ = [
    "Compositor",
    "FitPolicy",
    "Layout",
    "PillowMeasurer",
    "PointerEvent",
    "SignaturePad",
    "SubmissionFlow",
    "SubmissionStatus",
    "SurfaceRect",
    "TimesheetError",
    "TimesheetRecord",
    "compute_total_hours",
    "fit_text",
    "load_layout",
    "load_template",
    "record_from_form",
    "remove_background",
]
