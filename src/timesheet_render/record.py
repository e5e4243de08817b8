from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from timesheet_render.errors import TimesheetError
from timesheet_render.layout import FieldLimits

ALLOWED_BREAKS = (0, 30, 60)
OTHER_CHOICE = "Other"
MINUTES_PER_DAY = 24 * 60


def normalize_break_minutes(value: Any) -> int:
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return 0
    return int(number) if number in ALLOWED_BREAKS else 0


def parse_minutes(value: str) -> int:
    """Minutes since midnight for an HH:MM string."""
    hours_text, sep, minutes_text = str(value).strip().partition(":")
    if not sep:
        raise ValueError(f"Expected HH:MM, got {value!r}")
    hours = int(hours_text)
    minutes = int(minutes_text)
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Time out of range: {value!r}")
    return hours * 60 + minutes


def compute_total_hours(start_time: str, end_time: str, break_minutes: int) -> float:
    """Worked hours rounded to the nearest quarter; overnight shifts wrap past midnight."""
    start = parse_minutes(start_time)
    end = parse_minutes(end_time)
    if end < start:
        end += MINUTES_PER_DAY
    worked = max(0, end - start - break_minutes)
    return round(worked / 60 * 4) / 4


def format_hours(hours: float) -> str:
    return f"{hours:g}"


def format_date_for_sheet(value: str | None) -> str:
    """YYYY-MM-DD -> DD/MM/YYYY; anything without three dash parts comes back unchanged."""
    if not value:
        return ""
    parts = str(value).split("-")
    if len(parts) < 3 or not all(parts[:3]):
        return str(value)
    year, month, day = parts[:3]
    return f"{day}/{month}/{year}"


def limit_chars(value: Any, max_chars: int | None) -> str:
    text = "" if value is None else str(value).strip()
    if max_chars is None:
        return text
    return text[:max_chars]


def limit_chars_with_ellipsis(value: Any, max_chars: int) -> str:
    text = "" if value is None else str(value).strip()
    if len(text) <= max_chars:
        return text
    if max_chars <= 1:
        return text[:max_chars]
    return text[: max_chars - 1] + "…"


@dataclass(frozen=True)
class TimesheetRecord:
    employee_name: str
    care_home: str
    job_role: str
    job_role_short: str
    date: str
    start_time: str
    end_time: str
    break_minutes: int
    total_hours: float
    remarks: str = ""

    @property
    def sheet_date(self) -> str:
        return format_date_for_sheet(self.date)

    def to_meta(self) -> dict[str, str]:
        return {
            "name": self.employee_name,
            "careHome": self.care_home,
            "jobRoleTop": self.job_role,
            "jobRoleRow": self.job_role_short,
            "date": self.date,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "breakMins": str(self.break_minutes),
            "totalHours": format_hours(self.total_hours),
            "remarks": self.remarks,
        }


def _missing(field: str) -> TimesheetError:
    return TimesheetError(
        code="E1001_FIELD_MISSING",
        message=f"Required field '{field}' is empty.",
        hint=f"Fill in '{field}' before submitting.",
    )


def _choice(form: Mapping[str, Any], key: str, max_chars: int) -> str:
    selected = str(form.get(key) or "").strip()
    if selected == OTHER_CHOICE:
        selected = limit_chars(form.get(f"{key}Other"), max_chars)
        if not selected:
            raise _missing(f"{key}Other")
        return selected
    if not selected:
        raise _missing(key)
    return limit_chars(selected, max_chars)


def _required(form: Mapping[str, Any], key: str) -> str:
    value = str(form.get(key) or "").strip()
    if not value:
        raise _missing(key)
    return value


def record_from_form(form: Mapping[str, Any], limits: FieldLimits) -> TimesheetRecord:
    """Build a normalized record from raw form values.

    Any totalHours present in the form is ignored and recomputed.
    """
    name = limit_chars(form.get("name"), limits.name)
    if not name:
        raise _missing("name")
    care_home = _choice(form, "careHome", limits.care_home)
    job_role = _choice(form, "jobRole", limits.job_role)
    date = _required(form, "date")
    start_time = _required(form, "startTime")
    end_time = _required(form, "endTime")
    break_minutes = normalize_break_minutes(form.get("breakMins"))
    try:
        total_hours = compute_total_hours(start_time, end_time, break_minutes)
    except ValueError as exc:
        raise TimesheetError(
            code="E1002_TIME_INVALID",
            message=f"Invalid shift time: {exc}",
            hint="Use 24-hour HH:MM for start and end times.",
        ) from exc
    return TimesheetRecord(
        employee_name=name,
        care_home=care_home,
        job_role=job_role,
        job_role_short=limit_chars_with_ellipsis(job_role, limits.job_role_short),
        date=date,
        start_time=start_time,
        end_time=end_time,
        break_minutes=break_minutes,
        total_hours=total_hours,
        remarks=limit_chars(form.get("remarks"), limits.remarks),
    )
