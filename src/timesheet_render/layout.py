from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from timesheet_render.errors import TimesheetError
from timesheet_render.text_fit import FitPolicy

REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_LAYOUT_PATH = REPO_ROOT / "config" / "timesheet_layout.v1.yaml"
DEFAULT_TEMPLATE_PATH = REPO_ROOT / "assets" / "timesheet_template.png"

HEADER_FIELDS = ("name", "job_role", "care_home")
ROW_FIELDS = (
    "date",
    "start_time",
    "end_time",
    "break_minutes",
    "total_hours",
    "job_role_short",
    "remarks",
)

# Calibrated against the single-row timesheet template (natural pixel space).
DEFAULT_LAYOUT: dict[str, Any] = {
    "template": None,
    "typography": {
        "font_family": "DejaVuSans",
        "font_path": None,
        "header_size": 24,
        "row_size": 24,
        "floor_size": 12,
        "fill": "#111111",
        "cell_padding": 6,
        "cell_half_height": 18,
        "line_spacing": 1.2,
    },
    "header": {
        "name": {"x": 100, "y": 235, "policy": "verbatim"},
        "job_role": {"x": 500, "y": 235, "policy": "shrink", "max_width": 895 - 25 - 500},
        "care_home": {"x": 895, "y": 235, "policy": "shrink", "max_width": 320},
    },
    "row": {
        "y": 402,
        "offset": 8,
        "fields": {
            "date": {"x": 103},
            "start_time": {"x": 245},
            "end_time": {"x": 350},
            "break_minutes": {"x": 475},
            "total_hours": {"x": 583},
            "job_role_short": {"x": 698, "policy": "clip", "right": 847 - 10},
            "remarks": {"x": 1033, "policy": "clip", "right_margin": 12},
        },
    },
    "signature": {
        "box": {"x": 847, "y": 370, "width": 200, "height": 80},
        "scale": 0.5,
        "offset_x": 0,
        "offset_y": 0,
        "threshold": 245,
    },
    "limits": {
        "name": 20,
        "care_home": 25,
        "job_role": 25,
        "job_role_short": 16,
        "remarks": 11,
    },
}


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height


@dataclass(frozen=True)
class FieldSpec:
    x: float
    y: float | None = None
    policy: FitPolicy = FitPolicy.VERBATIM
    max_width: float | None = None
    right: float | None = None
    right_margin: float | None = None

    def cell_right(self, canvas_width: int) -> float:
        """Right edge of the clip cell; margins are measured from the canvas edge."""
        if self.right is not None:
            return self.right
        if self.right_margin is not None:
            return canvas_width - self.right_margin
        return float(canvas_width)


@dataclass(frozen=True)
class CoordinateMap:
    header: dict[str, FieldSpec]
    row: dict[str, FieldSpec]
    row_y: float
    row_offset: float
    signature_box: Box

    @property
    def baseline(self) -> float:
        return self.row_y + self.row_offset


@dataclass(frozen=True)
class Typography:
    font_family: str
    font_path: Path | None
    header_size: int
    row_size: int
    floor_size: int
    fill: str
    cell_padding: float
    cell_half_height: float
    line_spacing: float


@dataclass(frozen=True)
class SignatureStyle:
    scale: float
    offset_x: float
    offset_y: float
    threshold: int


@dataclass(frozen=True)
class FieldLimits:
    name: int
    care_home: int
    job_role: int
    job_role_short: int
    remarks: int | None


@dataclass(frozen=True)
class Layout:
    template_path: Path
    coords: CoordinateMap
    typography: Typography
    signature: SignatureStyle
    limits: FieldLimits


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def _invalid(message: str, hint: str = "Fix the layout YAML and retry.") -> TimesheetError:
    return TimesheetError(code="E2101_LAYOUT_INVALID", message=message, hint=hint)


def _number(section: dict[str, Any], key: str, label: str) -> float:
    try:
        return float(section[key])
    except KeyError as exc:
        raise _invalid(f"{label} missing '{key}'.") from exc
    except (TypeError, ValueError) as exc:
        raise _invalid(f"{label}.{key} must be numeric, got {section[key]!r}.") from exc


def _optional_number(section: dict[str, Any], key: str, label: str) -> float | None:
    if section.get(key) is None:
        return None
    return _number(section, key, label)


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    if not isinstance(value, dict):
        raise _invalid(f"'{key}' must be a mapping.")
    return value


def _parse_policy(raw: Any, label: str) -> FitPolicy:
    try:
        return FitPolicy(str(raw or FitPolicy.VERBATIM.value).lower())
    except ValueError as exc:
        allowed = ", ".join(policy.value for policy in FitPolicy)
        raise _invalid(f"{label}.policy '{raw}' is not one of: {allowed}.") from exc


def _parse_field(raw: Any, label: str, shared_row: bool) -> FieldSpec:
    if not isinstance(raw, dict):
        raise _invalid(f"{label} must be a mapping with at least 'x'.")
    policy = _parse_policy(raw.get("policy"), label)
    spec = FieldSpec(
        x=_number(raw, "x", label),
        y=None if shared_row else _number(raw, "y", label),
        policy=policy,
        max_width=_optional_number(raw, "max_width", label),
        right=_optional_number(raw, "right", label),
        right_margin=_optional_number(raw, "right_margin", label),
    )
    if policy in {FitPolicy.SHRINK, FitPolicy.WRAP} and spec.max_width is None:
        raise _invalid(
            f"{label} uses policy '{policy.value}' without max_width.",
            hint="Set max_width for shrink and wrap fields.",
        )
    return spec


def _parse_fields(
    raw: dict[str, Any], names: tuple[str, ...], label: str, shared_row: bool
) -> dict[str, FieldSpec]:
    unknown = sorted(set(raw) - set(names))
    if unknown:
        raise _invalid(f"Unknown {label} fields: {', '.join(unknown)}.")
    return {name: _parse_field(raw.get(name), f"{label}.{name}", shared_row) for name in names}


def _parse_limit(limits: dict[str, Any], key: str, optional: bool = False) -> int | None:
    value = limits.get(key)
    if value is None and optional:
        return None
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise _invalid(f"limits.{key} must be an integer, got {value!r}.") from exc
    if number < 0:
        raise _invalid(f"limits.{key} must not be negative.")
    return number


def _resolve_template(raw: Any, base_dir: Path) -> Path:
    env_value = os.environ.get("TIMESHEET_TEMPLATE_PATH")
    if env_value:
        return Path(env_value)
    if raw is None:
        return DEFAULT_TEMPLATE_PATH
    path = Path(str(raw))
    return path if path.is_absolute() else (base_dir / path).resolve()


def parse_layout(data: dict[str, Any], base_dir: Path = REPO_ROOT) -> Layout:
    merged = _merge(DEFAULT_LAYOUT, data)

    typography_raw = _section(merged, "typography")
    font_path = typography_raw.get("font_path") or os.environ.get("TIMESHEET_FONT_PATH")
    typography = Typography(
        font_family=str(typography_raw.get("font_family") or "DejaVuSans"),
        font_path=Path(str(font_path)) if font_path else None,
        header_size=int(_number(typography_raw, "header_size", "typography")),
        row_size=int(_number(typography_raw, "row_size", "typography")),
        floor_size=int(_number(typography_raw, "floor_size", "typography")),
        fill=str(typography_raw.get("fill") or "#111111"),
        cell_padding=_number(typography_raw, "cell_padding", "typography"),
        cell_half_height=_number(typography_raw, "cell_half_height", "typography"),
        line_spacing=_number(typography_raw, "line_spacing", "typography"),
    )
    if typography.floor_size <= 0 or typography.floor_size > min(
        typography.header_size, typography.row_size
    ):
        raise _invalid(
            "typography.floor_size must be positive and not above the starting sizes.",
        )

    row_raw = _section(merged, "row")
    signature_raw = _section(merged, "signature")
    box_raw = _section(signature_raw, "box")
    box = Box(
        x=_number(box_raw, "x", "signature.box"),
        y=_number(box_raw, "y", "signature.box"),
        width=_number(box_raw, "width", "signature.box"),
        height=_number(box_raw, "height", "signature.box"),
    )
    if box.width <= 0 or box.height <= 0:
        raise _invalid("signature.box width/height must be positive.")
    coords = CoordinateMap(
        header=_parse_fields(_section(merged, "header"), HEADER_FIELDS, "header", False),
        row=_parse_fields(_section(row_raw, "fields"), ROW_FIELDS, "row.fields", True),
        row_y=_number(row_raw, "y", "row"),
        row_offset=float(row_raw.get("offset") or 0),
        signature_box=box,
    )

    threshold = int(_number(signature_raw, "threshold", "signature"))
    if not 0 <= threshold <= 255:
        raise _invalid("signature.threshold must be within 0..255.")
    scale = _number(signature_raw, "scale", "signature")
    if scale <= 0:
        raise _invalid("signature.scale must be positive.")
    signature = SignatureStyle(
        scale=scale,
        offset_x=float(signature_raw.get("offset_x") or 0),
        offset_y=float(signature_raw.get("offset_y") or 0),
        threshold=threshold,
    )

    limits_raw = _section(merged, "limits")
    limits = FieldLimits(
        name=_parse_limit(limits_raw, "name"),
        care_home=_parse_limit(limits_raw, "care_home"),
        job_role=_parse_limit(limits_raw, "job_role"),
        job_role_short=_parse_limit(limits_raw, "job_role_short"),
        remarks=_parse_limit(limits_raw, "remarks", optional=True),
    )

    return Layout(
        template_path=_resolve_template(merged.get("template"), base_dir),
        coords=coords,
        typography=typography,
        signature=signature,
        limits=limits,
    )


def load_layout(path: Path | None = None) -> Layout:
    """Load the layout from YAML, falling back to the built-in calibration.

    Resolution order: explicit path, TIMESHEET_LAYOUT_PATH, the bundled
    config/timesheet_layout.v1.yaml, then DEFAULT_LAYOUT.
    """
    if path is None:
        env_value = os.environ.get("TIMESHEET_LAYOUT_PATH")
        if env_value:
            path = Path(env_value)
        elif DEFAULT_LAYOUT_PATH.exists():
            path = DEFAULT_LAYOUT_PATH
        else:
            return parse_layout({})
    if not path.exists():
        raise TimesheetError(
            code="E2100_LAYOUT_MISSING",
            message=f"Layout config not found: {path}",
            hint="Pass an existing layout YAML or unset TIMESHEET_LAYOUT_PATH.",
        )
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise _invalid(f"Failed to parse layout YAML {path}: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise _invalid(f"Expected mapping at top of YAML: {path}")
    return parse_layout(data, base_dir=path.parent)


def layout_extent(layout: Layout) -> tuple[float, float]:
    """Smallest (width, height) a template needs to hold every mapped anchor and box."""
    coords = layout.coords
    half = layout.typography.cell_half_height
    xs = [spec.x for spec in coords.header.values()] + [spec.x for spec in coords.row.values()]
    xs += [spec.right for spec in coords.row.values() if spec.right is not None]
    xs.append(coords.signature_box.right)
    ys = [spec.y for spec in coords.header.values() if spec.y is not None]
    ys += [coords.baseline + half, coords.signature_box.bottom]
    return max(xs), max(ys)
