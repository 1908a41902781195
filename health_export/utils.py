from __future__ import annotations

import datetime as dt
from typing import TYPE_CHECKING, Dict, Optional, Tuple

import pytz

from .errors import IncompatibleUnitError

if TYPE_CHECKING:
    from .models import Quantity


def get_tz(name: Optional[str] = None) -> pytz.BaseTzInfo:
    if name is None:
        from .config import get_settings
        name = get_settings().TZ
    return pytz.timezone(name)


def day_bounds(start: dt.date, end: dt.date, tz: pytz.BaseTzInfo) -> tuple[dt.datetime, dt.datetime]:
    """Calendar days [start 00:00, end+1d 00:00) in the given timezone."""
    lo = tz.localize(dt.datetime.combine(start, dt.time.min))
    hi = tz.localize(dt.datetime.combine(end + dt.timedelta(days=1), dt.time.min))
    return lo, hi


def to_epoch_ms(ts: dt.datetime) -> int:
    # int() truncates toward zero, same as the provider's Int64 cast
    return int(ts.timestamp() * 1000.0)


def export_filename(now: Optional[dt.datetime] = None) -> str:
    now = now or dt.datetime.now(dt.timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=dt.timezone.utc)
    now = now.astimezone(dt.timezone.utc)
    stamp = now.strftime("%Y%m%dT%H%M%S") + f".{now.microsecond // 1000:03d}Z"
    return f"health-export-{stamp}.ndjson"


# ---------- units ----------

# unit -> (dimension, factor to the dimension's base unit)
UNIT_FACTORS: Dict[str, Tuple[str, float]] = {
    "count": ("count", 1.0),
    "count/s": ("rate", 60.0),
    "count/min": ("rate", 1.0),
    "breaths/min": ("rate", 1.0),
    "count/h": ("rate", 1.0 / 60.0),
    "ms": ("time", 0.001),
    "s": ("time", 1.0),
    "min": ("time", 60.0),
    "h": ("time", 3600.0),
    # percent quantities are carried as fractions 0-1
    "%": ("fraction", 1.0),
}


def convert_unit(value: float, from_unit: str, to_unit: str) -> float:
    if from_unit == to_unit:
        return float(value)
    src = UNIT_FACTORS.get(from_unit)
    dst = UNIT_FACTORS.get(to_unit)
    if src is None or dst is None or src[0] != dst[0]:
        raise IncompatibleUnitError(from_unit, to_unit)
    return float(value) * src[1] / dst[1]


# label -> (unit read from the provider, unit written, multiplier)
UNIT_POLICY: Dict[str, Tuple[str, str, float]] = {
    "HeartRate": ("count/min", "count/min", 1.0),
    "RespiratoryRate": ("count/min", "breaths/min", 1.0),
    "OxygenSaturation": ("%", "%", 100.0),
    "HRV": ("ms", "ms", 1.0),
}
DEFAULT_POLICY: Tuple[str, str, float] = ("count", "count", 1.0)


def normalize_quantity(label: str, quantity: "Quantity") -> tuple[float, str]:
    """Return (value, unit) in the export unit system for a quantity sample of ``label``.

    Unknown labels fall through to a plain count. For those the raw value is
    kept when the provider unit is not dimensionless, so this never raises
    for an unmapped category. Mapped categories raise IncompatibleUnitError
    when the provider unit is of another dimension.
    """
    read_unit, out_unit, factor = UNIT_POLICY.get(label, DEFAULT_POLICY)
    if label not in UNIT_POLICY:
        try:
            return quantity.double_value(read_unit), out_unit
        except IncompatibleUnitError:
            return float(quantity.value), out_unit
    return quantity.double_value(read_unit) * factor, out_unit
