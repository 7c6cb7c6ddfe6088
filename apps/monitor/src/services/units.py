"""Unit conversions and tolerant JSON field extraction shared by the adapters."""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from .errors import ParseError

CELSIUS_TO_FAHRENHEIT_FACTOR = 1.8
CELSIUS_TO_FAHRENHEIT_OFFSET = 32.0
MPS_TO_MPH = 2.237
PA_TO_INHG = 0.0002953
METERS_TO_MILES = 0.000621371
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def celsius_to_fahrenheit(value: float) -> float:
    return value * CELSIUS_TO_FAHRENHEIT_FACTOR + CELSIUS_TO_FAHRENHEIT_OFFSET


def meters_per_second_to_mph(value: float) -> float:
    return value * MPS_TO_MPH


def pascals_to_inhg(value: float) -> float:
    return value * PA_TO_INHG


def meters_to_miles(value: float) -> float:
    return value * METERS_TO_MILES


def convert(value: Optional[float], converter) -> Optional[float]:
    """Apply ``converter`` unless the reading is missing."""
    if value is None:
        return None
    return converter(value)


def dig(container: Any, *path: Any) -> Any:
    """Walk nested dicts/lists, returning ``None`` as soon as a hop is missing."""
    data = container
    for key in path:
        if isinstance(key, int):
            if not isinstance(data, list) or key >= len(data) or key < -len(data):
                return None
            data = data[key]
            continue
        if not isinstance(data, dict) or key not in data:
            return None
        data = data[key]
    return data


def optional_float(container: Any, *path: Any) -> Optional[float]:
    value = dig(container, *path)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(numeric):
        return None
    return numeric


def optional_int(container: Any, *path: Any) -> Optional[int]:
    numeric = optional_float(container, *path)
    if numeric is None:
        return None
    return int(numeric)


def optional_str(container: Any, *path: Any) -> Optional[str]:
    value = dig(container, *path)
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc(parsed)


def epoch_ms_to_date(value: Any) -> Optional[date]:
    """Convert an epoch-milliseconds value to its UTC calendar date."""
    if value is None or isinstance(value, bool):
        return None
    try:
        millis = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None
    try:
        return (EPOCH + timedelta(milliseconds=millis)).date()
    except OverflowError:
        return None


def require_timestamp(value: Optional[datetime], what: str) -> datetime:
    if value is None:
        raise ParseError(f"Missing or malformed timestamp in {what}")
    return value


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """Serialize timestamps with millisecond precision and trailing Z."""
    if value is None:
        return None
    iso = ensure_utc(value).isoformat(timespec="milliseconds")
    if iso.endswith("+00:00"):
        return iso[:-6] + "Z"
    return iso


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
