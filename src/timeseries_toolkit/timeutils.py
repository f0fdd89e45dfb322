"""Timestamp helpers shared by the result views and the line protocol codec."""

from __future__ import annotations

from typing import Any, Optional
import re

import pandas as pd

EPOCH_UNITS = ("ns", "us", "ms", "s")
EPOCH_OPTIONS = ("", "rfc3339") + EPOCH_UNITS

_RFC3339_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}T")
_DATE_PREFIX = re.compile(r"^\s*\d")

# Milliseconds per unit, used to scale a millisecond epoch to a write precision.
_MS_SCALE = {"ns": 1_000_000, "us": 1_000, "ms": 1}


def infer_epoch_unit(value: float) -> str:
    """Guess the unit of an un-annotated epoch number from its magnitude.

    Best effort only: values close to a threshold are ambiguous.
    """
    magnitude = abs(value)
    if magnitude > 1e15:
        return "ns"
    if magnitude > 1e12:
        return "us"
    if magnitude > 1e10:
        return "ms"
    return "s"


def epoch_to_timestamp(value: Any, unit: str = "") -> Optional[pd.Timestamp]:
    """Convert an epoch number (or RFC3339 string) to a UTC timestamp."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and _RFC3339_PREFIX.match(value):
        try:
            return _as_utc(pd.Timestamp(value))
        except (ValueError, TypeError):
            return None
    if isinstance(value, int):
        number = value
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if number != number:
            return None
    if unit not in EPOCH_UNITS:
        unit = infer_epoch_unit(number)
    try:
        return pd.to_datetime(number, unit=unit, utc=True)
    except (ValueError, OverflowError, pd.errors.OutOfBoundsDatetime):
        return None


def format_timestamp(value: Any, unit: str = "") -> str:
    """Human-readable UTC rendering, or the value itself when it is not a time."""
    if value is None:
        return ""
    ts = epoch_to_timestamp(value, unit)
    if ts is None:
        return str(value)
    text = ts.strftime("%Y-%m-%d %H:%M:%S")
    if ts.microsecond:
        text += f".{ts.microsecond // 1000:03d}"
    return text


def parse_datetime_ms(text: str) -> Optional[int]:
    """Parse a calendar date/time into a millisecond epoch. Naive values are UTC.

    Words such as ``now`` or ``today`` are not dates and give None.
    """
    if not isinstance(text, str) or not _DATE_PREFIX.match(text):
        return None
    try:
        ts = pd.Timestamp(text)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return int(_as_utc(ts).value // 1_000_000)


def _as_utc(ts: pd.Timestamp) -> pd.Timestamp:
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


def scale_ms(ms: int, precision: str = "ns") -> str:
    """Express a millisecond epoch as integer text in the given write precision."""
    if precision == "s":
        return str(ms // 1000)
    if precision not in _MS_SCALE:
        raise ValueError(f"Unsupported precision '{precision}'. Use one of: {', '.join(EPOCH_UNITS)}")
    return str(ms * _MS_SCALE[precision])
