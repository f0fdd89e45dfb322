"""Table and chart views over parsed series."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging

import pandas as pd

from .models import ChartDataset, ChartResult, NotChartable, ParsedSeries, TableView
from .timeutils import format_timestamp

logger = logging.getLogger(__name__)

TIME_COLUMN = "time"
SORT_DIRECTIONS = ("asc", "desc")


def tag_label(tags: Mapping[str, str]) -> str:
    if not tags:
        return ""
    return "{" + ",".join(f"{k}={v}" for k, v in sorted(tags.items())) + "}"


# -------------------- Table view --------------------

def to_table(
    series: Sequence[ParsedSeries],
    sort_column: Optional[str] = None,
    sort_dir: str = "asc",
    *,
    human_time: bool = False,
    epoch_unit: str = "",
) -> List[TableView]:
    """Build one table per series, optionally sorted by ``sort_column``.

    The sort is stable and puts nulls after every non-null value in both
    directions. Series lacking the sort column keep their source order.
    """
    if sort_dir not in SORT_DIRECTIONS:
        raise ValueError(f"sort_dir must be one of {SORT_DIRECTIONS}, got {sort_dir!r}")
    views = []
    for s in series:
        rows = [dict(row) for row in s.rows]
        if sort_column and sort_column in s.columns:
            rows = _sorted_rows(rows, sort_column, descending=sort_dir == "desc")
        if human_time and TIME_COLUMN in s.columns:
            for row in rows:
                if row.get(TIME_COLUMN) is not None:
                    row[TIME_COLUMN] = format_timestamp(row[TIME_COLUMN], epoch_unit)
        views.append(
            TableView(
                name=s.name,
                tags=dict(s.tags),
                label=s.name + tag_label(s.tags),
                columns=list(s.columns),
                rows=rows,
            )
        )
    return views


def _sorted_rows(rows: List[Dict[str, Any]], column: str, descending: bool) -> List[Dict[str, Any]]:
    present = [row for row in rows if row.get(column) is not None]
    missing = [row for row in rows if row.get(column) is None]
    present.sort(key=lambda row: _value_key(row[column]), reverse=descending)
    return present + missing


def _value_key(value: Any) -> Tuple[int, Any]:
    if isinstance(value, (int, float)):
        return (0, value)
    if isinstance(value, str):
        return (1, value)
    return (2, str(value))


# -------------------- Chart view --------------------

def to_chart_dataset(series: Sequence[ParsedSeries]) -> ChartResult:
    """Merge all series into one dataset keyed by timestamp.

    Every distinct timestamp yields exactly one point. A series without a
    value at a timestamp leaves its key unset on that point; gaps are never
    filled.
    """
    if not series:
        return ChartDataset(points=[], series_labels=[])
    missing_time = [s.name for s in series if s.time_column is None]
    if missing_time:
        return NotChartable(reason=f"Chart requires a '{TIME_COLUMN}' column in the results")
    if not any(s.rows for s in series):
        return ChartDataset(points=[], series_labels=[])

    multiple = len(series) > 1
    labels: List[str] = []
    points: Dict[Any, Dict[str, Any]] = {}
    for s in series:
        value_columns = [c for c in s.columns if c != TIME_COLUMN]
        keys = {col: _series_key(s, col, multiple) for col in value_columns}
        for key in keys.values():
            if key not in labels:
                labels.append(key)
        for row in s.rows:
            t = row.get(TIME_COLUMN)
            if t is None:
                continue
            point = points.setdefault(t, {TIME_COLUMN: t})
            for col, key in keys.items():
                value = _chart_value(row.get(col))
                if value is not None:
                    point[key] = value

    ordered = sorted(points.values(), key=lambda p: _time_key(p[TIME_COLUMN]))
    logger.debug("Merged %d series into %d chart points", len(series), len(ordered))
    return ChartDataset(points=ordered, series_labels=labels)


def _series_key(s: ParsedSeries, column: str, multiple: bool) -> str:
    if not multiple:
        return column
    return f"{s.name}{tag_label(s.tags)}.{column}"


def _chart_value(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:
        return None
    return number


def _time_key(value: Any) -> Tuple[int, Any]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value)
    if isinstance(value, str):
        try:
            ts = pd.Timestamp(value)
        except (ValueError, TypeError, OverflowError):
            return (2, value)
        if not pd.isna(ts):
            if ts.tzinfo is None:
                ts = ts.tz_localize("UTC")
            return (1, ts.value)
    return (2, str(value))


def chart_frame(dataset: ChartDataset, columns: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """Chart dataset as a DataFrame (time first). Unset keys become NaN."""
    cols = [TIME_COLUMN] + list(columns if columns is not None else dataset.series_labels)
    if not dataset.points:
        return pd.DataFrame(columns=cols)
    return pd.DataFrame.from_records(dataset.points, columns=cols)
