"""Convert delimited text (CSV) into line protocol.

Line format::

    measurement[,tag=value...] field=value[,field=value...] [timestamp]

The first record is the header. Each column is classified per row as the
timestamp column, a tag column or a field column. Malformed rows are skipped
instead of raising, since the input is usually pasted by hand.
"""

from __future__ import annotations

from typing import AbstractSet, Iterator, List, Optional, Sequence
import csv
import io
import logging
import re

from .models import LineProtocolDraft
from .timeutils import EPOCH_UNITS, parse_datetime_ms, scale_ms

logger = logging.getLogger(__name__)

TIMESTAMP_COLUMN_PATTERN = re.compile(r"^(time|timestamp|date|datetime)$", re.IGNORECASE)

_INTEGER = re.compile(r"^[+-]?\d+$")
_DECIMAL = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_BOOLEANS = {"true", "false"}


# -------------------- Escaping --------------------

def escape_measurement(name: str) -> str:
    return name.replace(",", "\\,").replace(" ", "\\ ")


def escape_key(key: str) -> str:
    return key.replace(",", "\\,").replace("=", "\\=").replace(" ", "\\ ")


def escape_tag_value(value: str) -> str:
    return value.replace(" ", "\\ ").replace(",", "\\,").replace("=", "\\=")


def encode_field_value(value: str) -> str:
    """Literal for a field value: numbers and booleans bare, everything else quoted."""
    if _DECIMAL.match(value):
        return value
    if value.lower() in _BOOLEANS:
        return value.lower()
    return '"' + value.replace('"', '\\"') + '"'


# -------------------- Delimited text --------------------

def read_records(text: str, delimiter: str = ",") -> List[List[str]]:
    """Split delimited text into records, dropping blank ones."""
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, skipinitialspace=True)
    records = []
    try:
        for record in reader:
            if any(cell.strip() for cell in record):
                records.append(record)
    except csv.Error as exc:
        logger.warning("Stopped reading delimited text at line %d: %s", reader.line_num, exc)
    return records


def read_header(text: str, delimiter: str = ",") -> List[str]:
    records = read_records(text, delimiter)
    if not records:
        return []
    return [h.strip() for h in records[0]]


def detect_timestamp_column(headers: Sequence[str]) -> Optional[str]:
    for header in headers:
        if TIMESTAMP_COLUMN_PATTERN.match(header):
            return header
    return None


# -------------------- Conversion --------------------

def encode_timestamp(value: str, precision: str = "ns") -> Optional[str]:
    """Integer text for a timestamp cell, or None when it cannot be read."""
    if _INTEGER.match(value):
        return value
    if _DECIMAL.match(value):
        return None
    ms = parse_datetime_ms(value)
    if ms is None:
        return None
    return scale_ms(ms, precision)


def iter_drafts(
    text: str,
    measurement: str,
    tag_columns: AbstractSet[str],
    timestamp_column: Optional[str],
    *,
    delimiter: str = ",",
    precision: str = "ns",
) -> Iterator[LineProtocolDraft]:
    """Yield one draft per usable data row, in input order."""
    if precision not in EPOCH_UNITS:
        raise ValueError(f"Unsupported precision '{precision}'. Use one of: {', '.join(EPOCH_UNITS)}")
    records = read_records(text, delimiter)
    if len(records) < 2:
        return
    headers = [h.strip() for h in records[0]]
    name = escape_measurement(measurement)

    for line_no, record in enumerate(records[1:], start=2):
        if len(record) != len(headers):
            logger.debug("Skipping record %d: %d values for %d columns", line_no, len(record), len(headers))
            continue
        tags = []
        fields = []
        timestamp = None
        for header, raw in zip(headers, record):
            value = raw.strip()
            if not value:
                continue
            if header == timestamp_column:
                timestamp = encode_timestamp(value, precision)
            elif header in tag_columns:
                tags.append((escape_key(header), escape_tag_value(value)))
            else:
                fields.append((escape_key(header), encode_field_value(value)))
        if not fields:
            logger.debug("Skipping record %d: no field values", line_no)
            continue
        yield LineProtocolDraft(
            measurement=name,
            tag_pairs=tags,
            field_pairs=fields,
            timestamp=timestamp,
        )


def convert(
    text: str,
    measurement: str,
    tag_columns: AbstractSet[str],
    timestamp_column: Optional[str],
    *,
    delimiter: str = ",",
    precision: str = "ns",
) -> str:
    """Convert delimited text to newline-joined line protocol."""
    drafts = iter_drafts(
        text,
        measurement,
        tag_columns,
        timestamp_column,
        delimiter=delimiter,
        precision=precision,
    )
    return "\n".join(draft.to_line() for draft in drafts)


# -------------------- Inspection --------------------

def count_points(data: str) -> int:
    return len([line for line in data.split("\n") if line.strip() and not line.strip().startswith("#")])


def preview(data: str, limit: int = 20) -> str:
    lines = data.split("\n")
    shown = "\n".join(lines[:limit])
    if len(lines) > limit:
        shown += f"\n... ({len(lines) - limit} more lines)"
    return shown
