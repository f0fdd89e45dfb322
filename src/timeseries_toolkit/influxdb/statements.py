"""InfluxQL catalog statements."""

from __future__ import annotations

from typing import Optional

from ..catalog import quote_identifier


def show_databases() -> str:
    return "SHOW DATABASES"


def show_retention_policies(database: str) -> str:
    return f"SHOW RETENTION POLICIES ON {quote_identifier(database)}"


def show_measurements() -> str:
    return "SHOW MEASUREMENTS"


def show_field_keys(measurement: str, retention_policy: Optional[str] = None) -> str:
    return f"SHOW FIELD KEYS FROM {_source(measurement, retention_policy)}"


def show_tag_keys(measurement: str, retention_policy: Optional[str] = None) -> str:
    return f"SHOW TAG KEYS FROM {_source(measurement, retention_policy)}"


def show_tag_values(measurement: str, tag_key: str) -> str:
    return f"SHOW TAG VALUES FROM {quote_identifier(measurement)} WITH KEY = {quote_identifier(tag_key)}"


def _source(measurement: str, retention_policy: Optional[str]) -> str:
    if retention_policy:
        return f"{quote_identifier(retention_policy)}.{quote_identifier(measurement)}"
    return quote_identifier(measurement)
