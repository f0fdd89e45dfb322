"""Turn raw query-response envelopes into parsed series.

InfluxDB answers ``/query`` with one result per statement, each holding
column/value blocks. Prometheus and VictoriaMetrics answer with a typed
``data`` object (``matrix``, ``vector``, ``scalar`` or ``string``). Both are
classified once into an envelope variant and then converted into the single
:class:`ParsedSeries` shape; nothing downstream sees backend-specific JSON.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence
import logging

from .models import (
    Envelope,
    InfluxQLEnvelope,
    ParsedSeries,
    ParseResult,
    PrometheusEnvelope,
    UnknownEnvelope,
)

logger = logging.getLogger(__name__)

PROMETHEUS_COLUMNS = ("time", "value")


def classify_envelope(raw: Any) -> Envelope:
    if isinstance(raw, InfluxQLEnvelope | PrometheusEnvelope | UnknownEnvelope):
        return raw
    if not isinstance(raw, Mapping):
        return UnknownEnvelope(raw=raw)
    if "results" in raw or ("error" in raw and "status" not in raw):
        results = raw.get("results") or []
        return InfluxQLEnvelope(results=list(results), error=raw.get("error"))
    if "status" in raw:
        data = raw.get("data") or {}
        return PrometheusEnvelope(
            status=str(raw.get("status")),
            result_type=data.get("resultType") if isinstance(data, Mapping) else None,
            result=data.get("result") if isinstance(data, Mapping) else None,
            error=raw.get("error"),
        )
    return UnknownEnvelope(raw=raw)


def parse(envelope: Any) -> ParseResult:
    """Parse one response envelope into series plus per-statement errors."""
    variant = classify_envelope(envelope)
    if isinstance(variant, InfluxQLEnvelope):
        return _parse_influxql(variant)
    if isinstance(variant, PrometheusEnvelope):
        return _parse_prometheus(variant)
    logger.warning("Unrecognized query response of type %s", type(envelope).__name__)
    return ParseResult(series=[], statement_errors=["Unrecognized query response"])


def _parse_influxql(envelope: InfluxQLEnvelope) -> ParseResult:
    series: List[ParsedSeries] = []
    errors: List[str] = []
    if envelope.error:
        errors.append(str(envelope.error))
    for result in envelope.results:
        if not isinstance(result, Mapping):
            continue
        if result.get("error"):
            errors.append(str(result["error"]))
            continue
        for block in result.get("series") or []:
            series.append(_block_to_series(block))
    return ParseResult(series=series, statement_errors=errors)


def _block_to_series(block: Mapping[str, Any]) -> ParsedSeries:
    columns = list(block.get("columns") or [])
    rows = [_row(columns, values) for values in block.get("values") or []]
    return ParsedSeries(
        name=str(block.get("name", "")),
        tags=dict(block.get("tags") or {}),
        columns=columns,
        rows=rows,
    )


def _row(columns: Sequence[str], values: Sequence[Any]) -> Dict[str, Any]:
    values = list(values)
    return {col: values[i] if i < len(values) else None for i, col in enumerate(columns)}


def _parse_prometheus(envelope: PrometheusEnvelope) -> ParseResult:
    if envelope.status != "success":
        return ParseResult(series=[], statement_errors=[str(envelope.error or "Query failed")])

    result_type = envelope.result_type
    result = envelope.result
    series: List[ParsedSeries] = []
    if result_type == "matrix":
        for entry in result or []:
            rows = [_row(PROMETHEUS_COLUMNS, sample) for sample in entry.get("values") or []]
            series.append(_metric_series(entry.get("metric") or {}, rows))
    elif result_type == "vector":
        for entry in result or []:
            sample = entry.get("value")
            rows = [_row(PROMETHEUS_COLUMNS, sample)] if sample else []
            series.append(_metric_series(entry.get("metric") or {}, rows))
    elif result_type in ("scalar", "string"):
        rows = [_row(PROMETHEUS_COLUMNS, result)] if result else []
        series.append(
            ParsedSeries(name=result_type, tags={}, columns=list(PROMETHEUS_COLUMNS), rows=rows)
        )
    else:
        return ParseResult(series=[], statement_errors=[f"Unsupported result type: {result_type}"])
    return ParseResult(series=series, statement_errors=[])


def _metric_series(metric: Mapping[str, str], rows: List[Dict[str, Any]]) -> ParsedSeries:
    tags = {k: v for k, v in metric.items() if k != "__name__"}
    return ParsedSeries(
        name=str(metric.get("__name__", "")),
        tags=tags,
        columns=list(PROMETHEUS_COLUMNS),
        rows=rows,
    )
