"""InfluxDB 1.x backend (InfluxQL queries, line protocol writes)."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional
import logging

from ..base import TimeSeriesBackend, chunk_lines, split_lines, validate_precision
from ..exceptions import (
    BackendAuthenticationError,
    BackendConnectionError,
    CatalogFetchError,
    QueryError,
    WriteError,
)
from ..models import CatalogEntry, NodeKind, PathContext, WriteResult
from ..timeutils import EPOCH_OPTIONS
from . import statements

logger = logging.getLogger(__name__)

# influxdb-python spells microseconds and nanoseconds differently.
_CLIENT_PRECISION = {"ns": "n", "us": "u", "ms": "ms", "s": "s"}
_CLIENT_EPOCH = {"ns": "ns", "us": "u", "ms": "ms", "s": "s"}


class InfluxDBBackend(TimeSeriesBackend):
    """InfluxDB 1.x backend using the influxdb client."""

    kind = "influxdb"

    def __init__(
        self,
        host: str,
        port: int,
        username: Optional[str],
        password: Optional[str],
        database: Optional[str] = None,
        ssl: bool = False,
        verify_ssl: bool = False,
        allow_write: bool = False,
        client: Optional[object] = None,
    ) -> None:
        config = {
            "host": host,
            "port": port,
            "username": username,
            "password": password,
            "database": database,
            "ssl": ssl,
            "verify_ssl": verify_ssl,
        }
        super().__init__(config=config, allow_write=allow_write)
        if client is None:
            from influxdb import InfluxDBClient

            self._client = InfluxDBClient(
                host=host,
                port=port,
                username=username,
                password=password,
                database=database,
                ssl=ssl,
                verify_ssl=verify_ssl,
            )
        else:
            self._client = client
        self._database = database

    def connect(self) -> None:
        try:
            ok = self.ping()
            if not ok:
                raise BackendConnectionError("Ping failed")
            self.connected = True
        except Exception as exc:
            self.connected = False
            raise BackendConnectionError(str(exc)) from exc

    def close(self) -> None:
        if hasattr(self._client, "close"):
            self._client.close()
        self.connected = False

    def ping(self) -> bool:
        try:
            if hasattr(self._client, "ping"):
                self._client.ping()
            return True
        except Exception:
            return False

    # -------------------- Query --------------------

    def execute_query(
        self, query: str, database: Optional[str] = None, epoch: Optional[str] = None
    ) -> Dict[str, Any]:
        if epoch not in EPOCH_OPTIONS and epoch is not None:
            raise ValueError(f"Unsupported epoch '{epoch}'. Use one of: {', '.join(EPOCH_OPTIONS)}")
        logger.debug("InfluxQL query on %s: %s", database or self._database, query)
        try:
            result = self._client.query(
                query,
                database=database or self._database,
                epoch=_CLIENT_EPOCH.get(epoch or ""),
                raise_errors=False,
            )
        except Exception as exc:
            raise _translate(exc, QueryError) from exc
        return raw_envelope(result)

    # -------------------- Catalog --------------------

    def fetch_catalog_children(self, context: PathContext) -> List[CatalogEntry]:
        level = context.level
        if level is None:
            return [
                CatalogEntry(NodeKind.DATABASE, p["name"])
                for p in self._points(statements.show_databases())
                if "name" in p
            ]
        if level is NodeKind.DATABASE:
            return [
                CatalogEntry(NodeKind.RETENTION_POLICY, p["name"])
                for p in self._points(statements.show_retention_policies(context.database))
                if "name" in p
            ]
        if level is NodeKind.RETENTION_POLICY:
            return [
                CatalogEntry(NodeKind.MEASUREMENT, p["name"])
                for p in self._points(statements.show_measurements(), context.database)
                if "name" in p
            ]
        fields = [
            CatalogEntry(NodeKind.FIELD, p["fieldKey"], p.get("fieldType"))
            for p in self._points(
                statements.show_field_keys(context.measurement, context.retention_policy),
                context.database,
            )
            if "fieldKey" in p
        ]
        tags = [
            CatalogEntry(NodeKind.TAG, p["tagKey"])
            for p in self._points(
                statements.show_tag_keys(context.measurement, context.retention_policy),
                context.database,
            )
            if "tagKey" in p
        ]
        return fields + tags

    def fetch_tag_values(
        self, measurement: str, tag_key: str, database: Optional[str] = None
    ) -> List[str]:
        points = self._points(statements.show_tag_values(measurement, tag_key), database)
        return [p["value"] for p in points if "value" in p]

    def _points(self, query: str, database: Optional[str] = None) -> List[Dict[str, Any]]:
        logger.debug("Catalog query on %s: %s", database or self._database, query)
        try:
            result = self._client.query(query, database=database or self._database)
            return list(result.get_points())
        except Exception as exc:
            raise _translate(exc, CatalogFetchError) from exc

    # -------------------- Write --------------------

    def write_points(
        self,
        database: Optional[str],
        data: str,
        precision: str = "ns",
        retention_policy: Optional[str] = None,
        batch_size: Optional[int] = None,
    ) -> WriteResult:
        self._ensure_writes_allowed("write_points")
        validate_precision(precision)
        if batch_size is not None and batch_size <= 0:
            raise ValueError("batch_size must be greater than zero")
        lines = split_lines(data)
        if not lines:
            return WriteResult(success=True, message="nothing to write", details={"points": 0, "batches": 0})

        chunks = chunk_lines(lines, batch_size)
        batches = 0
        overall_ok = True
        try:
            for chunk in chunks:
                batches += 1
                ok = self._client.write_points(
                    chunk,
                    time_precision=_CLIENT_PRECISION[precision],
                    database=database or self._database,
                    retention_policy=retention_policy,
                    protocol="line",
                )
                overall_ok = overall_ok and ok is not False
        except Exception as exc:
            raise _translate(exc, WriteError) from exc
        logger.debug("Wrote %d points in %d batches", len(lines), batches)
        return WriteResult(
            success=overall_ok,
            details={"points": len(lines), "batch_size": batch_size, "batches": batches},
        )


def raw_envelope(result: Any) -> Dict[str, Any]:
    """Rebuild the ``/query`` JSON envelope from influxdb ResultSet objects."""
    if isinstance(result, dict):
        return result
    if result is None:
        return {"results": []}
    result_sets: Iterable[Any] = result if isinstance(result, list) else [result]
    return {"results": [getattr(rs, "raw", rs) for rs in result_sets]}


def _translate(exc: Exception, default: type) -> Exception:
    code = getattr(exc, "code", None)
    if code in (401, 403):
        return BackendAuthenticationError(str(exc))
    return default(str(exc))
