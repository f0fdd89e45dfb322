"""Prometheus and VictoriaMetrics backend (HTTP API via requests)."""

from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging
from urllib.parse import quote

import requests

from ..base import TimeSeriesBackend, chunk_lines, split_lines, validate_precision
from ..exceptions import (
    BackendAuthenticationError,
    BackendConnectionError,
    CatalogFetchError,
    QueryError,
    UnsupportedOperationError,
    WriteError,
)
from ..models import WriteResult

logger = logging.getLogger(__name__)

_HEALTH_PATHS = {"prometheus": "/-/healthy", "victoriametrics": "/health"}


def auto_step(range_seconds: int) -> str:
    """Default resolution for a range query over ``range_seconds``."""
    if range_seconds <= 3600:
        return "15s"
    if range_seconds <= 21600:
        return "60s"
    if range_seconds <= 86400:
        return "300s"
    return "600s"


class PrometheusBackend(TimeSeriesBackend):
    """Prometheus-compatible backend. ``flavor`` selects VictoriaMetrics extras."""

    kind = "prometheus"

    def __init__(
        self,
        url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        flavor: str = "prometheus",
        timeout: float = 30.0,
        allow_write: bool = False,
        client: Optional[object] = None,
    ) -> None:
        self.kind = flavor
        config = {"url": url, "username": username, "flavor": flavor, "timeout": timeout}
        super().__init__(config=config, allow_write=allow_write)
        self._client = client if client is not None else requests.Session()
        self._url = url.rstrip("/")
        self._auth = (username, password or "") if username else None
        self._timeout = timeout
        self.flavor = flavor

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
            response = self._client.get(
                self._url + _HEALTH_PATHS.get(self.flavor, "/-/healthy"),
                auth=self._auth,
                timeout=self._timeout,
            )
            return response.status_code == 200
        except requests.RequestException:
            return False

    # -------------------- Query --------------------

    def execute_query(
        self, query: str, database: Optional[str] = None, epoch: Optional[str] = None
    ) -> Dict[str, Any]:
        """Instant query. ``database`` and ``epoch`` have no meaning here."""
        return self._get("/api/v1/query", {"query": query})

    def query_range(self, query: str, start: str, end: str, step: Optional[str] = None) -> Dict[str, Any]:
        if step is None:
            step = auto_step(int(float(end) - float(start)))
        return self._get("/api/v1/query_range", {"query": query, "start": start, "end": end, "step": step})

    # -------------------- Labels --------------------

    def label_values(self, label: str, match: Optional[str] = None) -> List[str]:
        params = {"match[]": match} if match else None
        try:
            envelope = self._get(f"/api/v1/label/{quote(label, safe='')}/values", params)
        except QueryError as exc:
            raise CatalogFetchError(str(exc)) from exc
        if envelope.get("status") != "success":
            raise CatalogFetchError(envelope.get("error") or f"Listing values of '{label}' failed")
        return list(envelope.get("data") or [])

    def list_metrics(self) -> List[str]:
        return self.label_values("__name__")

    def fetch_tag_values(
        self, measurement: str, tag_key: str, database: Optional[str] = None
    ) -> List[str]:
        return self.label_values(tag_key, match=measurement)

    def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        logger.debug("GET %s %s", path, params)
        try:
            response = self._client.get(
                self._url + path,
                params=params,
                auth=self._auth,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise QueryError(str(exc)) from exc
        if response.status_code in (401, 403):
            raise BackendAuthenticationError(f"Request failed ({response.status_code}): {response.text}")
        try:
            body = response.json()
        except ValueError:
            body = None
        # Bad queries come back as 4xx with an error envelope, which is data for the parser.
        if isinstance(body, dict) and "status" in body:
            return body
        raise QueryError(f"Request failed ({response.status_code}): {response.text}")

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
        if self.flavor != "victoriametrics":
            raise UnsupportedOperationError("line protocol writes require VictoriaMetrics")
        validate_precision(precision)
        if batch_size is not None and batch_size <= 0:
            raise ValueError("batch_size must be greater than zero")
        lines = split_lines(data)
        if not lines:
            return WriteResult(success=True, message="nothing to write", details={"points": 0, "batches": 0})

        params = {"precision": precision}
        if database:
            params["db"] = database
        chunks = chunk_lines(lines, batch_size)
        for chunk in chunks:
            try:
                response = self._client.post(
                    self._url + "/write",
                    params=params,
                    data=("\n".join(chunk) + "\n").encode("utf-8"),
                    auth=self._auth,
                    timeout=self._timeout,
                )
            except requests.RequestException as exc:
                raise WriteError(str(exc)) from exc
            if response.status_code in (401, 403):
                raise BackendAuthenticationError(f"Write failed ({response.status_code}): {response.text}")
            if response.status_code not in (200, 204):
                raise WriteError(f"Write failed ({response.status_code}): {response.text}")
        return WriteResult(
            success=True,
            details={"points": len(lines), "batch_size": batch_size, "batches": len(chunks)},
        )
