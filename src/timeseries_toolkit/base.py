"""Abstract base backend for timeseries_toolkit."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import logging

from .exceptions import UnsafeOperationError, UnsupportedOperationError
from .models import CatalogEntry, PathContext, WriteResult

WRITE_PRECISIONS = ("ns", "us", "ms", "s")


class TimeSeriesBackend(ABC):
    """Abstract base class for backend collaborators.

    Implementations return raw response envelopes; turning them into series
    is the job of :mod:`timeseries_toolkit.parser`.
    """

    kind = "abstract"

    def __init__(self, config: Dict[str, Any], allow_write: bool = False) -> None:
        self.config = config
        self.connected = False
        self._client = None
        self._allow_write = allow_write
        self.logger = logging.getLogger(f"{__name__}.{self.kind}")

    # -------------------- Connection management --------------------

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to the backend."""

    @abstractmethod
    def close(self) -> None:
        """Close underlying client connections."""

    @abstractmethod
    def ping(self) -> bool:
        """Check if the server is responsive."""

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    # -------------------- Query --------------------

    @abstractmethod
    def execute_query(
        self, query: str, database: Optional[str] = None, epoch: Optional[str] = None
    ) -> Dict[str, Any]:
        """Execute a query string and return the raw response envelope."""

    # -------------------- Catalog --------------------

    def fetch_catalog_children(self, context: PathContext) -> List[CatalogEntry]:
        raise UnsupportedOperationError(f"catalog browsing is not supported by {self.kind}")

    def fetch_tag_values(
        self, measurement: str, tag_key: str, database: Optional[str] = None
    ) -> List[str]:
        raise UnsupportedOperationError(f"tag values are not supported by {self.kind}")

    # -------------------- Write (protected) --------------------

    def write_points(
        self,
        database: Optional[str],
        data: str,
        precision: str = "ns",
        retention_policy: Optional[str] = None,
        batch_size: Optional[int] = None,
    ) -> WriteResult:
        self._ensure_writes_allowed("write_points")
        raise UnsupportedOperationError(f"write_points not implemented for {self.kind}")

    def _ensure_writes_allowed(self, op: str) -> None:
        if not self._allow_write:
            raise UnsafeOperationError(
                f"{op} blocked. Set TSUI_ALLOW_WRITE=true or allow_write=True in config."
            )

    def __repr__(self) -> str:
        status = "connected" if self.connected else "disconnected"
        writes = "writes_enabled" if self._allow_write else "read_only"
        return f"{type(self).__name__}({self.kind}, {status}, {writes})"


# -------------------- Helper functions --------------------

def validate_precision(precision: str) -> str:
    if precision not in WRITE_PRECISIONS:
        raise ValueError(f"Unsupported precision '{precision}'. Use one of: {', '.join(WRITE_PRECISIONS)}")
    return precision


def split_lines(data: str) -> List[str]:
    return [line for line in data.split("\n") if line.strip() and not line.strip().startswith("#")]


def chunk_lines(lines: List[str], batch_size: Optional[int]) -> List[List[str]]:
    if not batch_size:
        return [lines]
    return [lines[i : i + batch_size] for i in range(0, len(lines), batch_size)]
