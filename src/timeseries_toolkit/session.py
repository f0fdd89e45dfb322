"""Explorer session: one active backend plus the views built from it."""

from __future__ import annotations

from typing import AbstractSet, Any, List, Optional
import logging

from .base import TimeSeriesBackend, validate_precision
from .catalog import SchemaCache, call_collaborator
from .exceptions import QueryError, TimeSeriesError, WriteError
from .line_protocol import convert
from .merger import to_chart_dataset, to_table
from .models import ChartResult, ParseResult, TableView, WriteResult
from .parser import parse

logger = logging.getLogger(__name__)

MAX_HISTORY = 30


class ExplorerSession:
    """Holds the schema cache, the last successful result and the query history.

    A failed query never clears the previous result; the error is kept next
    to it in ``last_error``.
    """

    def __init__(self, backend: TimeSeriesBackend) -> None:
        self.backend = backend
        self.catalog = SchemaCache(backend)
        self.last_result: Optional[ParseResult] = None
        self.last_error: Optional[str] = None
        self.history: List[str] = []

    def switch_backend(self, backend: TimeSeriesBackend) -> None:
        self.backend = backend
        self.catalog.rebind(backend)
        self.last_result = None
        self.last_error = None

    # -------------------- Queries --------------------

    async def run_query(
        self, query: str, database: Optional[str] = None, epoch: Optional[str] = None
    ) -> ParseResult:
        text = query.strip()
        if not text:
            raise ValueError("query must not be empty")
        try:
            envelope = await call_collaborator(self.backend.execute_query, text, database, epoch)
        except Exception as exc:
            self.last_error = str(exc)
            logger.warning("Query failed: %s", exc)
            if isinstance(exc, TimeSeriesError):
                raise
            raise QueryError(str(exc)) from exc

        result = parse(envelope)
        if result.series or not result.statement_errors:
            self.last_result = result
        self.last_error = "; ".join(result.statement_errors) or None
        self._remember(text)
        return result

    def tables(self, sort_column: Optional[str] = None, sort_dir: str = "asc", **kwargs: Any) -> List[TableView]:
        if self.last_result is None:
            return []
        return to_table(self.last_result.series, sort_column, sort_dir, **kwargs)

    def chart(self) -> ChartResult:
        series = self.last_result.series if self.last_result else []
        return to_chart_dataset(series)

    def _remember(self, query: str) -> None:
        self.history = [query] + [h for h in self.history if h != query]
        del self.history[MAX_HISTORY:]

    # -------------------- Writes --------------------

    async def write(
        self,
        database: Optional[str],
        data: str,
        precision: str = "ns",
        retention_policy: Optional[str] = None,
    ) -> WriteResult:
        validate_precision(precision)
        try:
            return await call_collaborator(self.backend.write_points, database, data, precision, retention_policy)
        except TimeSeriesError:
            raise
        except Exception as exc:
            raise WriteError(str(exc)) from exc

    async def import_csv(
        self,
        text: str,
        database: Optional[str],
        measurement: str,
        tag_columns: AbstractSet[str],
        timestamp_column: Optional[str],
        precision: str = "ns",
        retention_policy: Optional[str] = None,
        delimiter: str = ",",
    ) -> WriteResult:
        data = convert(text, measurement, tag_columns, timestamp_column, delimiter=delimiter, precision=precision)
        if not data:
            return WriteResult(success=False, message="no rows to write", details={"points": 0})
        return await self.write(database, data, precision, retention_policy)
