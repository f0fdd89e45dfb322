"""timeseries_toolkit package."""

from .catalog import SchemaCache, measurement_token, quote_identifier, tag_value_token
from .client import BackendFactory
from .config import InfluxConfig, PrometheusConfig, load_env
from .exceptions import (
    BackendAuthenticationError,
    BackendConnectionError,
    CatalogFetchError,
    QueryError,
    TimeSeriesError,
    UnsafeOperationError,
    UnsupportedOperationError,
    WriteError,
)
from .line_protocol import convert
from .merger import to_chart_dataset, to_table
from .models import (
    CatalogEntry,
    CatalogNode,
    ChartDataset,
    LoadState,
    NodeKind,
    NotChartable,
    ParsedSeries,
    ParseResult,
    PathContext,
    TableView,
    WriteResult,
)
from .parser import parse
from .session import ExplorerSession

__all__ = [
    "SchemaCache",
    "measurement_token",
    "quote_identifier",
    "tag_value_token",
    "BackendFactory",
    "InfluxConfig",
    "PrometheusConfig",
    "load_env",
    "BackendAuthenticationError",
    "BackendConnectionError",
    "CatalogFetchError",
    "QueryError",
    "TimeSeriesError",
    "UnsafeOperationError",
    "UnsupportedOperationError",
    "WriteError",
    "convert",
    "to_chart_dataset",
    "to_table",
    "CatalogEntry",
    "CatalogNode",
    "ChartDataset",
    "LoadState",
    "NodeKind",
    "NotChartable",
    "ParsedSeries",
    "ParseResult",
    "PathContext",
    "TableView",
    "WriteResult",
    "parse",
    "ExplorerSession",
]
