"""Data models for timeseries_toolkit."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

NodeId = Tuple[str, ...]


# -------------------- Catalog --------------------

class NodeKind(str, Enum):
    DATABASE = "database"
    RETENTION_POLICY = "retention-policy"
    MEASUREMENT = "measurement"
    FIELD_GROUP = "field-group-header"
    TAG_GROUP = "tag-group-header"
    FIELD = "field"
    TAG = "tag"

    @property
    def is_leaf(self) -> bool:
        return self in (NodeKind.FIELD, NodeKind.TAG)

    @property
    def is_group(self) -> bool:
        return self in (NodeKind.FIELD_GROUP, NodeKind.TAG_GROUP)


class LoadState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"


@dataclass(frozen=True)
class PathContext:
    """Scope of a catalog fetch. The empty context lists databases."""

    database: Optional[str] = None
    retention_policy: Optional[str] = None
    measurement: Optional[str] = None

    @property
    def level(self) -> NodeKind | None:
        """Kind of the node whose children this context fetches."""
        if self.measurement is not None:
            return NodeKind.MEASUREMENT
        if self.retention_policy is not None:
            return NodeKind.RETENTION_POLICY
        if self.database is not None:
            return NodeKind.DATABASE
        return None


@dataclass(frozen=True)
class CatalogEntry:
    """One child reported by a catalog collaborator."""

    kind: NodeKind
    name: str
    field_type: Optional[str] = None


@dataclass
class CatalogNode:
    """Node of the lazily loaded schema tree.

    ``children is None`` means the node has not been loaded yet, an empty list
    means it was loaded and has no children.
    """

    id: NodeId
    kind: NodeKind
    name: str
    context: PathContext
    field_type: Optional[str] = None
    children: Optional[List["CatalogNode"]] = None
    state: LoadState = LoadState.UNLOADED
    expanded: bool = False

    @property
    def loaded(self) -> bool:
        return self.children is not None


@dataclass(frozen=True)
class FlatNode:
    node: CatalogNode
    depth: int


# -------------------- Query results --------------------

@dataclass(frozen=True)
class ParsedSeries:
    """One named, optionally tagged block of columnar rows."""

    name: str
    tags: Dict[str, str]
    columns: List[str]
    rows: List[Dict[str, Any]]

    @property
    def time_column(self) -> Optional[str]:
        return "time" if "time" in self.columns else None


@dataclass(frozen=True)
class ParseResult:
    series: List[ParsedSeries] = field(default_factory=list)
    statement_errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class TableView:
    name: str
    tags: Dict[str, str]
    label: str
    columns: List[str]
    rows: List[Dict[str, Any]]


@dataclass(frozen=True)
class ChartDataset:
    points: List[Dict[str, Any]]
    series_labels: List[str]
    chartable: bool = True


@dataclass(frozen=True)
class NotChartable:
    reason: str
    chartable: bool = False


ChartResult = Union[ChartDataset, NotChartable]


# -------------------- Backend envelopes --------------------

@dataclass(frozen=True)
class InfluxQLEnvelope:
    """``/query`` response of InfluxDB 1.x."""

    results: List[Dict[str, Any]]
    error: Optional[str] = None


@dataclass(frozen=True)
class PrometheusEnvelope:
    """``/api/v1/query`` or ``/api/v1/query_range`` response."""

    status: str
    result_type: Optional[str]
    result: Any
    error: Optional[str] = None


@dataclass(frozen=True)
class UnknownEnvelope:
    raw: Any


Envelope = Union[InfluxQLEnvelope, PrometheusEnvelope, UnknownEnvelope]


# -------------------- Writes --------------------

@dataclass(frozen=True)
class LineProtocolDraft:
    """Point derived from one delimited-text row, before serialization."""

    measurement: str
    tag_pairs: List[Tuple[str, str]]
    field_pairs: List[Tuple[str, str]]
    timestamp: Optional[str] = None

    def to_line(self) -> str:
        line = self.measurement
        for key, value in self.tag_pairs:
            line += f",{key}={value}"
        line += " " + ",".join(f"{key}={value}" for key, value in self.field_pairs)
        if self.timestamp:
            line += f" {self.timestamp}"
        return line


@dataclass(frozen=True)
class WriteResult:
    """Result of a write operation."""

    success: bool
    message: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
