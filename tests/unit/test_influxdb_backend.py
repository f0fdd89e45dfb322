import pytest

from timeseries_toolkit.exceptions import (
    BackendAuthenticationError,
    BackendConnectionError,
    CatalogFetchError,
    UnsafeOperationError,
    WriteError,
)
from timeseries_toolkit.influxdb import statements
from timeseries_toolkit.influxdb.client import InfluxDBBackend, raw_envelope
from timeseries_toolkit.models import CatalogEntry, NodeKind, PathContext


class FakeResultSet:
    def __init__(self, raw, points=None):
        self.raw = raw
        self._points = points or []

    def get_points(self):
        return iter(self._points)


class FakeInfluxClient:
    def __init__(self, responses=None):
        self.queries = []
        self.writes = []
        self.responses = responses or {}
        self.write_exc = None
        self.ping_ok = True
        self.closed = False

    def query(self, query, database=None, epoch=None, raise_errors=True):
        self.queries.append({"query": query, "database": database, "epoch": epoch, "raise_errors": raise_errors})
        response = self.responses.get(query)
        if isinstance(response, Exception):
            raise response
        if response is None:
            return FakeResultSet({"statement_id": 0})
        return response

    def write_points(self, points, **kwargs):
        if self.write_exc is not None:
            raise self.write_exc
        self.writes.append((points, kwargs))
        return True

    def ping(self):
        if not self.ping_ok:
            raise ConnectionError("refused")
        return "1.8.10"

    def close(self):
        self.closed = True


class AuthError(Exception):
    code = 401


def _backend(client=None, allow_write=False):
    return InfluxDBBackend(
        host="localhost",
        port=8086,
        username="u",
        password="p",
        database="db",
        allow_write=allow_write,
        client=client or FakeInfluxClient(),
    )


def test_statements_quote_identifiers() -> None:
    assert statements.show_retention_policies('my"db') == 'SHOW RETENTION POLICIES ON "my\\"db"'
    assert statements.show_field_keys("cpu", "autogen") == 'SHOW FIELD KEYS FROM "autogen"."cpu"'
    assert statements.show_tag_keys("cpu") == 'SHOW TAG KEYS FROM "cpu"'
    assert statements.show_tag_keys("a\\b") == 'SHOW TAG KEYS FROM "a\\\\b"'
    assert statements.show_tag_values("cpu", "host") == 'SHOW TAG VALUES FROM "cpu" WITH KEY = "host"'


def test_execute_query_returns_raw_envelope() -> None:
    raw = {"statement_id": 0, "series": [{"name": "cpu", "columns": ["time", "v"], "values": [[1, 2]]}]}
    client = FakeInfluxClient({"SELECT * FROM cpu": FakeResultSet(raw)})
    backend = _backend(client)
    envelope = backend.execute_query("SELECT * FROM cpu", database="other", epoch="ms")
    assert envelope == {"results": [raw]}
    assert client.queries[0] == {
        "query": "SELECT * FROM cpu",
        "database": "other",
        "epoch": "ms",
        "raise_errors": False,
    }


def test_execute_query_maps_epoch_names() -> None:
    client = FakeInfluxClient()
    backend = _backend(client)
    backend.execute_query("SELECT 1", epoch="us")
    backend.execute_query("SELECT 1", epoch="rfc3339")
    assert [q["epoch"] for q in client.queries] == ["u", None]
    assert client.queries[0]["database"] == "db"
    with pytest.raises(ValueError, match="epoch"):
        backend.execute_query("SELECT 1", epoch="h")


def test_execute_query_translates_auth_errors() -> None:
    backend = _backend(FakeInfluxClient({"SELECT 1": AuthError("unauthorized")}))
    with pytest.raises(BackendAuthenticationError):
        backend.execute_query("SELECT 1")


def test_raw_envelope_shapes() -> None:
    assert raw_envelope(None) == {"results": []}
    assert raw_envelope({"results": []}) == {"results": []}
    sets = [FakeResultSet({"statement_id": 0}), FakeResultSet({"statement_id": 1})]
    assert raw_envelope(sets) == {"results": [{"statement_id": 0}, {"statement_id": 1}]}


def test_catalog_levels() -> None:
    responses = {
        "SHOW DATABASES": FakeResultSet({}, [{"name": "telegraf"}]),
        'SHOW RETENTION POLICIES ON "telegraf"': FakeResultSet({}, [{"name": "autogen", "default": True}]),
        "SHOW MEASUREMENTS": FakeResultSet({}, [{"name": "cpu"}]),
        'SHOW FIELD KEYS FROM "autogen"."cpu"': FakeResultSet({}, [{"fieldKey": "usage", "fieldType": "float"}]),
        'SHOW TAG KEYS FROM "autogen"."cpu"': FakeResultSet({}, [{"tagKey": "host"}]),
    }
    client = FakeInfluxClient(responses)
    backend = _backend(client)
    assert backend.fetch_catalog_children(PathContext()) == [CatalogEntry(NodeKind.DATABASE, "telegraf")]
    assert backend.fetch_catalog_children(PathContext(database="telegraf")) == [
        CatalogEntry(NodeKind.RETENTION_POLICY, "autogen")
    ]
    assert backend.fetch_catalog_children(PathContext("telegraf", "autogen")) == [
        CatalogEntry(NodeKind.MEASUREMENT, "cpu")
    ]
    assert backend.fetch_catalog_children(PathContext("telegraf", "autogen", "cpu")) == [
        CatalogEntry(NodeKind.FIELD, "usage", "float"),
        CatalogEntry(NodeKind.TAG, "host"),
    ]
    assert client.queries[2]["database"] == "telegraf"


def test_fetch_tag_values() -> None:
    responses = {
        'SHOW TAG VALUES FROM "cpu" WITH KEY = "host"': FakeResultSet({}, [{"key": "host", "value": "a"}])
    }
    backend = _backend(FakeInfluxClient(responses))
    assert backend.fetch_tag_values("cpu", "host", "telegraf") == ["a"]


def test_catalog_errors_become_catalog_fetch_error() -> None:
    backend = _backend(FakeInfluxClient({"SHOW DATABASES": RuntimeError("down")}))
    with pytest.raises(CatalogFetchError, match="down"):
        backend.fetch_catalog_children(PathContext())


def test_write_points_is_blocked_by_default() -> None:
    with pytest.raises(UnsafeOperationError, match="TSUI_ALLOW_WRITE"):
        _backend().write_points("db", "m v=1")


def test_write_points_batches_lines() -> None:
    client = FakeInfluxClient()
    backend = _backend(client, allow_write=True)
    result = backend.write_points("db", "m v=1\n# skip\nm v=2\n\nm v=3", precision="ms", batch_size=2)
    assert result.success is True
    assert result.details == {"points": 3, "batch_size": 2, "batches": 2}
    assert [points for points, _ in client.writes] == [["m v=1", "m v=2"], ["m v=3"]]
    _, kwargs = client.writes[0]
    assert kwargs == {"time_precision": "ms", "database": "db", "retention_policy": None, "protocol": "line"}


def test_write_points_validates_input() -> None:
    backend = _backend(allow_write=True)
    with pytest.raises(ValueError, match="precision"):
        backend.write_points("db", "m v=1", precision="h")
    with pytest.raises(ValueError, match="batch_size"):
        backend.write_points("db", "m v=1", batch_size=0)
    assert backend.write_points("db", "\n").details == {"points": 0, "batches": 0}


def test_write_errors_are_translated() -> None:
    client = FakeInfluxClient()
    client.write_exc = RuntimeError("partial write")
    with pytest.raises(WriteError, match="partial write"):
        _backend(client, allow_write=True).write_points("db", "m v=1")


def test_connect_and_close() -> None:
    client = FakeInfluxClient()
    with _backend(client) as backend:
        assert backend.connected is True
    assert client.closed is True
    client.ping_ok = False
    backend = _backend(client)
    with pytest.raises(BackendConnectionError):
        backend.connect()
    assert "read_only" in repr(backend)
