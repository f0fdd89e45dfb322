import json

from timeseries_toolkit.export import export_csv, export_json
from timeseries_toolkit.models import ParsedSeries


def _cpu(host, rows):
    return ParsedSeries(name="cpu", tags={"host": host}, columns=["time", "usage"], rows=rows)


def test_export_csv_single_series_has_no_header_line() -> None:
    out = export_csv([_cpu("a", [{"time": 1, "usage": 0.5}, {"time": 2, "usage": None}])])
    assert out == "time,usage\n1,0.5\n2,\n\n"


def test_export_csv_multiple_series_are_labelled() -> None:
    out = export_csv([_cpu("a", [{"time": 1, "usage": 1}]), _cpu("b", [{"time": 1, "usage": 2}])])
    assert out.split("\n") == [
        '# cpu {"host":"a"}',
        "time,usage",
        "1,1",
        "",
        '# cpu {"host":"b"}',
        "time,usage",
        "1,2",
        "",
        "",
    ]


def test_export_json() -> None:
    data = json.loads(export_json([_cpu("a", [{"time": 1, "usage": 0.5}])]))
    assert data == [
        {"name": "cpu", "tags": {"host": "a"}, "columns": ["time", "usage"], "values": [{"time": 1, "usage": 0.5}]}
    ]
