import math

import pytest

from timeseries_toolkit.merger import chart_frame, tag_label, to_chart_dataset, to_table
from timeseries_toolkit.models import ChartDataset, NotChartable, ParsedSeries


def _series(name, rows, columns=("time", "value"), tags=None):
    return ParsedSeries(name=name, tags=tags or {}, columns=list(columns), rows=rows)


def test_tag_label_sorts_keys() -> None:
    assert tag_label({"region": "eu", "host": "a"}) == "{host=a,region=eu}"
    assert tag_label({}) == ""


def test_table_sort_puts_nulls_last_in_both_directions() -> None:
    s = _series("m", [{"time": i, "value": v} for i, v in enumerate([3, None, 1, None, 2])])
    asc = to_table([s], "value", "asc")[0]
    desc = to_table([s], "value", "desc")[0]
    assert [r["value"] for r in asc.rows] == [1, 2, 3, None, None]
    assert [r["value"] for r in desc.rows] == [3, 2, 1, None, None]


def test_table_sort_is_stable() -> None:
    rows = [{"time": 1, "v": 1, "k": "a"}, {"time": 2, "v": 1, "k": "b"}, {"time": 3, "v": 0, "k": "c"}]
    s = _series("m", rows, columns=("time", "v", "k"))
    view = to_table([s], "v", "asc")[0]
    assert [r["k"] for r in view.rows] == ["c", "a", "b"]


def test_table_without_sort_keeps_order_and_does_not_mutate_source() -> None:
    rows = [{"time": 2, "value": 1}, {"time": 1, "value": 2}]
    s = _series("m", rows, tags={"host": "a"})
    view = to_table([s])[0]
    assert view.label == "m{host=a}"
    assert view.rows == rows
    view.rows[0]["value"] = 99
    assert s.rows[0]["value"] == 1


def test_table_ignores_sort_column_missing_from_series() -> None:
    s = _series("m", [{"time": 2, "value": 1}, {"time": 1, "value": 2}])
    view = to_table([s], "other", "desc")[0]
    assert [r["time"] for r in view.rows] == [2, 1]


def test_table_rejects_unknown_direction() -> None:
    with pytest.raises(ValueError, match="sort_dir"):
        to_table([], "value", "sideways")


def test_table_human_time_formats_epochs() -> None:
    s = _series("m", [{"time": 1704067200000, "value": 1}])
    view = to_table([s], human_time=True, epoch_unit="ms")[0]
    assert view.rows[0]["time"] == "2024-01-01 00:00:00"


def test_chart_merges_series_by_timestamp_without_filling_gaps() -> None:
    a = _series("cpu", [{"time": 1, "value": 10}, {"time": 2, "value": 11}], tags={"host": "a"})
    b = _series("cpu", [{"time": 2, "value": 20}, {"time": 3, "value": 21}], tags={"host": "b"})
    result = to_chart_dataset([a, b])
    assert isinstance(result, ChartDataset)
    assert result.series_labels == ["cpu{host=a}.value", "cpu{host=b}.value"]
    assert result.points == [
        {"time": 1, "cpu{host=a}.value": 10},
        {"time": 2, "cpu{host=a}.value": 11, "cpu{host=b}.value": 20},
        {"time": 3, "cpu{host=b}.value": 21},
    ]


def test_chart_single_series_uses_bare_column_keys() -> None:
    s = _series("m", [{"time": 2, "a": 1, "b": None}, {"time": 1, "a": 3, "b": 4}], columns=("time", "a", "b"))
    result = to_chart_dataset([s])
    assert result.series_labels == ["a", "b"]
    assert result.points == [{"time": 1, "a": 3, "b": 4}, {"time": 2, "a": 1}]


def test_chart_orders_rfc3339_timestamps() -> None:
    s = _series("m", [{"time": "2024-01-01T00:00:10Z", "value": 1}, {"time": "2024-01-01T00:00:05Z", "value": 2}])
    result = to_chart_dataset([s])
    assert [p["time"] for p in result.points] == ["2024-01-01T00:00:05Z", "2024-01-01T00:00:10Z"]


def test_chart_converts_numeric_strings_and_skips_other_values() -> None:
    s = _series("m", [{"time": 1, "value": "1.5"}, {"time": 2, "value": "down"}, {"time": 3, "value": True}])
    result = to_chart_dataset([s])
    assert result.points == [{"time": 1, "value": 1.5}, {"time": 2}, {"time": 3}]


def test_chart_skips_nan_values() -> None:
    s = _series("m", [{"time": 1, "value": float("nan")}, {"time": 2, "value": "NaN"}])
    result = to_chart_dataset([s])
    assert result.points == [{"time": 1}, {"time": 2}]


def test_chart_requires_time_column() -> None:
    s = _series("m", [{"name": "cpu"}], columns=("name",))
    result = to_chart_dataset([s])
    assert isinstance(result, NotChartable)
    assert result.chartable is False
    assert "time" in result.reason


def test_chart_empty_inputs() -> None:
    assert to_chart_dataset([]) == ChartDataset(points=[], series_labels=[])
    assert to_chart_dataset([_series("m", [])]) == ChartDataset(points=[], series_labels=[])


def test_chart_frame_leaves_unset_keys_as_nan() -> None:
    a = _series("a", [{"time": 1, "value": 1}])
    b = _series("b", [{"time": 2, "value": 2}])
    frame = chart_frame(to_chart_dataset([a, b]))
    assert list(frame.columns) == ["time", "a.value", "b.value"]
    assert frame["a.value"].iloc[0] == 1
    assert math.isnan(frame["b.value"].iloc[0])


def test_chart_frame_of_empty_dataset_has_columns() -> None:
    frame = chart_frame(ChartDataset(points=[], series_labels=["x"]))
    assert list(frame.columns) == ["time", "x"]
    assert frame.empty


def test_chart_disjoint_timestamps_leave_keys_unset() -> None:
    a = _series("A", [{"time": 100, "value": 5}])
    b = _series("B", [{"time": 200, "value": 9}])
    result = to_chart_dataset([a, b])
    assert result.points == [{"time": 100, "A.value": 5}, {"time": 200, "B.value": 9}]
