from __future__ import annotations

import pytest

from timeseries_toolkit.config import (
    InfluxConfig,
    PrometheusConfig,
    _get_bool,
    influx_from_env,
    prometheus_from_env,
    resolve_influx_config,
    resolve_prometheus_config,
)

_INFLUX_KEYS = ("HOST", "PORT", "USER", "PASSWORD", "DATABASE", "SSL", "VERIFY_SSL")


def test_get_bool_variants() -> None:
    assert _get_bool("true") is True
    assert _get_bool("Yes") is True
    assert _get_bool("ON") is True
    assert _get_bool("0") is False
    assert _get_bool(None, default=True) is True


def test_influx_from_env_reads_fallback_keys(monkeypatch) -> None:
    for key in _INFLUX_KEYS:
        monkeypatch.delenv(f"TSUI_INFLUX_{key}", raising=False)
    monkeypatch.setenv("INFLUXDB_HOST", "fallback-host")
    monkeypatch.setenv("INFLUXDB_PORT", "9000")
    monkeypatch.setenv("INFLUXDB_USER", "fallback-user")
    monkeypatch.setenv("INFLUXDB_PWD", "fallback-pwd")
    monkeypatch.setenv("INFLUXDB_DB", "fallback-db")
    monkeypatch.setenv("TSUI_ALLOW_WRITE", "true")

    cfg = influx_from_env()

    assert cfg.host == "fallback-host"
    assert cfg.port == 9000
    assert cfg.username == "fallback-user"
    assert cfg.password == "fallback-pwd"
    assert cfg.database == "fallback-db"
    assert cfg.allow_write is True


def test_influx_from_env_prefers_primary_keys(monkeypatch) -> None:
    monkeypatch.setenv("INFLUXDB_HOST", "fallback-host")
    monkeypatch.setenv("TSUI_INFLUX_HOST", "primary-host")
    monkeypatch.setenv("TSUI_INFLUX_SSL", "yes")
    monkeypatch.delenv("TSUI_ALLOW_WRITE", raising=False)

    cfg = influx_from_env()

    assert cfg.host == "primary-host"
    assert cfg.ssl is True
    assert cfg.allow_write is False


def test_prometheus_from_env_reads_values(monkeypatch) -> None:
    monkeypatch.setenv("TSUI_PROM_URL", "http://vm:8428")
    monkeypatch.setenv("TSUI_PROM_USER", "u")
    monkeypatch.setenv("TSUI_PROM_PASSWORD", "p")
    monkeypatch.setenv("TSUI_PROM_FLAVOR", " VictoriaMetrics ")
    monkeypatch.setenv("TSUI_PROM_TIMEOUT", "5")
    monkeypatch.setenv("TSUI_ALLOW_WRITE", "false")

    cfg = prometheus_from_env()

    assert cfg == PrometheusConfig(
        url="http://vm:8428",
        username="u",
        password="p",
        flavor="victoriametrics",
        timeout=5.0,
        allow_write=False,
    )


def test_prometheus_config_rejects_unknown_flavor() -> None:
    with pytest.raises(ValueError, match="Unsupported flavor"):
        PrometheusConfig(url="http://x", flavor="thanos")


def test_resolve_influx_config_supports_alias_keys() -> None:
    cfg = resolve_influx_config(
        {
            "host": "h",
            "port": 8088,
            "user": "u",
            "pwd": "p",
            "database": "db",
            "ssl": True,
            "verify_ssl": False,
            "allow_write": True,
        }
    )

    assert cfg == InfluxConfig(
        host="h",
        port=8088,
        username="u",
        password="p",
        database="db",
        ssl=True,
        verify_ssl=False,
        allow_write=True,
    )


def test_resolve_configs_pass_dataclasses_through() -> None:
    influx = InfluxConfig(host="h")
    prom = PrometheusConfig(url="http://p")
    assert resolve_influx_config(influx) is influx
    assert resolve_prometheus_config(prom) is prom
    assert resolve_prometheus_config({"url": "http://p", "user": "u"}).username == "u"
