"""Factory and entry point for timeseries_toolkit backends."""

from __future__ import annotations

import dataclasses
from typing import Any, Mapping, Optional, Union

from .base import TimeSeriesBackend
from .config import (
    InfluxConfig,
    PrometheusConfig,
    resolve_influx_config,
    resolve_prometheus_config,
)
from .influxdb.client import InfluxDBBackend
from .prometheus.client import PrometheusBackend

BACKEND_KINDS = ("influxdb", "prometheus", "victoriametrics")


class BackendFactory:
    """Factory for selecting the correct backend implementation."""

    @staticmethod
    def _detect_kind(config: Mapping[str, Any]) -> str:
        """Infer the backend kind from config keys.

        prometheus indicators: url (flavor picks victoriametrics)
        influxdb indicators: host/database
        Credentials are shared by both and identify nothing.
        """
        prom_keys = ("url",)
        influx_keys = ("host", "database")

        has_prom = any(config.get(k) not in (None, "") for k in prom_keys)
        has_influx = any(config.get(k) not in (None, "") for k in influx_keys)

        if has_prom and has_influx:
            raise ValueError(
                "Ambiguous config: contains both InfluxDB and Prometheus keys. "
                "Pass a clean config for one backend, or set kind explicitly."
            )
        if has_prom:
            return config.get("flavor") or "prometheus"
        if has_influx:
            return "influxdb"
        raise ValueError(
            "Could not infer backend kind from config. "
            "Provide InfluxDB keys (host/database) or "
            "a Prometheus url, or pass kind explicitly."
        )

    @staticmethod
    def get_backend(
        kind: Optional[str] = None,
        config: Optional[Union[Mapping[str, Any], InfluxConfig, PrometheusConfig]] = None,
    ) -> TimeSeriesBackend:
        if config is None:
            raise ValueError("config is required")
        client_override = config.get("client") if isinstance(config, Mapping) else None

        if kind is None:
            if isinstance(config, PrometheusConfig):
                kind = config.flavor
            elif isinstance(config, InfluxConfig):
                kind = "influxdb"
            else:
                kind = BackendFactory._detect_kind(config)

        if kind == "influxdb":
            cfg = resolve_influx_config(config)
            return InfluxDBBackend(
                host=cfg.host,
                port=cfg.port,
                username=cfg.username,
                password=cfg.password,
                database=cfg.database,
                ssl=cfg.ssl,
                verify_ssl=cfg.verify_ssl,
                allow_write=cfg.allow_write,
                client=client_override,
            )
        if kind in ("prometheus", "victoriametrics"):
            if isinstance(config, PrometheusConfig):
                cfg = dataclasses.replace(config, flavor=kind)
            else:
                cfg = resolve_prometheus_config({**config, "flavor": kind})
            return PrometheusBackend(
                url=cfg.url,
                username=cfg.username,
                password=cfg.password,
                flavor=cfg.flavor,
                timeout=cfg.timeout,
                allow_write=cfg.allow_write,
                client=client_override,
            )

        raise ValueError(f"Unsupported backend kind: {kind}")
