"""Configuration loading for timeseries_toolkit."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional
import os

from dotenv import load_dotenv

PROMETHEUS_FLAVORS = ("prometheus", "victoriametrics")


def load_env() -> None:
    """Load environment variables from a .env file if present."""
    load_dotenv()


def _get_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _getenv(primary: str, fallback: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(primary, os.getenv(fallback, default))


@dataclass(frozen=True)
class InfluxConfig:
    host: str
    port: int = 8086
    username: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    ssl: bool = False
    verify_ssl: bool = False
    allow_write: bool = False


@dataclass(frozen=True)
class PrometheusConfig:
    url: str
    username: Optional[str] = None
    password: Optional[str] = None
    flavor: str = "prometheus"
    timeout: float = 30.0
    allow_write: bool = False

    def __post_init__(self) -> None:
        if self.flavor not in PROMETHEUS_FLAVORS:
            raise ValueError(
                f"Unsupported flavor '{self.flavor}'. Use one of: {', '.join(PROMETHEUS_FLAVORS)}"
            )


def influx_from_env() -> InfluxConfig:
    load_env()
    return InfluxConfig(
        host=_getenv("TSUI_INFLUX_HOST", "INFLUXDB_HOST", ""),
        port=int(_getenv("TSUI_INFLUX_PORT", "INFLUXDB_PORT", "8086")),
        username=_getenv("TSUI_INFLUX_USER", "INFLUXDB_USER"),
        password=_getenv("TSUI_INFLUX_PASSWORD", "INFLUXDB_PWD"),
        database=_getenv("TSUI_INFLUX_DATABASE", "INFLUXDB_DB"),
        ssl=_get_bool(os.getenv("TSUI_INFLUX_SSL"), False),
        verify_ssl=_get_bool(os.getenv("TSUI_INFLUX_VERIFY_SSL"), False),
        allow_write=_get_bool(os.getenv("TSUI_ALLOW_WRITE"), False),
    )


def prometheus_from_env() -> PrometheusConfig:
    load_env()
    return PrometheusConfig(
        url=_getenv("TSUI_PROM_URL", "PROMETHEUS_URL", ""),
        username=_getenv("TSUI_PROM_USER", "PROMETHEUS_USER"),
        password=_getenv("TSUI_PROM_PASSWORD", "PROMETHEUS_PASSWORD"),
        flavor=(os.getenv("TSUI_PROM_FLAVOR") or "prometheus").strip().lower(),
        timeout=float(os.getenv("TSUI_PROM_TIMEOUT", "30")),
        allow_write=_get_bool(os.getenv("TSUI_ALLOW_WRITE"), False),
    )


def _dict_get(d: Mapping[str, Any], key: str, fallback: Any = None) -> Any:
    if key in d:
        return d[key]
    return fallback


def resolve_influx_config(config: InfluxConfig | Mapping[str, Any]) -> InfluxConfig:
    if isinstance(config, InfluxConfig):
        return config
    return InfluxConfig(
        host=_dict_get(config, "host"),
        port=int(_dict_get(config, "port", 8086)),
        username=_dict_get(config, "username", _dict_get(config, "user")),
        password=_dict_get(config, "password", _dict_get(config, "pwd")),
        database=_dict_get(config, "database"),
        ssl=bool(_dict_get(config, "ssl", False)),
        verify_ssl=bool(_dict_get(config, "verify_ssl", False)),
        allow_write=bool(_dict_get(config, "allow_write", False)),
    )


def resolve_prometheus_config(config: PrometheusConfig | Mapping[str, Any]) -> PrometheusConfig:
    if isinstance(config, PrometheusConfig):
        return config
    return PrometheusConfig(
        url=_dict_get(config, "url"),
        username=_dict_get(config, "username", _dict_get(config, "user")),
        password=_dict_get(config, "password", _dict_get(config, "pwd")),
        flavor=_dict_get(config, "flavor", "prometheus"),
        timeout=float(_dict_get(config, "timeout", 30.0)),
        allow_write=bool(_dict_get(config, "allow_write", False)),
    )
