"""Generate a read-only schema report from the catalog of an InfluxDB server.

Usage:
    py scripts/schema_report.py
    py scripts/schema_report.py --database telegraf --max-measurements 10
    py scripts/schema_report.py --output docs/schema_report.md
"""

from __future__ import annotations

import argparse
import asyncio
from datetime import UTC, datetime
from pathlib import Path
import logging
import os
import sys
from typing import Iterable
from urllib.parse import urlparse


PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from timeseries_toolkit import BackendFactory, NodeKind, SchemaCache  # noqa: E402
from timeseries_toolkit.config import influx_from_env  # noqa: E402
from timeseries_toolkit.exceptions import CatalogFetchError  # noqa: E402


def _as_csv(items: Iterable[str], limit: int = 10) -> str:
    values = [str(x) for x in items if x]
    if not values:
        return "-"
    if len(values) <= limit:
        return ", ".join(values)
    return ", ".join(values[:limit]) + ", ..."


async def _analyze_database(cache: SchemaCache, node_id: tuple, max_measurements: int) -> list[str]:
    db = cache.node(node_id)
    lines: list[str] = [f"## Database: `{db.name}`"]
    try:
        await cache.expand(node_id)
    except CatalogFetchError as exc:
        lines.append(f"- status: error listing retention policies: `{exc}`")
        lines.append("")
        return lines

    for rp in db.children or []:
        lines.append(f"### Retention policy: `{rp.name}`")
        try:
            await cache.expand(rp.id)
        except CatalogFetchError as exc:
            lines.append(f"- status: error listing measurements: `{exc}`")
            lines.append("")
            continue
        measurements = rp.children or []
        lines.append(f"- measurement count: `{len(measurements)}`")
        lines.append("")
        lines.append("| Measurement | Tag keys (sample) | Field keys (sample) |")
        lines.append("|---|---|---|")
        for measurement in measurements[:max_measurements]:
            try:
                await cache.expand(measurement.id)
            except CatalogFetchError as exc:
                lines.append(f"| `{measurement.name}` | error | `{exc}` |")
                continue
            leaves = {group.kind: group.children or [] for group in measurement.children or []}
            tag_text = _as_csv([t.name for t in leaves.get(NodeKind.TAG_GROUP, [])], limit=8)
            field_text = _as_csv(
                [f"{f.name} ({f.field_type})" if f.field_type else f.name for f in leaves.get(NodeKind.FIELD_GROUP, [])],
                limit=8,
            )
            lines.append(f"| `{measurement.name}` | {tag_text} | {field_text} |")
        lines.append("")
    return lines


async def _build_report(cache: SchemaCache, databases: list[str], max_measurements: int) -> str:
    now = datetime.now(UTC).isoformat()
    lines = [
        "# Schema Report",
        "",
        "## Run Info",
        f"- generated_at_utc: `{now}`",
        "- mode: read-only catalog queries",
        "- source: `scripts/schema_report.py`",
        "",
    ]
    try:
        roots = await cache.load_databases()
    except CatalogFetchError as exc:
        lines.append(f"- status: error listing databases: `{exc}`")
        return "\n".join(lines) + "\n"

    for db in roots:
        if databases and db.name not in databases:
            continue
        lines.extend(await _analyze_database(cache, db.id, max_measurements=max_measurements))
    return "\n".join(lines) + "\n"


def _append_no_proxy_hosts(config: dict[str, object]) -> None:
    hosts: list[str] = []
    host = config.get("host")
    if isinstance(host, str) and host:
        hosts.append(host)

    url = config.get("url")
    if isinstance(url, str) and url:
        parsed = urlparse(url)
        if parsed.hostname:
            hosts.append(parsed.hostname)

    if not hosts:
        return

    current = os.getenv("NO_PROXY") or os.getenv("no_proxy") or ""
    values = [part.strip() for part in current.split(",") if part.strip()]
    changed = False
    for item in hosts:
        if item not in values:
            values.append(item)
            changed = True
    if changed:
        merged = ",".join(values)
        os.environ["NO_PROXY"] = merged
        os.environ["no_proxy"] = merged


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a read-only InfluxDB schema report.")
    parser.add_argument("--database", action="append", default=[], help="Database name (can be repeated)")
    parser.add_argument("--max-measurements", type=int, default=5, help="How many measurements to describe per retention policy")
    parser.add_argument("--output", default="", help="Output markdown path (stdout when omitted)")
    parser.add_argument("--verbose", action="store_true", help="Log catalog queries")
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    cfg = influx_from_env()
    config = {
        "host": cfg.host or "localhost",
        "port": cfg.port,
        "username": cfg.username,
        "password": cfg.password,
        "database": cfg.database,
        "ssl": cfg.ssl,
        "verify_ssl": cfg.verify_ssl,
        "allow_write": False,
    }
    _append_no_proxy_hosts(config)
    backend = BackendFactory.get_backend(kind="influxdb", config=config)
    try:
        content = asyncio.run(
            _build_report(SchemaCache(backend), args.database, max_measurements=args.max_measurements)
        )
    finally:
        backend.close()

    if not args.output:
        print(content, end="")
        return 0
    output_path = (PROJECT_ROOT / args.output).resolve()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content, encoding="utf-8")
    print(f"wrote {output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
