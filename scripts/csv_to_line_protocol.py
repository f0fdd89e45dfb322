"""Convert a CSV file to line protocol, optionally writing it to InfluxDB.

Usage:
    py scripts/csv_to_line_protocol.py data.csv --measurement cpu --tag host
    py scripts/csv_to_line_protocol.py data.csv -m cpu --tag host --timestamp ts --precision ms
    py scripts/csv_to_line_protocol.py data.csv -m cpu --write --database telegraf
"""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
import logging
import sys


PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from timeseries_toolkit import BackendFactory, ExplorerSession, TimeSeriesError  # noqa: E402
from timeseries_toolkit.config import influx_from_env  # noqa: E402
from timeseries_toolkit.line_protocol import convert, count_points, detect_timestamp_column, read_header  # noqa: E402


def _resolve_timestamp_column(text: str, requested: str | None, delimiter: str) -> str | None:
    if requested:
        return requested
    return detect_timestamp_column(read_header(text, delimiter))


def _write(text: str, args: argparse.Namespace, timestamp_column: str | None) -> int:
    cfg = influx_from_env()
    config = {
        "host": cfg.host or "localhost",
        "port": cfg.port,
        "username": cfg.username,
        "password": cfg.password,
        "database": args.database or cfg.database,
        "ssl": cfg.ssl,
        "verify_ssl": cfg.verify_ssl,
        "allow_write": cfg.allow_write,
    }
    backend = BackendFactory.get_backend(kind="influxdb", config=config)
    session = ExplorerSession(backend)
    try:
        result = asyncio.run(
            session.import_csv(
                text,
                database=config["database"],
                measurement=args.measurement,
                tag_columns=set(args.tag),
                timestamp_column=timestamp_column,
                precision=args.precision,
                retention_policy=args.retention_policy,
                delimiter=args.delimiter,
            )
        )
    finally:
        backend.close()
    points = (result.details or {}).get("points", 0)
    print(f"success={result.success} points={points}" + (f" message={result.message}" if result.message else ""))
    return 0 if result.success else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Convert CSV to line protocol")
    parser.add_argument("path", help="CSV file, or - for stdin")
    parser.add_argument("-m", "--measurement", required=True, help="Measurement name")
    parser.add_argument("--tag", action="append", default=[], help="Tag column (can be repeated)")
    parser.add_argument("--timestamp", default=None, help="Timestamp column (detected from the header when omitted)")
    parser.add_argument("--delimiter", default=",", help="Field delimiter")
    parser.add_argument("--precision", default="ns", choices=["ns", "us", "ms", "s"], help="Timestamp precision")
    parser.add_argument("--write", action="store_true", help="Write to InfluxDB instead of printing")
    parser.add_argument("--database", default=None, help="Target database for --write")
    parser.add_argument("--retention-policy", default=None, help="Target retention policy for --write")
    parser.add_argument("--verbose", action="store_true", help="Log skipped rows")
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    text = sys.stdin.read() if args.path == "-" else Path(args.path).read_text(encoding="utf-8")
    timestamp_column = _resolve_timestamp_column(text, args.timestamp, args.delimiter)

    if args.write:
        try:
            return _write(text, args, timestamp_column)
        except TimeSeriesError as exc:
            print(f"Write failed: {exc}", file=sys.stderr)
            return 1

    output = convert(
        text,
        args.measurement,
        set(args.tag),
        timestamp_column,
        delimiter=args.delimiter,
        precision=args.precision,
    )
    if output:
        print(output)
    print(f"{count_points(output)} points", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
