"""CSV and JSON export of parsed series."""

from __future__ import annotations

from typing import List, Sequence
import json

import pandas as pd

from .models import ParsedSeries


def export_csv(series: Sequence[ParsedSeries]) -> str:
    """One CSV table per series, each preceded by a ``# name {tags}`` line when there are several."""
    parts: List[str] = []
    for s in series:
        if len(series) > 1:
            header = f"# {s.name}"
            if s.tags:
                header += " " + json.dumps(s.tags, separators=(",", ":"))
            parts.append(header + "\n")
        frame = pd.DataFrame(s.rows, columns=s.columns, dtype=object)
        parts.append(frame.to_csv(index=False, lineterminator="\n"))
        parts.append("\n")
    return "".join(parts)


def export_json(series: Sequence[ParsedSeries]) -> str:
    data = [
        {"name": s.name, "tags": s.tags, "columns": s.columns, "values": s.rows}
        for s in series
    ]
    return json.dumps(data, indent=2)
