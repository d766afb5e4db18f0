"""
Output formatting -- JSON export, plain text, CSV, and permalinks.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional
from urllib.parse import quote, urlencode

from conntest.api import Server
from conntest.results import Result, rank_results
from conntest.thresholds import Thresholds


def create_result_json(
    results: Iterable[Result],
    thresholds: Thresholds,
    permalink: Optional[str] = None,
    recommendation: Optional[Server] = None,
) -> Dict[str, Any]:
    """Build a JSON-serialisable dict describing a completed test."""
    ranked = rank_results(results)

    result: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "results": [r.to_dict() for r in ranked],
        "reachable": sum(1 for r in ranked if r.reachable),
        "total": len(ranked),
        "thresholds": thresholds.to_map(),
    }

    if permalink:
        result["permalink"] = permalink
    if recommendation is not None:
        result["recommendation"] = recommendation.to_dict()

    return result


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except OSError as exc:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise IOError(f"Failed to save JSON to {filepath}: {exc}") from exc


def build_permalink(base: str, packed: str, concurrency: Optional[int] = None) -> str:
    """Append the packed results (and optional concurrency) as query parameters."""
    params = {"r": packed}
    if concurrency:
        params["n"] = str(concurrency)
    sep = "&" if "?" in base else "?"
    return base + sep + urlencode(params, quote_via=quote)


# ---------------------------------------------------------------------------
# Plain-text / CSV helpers
# ---------------------------------------------------------------------------

def format_text_result(results: Iterable[Result]) -> str:
    sep = "=" * 50
    lines = [sep, "Connection Test Results", sep]
    for r in rank_results(results):
        stats = r.round_trip_statistics
        if stats:
            lines.append(
                f"{r.name}: {stats.median:.1f} ms "
                f"(±{stats.median_absolute_deviation:.1f} ms, {stats.count} samples)"
            )
        else:
            lines.append(f"{r.name}: unreachable")
    lines.append(sep)
    return "\n".join(lines)


def _csv_escape(value: str) -> str:
    """Quote a CSV field if it contains commas, quotes, or newlines."""
    if any(c in value for c in (",", '"', "\n", "\r")):
        return '"' + value.replace('"', '""') + '"'
    return value


def format_csv_header() -> str:
    return "timestamp,name,url,country,median_ms,mad_ms,samples,niceness"


def format_csv_row(result: Result) -> str:
    ts = datetime.now(timezone.utc).isoformat()
    stats = result.round_trip_statistics
    median = f"{stats.median:.1f}" if stats else ""
    mad = f"{stats.median_absolute_deviation:.2f}" if stats else ""
    count = str(stats.count) if stats else "0"
    niceness = "" if result.niceness is None else str(result.niceness)
    return ",".join([
        ts,
        _csv_escape(result.name),
        _csv_escape(result.server.url),
        _csv_escape(result.server.country or ""),
        median,
        mad,
        count,
        niceness,
    ])
