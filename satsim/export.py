"""CSV/JSON rendering for the export endpoints."""
import csv
import io
import json
import math
from typing import Any, Dict, Iterable, List

from .utils import compact_ts

TELEMETRY_HEADERS = ["Satellite ID", "Temperature(C)", "Power(%)", "Signal(dB)", "Pitch(deg)", "Collect Time"]

def _round_half_up(x: float) -> int:
    return int(math.floor(float(x) + 0.5))

def telemetry_csv(rows: Iterable[Dict[str, Any]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(TELEMETRY_HEADERS)
    for r in rows:
        writer.writerow([
            r["satelliteId"],
            f"{float(r['temperature']):.2f}",
            _round_half_up(r["powerLevel"]),
            f"{float(r['signalStrength']):.2f}",
            f"{float(r['pitchAngle']):.1f}",
            r["collectTime"],
        ])
    return buf.getvalue().rstrip("\n")

def telemetry_filename(satellite_id: str, start: str, end: str) -> str:
    return f"{satellite_id}_{compact_ts(start)}_{compact_ts(end)}.csv"

def records_csv(rows: List[Dict[str, Any]]) -> str:
    if not rows:
        return ""
    headers = list(rows[0].keys())
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=headers, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return buf.getvalue().rstrip("\n")

def records_json(rows: List[Dict[str, Any]]) -> str:
    return json.dumps(rows, ensure_ascii=False, indent=2)
