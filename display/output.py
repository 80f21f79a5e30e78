"""
Output formatting -- JSON export and plain text.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from meter.session import MeasurementSession, Snapshot
from meter.stats import format_latency, format_speed


def create_result_json(session: MeasurementSession) -> Dict[str, Any]:
    """Build the JSON document describing one finished session."""
    snapshot = session.snapshot()
    stats = session.latency_stats

    result: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "server": session.target.to_dict(),
        **snapshot.to_dict(),
        "latency": stats.to_dict() if stats else None,
        "download": session.download_result.to_dict() if session.download_result else None,
        "upload": session.upload_result.to_dict() if session.upload_result else None,
    }
    if session.error is not None:
        result["error"] = str(session.error) or type(session.error).__name__
    return result


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except (IOError, OSError) as exc:
        # Clean up partial temp file
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise IOError(f"Failed to save JSON to {filepath}: {exc}") from exc


# ---------------------------------------------------------------------------
# Plain-text helpers
# ---------------------------------------------------------------------------

def format_text_result(snapshot: Snapshot, url: Optional[str] = None) -> str:
    sep = "=" * 50
    mid = "-" * 50
    lines = [sep, "speedcheck results", sep]
    if url:
        lines.append(f"Server: {url}")
    lines += [
        f"State: {snapshot.state.value}",
        mid,
        f"Ping: {format_latency(snapshot.average_latency_ms)} "
        f"(jitter: {format_latency(snapshot.jitter_ms)})",
        f"Download: {format_speed(snapshot.download_mbps)}",
        f"Upload: {format_speed(snapshot.upload_mbps)}",
    ]
    if snapshot.status:
        lines.append(snapshot.status)
    lines.append(sep)
    return "\n".join(lines)
