"""
Output formatting -- JSON export of a selection run and file writers.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def create_selection_json(
    results: List[Any],
    chosen: Optional[Any] = None,
    criteria: str = "fastest",
) -> Dict[str, Any]:
    """Build a JSON-serialisable document describing one selection run."""
    chosen_result = next((r for r in results if chosen is not None and r.endpoint is chosen), None)

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "criteria": criteria,
        "selected": chosen.to_dict() if chosen is not None else None,
        "reachable": bool(chosen_result and chosen_result.reachable),
        "latency_ms": round(chosen_result.latency_ms, 1) if chosen_result else None,
        "probes": [r.to_dict() for r in results],
    }


def _atomic_write(filepath: str, text: str) -> None:
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp, filepath)
    except (IOError, OSError) as exc:
        # Clean up partial temp file
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise IOError(f"Failed to write {filepath}: {exc}") from exc


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    _atomic_write(filepath, json.dumps(result, indent=2, ensure_ascii=False))


def save_text(text: str, filepath: str) -> None:
    """Write *text* (CSV, exported history) to *filepath* atomically."""
    _atomic_write(filepath, text)
