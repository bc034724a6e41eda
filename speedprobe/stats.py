"""
Measurement statistics.

Pure functions and lightweight dataclasses -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

import statistics
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from .quality import ConnectionQuality


# ---------------------------------------------------------------------------
# History statistics
# ---------------------------------------------------------------------------

@dataclass
class Statistics:
    """Summary of a slice of completed test results."""

    total_tests: int = 0
    average_download: float = 0.0
    average_upload: float = 0.0
    average_ping: float = 0.0
    average_jitter: float = 0.0
    max_download: float = 0.0
    max_upload: float = 0.0
    min_ping: float = 0.0
    connection_type_breakdown: Dict[str, int] = field(default_factory=dict)
    quality_breakdown: Dict[ConnectionQuality, int] = field(default_factory=dict)
    date_range: Optional[Tuple[datetime, datetime]] = None

    @classmethod
    def from_results(cls, results: Sequence) -> Statistics:  # Sequence[SpeedTestResult]
        stats = cls()
        stats.calculate(results)
        return stats

    def calculate(self, results: Sequence) -> None:
        self.total_tests = len(results)
        if not results:
            return

        downloads = [r.download_speed for r in results]
        uploads = [r.upload_speed for r in results]
        pings = [r.ping for r in results]

        self.average_download = statistics.mean(downloads)
        self.average_upload = statistics.mean(uploads)
        self.average_ping = statistics.mean(pings)
        self.average_jitter = statistics.mean(r.jitter for r in results)

        self.max_download = max(downloads)
        self.max_upload = max(uploads)
        self.min_ping = min(pings)

        self.connection_type_breakdown = dict(Counter(r.connection_type for r in results))
        self.quality_breakdown = dict(Counter(r.connection_quality for r in results))

        stamps = [r.timestamp for r in results]
        self.date_range = (min(stamps), max(stamps))

    def summary(self) -> str:
        if self.total_tests == 0:
            return "No test results available"
        return "\n".join([
            f"Total Tests: {self.total_tests}",
            f"Average Download: {self.average_download:.1f} Mbps",
            f"Average Upload: {self.average_upload:.1f} Mbps",
            f"Average Ping: {self.average_ping:.1f} ms",
            f"Best Download: {self.max_download:.1f} Mbps",
            f"Best Upload: {self.max_upload:.1f} Mbps",
            f"Best Ping: {self.min_ping:.1f} ms",
        ])

    def to_dict(self) -> dict:
        return {
            "total_tests": self.total_tests,
            "average_download": round(self.average_download, 2),
            "average_upload": round(self.average_upload, 2),
            "average_ping": round(self.average_ping, 1),
            "average_jitter": round(self.average_jitter, 1),
            "max_download": round(self.max_download, 2),
            "max_upload": round(self.max_upload, 2),
            "min_ping": round(self.min_ping, 1),
            "connection_types": dict(self.connection_type_breakdown),
            "qualities": {q.value: n for q, n in self.quality_breakdown.items()},
            "date_range": (
                [self.date_range[0].isoformat(), self.date_range[1].isoformat()]
                if self.date_range else None
            ),
        }


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------

def calculate_jitter(samples: List[float]) -> float:
    """Mean absolute difference between consecutive samples."""
    if len(samples) < 2:
        return 0.0
    diffs = [abs(samples[i] - samples[i - 1]) for i in range(1, len(samples))]
    return statistics.mean(diffs)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"
