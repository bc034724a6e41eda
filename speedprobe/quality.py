"""
Connection quality classification.

A completed test is labelled by its download speed, using the same
threshold-table approach as a letter grade.
"""
from __future__ import annotations

import enum
from typing import Tuple


class ConnectionQuality(enum.Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"

    @classmethod
    def from_download_speed(cls, download_mbps: float) -> ConnectionQuality:
        return classify(download_mbps)[0]

    @property
    def color(self) -> str:
        return _COLORS[self]


# (minimum Mbps, quality), checked top to bottom
_THRESHOLDS = [
    (50.0, ConnectionQuality.EXCELLENT),
    (25.0, ConnectionQuality.GOOD),
    (10.0, ConnectionQuality.FAIR),
]

_COLORS = {
    ConnectionQuality.EXCELLENT: "green",
    ConnectionQuality.GOOD: "green",
    ConnectionQuality.FAIR: "yellow",
    ConnectionQuality.POOR: "red",
}


def classify(download_mbps: float) -> Tuple[ConnectionQuality, str]:
    """Return (quality, color) for *download_mbps*."""
    for threshold, quality in _THRESHOLDS:
        if download_mbps >= threshold:
            return quality, quality.color
    return ConnectionQuality.POOR, ConnectionQuality.POOR.color
