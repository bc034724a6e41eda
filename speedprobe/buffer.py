"""
Live measurement buffer.

While a test runs, the measurement engine pushes throughput and ping samples
here at sub-second cadence and the presentation layer reads them back for
charting.  Each phase keeps only its most recent samples (``deque`` with a
``maxlen``), so memory stays bounded however long the test runs.

Samples are accepted only between ``start_session()`` and
``stop_session()``; anything arriving outside that window is a late callback
from a finished test and is dropped.
"""
from __future__ import annotations

import enum
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, List, Optional, Union

from .constants import (
    DOWNLOAD_CAPACITY,
    DOWNLOAD_DEFAULT_MAX,
    PING_CAPACITY,
    PING_DEFAULT_MAX,
    UPLOAD_CAPACITY,
    UPLOAD_DEFAULT_MAX,
)
from .stats import calculate_jitter


class Phase(enum.Enum):
    DOWNLOAD = "download"
    UPLOAD = "upload"
    PING = "ping"


@dataclass(frozen=True)
class SpeedSample:
    """One timestamped reading (Mbps, or ms for ping)."""

    timestamp: datetime
    value: float
    phase: Phase


CAPACITY: Dict[Phase, int] = {
    Phase.DOWNLOAD: DOWNLOAD_CAPACITY,
    Phase.UPLOAD: UPLOAD_CAPACITY,
    Phase.PING: PING_CAPACITY,
}

DEFAULT_MAX: Dict[Phase, float] = {
    Phase.DOWNLOAD: DOWNLOAD_DEFAULT_MAX,
    Phase.UPLOAD: UPLOAD_DEFAULT_MAX,
    Phase.PING: PING_DEFAULT_MAX,
}

PhaseLike = Union[Phase, str]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MeasurementBuffer:
    """Per-phase bounded sample store for one active test session."""

    def __init__(
        self,
        on_sample: Optional[Callable[[SpeedSample], None]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.on_sample = on_sample
        self._clock = clock
        self._lock = threading.Lock()
        self._samples: Dict[Phase, Deque[SpeedSample]] = {
            phase: deque(maxlen=CAPACITY[phase]) for phase in Phase
        }
        self._active = False
        self._started_at: Optional[datetime] = None
        self._stopped_at: Optional[datetime] = None

    # -- Session ------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def started_at(self) -> Optional[datetime]:
        return self._started_at

    @property
    def elapsed(self) -> float:
        """Seconds since the session started (frozen once stopped)."""
        if self._started_at is None:
            return 0.0
        end = self._stopped_at if self._stopped_at is not None else self._clock()
        return (end - self._started_at).total_seconds()

    def start_session(self) -> None:
        with self._lock:
            for samples in self._samples.values():
                samples.clear()
            self._started_at = self._clock()
            self._stopped_at = None
            self._active = True

    def stop_session(self) -> None:
        with self._lock:
            if self._active:
                self._stopped_at = self._clock()
            self._active = False

    # -- Writes -------------------------------------------------------------

    def add_sample(self, value: float, phase: PhaseLike) -> Optional[SpeedSample]:
        """Record *value* for *phase*.  Returns the sample, or None if inactive."""
        phase = Phase(phase)
        with self._lock:
            if not self._active:
                return None
            sample = SpeedSample(timestamp=self._clock(), value=float(value), phase=phase)
            self._samples[phase].append(sample)

        if self.on_sample:
            self.on_sample(sample)
        return sample

    # -- Reads --------------------------------------------------------------

    def snapshot(self, phase: PhaseLike) -> List[SpeedSample]:
        """Samples for *phase*, oldest first."""
        with self._lock:
            return list(self._samples[Phase(phase)])

    def values(self, phase: PhaseLike) -> List[float]:
        return [s.value for s in self.snapshot(phase)]

    def max_value(self, phase: PhaseLike) -> float:
        """Largest stored value, or the phase's chart-scale default when empty."""
        phase = Phase(phase)
        vals = self.values(phase)
        return max(vals) if vals else DEFAULT_MAX[phase]

    def jitter(self, phase: PhaseLike = Phase.PING) -> float:
        return calculate_jitter(self.values(phase))

    def count(self, phase: PhaseLike) -> int:
        with self._lock:
            return len(self._samples[Phase(phase)])
