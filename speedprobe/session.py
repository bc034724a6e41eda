"""Test-run orchestration: brackets the live buffer and records the result."""
from __future__ import annotations

import logging
from typing import Optional

from .buffer import MeasurementBuffer, PhaseLike, SpeedSample
from .history import HistoryStore, SpeedTestResult
from .notify import LowSpeedAlerter

logger = logging.getLogger(__name__)


class MeasurementSession:
    """
    Glue between the measurement engine, the live buffer and the history.

    ``start()`` opens the buffer, ``record()`` forwards engine samples,
    ``finish()`` freezes the buffer, stores the completed result and runs the
    low-speed check.  ``cancel()`` freezes the buffer and stores nothing.
    """

    def __init__(
        self,
        buffer: MeasurementBuffer,
        history: HistoryStore,
        alerter: Optional[LowSpeedAlerter] = None,
    ) -> None:
        self.buffer = buffer
        self.history = history
        self.alerter = alerter
        self.result: Optional[SpeedTestResult] = None

    @property
    def running(self) -> bool:
        return self.buffer.is_active

    def start(self) -> None:
        self.result = None
        self.buffer.start_session()
        logger.debug("Measurement session started")

    def record(self, value: float, phase: PhaseLike) -> Optional[SpeedSample]:
        return self.buffer.add_sample(value, phase)

    def finish(
        self,
        download_speed: float,
        upload_speed: float,
        ping: float,
        jitter: Optional[float] = None,
        connection_type: str = "Unknown",
        server_location: str = "Unknown",
    ) -> SpeedTestResult:
        """Close the session and store the result.

        Without an explicit *jitter*, the jitter of the buffered ping
        samples is used.
        """
        self.buffer.stop_session()
        if jitter is None:
            jitter = self.buffer.jitter()

        self.result = SpeedTestResult.create(
            download_speed=download_speed,
            upload_speed=upload_speed,
            ping=ping,
            jitter=jitter,
            connection_type=connection_type,
            server_location=server_location,
        )
        self.history.add(self.result)
        logger.info(
            "Test finished: %.2f/%.2f Mbps, %.1f ms (%s)",
            download_speed, upload_speed, ping, self.result.connection_quality.value,
        )

        if self.alerter is not None:
            self.alerter.check(self.result)
        return self.result

    def cancel(self) -> None:
        self.buffer.stop_session()
        logger.info("Measurement session cancelled after %.1fs", self.buffer.elapsed)
