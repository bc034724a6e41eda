"""
Completed-test history.

``HistoryStore`` keeps the most recent results in memory, newest first,
bounded to ``HISTORY_CAPACITY`` entries.  It is loaded once when constructed
and written back through its ``Storage`` after every mutation.  Storage
trouble is logged and never raised: a failed load starts empty, a failed
save leaves the in-memory list as the source of truth.

The serialised form is a JSON array of objects using the field names
``id``, ``timestamp``, ``downloadSpeed``, ``uploadSpeed``, ``ping``,
``jitter``, ``connectionType``, ``connectionQuality`` and ``serverLocation``,
with ISO-8601 timestamps.
"""
from __future__ import annotations

import json
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .constants import HISTORY_CAPACITY
from .quality import ConnectionQuality
from .stats import Statistics
from .storage import Storage

logger = logging.getLogger(__name__)

CSV_HEADER = (
    "Date,Time,Download Speed (Mbps),Upload Speed (Mbps),"
    "Ping (ms),Jitter (ms),Connection Type,Quality"
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(ts: datetime) -> datetime:
    """Naive datetimes are taken as UTC."""
    return ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts


def _parse_timestamp(raw: str) -> datetime:
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw)


# ---------------------------------------------------------------------------
# Result record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SpeedTestResult:
    """One completed speed test.  Naive timestamps are taken as UTC."""

    timestamp: datetime
    download_speed: float   # Mbps
    upload_speed: float     # Mbps
    ping: float             # ms
    jitter: float = 0.0     # ms
    connection_type: str = "Unknown"
    server_location: str = "Unknown"
    connection_quality: Optional[ConnectionQuality] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", _as_utc(self.timestamp))
        if self.connection_quality is None:
            object.__setattr__(
                self,
                "connection_quality",
                ConnectionQuality.from_download_speed(self.download_speed),
            )

    @classmethod
    def create(
        cls,
        download_speed: float,
        upload_speed: float,
        ping: float,
        jitter: float = 0.0,
        connection_type: str = "Unknown",
        server_location: str = "Unknown",
        timestamp: Optional[datetime] = None,
    ) -> SpeedTestResult:
        return cls(
            timestamp=timestamp or _utcnow(),
            download_speed=download_speed,
            upload_speed=upload_speed,
            ping=ping,
            jitter=jitter,
            connection_type=connection_type,
            server_location=server_location,
        )

    # -- Serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "downloadSpeed": self.download_speed,
            "uploadSpeed": self.upload_speed,
            "ping": self.ping,
            "jitter": self.jitter,
            "connectionType": self.connection_type,
            "connectionQuality": self.connection_quality.value,
            "serverLocation": self.server_location,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SpeedTestResult:
        """Strict decode; raises KeyError / ValueError / TypeError on bad input."""
        quality = data.get("connectionQuality")
        return cls(
            id=str(data.get("id") or uuid.uuid4()),
            timestamp=_parse_timestamp(data["timestamp"]),
            download_speed=float(data["downloadSpeed"]),
            upload_speed=float(data["uploadSpeed"]),
            ping=float(data["ping"]),
            jitter=float(data.get("jitter", 0.0)),
            connection_type=str(data.get("connectionType", "Unknown")),
            server_location=str(data.get("serverLocation", "Unknown")),
            connection_quality=ConnectionQuality(quality) if quality else None,
        )

    def csv_row(self) -> str:
        return ",".join([
            self.timestamp.strftime("%Y-%m-%d"),
            self.timestamp.strftime("%H:%M:%S"),
            f"{self.download_speed:.2f}",
            f"{self.upload_speed:.2f}",
            f"{self.ping:.1f}",
            f"{self.jitter:.1f}",
            self.connection_type,
            self.connection_quality.value,
        ])


def encode_results(results: Iterable[SpeedTestResult]) -> bytes:
    return json.dumps([r.to_dict() for r in results], ensure_ascii=False).encode("utf-8")


def decode_results(data: bytes) -> List[SpeedTestResult]:
    """Decode a serialised history.  Malformed entries are skipped."""
    raw = json.loads(data.decode("utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"expected a JSON array, got {type(raw).__name__}")

    results: List[SpeedTestResult] = []
    for i, entry in enumerate(raw):
        try:
            results.append(SpeedTestResult.from_dict(entry))
        except (KeyError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("Skipping malformed history entry %d: %s", i, exc)
    return results


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

QualityLike = Union[ConnectionQuality, str]


class HistoryStore:
    """Bounded, persisted, newest-first collection of test results."""

    def __init__(
        self,
        storage: Storage,
        capacity: int = HISTORY_CAPACITY,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.storage = storage
        self.capacity = capacity
        self._clock = clock
        self._lock = threading.RLock()
        self._results: List[SpeedTestResult] = []
        self._load()

    def __len__(self) -> int:
        return len(self._results)

    @property
    def results(self) -> List[SpeedTestResult]:
        """Copy of the stored results, newest first."""
        with self._lock:
            return list(self._results)

    # -- Persistence --------------------------------------------------------

    def _load(self) -> None:
        try:
            data = self.storage.load()
        except OSError as exc:
            logger.error("Failed to read test history: %s", exc)
            return

        if data is None:
            logger.info("No existing test history found")
            return

        try:
            results = decode_results(data)
        except ValueError as exc:  # includes JSON and UTF-8 decode errors
            logger.error("Failed to load test history: %s", exc)
            return

        self._results = results[: self.capacity]
        logger.info("Loaded %d test results from storage", len(self._results))

    def _save(self) -> bool:
        try:
            ok = self.storage.save(encode_results(self._results))
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Failed to save test history: %s", exc)
            return False

        if ok:
            logger.debug("Saved %d test results to storage", len(self._results))
        else:
            logger.error("Failed to save test history")
        return ok

    # -- Mutations ----------------------------------------------------------

    def add(self, result: SpeedTestResult) -> None:
        with self._lock:
            self._results.insert(0, result)
            del self._results[self.capacity:]
            self._save()
        logger.info("Added test result to history. Total count: %d", len(self._results))

    def delete(self, result_id: str) -> int:
        """Remove the result with *result_id*.  Returns how many were removed."""
        with self._lock:
            before = len(self._results)
            self._results = [r for r in self._results if r.id != result_id]
            self._save()
            removed = before - len(self._results)
        logger.info("Deleted %d test result(s). Remaining count: %d", removed, len(self._results))
        return removed

    def delete_older_than(self, days: int) -> int:
        cutoff = self._clock() - timedelta(days=days)
        with self._lock:
            before = len(self._results)
            self._results = [r for r in self._results if r.timestamp >= cutoff]
            self._save()
            removed = before - len(self._results)
        logger.info("Deleted %d results older than %d days", removed, days)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._results = []
            self._save()
        logger.info("Cleared all test results")

    def import_json(self, data: bytes) -> int:
        """Merge results from an exported blob.  Returns how many were added.

        Entries whose id is already stored are skipped; the merged list is
        re-sorted newest first and trimmed to capacity.
        """
        incoming = decode_results(data)
        with self._lock:
            known = {r.id for r in self._results}
            fresh = [r for r in incoming if r.id not in known]
            if not fresh:
                return 0
            merged = sorted(self._results + fresh, key=lambda r: r.timestamp, reverse=True)
            self._results = merged[: self.capacity]
            self._save()
        logger.info("Imported %d test results", len(fresh))
        return len(fresh)

    # -- Queries ------------------------------------------------------------

    def latest(self) -> Optional[SpeedTestResult]:
        with self._lock:
            return self._results[0] if self._results else None

    def all_results(self) -> List[SpeedTestResult]:
        """All results sorted by timestamp, newest first."""
        return sorted(self.results, key=lambda r: r.timestamp, reverse=True)

    def query_range(self, start: datetime, end: datetime) -> List[SpeedTestResult]:
        """Results with *start* <= timestamp <= *end*.  Naive bounds are UTC."""
        start, end = _as_utc(start), _as_utc(end)
        return [r for r in self.results if start <= r.timestamp <= end]

    def query_connection_type(self, connection_type: str) -> List[SpeedTestResult]:
        return [r for r in self.results if r.connection_type == connection_type]

    def query_quality(self, quality: QualityLike) -> List[SpeedTestResult]:
        quality = ConnectionQuality(quality)
        return [r for r in self.results if r.connection_quality is quality]

    # -- Reductions ---------------------------------------------------------

    def statistics(self, results: Optional[List[SpeedTestResult]] = None) -> Statistics:
        """Summary of *results* (default: the whole store)."""
        return Statistics.from_results(self.results if results is None else results)

    def statistics_range(self, start: datetime, end: datetime) -> Statistics:
        return Statistics.from_results(self.query_range(start, end))

    def export_csv(self, results: Optional[List[SpeedTestResult]] = None) -> str:
        rows = self.results if results is None else results
        return "".join(line + "\n" for line in [CSV_HEADER] + [r.csv_row() for r in rows])

    def export_json(self, results: Optional[List[SpeedTestResult]] = None) -> bytes:
        return encode_results(self.results if results is None else results)
