"""Speedprobe engine -- endpoint probing, selection, live samples, and history."""

from .buffer import MeasurementBuffer, Phase, SpeedSample
from .endpoints import Endpoint, default_endpoints, fetch_ookla_endpoints
from .errors import NoCandidatesError, SpeedprobeError
from .history import HistoryStore, SpeedTestResult, decode_results, encode_results
from .notify import LowSpeedAlerter
from .probe import ProbeExecutor, ProbeResult
from .quality import ConnectionQuality
from .selector import SelectionCriteria, ServerSelector, choose_best, rank
from .session import MeasurementSession
from .stats import Statistics, calculate_jitter, format_latency, format_speed
from .storage import FileStorage, MemoryStorage

__all__ = [
    "ConnectionQuality",
    "Endpoint",
    "FileStorage",
    "HistoryStore",
    "LowSpeedAlerter",
    "MeasurementBuffer",
    "MeasurementSession",
    "MemoryStorage",
    "NoCandidatesError",
    "Phase",
    "ProbeExecutor",
    "ProbeResult",
    "SelectionCriteria",
    "ServerSelector",
    "SpeedSample",
    "SpeedTestResult",
    "SpeedprobeError",
    "Statistics",
    "calculate_jitter",
    "choose_best",
    "decode_results",
    "default_endpoints",
    "encode_results",
    "fetch_ookla_endpoints",
    "format_latency",
    "format_speed",
    "rank",
]
