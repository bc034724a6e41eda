"""
Single-endpoint reachability and latency probe.

One probe is one attempt: an HTTP ``HEAD`` for ``http``/``https`` endpoints,
or a WebSocket opening handshake for ``ws``/``wss`` endpoints.  Latency is
the wall-clock time from dispatch until the response headers arrive.

An endpoint is reachable when it answers with a status below 400.  Error
statuses come back unreachable with the status code kept.

The probe never raises for network trouble.  Timeouts, refused connections,
TLS failures and malformed addresses all come back as an unreachable
``ProbeResult`` so that callers can reduce over plain values.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from http import HTTPStatus
from typing import Optional, Tuple

import aiohttp
import websockets
import websockets.exceptions

from .constants import (
    CLIENT_ERROR_STATUS,
    COMMON_HEADERS,
    DEFAULT_PROBE_TIMEOUT,
    USER_AGENT,
    WS_CLOSE_TIMEOUT,
)
from .endpoints import Endpoint

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one probe against one endpoint."""

    endpoint: Endpoint
    reachable: bool = False
    latency_ms: float = 0.0
    status_code: int = 0
    error: Optional[str] = None

    @classmethod
    def failed(cls, endpoint: Endpoint, error: str) -> ProbeResult:
        return cls(endpoint=endpoint, reachable=False, latency_ms=0.0, status_code=0, error=error)

    def to_dict(self) -> dict:
        return {
            "name": self.endpoint.name,
            "url": self.endpoint.url,
            "reachable": self.reachable,
            "latency_ms": round(self.latency_ms, 1),
            "status_code": self.status_code,
            "error": self.error,
        }


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

class ProbeExecutor:
    """
    Runs probes over one shared ``aiohttp.ClientSession``.

    Use as an async context manager (``async with ProbeExecutor() as ex:``)
    or hand in a session you manage yourself.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> ProbeExecutor:
        if self._session is None:
            # No pool limit: every candidate gets its own connection at once.
            connector = aiohttp.TCPConnector(limit=0, limit_per_host=0)
            self._session = aiohttp.ClientSession(connector=connector, headers=COMMON_HEADERS)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "ProbeExecutor must be used as an async context manager "
                "(async with ProbeExecutor() as executor: ...)"
            )
        return self._session

    @property
    def session(self) -> aiohttp.ClientSession:
        """The shared HTTP session (only inside the context manager)."""
        return self._ensure_session()

    # -- Public -------------------------------------------------------------

    async def probe(self, endpoint: Endpoint, timeout: Optional[float] = None) -> ProbeResult:
        """Probe *endpoint* once under *timeout* seconds."""
        timeout = self.timeout if timeout is None else timeout

        if not endpoint.is_valid:
            logger.debug("Skipping %s: invalid URL %r", endpoint.name, endpoint.url)
            return ProbeResult.failed(endpoint, "invalid URL")

        try:
            if endpoint.scheme in ("ws", "wss"):
                status, latency_ms = await self._handshake(endpoint, timeout)
            else:
                status, latency_ms = await self._head(endpoint, timeout)
        except asyncio.TimeoutError:
            logger.debug("Probe to %s timed out after %.1fs", endpoint.url, timeout)
            return ProbeResult.failed(endpoint, "timeout")
        except (
            aiohttp.ClientError,
            websockets.exceptions.WebSocketException,
            OSError,
            ValueError,
        ) as exc:
            logger.debug("Probe to %s failed: %s", endpoint.url, exc)
            return ProbeResult.failed(endpoint, str(exc) or type(exc).__name__)

        if status >= CLIENT_ERROR_STATUS:
            logger.debug("Probe to %s answered HTTP %d", endpoint.url, status)
            return ProbeResult(
                endpoint=endpoint,
                reachable=False,
                latency_ms=latency_ms,
                status_code=status,
                error=f"HTTP {status}",
            )

        return ProbeResult(
            endpoint=endpoint,
            reachable=True,
            latency_ms=latency_ms,
            status_code=status,
        )

    # -- Transports ---------------------------------------------------------

    async def _head(self, endpoint: Endpoint, timeout: float) -> Tuple[int, float]:
        session = self._ensure_session()
        start = time.perf_counter()
        async with session.head(
            endpoint.url,
            allow_redirects=False,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as resp:
            return resp.status, (time.perf_counter() - start) * 1000

    @staticmethod
    async def _handshake(endpoint: Endpoint, timeout: float) -> Tuple[int, float]:
        start = time.perf_counter()
        try:
            async with websockets.connect(
                endpoint.url,
                user_agent_header=USER_AGENT,
                ping_interval=None,
                open_timeout=timeout,
                close_timeout=WS_CLOSE_TIMEOUT,
            ):
                return int(HTTPStatus.SWITCHING_PROTOCOLS), (time.perf_counter() - start) * 1000
        except websockets.exceptions.InvalidStatus as exc:
            # The server answered, it just refused the upgrade.
            return exc.response.status_code, (time.perf_counter() - start) * 1000
