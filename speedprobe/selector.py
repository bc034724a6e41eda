"""
Concurrent server selection.

``ServerSelector`` fans one probe out per candidate, waits for *every* probe
to finish, and only then reduces the results to a single endpoint.  Waiting
for the full set matters: stopping at the first answer would pick the
fastest responder, not the best endpoint.

Reduction is a pure function of the result list (``choose_best``), so a
fixed set of results always gives the same choice regardless of the order
in which the probes completed.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from typing import Callable, Iterable, List, Optional, Tuple

from .constants import UNKNOWN_DISTANCE_KM, UNKNOWN_LATENCY_MS
from .endpoints import Endpoint
from .errors import NoCandidatesError
from .probe import ProbeResult

logger = logging.getLogger(__name__)

Location = Tuple[float, float]


class SelectionCriteria(enum.Enum):
    FASTEST = "fastest"
    NEAREST = "nearest"
    AUTOMATIC = "automatic"


# ---------------------------------------------------------------------------
# Reduction
# ---------------------------------------------------------------------------

def rank(results: Iterable[ProbeResult]) -> List[ProbeResult]:
    """Reachable results first, by latency; ties keep their input order."""
    return sorted(
        results,
        key=lambda r: (not r.reachable, r.latency_ms if r.reachable else float("inf")),
    )


def _distance(result: ProbeResult, location: Optional[Location]) -> Optional[float]:
    if location is None:
        return None
    return result.endpoint.distance_km(*location)


def _score_key(
    criteria: SelectionCriteria,
    location: Optional[Location],
) -> Callable[[ProbeResult], float]:
    if criteria is SelectionCriteria.NEAREST:
        def nearest(r: ProbeResult) -> float:
            d = _distance(r, location)
            return float("inf") if d is None else d
        return nearest

    if criteria is SelectionCriteria.AUTOMATIC:
        def balanced(r: ProbeResult) -> float:
            d = _distance(r, location)
            distance = UNKNOWN_DISTANCE_KM if d is None else d
            latency = r.latency_ms if r.reachable else UNKNOWN_LATENCY_MS
            return distance / UNKNOWN_DISTANCE_KM + latency / UNKNOWN_LATENCY_MS
        return balanced

    return lambda r: r.latency_ms


def choose_best(
    results: List[ProbeResult],
    criteria: SelectionCriteria = SelectionCriteria.FASTEST,
    location: Optional[Location] = None,
) -> Endpoint:
    """
    Reduce *results* to one endpoint.

    Only reachable results compete.  ``min`` keeps the first of several equal
    scores, so input order breaks ties.  With nothing reachable the first
    candidate is returned as the default.
    """
    if not results:
        raise NoCandidatesError("no probe results to choose from")

    reachable = [r for r in results if r.reachable]
    if not reachable:
        return results[0].endpoint

    return min(reachable, key=_score_key(criteria, location)).endpoint


# ---------------------------------------------------------------------------
# Selector
# ---------------------------------------------------------------------------

class ServerSelector:
    """
    Probe a candidate set concurrently and pick the best endpoint.

    *executor* is anything with an ``async probe(endpoint, timeout)`` method
    returning a ``ProbeResult`` (normally a ``ProbeExecutor``).
    """

    def __init__(
        self,
        executor,  # noqa: ANN001 (ProbeExecutor-like)
        timeout: Optional[float] = None,
        criteria: SelectionCriteria = SelectionCriteria.FASTEST,
        location: Optional[Location] = None,
    ) -> None:
        self.executor = executor
        self.timeout = timeout
        self.criteria = criteria
        self.location = location
        self.last_results: List[ProbeResult] = []
        self._tasks: List[asyncio.Task] = []

    async def probe_all(self, candidates: Iterable[Endpoint]) -> List[ProbeResult]:
        """Probe every candidate concurrently; results follow input order."""
        candidates = list(candidates)
        tasks = [
            asyncio.create_task(self.executor.probe(c, self.timeout)) for c in candidates
        ]
        # Overlapping runs share the list so cancel() reaches all of them.
        self._tasks.extend(tasks)
        try:
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            self._tasks = [t for t in self._tasks if t not in tasks]

        results: List[ProbeResult] = []
        for endpoint, outcome in zip(candidates, outcomes):
            if isinstance(outcome, ProbeResult):
                results.append(outcome)
            elif isinstance(outcome, asyncio.CancelledError):
                results.append(ProbeResult.failed(endpoint, "cancelled"))
            elif isinstance(outcome, Exception):
                logger.warning("Probe of %s raised %r", endpoint.url, outcome)
                results.append(ProbeResult.failed(endpoint, str(outcome) or type(outcome).__name__))
            else:
                raise outcome

        self.last_results = results
        return results

    async def select_best(self, candidates: Iterable[Endpoint]) -> Endpoint:
        """Probe all *candidates* and return the chosen endpoint."""
        candidates = list(candidates)
        if not candidates:
            raise NoCandidatesError("at least one candidate endpoint is required")

        results = await self.probe_all(candidates)
        best = choose_best(results, self.criteria, self.location)

        chosen = next(r for r in results if r.endpoint is best)
        if chosen.reachable:
            logger.info(
                "Selected %s (%s) at %.1f ms [%s]",
                best.name, best.url, chosen.latency_ms, self.criteria.value,
            )
        else:
            logger.warning(
                "No candidate reachable out of %d; falling back to %s",
                len(candidates), best.name,
            )
        return best

    def cancel(self) -> int:
        """Cancel in-flight probes of every running selection.

        They resolve as unreachable; returns the count.
        """
        pending = [t for t in self._tasks if not t.done()]
        for task in pending:
            task.cancel()
        return len(pending)
