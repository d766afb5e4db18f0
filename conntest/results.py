"""
Per-server results, run status, and result interpretation.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .api import Server
from .stats import Statistics
from .thresholds import Thresholds


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Result:
    """The outcome of testing one server."""

    name: str
    server: Server
    niceness: Optional[int] = None
    color: Optional[str] = None
    round_trip_statistics: Optional[Statistics] = None
    complete: bool = False

    @classmethod
    def pending(cls, name: str, server: Server) -> Result:
        return cls(name=name, server=server)

    def completed(self, thresholds: Thresholds, stats: Optional[Statistics]) -> Result:
        """Return the final copy of this result, classified by *thresholds*."""
        niceness, color = thresholds.classify(stats)
        return replace(
            self,
            niceness=niceness,
            color=color,
            round_trip_statistics=stats,
            complete=True,
        )

    @property
    def reachable(self) -> bool:
        return self.round_trip_statistics is not None

    def to_dict(self) -> Dict[str, Any]:
        stats = self.round_trip_statistics
        return {
            "name": self.name,
            "server": self.server.to_dict(),
            "niceness": self.niceness,
            "color": self.color,
            "complete": self.complete,
            "roundTripStatistics": stats.to_dict() if stats else None,
        }


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Status:
    """Snapshot of overall test progress."""

    remaining: int = 0
    total: int = 0
    started: bool = False
    running: bool = False
    complete: bool = False

    @classmethod
    def from_results(cls, results: Sequence[Result], started: bool) -> Status:
        remaining = sum(1 for r in results if not r.complete)
        return cls(
            remaining=remaining,
            total=len(results),
            started=started,
            running=started and remaining > 0,
            complete=started and remaining == 0,
        )

    @property
    def current(self) -> int:
        """
        Place value (1-based) of the server being tested.  Results finish
        out of order, so this is a progress indicator rather than a position.
        """
        return min(self.total, self.total - self.remaining + 1)

    @property
    def percent(self) -> float:
        if not self.total:
            return 100.0 if self.complete else 0.0
        return (self.total - self.remaining) / self.total * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "remaining": self.remaining,
            "total": self.total,
            "started": self.started,
            "running": self.running,
            "complete": self.complete,
        }


# ---------------------------------------------------------------------------
# Interpretation
# ---------------------------------------------------------------------------

def _median_or_inf(result: Result) -> float:
    stats = result.round_trip_statistics
    return stats.median if stats else math.inf


def rank_results(results: Iterable[Result]) -> List[Result]:
    """Order results best-to-worst; unreachable servers sort last."""
    return sorted(
        results,
        key=lambda r: (
            not r.reachable,
            r.niceness if r.niceness is not None else math.inf,
            _median_or_inf(r),
        ),
    )


def recommend_server(results: Iterable[Result], current_url: str) -> Optional[Server]:
    """
    Return a server expected to be noticeably better than the one at
    *current_url*, or None.

    A recommendation is made only when the best alternative lands in a
    better niceness bucket than the best result for the current server.
    """
    if not current_url.endswith("/"):
        current_url += "/"

    current: List[Result] = []
    alternatives: List[Result] = []

    for result in results:
        if not result.reachable:
            continue
        url = result.server.url
        if not url.endswith("/"):
            url += "/"
        if url.startswith(current_url):
            current.append(result)
        else:
            alternatives.append(result)

    if not current or not alternatives:
        return None

    best_current = min(current, key=_median_or_inf)
    best_alternative = min(alternatives, key=_median_or_inf)

    if best_current.niceness <= best_alternative.niceness:
        return None

    return best_alternative.server
