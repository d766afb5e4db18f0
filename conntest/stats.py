"""
Round-trip statistics.

Pure functions and an immutable dataclass -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------

def calculate_mean(samples: Sequence[float]) -> float:
    """Arithmetic mean; the mean of zero samples is zero."""
    if not samples:
        return 0.0
    return statistics.fmean(samples)


def calculate_median(samples: Sequence[float]) -> float:
    """Order-statistic median, averaging the two middle values when even."""
    if not samples:
        return 0.0
    return float(statistics.median(samples))


def absolute_deviations(samples: Iterable[float], value: float) -> List[float]:
    """Return ``|sample - value|`` for every sample, sorted ascending."""
    return sorted(abs(s - value) for s in samples)


# ---------------------------------------------------------------------------
# Dataclass
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Statistics:
    """
    Statistics describing a set of round-trip samples, in milliseconds.

    Instances are built once per observation via :meth:`from_samples` and
    never change afterwards.  Absolute deviations are measured from the
    median, not the mean.
    """

    samples: Tuple[float, ...] = ()
    median: float = 0.0
    mean: float = 0.0
    variance: float = 0.0
    standard_deviation: float = 0.0
    mean_absolute_deviation: float = 0.0
    median_absolute_deviation: float = 0.0

    @classmethod
    def from_samples(cls, samples: Iterable[float]) -> Statistics:
        ordered = tuple(sorted(float(s) for s in samples))
        if not ordered:
            return cls()

        median = calculate_median(ordered)
        mean = calculate_mean(ordered)
        variance = statistics.pvariance(ordered, mu=mean)
        deviations = absolute_deviations(ordered, median)

        return cls(
            samples=ordered,
            median=median,
            mean=mean,
            variance=variance,
            standard_deviation=math.sqrt(variance),
            mean_absolute_deviation=calculate_mean(deviations),
            median_absolute_deviation=calculate_median(deviations),
        )

    @property
    def count(self) -> int:
        return len(self.samples)

    @property
    def predicted(self) -> float:
        """Pessimistic RTT estimate used for classification."""
        return self.median + self.median_absolute_deviation

    def to_dict(self) -> dict:
        return {
            "samples": [round(s, 3) for s in self.samples],
            "median": round(self.median, 3),
            "mean": round(self.mean, 3),
            "variance": round(self.variance, 3),
            "standardDeviation": round(self.standard_deviation, 3),
            "meanAbsoluteDeviation": round(self.mean_absolute_deviation, 3),
            "medianAbsoluteDeviation": round(self.median_absolute_deviation, 3),
            "count": self.count,
        }


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"
