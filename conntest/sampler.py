"""
Adaptive round-trip sampling.

A server is probed repeatedly, one round trip at a time, until either the
sample set looks accurate or the sampling budget runs out::

    accurate  <=>  count >= min_samples
                   and  meanAbsDev <= max(minimum_deviation,
                                          |median * desired_deviation|)

The absolute floor keeps very fast, low-jitter servers from being sampled
far longer than slow ones just to satisfy a purely relative bound.  A single
failed probe fails the whole measurement; there are no retries.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import AsyncContextManager, Callable, List, Protocol

from .constants import (
    DESIRED_DEVIATION,
    DESIRED_SAMPLE_SIZE,
    MAX_SAMPLE_TIME,
    MAX_SAMPLING_TIME,
    MINIMUM_DEVIATION,
)
from .errors import ProbeError, SamplingError
from .probe import Probe
from .stats import Statistics

logger = logging.getLogger(__name__)


class Timing(Protocol):
    def connect(self, url: str) -> AsyncContextManager[Probe]: ...


class RoundTripSampler:
    """Gather as many samples as needed without exceeding time limits."""

    def __init__(
        self,
        timing: Timing,
        max_sampling_time: float = MAX_SAMPLING_TIME,
        sample_timeout: float = MAX_SAMPLE_TIME,
        min_samples: int = DESIRED_SAMPLE_SIZE,
        desired_deviation: float = DESIRED_DEVIATION,
        minimum_deviation: float = MINIMUM_DEVIATION,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.timing = timing
        self.max_sampling_time = max_sampling_time
        self.sample_timeout = sample_timeout
        self.min_samples = min_samples
        self.desired_deviation = desired_deviation
        self.minimum_deviation = minimum_deviation
        self._clock = clock

    def is_accurate(self, stats: Statistics) -> bool:
        if stats.count < self.min_samples:
            return False

        desired = max(self.minimum_deviation, abs(stats.median * self.desired_deviation))
        return stats.mean_absolute_deviation <= desired

    async def measure(self, url: str) -> Statistics:
        """
        Return round-trip statistics for the server at *url*.

        Raises ``SamplingError`` if any probe fails or times out.
        """
        samples: List[float] = []
        start = self._clock()

        try:
            async with self.timing.connect(url) as probe:
                while True:
                    try:
                        rtt = await asyncio.wait_for(probe(), timeout=self.sample_timeout)
                    except asyncio.TimeoutError as exc:
                        raise SamplingError(
                            url, f"No response within {self.sample_timeout:.1f}s"
                        ) from exc

                    samples.append(rtt)
                    stats = Statistics.from_samples(samples)
                    logger.debug("%s: sample %d = %.1f ms", url, stats.count, rtt)

                    elapsed = self._clock() - start
                    if elapsed >= self.max_sampling_time:
                        logger.debug(
                            "%s: sampling budget exhausted after %d samples", url, stats.count
                        )
                        return stats

                    if self.is_accurate(stats):
                        logger.debug(
                            "%s: accurate after %d samples (%.2fs)", url, stats.count, elapsed
                        )
                        return stats

        except ProbeError as exc:
            raise SamplingError(url, exc.reason) from exc
