"""
Connection test scheduling.

A run tests every configured server under two rules:

* no more than ``concurrency`` samplers are in flight overall, and
* never more than one sampler per network destination (host:port),
  whatever the concurrency, so a test never congests its own target.

Pending results wait in a FIFO queue.  Each time a sampler settles, its
result is finalised, its destination released, progress published, and the
queue walked again from the front.  All of this happens synchronously on the
event loop, between awaits, so the result list and the active-destination
set have a single point of mutation.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from collections import deque
from typing import Callable, Deque, Dict, FrozenSet, List, Mapping, Optional, Protocol, Set, Tuple

from .api import Server
from .constants import DEFAULT_CONCURRENCY
from .errors import SamplingError
from .permalink import unpack
from .results import Result, Status
from .stats import Statistics
from .thresholds import Thresholds

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Status], None]


class Sampler(Protocol):
    async def measure(self, url: str) -> Statistics: ...


class RunState(enum.Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETE = "complete"


def effective_concurrency(concurrency: Optional[int]) -> int:
    """Non-positive or missing concurrency means the default."""
    if concurrency is None or concurrency <= 0:
        return DEFAULT_CONCURRENCY
    return concurrency


class ConnectionTest:
    """A single-shot connection test over a set of servers."""

    def __init__(
        self,
        sampler: Sampler,
        thresholds: Thresholds,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.sampler = sampler
        self.thresholds = thresholds
        self.on_progress = on_progress

        self.state = RunState.NOT_STARTED
        self.concurrency = DEFAULT_CONCURRENCY

        self._results: List[Result] = []
        self._queue: Deque[int] = deque()
        self._active: Dict[str, int] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._done: Optional[asyncio.Future] = None

    # -- Observers ----------------------------------------------------------

    @property
    def results(self) -> Tuple[Result, ...]:
        return tuple(self._results)

    @property
    def active_destinations(self) -> FrozenSet[str]:
        return frozenset(self._active)

    def get_status(self) -> Status:
        return Status.from_results(
            self._results, started=self.state is not RunState.NOT_STARTED
        )

    # -- Lifecycle ----------------------------------------------------------

    def start(self, servers: Mapping[str, Server], concurrency: Optional[int] = None) -> None:
        """
        Begin testing *servers*.  Calling this again after the first call
        does nothing.  Must be called from within a running event loop.
        """
        if self.state is not RunState.NOT_STARTED:
            return

        self._done = asyncio.get_running_loop().create_future()
        self.concurrency = effective_concurrency(concurrency)
        self._results = [Result.pending(name, server) for name, server in servers.items()]
        self._queue = deque(range(len(self._results)))
        self.state = RunState.RUNNING

        logger.info(
            "Testing %d servers (concurrency=%d)", len(self._results), self.concurrency
        )
        if not self._results:
            self._finish()
            return

        self._publish()
        self._fill()

    def restore(self, servers: Mapping[str, Server], packed: str) -> Tuple[Result, ...]:
        """
        Complete the run from a permalink instead of measuring.

        Raises ``PermalinkError`` if *packed* is malformed, in which case the
        run is left untouched.
        """
        if self.state is not RunState.NOT_STARTED:
            raise RuntimeError("Cannot restore results into a test that has already started")

        results = unpack(servers, self.thresholds, packed)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        self._results = results
        self.state = RunState.RUNNING
        if loop is not None:
            self._done = loop.create_future()
        self._finish()
        return self.results

    async def wait(self) -> Tuple[Result, ...]:
        """Wait for every server to be tested and return the results in order."""
        if self._done is None:
            if self.state is RunState.COMPLETE:
                return self.results
            raise RuntimeError("Connection test has not been started")
        return await asyncio.shield(self._done)

    async def run(
        self, servers: Mapping[str, Server], concurrency: Optional[int] = None
    ) -> Tuple[Result, ...]:
        self.start(servers, concurrency)
        return await self.wait()

    # -- Scheduling ---------------------------------------------------------

    def _fill(self) -> None:
        """Start queued tests while capacity and destinations allow."""
        skipped: Deque[int] = deque()

        while self._queue and len(self._active) < self.concurrency:
            index = self._queue.popleft()
            destination = self._results[index].server.destination

            if destination in self._active:
                skipped.append(index)
                continue

            self._active[destination] = index
            task = asyncio.create_task(self._test(index, destination))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        # Skipped entries go back to the front, in their original order
        skipped.extend(self._queue)
        self._queue = skipped

    async def _test(self, index: int, destination: str) -> None:
        result = self._results[index]
        stats: Optional[Statistics] = None

        try:
            stats = await self.sampler.measure(result.server.url)
        except SamplingError as exc:
            logger.warning('Server "%s" is unreachable: %s', result.name, exc.reason)
        except Exception:
            logger.exception('Unexpected failure while testing "%s"', result.name)

        self._complete(index, destination, stats)

    def _complete(self, index: int, destination: str, stats: Optional[Statistics]) -> None:
        result = self._results[index].completed(self.thresholds, stats)
        self._results[index] = result
        del self._active[destination]

        logger.debug(
            'Server "%s" complete: niceness=%s (%s)',
            result.name,
            result.niceness,
            f"{stats.median:.1f} ms" if stats else "unreachable",
        )

        if all(r.complete for r in self._results):
            self._finish()
        else:
            self._publish()
            self._fill()

    def _publish(self) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(self.get_status())
        except Exception:
            logger.exception("Progress callback failed")

    def _finish(self) -> None:
        self.state = RunState.COMPLETE
        logger.info("Connection test complete")
        self._publish()
        if self._done is not None and not self._done.done():
            self._done.set_result(self.results)
