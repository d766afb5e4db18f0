"""Tests for conntest.sampler -- adaptive sampling with fake probes and clocks."""

import asyncio
import unittest
from contextlib import asynccontextmanager
from itertools import cycle

from conntest.errors import ProbeError, SamplingError
from conntest.sampler import RoundTripSampler
from conntest.stats import Statistics


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class FakeTiming:
    """Each probe returns the next round trip and advances the clock by it."""

    def __init__(self, rtts, clock, fail_on=None, hang=False):
        self.rtts = cycle(rtts)
        self.clock = clock
        self.fail_on = fail_on
        self.hang = hang
        self.calls = 0
        self.connected = []
        self.closed = 0

    @asynccontextmanager
    async def connect(self, url):
        self.connected.append(url)

        async def probe():
            self.calls += 1
            if self.hang:
                await asyncio.sleep(10)
            if self.fail_on is not None and self.calls >= self.fail_on:
                raise ProbeError(url, "connection refused")
            rtt = next(self.rtts)
            self.clock.now += rtt / 1000
            return rtt

        try:
            yield probe
        finally:
            self.closed += 1


class TestIsAccurate(unittest.TestCase):
    def setUp(self):
        self.sampler = RoundTripSampler(FakeTiming([1.0], FakeClock()))

    def test_too_few_samples(self):
        stats = Statistics.from_samples([50.0] * 4)
        self.assertFalse(self.sampler.is_accurate(stats))

    def test_stable_samples(self):
        stats = Statistics.from_samples([48.0, 50.0, 52.0, 50.0, 49.0])
        self.assertTrue(self.sampler.is_accurate(stats))

    def test_noisy_samples(self):
        stats = Statistics.from_samples([10.0, 90.0, 10.0, 90.0, 50.0])
        self.assertFalse(self.sampler.is_accurate(stats))

    def test_absolute_floor_for_fast_servers(self):
        # median 2 ms: 25% would be 0.5 ms, but the 4 ms floor applies
        stats = Statistics.from_samples([1.0, 2.0, 5.0, 1.0, 2.0])
        self.assertTrue(self.sampler.is_accurate(stats))


class TestMeasure(unittest.IsolatedAsyncioTestCase):
    async def test_stable_server_stops_when_accurate(self):
        clock = FakeClock()
        timing = FakeTiming([48.0, 50.0, 52.0], clock)
        sampler = RoundTripSampler(timing, clock=clock)

        stats = await sampler.measure("https://a.example/")

        self.assertEqual(stats.count, 5)
        self.assertAlmostEqual(stats.median, 50.0)
        self.assertTrue(sampler.is_accurate(stats))
        self.assertEqual(timing.connected, ["https://a.example/"])
        self.assertEqual(timing.closed, 1)

    async def test_noisy_server_stops_at_budget(self):
        clock = FakeClock()
        timing = FakeTiming([10.0, 500.0], clock)
        sampler = RoundTripSampler(timing, max_sampling_time=3.0, clock=clock)

        stats = await sampler.measure("https://noisy.example/")

        self.assertGreaterEqual(clock.now, 3.0)
        self.assertFalse(sampler.is_accurate(stats))
        # The last sample is the one that crossed the budget
        self.assertLess(clock.now - 0.5, 3.0)

    async def test_budget_checked_after_every_sample(self):
        clock = FakeClock()
        timing = FakeTiming([4000.0], clock)
        sampler = RoundTripSampler(timing, max_sampling_time=3.0, clock=clock)

        stats = await sampler.measure("https://slow.example/")

        self.assertEqual(stats.count, 1)
        self.assertEqual(timing.calls, 1)

    async def test_probe_failure_fails_measurement(self):
        clock = FakeClock()
        timing = FakeTiming([50.0], clock, fail_on=1)
        sampler = RoundTripSampler(timing, clock=clock)

        with self.assertRaises(SamplingError) as ctx:
            await sampler.measure("https://down.example/")

        self.assertEqual(timing.calls, 1)
        self.assertEqual(ctx.exception.url, "https://down.example/")
        self.assertEqual(ctx.exception.reason, "connection refused")
        self.assertEqual(timing.closed, 1)

    async def test_failure_after_some_samples_has_no_retry(self):
        clock = FakeClock()
        timing = FakeTiming([10.0, 90.0], clock, fail_on=3)
        sampler = RoundTripSampler(timing, clock=clock)

        with self.assertRaises(SamplingError):
            await sampler.measure("https://flaky.example/")

        self.assertEqual(timing.calls, 3)

    async def test_probe_timeout(self):
        clock = FakeClock()
        timing = FakeTiming([50.0], clock, hang=True)
        sampler = RoundTripSampler(timing, sample_timeout=0.05, clock=clock)

        with self.assertRaises(SamplingError) as ctx:
            await sampler.measure("https://hang.example/")

        self.assertIn("No response", ctx.exception.reason)
        self.assertEqual(timing.closed, 1)

    async def test_min_samples_respected(self):
        clock = FakeClock()
        timing = FakeTiming([50.0], clock)
        sampler = RoundTripSampler(timing, min_samples=8, clock=clock)

        stats = await sampler.measure("https://a.example/")

        self.assertEqual(stats.count, 8)


if __name__ == "__main__":
    unittest.main()
