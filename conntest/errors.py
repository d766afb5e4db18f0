"""Exception hierarchy for the connection tester."""
from __future__ import annotations


class ConnTestError(Exception):
    """Base class for all conntest errors."""


class ProbeError(ConnTestError):
    """A single timed round trip could not be completed or read."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class SamplingError(ConnTestError):
    """Sampling a server failed; the server is considered unreachable."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class PermalinkError(ConnTestError, ValueError):
    """A packed result string could not be decoded."""


class ThresholdValidationError(ConnTestError, ValueError):
    """A threshold map was rejected; the previous thresholds remain in effect."""
