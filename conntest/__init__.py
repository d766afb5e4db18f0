"""Connection tester library -- probing, sampling, scheduling, and classification."""

__version__ = "0.3.0"

from .api import ConnectionTestAPI, Server
from .errors import (
    ConnTestError,
    PermalinkError,
    ProbeError,
    SamplingError,
    ThresholdValidationError,
)
from .permalink import pack, unpack
from .probe import TimestampPair, TimingService, destination_of
from .results import Result, Status, rank_results, recommend_server
from .sampler import RoundTripSampler
from .scheduler import ConnectionTest, RunState
from .stats import Statistics, format_latency
from .thresholds import Threshold, Thresholds

__all__ = [
    "ConnTestError",
    "ConnectionTest",
    "ConnectionTestAPI",
    "PermalinkError",
    "ProbeError",
    "Result",
    "RoundTripSampler",
    "RunState",
    "SamplingError",
    "Server",
    "Statistics",
    "Status",
    "Threshold",
    "ThresholdValidationError",
    "Thresholds",
    "TimestampPair",
    "TimingService",
    "destination_of",
    "format_latency",
    "pack",
    "rank_results",
    "recommend_server",
    "unpack",
    "__version__",
]
