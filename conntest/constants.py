"""
Shared constants used across all conntest modules.

Centralises magic numbers, default headers, and tunables so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = "conntester/0.3 (+aiohttp)"

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "application/json, */*;q=0.5",
    "Cache-Control": "no-cache",
}

# ---------------------------------------------------------------------------
# REST paths
# ---------------------------------------------------------------------------

API_ROOT = "/api/ext/conntest"
TIME_PATH = "api/ext/conntest/time"    # relative to each server URL
SERVERS_PATH = "servers"               # relative to the configuration base
THRESHOLDS_PATH = "thresholds"

# ---------------------------------------------------------------------------
# Concurrency limits
# ---------------------------------------------------------------------------

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 32
DEFAULT_CONCURRENCY = 4

# ---------------------------------------------------------------------------
# Sampling
# ---------------------------------------------------------------------------

MAX_SAMPLING_TIME = 3.0      # seconds spent on one server, at most
MAX_SAMPLE_TIME = 5.0        # seconds allowed for a single probe
DESIRED_SAMPLE_SIZE = 5
DESIRED_DEVIATION = 0.25     # fraction of the median
MINIMUM_DEVIATION = 4.0      # ms; floor for very fast servers

MIN_SAMPLING_TIME = 0.1
MAX_SAMPLING_TIME_LIMIT = 60.0
MIN_SAMPLE_SIZE = 1
MAX_SAMPLE_SIZE = 100

WS_CONNECT_TIMEOUT = 5.0

# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

UNREACHABLE = "unreachable"

DEFAULT_THRESHOLD_MAP = {
    "0":   "rgba(64,  192, 0, 0.5)",
    "60":  "rgba(192, 192, 0, 0.5)",
    "130": "rgba(192, 128, 0, 0.5)",
    "220": "rgba(192, 0,   0, 0.5)",
    UNREACHABLE: "black",
}

# ---------------------------------------------------------------------------
# Server-side configuration files
# ---------------------------------------------------------------------------

SERVER_LIST_FILENAME = "servers.json"
THRESHOLDS_FILENAME = "thresholds.json"
