"""
Compact, shareable encoding of a completed connection test.

Only the raw samples are stored, keyed by server URL::

    {"https://a.example/": [41.2, 43.0, ...], ...}

serialised as compact JSON, compressed with raw DEFLATE and encoded as
URL-safe base64.  Everything derived from the samples (statistics,
niceness, colour) is recomputed on unpack using the *current* thresholds,
and the result set is reconciled against the *current* server list.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
import math
import numbers
import zlib
from typing import Dict, Iterable, List, Mapping

from .api import Server
from .errors import PermalinkError
from .results import Result
from .stats import Statistics
from .thresholds import Thresholds

logger = logging.getLogger(__name__)

_WBITS = -15  # raw DEFLATE, no zlib header


def _deflate(data: bytes) -> bytes:
    compressor = zlib.compressobj(9, zlib.DEFLATED, _WBITS)
    return compressor.compress(data) + compressor.flush()


def _inflate(data: bytes) -> bytes:
    return zlib.decompress(data, _WBITS)


def _b64decode(packed: str) -> bytes:
    # Accept both alphabets, with or without padding
    text = packed.strip().replace("-", "+").replace("_", "/")
    text += "=" * (-len(text) % 4)
    return base64.b64decode(text, validate=True)


# ---------------------------------------------------------------------------
# Pack
# ---------------------------------------------------------------------------

def pack(results: Iterable[Result]) -> str:
    """Encode the raw samples of *results* as an opaque string."""
    samples_by_url: Dict[str, List[float]] = {}
    for result in results:
        stats = result.round_trip_statistics
        if stats is not None:
            samples_by_url[result.server.url] = list(stats.samples)

    data = json.dumps(samples_by_url, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(_deflate(data)).decode("ascii")


# ---------------------------------------------------------------------------
# Unpack
# ---------------------------------------------------------------------------

def _reject_constant(name: str) -> float:
    raise ValueError(f"non-finite sample {name}")


def _valid_sample(sample: object) -> bool:
    return (
        isinstance(sample, numbers.Real)
        and not isinstance(sample, bool)
        and (not isinstance(sample, float) or math.isfinite(sample))
        and sample >= 0
    )


def decode(packed: str) -> Dict[str, List[float]]:
    """Recover the ``{url: samples}`` map, raising ``PermalinkError`` if malformed."""
    try:
        raw = _inflate(_b64decode(packed))
        data = json.loads(raw.decode("utf-8"), parse_constant=_reject_constant)
    except (binascii.Error, zlib.error, UnicodeDecodeError, ValueError) as exc:
        raise PermalinkError(f"Malformed permalink data: {exc}") from exc

    if not isinstance(data, dict):
        raise PermalinkError("Malformed permalink data: expected an object")

    for url, samples in data.items():
        if not isinstance(samples, list) or not all(_valid_sample(s) for s in samples):
            raise PermalinkError(f'Malformed permalink data: bad samples for "{url}"')

    return data


def unpack(
    servers: Mapping[str, Server],
    thresholds: Thresholds,
    packed: str,
) -> List[Result]:
    """
    Rebuild classified results for *servers* from a string produced by
    :func:`pack`.

    Live servers absent from the packed data are reported as unreachable;
    packed entries for servers no longer listed are dropped.  Output order
    follows *servers*.
    """
    samples_by_url = decode(packed)

    results: List[Result] = []
    for name, server in servers.items():
        samples = samples_by_url.get(server.url)
        stats = Statistics.from_samples(samples) if samples else None
        results.append(Result.pending(name, server).completed(thresholds, stats))

    dropped = set(samples_by_url) - {s.url for s in servers.values()}
    if dropped:
        logger.info("Ignoring packed results for %d unknown servers", len(dropped))

    return results
