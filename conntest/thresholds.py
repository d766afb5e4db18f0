"""
Latency thresholds and the niceness classifier.

A threshold map pairs the minimum predicted round-trip time (a decimal
integer, in milliseconds) with an opaque display colour.  The special
``"unreachable"`` key supplies the colour for servers that could not be
measured at all::

    {
        "0"   : "rgba(64,  192, 0, 0.5)",
        "60"  : "rgba(192, 192, 0, 0.5)",
        "130" : "rgba(192, 128, 0, 0.5)",
        "220" : "rgba(192, 0,   0, 0.5)",

        "unreachable" : "black"
    }

Niceness is the index of the matching threshold: 0 is the best bucket and
``len(thresholds) - 1`` means unreachable.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from .constants import DEFAULT_THRESHOLD_MAP, UNREACHABLE
from .errors import ThresholdValidationError
from .stats import Statistics

logger = logging.getLogger(__name__)

_INTEGER_KEY = re.compile(r"\d+", re.ASCII)


@dataclass(frozen=True)
class Threshold:
    """A single latency cut-point."""

    min: float
    color: str


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_threshold_map(mapping: Mapping[str, str]) -> None:
    """Raise ``ThresholdValidationError`` unless *mapping* is usable."""
    if not isinstance(mapping, Mapping):
        raise ThresholdValidationError(
            f"Thresholds must be a JSON object, not {type(mapping).__name__}"
        )

    if UNREACHABLE not in mapping:
        raise ThresholdValidationError(
            f'Missing the required "{UNREACHABLE}" threshold'
        )

    if "0" not in mapping:
        raise ThresholdValidationError('Missing the required "0" threshold')

    for key, color in mapping.items():
        if key != UNREACHABLE and not _INTEGER_KEY.fullmatch(str(key)):
            raise ThresholdValidationError(
                f'Invalid threshold "{key}": thresholds must be non-negative '
                f'integers or the special threshold "{UNREACHABLE}"'
            )
        if not isinstance(color, str) or not color.strip():
            raise ThresholdValidationError(
                f'Threshold "{key}" has no usable color'
            )


def _build(mapping: Mapping[str, str]) -> List[Threshold]:
    thresholds = [
        Threshold(min=int(key), color=color)
        for key, color in mapping.items()
        if key != UNREACHABLE
    ]
    thresholds.append(Threshold(min=math.inf, color=mapping[UNREACHABLE]))
    thresholds.sort(key=lambda t: t.min)
    return thresholds


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

class Thresholds:
    """Sorted latency thresholds, always ending with the unreachable entry."""

    def __init__(self, mapping: Optional[Mapping[str, str]] = None) -> None:
        if mapping is None:
            mapping = DEFAULT_THRESHOLD_MAP
        validate_threshold_map(mapping)
        self._map: Dict[str, str] = dict(mapping)
        self._thresholds = _build(mapping)

    # -- Constructors -------------------------------------------------------

    @classmethod
    def from_map_or_default(
        cls,
        mapping: Optional[Mapping[str, str]],
        fallback: Optional[Thresholds] = None,
    ) -> Thresholds:
        """Build from *mapping*, falling back (with a warning) if it is invalid."""
        try:
            return cls(mapping)
        except ThresholdValidationError as exc:
            logger.warning("Ignoring invalid thresholds: %s", exc)
            return fallback if fallback is not None else cls()

    # -- Mutation -----------------------------------------------------------

    def update(self, mapping: Mapping[str, str]) -> None:
        """
        Replace the thresholds with *mapping*.

        On validation failure ``ThresholdValidationError`` is raised and the
        previously accepted thresholds stay in effect.
        """
        validate_threshold_map(mapping)
        self._thresholds = _build(mapping)
        self._map = dict(mapping)

    # -- Classification -----------------------------------------------------

    def niceness(self, stats: Optional[Statistics]) -> int:
        if stats is None:
            return len(self._thresholds) - 1

        # Skip the unreachable entry; index 0 matches implicitly
        predicted = stats.median + stats.median_absolute_deviation
        for i in range(len(self._thresholds) - 2, 0, -1):
            if self._thresholds[i].min <= predicted:
                return i

        return 0

    def color(self, niceness: int) -> str:
        index = max(0, min(niceness, len(self._thresholds) - 1))
        return self._thresholds[index].color

    def classify(self, stats: Optional[Statistics]) -> Tuple[int, str]:
        niceness = self.niceness(stats)
        return niceness, self.color(niceness)

    @property
    def worst(self) -> int:
        return len(self._thresholds) - 1

    # -- Container protocol -------------------------------------------------

    def __len__(self) -> int:
        return len(self._thresholds)

    def __iter__(self) -> Iterator[Threshold]:
        return iter(self._thresholds)

    def __getitem__(self, index: int) -> Threshold:
        return self._thresholds[index]

    def __repr__(self) -> str:
        return f"Thresholds({self._map!r})"

    # -- Serialisation ------------------------------------------------------

    def to_map(self) -> Dict[str, str]:
        return dict(self._map)
