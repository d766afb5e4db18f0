"""
Server-side configuration files.

Both files live directly within the configuration directory and are
re-read whenever their modification time changes::

    servers.json       {"Name": {"url": "https://...", "country": "DE"}, ...}
    thresholds.json    {"0": "green", "100": "yellow", "unreachable": "black"}

If a file cannot be read or parsed, or fails validation, the last good
value keeps being served (initially: no servers, default thresholds).
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Generic, TypeVar

from .api import Server, parse_server_map
from .constants import DEFAULT_THRESHOLD_MAP, SERVER_LIST_FILENAME, THRESHOLDS_FILENAME
from .errors import ThresholdValidationError
from .thresholds import validate_threshold_map

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CachedJSON(Generic[T]):
    """The cached result of parsing a JSON file, refreshed when it changes."""

    def __init__(self, path: str, initial: T) -> None:
        self.path = path
        self._cached = initial
        self._mtime = 0.0

    def convert(self, data: Any) -> T:
        """Turn decoded JSON into the cached type.  Raise ``ValueError`` if unusable."""
        return data

    def update(self, old: T, new: T) -> T:
        """Validation hook: return the value to cache (*old* to reject *new*)."""
        return new

    def get_value(self) -> T:
        try:
            mtime = os.path.getmtime(self.path)
        except OSError:
            return self._cached

        if mtime > self._mtime:
            try:
                with open(self.path, encoding="utf-8") as fh:
                    new = self.convert(json.load(fh))
            except (OSError, ValueError) as exc:
                logger.warning('Unable to read "%s": %s', self.path, exc)
                logger.debug("Failed to read JSON.", exc_info=True)
            else:
                self._cached = self.update(self._cached, new)
                self._mtime = mtime

        return self._cached


class ServerListFile(CachedJSON[Dict[str, Server]]):
    """The named servers offered for testing."""

    def __init__(self, config_dir: str, filename: str = SERVER_LIST_FILENAME) -> None:
        super().__init__(os.path.join(config_dir, filename), {})

    def convert(self, data: Any) -> Dict[str, Server]:
        return parse_server_map(data)


class ThresholdFile(CachedJSON[Dict[str, str]]):
    """Latency thresholds; invalid maps are rejected in favour of the last good one."""

    def __init__(self, config_dir: str, filename: str = THRESHOLDS_FILENAME) -> None:
        super().__init__(os.path.join(config_dir, filename), dict(DEFAULT_THRESHOLD_MAP))

    def update(self, old: Dict[str, str], new: Dict[str, str]) -> Dict[str, str]:
        try:
            validate_threshold_map(new)
        except ThresholdValidationError as exc:
            logger.warning(
                '"%s" is invalid (%s). Using previous/default thresholds instead.',
                self.path,
                exc,
            )
            return old
        return dict(new)
