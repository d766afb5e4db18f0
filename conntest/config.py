"""
User configuration file support.

Reads/writes ``~/.conntester/config.json``.

Supported keys::

    base_url = ""            # configuration API, e.g. https://host/api/ext/conntest
    concurrency = 4          # parallel server tests
    max_sampling_time = 3.0  # seconds per server
    sample_timeout = 5.0     # seconds per probe
    min_samples = 5
    current_url = ""         # server in use, for recommendations
    csv_file = ""            # auto-append CSV path
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from .constants import (
    DEFAULT_CONCURRENCY,
    DESIRED_SAMPLE_SIZE,
    MAX_SAMPLE_TIME,
    MAX_SAMPLING_TIME,
)

logger = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".conntester")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "base_url": "",
    "concurrency": DEFAULT_CONCURRENCY,
    "max_sampling_time": MAX_SAMPLING_TIME,
    "sample_timeout": MAX_SAMPLE_TIME,
    "min_samples": DESIRED_SAMPLE_SIZE,
    "current_url": "",
    "csv_file": "",
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return config

    if isinstance(user, dict):
        config.update(user)
    else:
        logger.warning("Ignoring config %s: not a JSON object", path)

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def get_config_value(key: str) -> Any:
    """Get a single config value."""
    return load_config().get(key, DEFAULTS.get(key))


def set_config_value(key: str, value: Any) -> str:
    """Set a single config value and persist.  Returns file path."""
    config = load_config()
    config[key] = value
    return save_config(config)


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
