"""
User configuration file support.

Reads/writes ``~/.speedprobe/config.json``.

Supported keys::

    probe_timeout = 10.0            # seconds per probe
    endpoints = []                  # candidate URLs; empty -> built-in list
    selection = "fastest"           # fastest | nearest | automatic
    low_speed_notifications = false
    low_speed_threshold = 5.0       # Mbps
    notifications_enabled = false   # permission already granted
    last_permission_request = null  # ISO-8601
    history_file = ""               # "" -> ~/.speedprobe/speedtest_history.json
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from .constants import DEFAULT_LOW_SPEED_THRESHOLD, DEFAULT_PROBE_TIMEOUT

logger = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".speedprobe")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "probe_timeout": DEFAULT_PROBE_TIMEOUT,
    "endpoints": [],
    "selection": "fastest",
    "low_speed_notifications": False,
    "low_speed_threshold": DEFAULT_LOW_SPEED_THRESHOLD,
    "notifications_enabled": False,
    "last_permission_request": None,
    "history_file": "",
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
        if isinstance(user, dict):
            config.update(user)
        else:
            logger.warning("Ignoring %s: expected a JSON object", path)
    except (json.JSONDecodeError, IOError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def set_config_value(key: str, value: Any) -> str:
    """Set a single config value and persist.  Returns file path."""
    config = load_config()
    config[key] = value
    return save_config(config)
