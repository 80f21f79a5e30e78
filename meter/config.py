"""
User configuration file support.

Reads/writes ``~/.speedcheck/config.json``.

Supported keys::

    url = "http://127.0.0.1:8080"   # measurement server
    connections = 4                 # parallel transfers per phase
    ping_count = 8
    download_bytes = 20971520       # per connection
    upload_bytes = 10485760         # per connection
    timeout_ms = 60000              # per request
    host = "0.0.0.0"                # --serve bind address
    port = 8080                     # --serve port
    log_level = "WARNING"
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from .constants import (
    DEFAULT_CONNECTIONS,
    DEFAULT_HOST,
    DEFAULT_PING_COUNT,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_URL,
    DOWNLOAD_BYTES,
    UPLOAD_BYTES,
)

LOGGER = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".speedcheck")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "url": DEFAULT_URL,
    "connections": DEFAULT_CONNECTIONS,
    "ping_count": DEFAULT_PING_COUNT,
    "download_bytes": DOWNLOAD_BYTES,
    "upload_bytes": UPLOAD_BYTES,
    "timeout_ms": DEFAULT_TIMEOUT_MS,
    "host": DEFAULT_HOST,
    "port": DEFAULT_PORT,
    "log_level": "WARNING",
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
    except (json.JSONDecodeError, IOError) as exc:
        LOGGER.warning("ignoring unreadable config %s: %s", path, exc)
        return config

    if isinstance(user, dict):
        config.update(user)
    else:
        LOGGER.warning("ignoring config %s: expected a JSON object", path)

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


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
