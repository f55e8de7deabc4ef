"""
Read-only access to the host application's settings document.

Only one setting matters to the supervisor: ``preferences.listeningMode``,
which decides whether the CLI server binds to loopback or to every interface.
"""

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.config/codenomad/config.json"

LOCAL = "local"
ALL = "all"

LOOPBACK_HOST = "127.0.0.1"
ALL_INTERFACES_HOST = "0.0.0.0"


def expand_home(path: str) -> Path:
    """Expand a leading ``~/`` to the user's home directory."""
    if path.startswith("~/"):
        return Path.home() / path[2:]
    return Path(path)


def resolve_config_path() -> Path:
    """Settings path from CLI_CONFIG, falling back to the default location."""
    raw = os.environ.get("CLI_CONFIG", "")
    if not raw.strip():
        raw = DEFAULT_CONFIG_PATH
    return expand_home(raw)


def resolve_listening_mode() -> str:
    """Return ``local`` or ``all``. Anything unreadable or unknown is ``local``."""
    path = resolve_config_path()
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return LOCAL
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to read listening mode from {path}: {e}")
        return LOCAL

    preferences = data.get("preferences") if isinstance(data, dict) else None
    mode = preferences.get("listeningMode") if isinstance(preferences, dict) else None
    if mode in (LOCAL, ALL):
        return mode
    return LOCAL


def host_for_mode(mode: str) -> str:
    return LOOPBACK_HOST if mode == LOCAL else ALL_INTERFACES_HOST


def resolve_listening_host() -> str:
    """Bind address for the CLI server derived from the listening mode."""
    return host_for_mode(resolve_listening_mode())
