"""
Readiness detection for CLI server log lines.

The server announces its port in one of a few shapes; ``extract_ready_port``
recognizes them in a fixed order and returns the port, or None for any line
that is not a readiness signal.
"""

import json
import re
from typing import Optional

READY_PATTERN = re.compile(r"CodeNomad Server is ready at http://[^:]+:(\d+)")
# Last ":<port>" on the line
TRAILING_PORT_PATTERN = re.compile(r":(\d{2,5})(?!.*:\d)")

LISTENING_MARKER = "http server listening"

MAX_PORT = 65535


def _as_port(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        if not value.isdigit():
            return None
        value = int(value)
    if isinstance(value, int) and 0 < value <= MAX_PORT:
        return value
    return None


def _port_from_json(line: str) -> Optional[int]:
    try:
        data = json.loads(line)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    port = data.get("port")
    # Only JSON numbers count, not numeric strings
    if not isinstance(port, int):
        return None
    return _as_port(port)


def extract_ready_port(line: str) -> Optional[int]:
    """Return the port announced by ``line``, or None."""
    match = READY_PATTERN.search(line)
    if match:
        port = _as_port(match.group(1))
        if port is not None:
            return port

    if LISTENING_MARKER in line.lower():
        match = TRAILING_PORT_PATTERN.search(line)
        if match:
            port = _as_port(match.group(1))
            if port is not None:
                return port
        return _port_from_json(line)

    return None
