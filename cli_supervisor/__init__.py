"""
CLI Supervisor - launches and watches the CodeNomad CLI server.

Resolves the server entry, spawns it through the user's login shell, detects
readiness from its output, enforces a startup deadline and shuts it down
cleanly, reporting a small status state machine to the host.
"""

__version__ = "0.1.0"
