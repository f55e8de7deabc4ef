"""
Errors raised while launching and supervising the CLI server.

All of them end the current run: the supervisor records them as an ``error``
status and emits ``cli:error``. None are retried.
"""


class SupervisorError(Exception):
    """Base class for supervisor failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ResolutionError(SupervisorError):
    """No runnable CLI entry could be located."""


class RuntimeNotFound(SupervisorError):
    """The runtime binary is not on the search path."""


class SpawnError(SupervisorError):
    """The operating system refused to create the process."""


class StartupTimeoutError(SupervisorError):
    """The CLI did not report readiness before the startup deadline."""


class EarlyExitError(SupervisorError):
    """The CLI exited before it ever became ready."""
