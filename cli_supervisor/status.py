"""
Shared status record for the supervised CLI.

Every worker (setup, output monitor, readiness timer, exit watcher) updates
the status through this store. The lock is held only while fields are copied
or assigned; callers get snapshots back and emit events after releasing it.

Each ``begin_run`` opens a new generation. Workers pass the generation they
were started with, and updates carrying a stale generation are dropped, so
leftovers from a previous run can never touch the current one.
"""

import threading
from dataclasses import replace
from typing import Optional

from .models import CliState, CliStatus


class StatusStore:
    """Lock-protected CliStatus plus the one-shot ready flag."""

    def __init__(self):
        self._lock = threading.Lock()
        self._status = CliStatus()
        self._generation = 0
        # Read without the lock on the log path, set only under the lock
        self._ready = threading.Event()

    def snapshot(self) -> CliStatus:
        with self._lock:
            return replace(self._status)

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def is_ready(self) -> bool:
        return self._ready.is_set()

    def begin_run(self) -> tuple[int, CliStatus]:
        """Reset to ``starting`` with every transient field cleared."""
        with self._lock:
            self._generation += 1
            self._ready.clear()
            self._status = CliStatus(state=CliState.STARTING)
            return self._generation, replace(self._status)

    def end_run(self):
        """Invalidate the current generation without touching the status."""
        with self._lock:
            self._generation += 1
            self._ready.clear()

    def reset_stopped(self) -> CliStatus:
        """End the current run and go back to an empty ``stopped`` status."""
        with self._lock:
            self._generation += 1
            self._ready.clear()
            self._status = CliStatus(state=CliState.STOPPED)
            return replace(self._status)

    def set_pid(self, generation: int, pid: int) -> Optional[CliStatus]:
        with self._lock:
            if generation != self._generation:
                return None
            self._status.pid = pid
            return replace(self._status)

    def mark_ready(self, generation: int, port: int, url: str) -> Optional[CliStatus]:
        """Transition to ``ready`` once per run. Returns None if it did not apply."""
        with self._lock:
            if generation != self._generation or self._ready.is_set():
                return None
            if self._status.state != CliState.STARTING:
                return None
            self._ready.set()
            self._status.state = CliState.READY
            self._status.port = port
            self._status.url = url
            self._status.error = None
            return replace(self._status)

    def fail(self, generation: int, message: str) -> Optional[CliStatus]:
        """Record a startup failure (resolution or spawn)."""
        with self._lock:
            if generation != self._generation:
                return None
            self._set_error(message)
            return replace(self._status)

    def time_out(self, generation: int, message: str) -> Optional[CliStatus]:
        """Record a startup timeout while the run is still ``starting``."""
        with self._lock:
            if generation != self._generation or self._ready.is_set():
                return None
            # An earlier failure (early exit, spawn error) is terminal for the run
            if self._status.state != CliState.STARTING:
                return None
            self._set_error(message)
            return replace(self._status)

    def record_exit(self, generation: int, message: str) -> Optional[tuple[CliStatus, bool]]:
        """Classify a child exit against the current state.

        Returns the new status and whether the exit counts as a failure, or
        None when the exit belongs to a run that has already been replaced.
        """
        with self._lock:
            if generation != self._generation:
                return None
            failed = self._status.state != CliState.READY
            if failed:
                # A more specific error (e.g. timeout) wins over the exit status
                self._set_error(self._status.error or message)
            else:
                self._status.state = CliState.STOPPED
                self._status.port = None
                self._status.url = None
                self._status.error = None
            return replace(self._status), failed

    def _set_error(self, message: str):
        self._status.state = CliState.ERROR
        self._status.port = None
        self._status.url = None
        self._status.error = message
