"""Pytest configuration and shared fixtures."""

import sys
import textwrap
import threading
import time
from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

import pytest

from cli_supervisor.models import ResolvedEntry, Runner
from cli_supervisor.process import CliProcessManager


class RecordingHost:
    """HostHandle that records every event and navigation request."""

    def __init__(self):
        self._lock = threading.Lock()
        self.events: list[tuple[str, dict]] = []
        self.navigations: list[str] = []

    def emit(self, event: str, payload: dict) -> None:
        with self._lock:
            self.events.append((event, payload))

    def navigate(self, url: str) -> None:
        with self._lock:
            self.navigations.append(url)

    def payloads(self, event: str) -> list[dict]:
        with self._lock:
            return [payload for name, payload in self.events if name == event]


class StaticResolver:
    """Resolver stand-in returning a fixed entry run by this interpreter."""

    def __init__(self, script: Path, workspace_root: Path):
        self.script = script
        self.workspace_root = workspace_root

    def resolve(self, dev: bool) -> ResolvedEntry:
        return ResolvedEntry(entry=str(self.script), runner=Runner.NODE, node_binary=sys.executable)


def wait_for(predicate: Callable[[], bool], timeout: float = 10.0, interval: float = 0.05) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def host() -> RecordingHost:
    return RecordingHost()


@pytest.fixture
def write_script(tmp_path: Path) -> Callable[[str], Path]:
    """Write a Python script standing in for the CLI server."""
    counter = iter(range(1000))

    def _write(body: str) -> Path:
        path = tmp_path / f"server_{next(counter)}.py"
        path.write_text(textwrap.dedent(body))
        return path

    return _write


@pytest.fixture
def direct_spawn():
    """Force the direct (non-shell) launch strategy."""
    with patch("cli_supervisor.command.supports_user_shell", return_value=False):
        yield


@pytest.fixture
def make_manager(tmp_path: Path, direct_spawn) -> Callable[..., CliProcessManager]:
    """Build managers running a script, stopping them all at teardown."""
    managers = []

    def _make(script: Path, **kwargs) -> CliProcessManager:
        kwargs.setdefault("startup_timeout", 10.0)
        kwargs.setdefault("stop_grace_period", 2.0)
        manager = CliProcessManager(
            resolver=StaticResolver(script, tmp_path),
            resolve_host=lambda: "127.0.0.1",
            **kwargs,
        )
        managers.append(manager)
        return manager

    yield _make

    for manager in managers:
        manager.stop()


READY_SCRIPT = """
    import time
    print("booting", flush=True)
    print("CodeNomad Server is ready at http://127.0.0.1:4821", flush=True)
    time.sleep(60)
"""

SILENT_SCRIPT = """
    import time
    time.sleep(60)
"""
