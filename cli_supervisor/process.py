"""
Process manager for the CLI server.

Starts the CLI in a background worker, then watches it with three detached
threads: an output monitor that detects readiness, a readiness timer that
enforces the startup deadline, and an exit watcher that classifies the exit.
Stopping sends SIGTERM and escalates to SIGKILL after a grace period.
"""

import logging
import os
import signal
import subprocess
import threading
import time
from typing import Callable, Optional

from .command import build_cli_args, build_invocation
from .config import config
from .entry import EntryResolver
from .errors import EarlyExitError, SpawnError, StartupTimeoutError, SupervisorError
from .events import ERROR_EVENT, LOG_EVENT, READY_EVENT, STATUS_EVENT, HostHandle
from .models import CliStatus, Invocation
from .output import OutputMonitor
from .settings import resolve_listening_host
from .status import StatusStore

logger = logging.getLogger(__name__)

STARTUP_TIMEOUT_MESSAGE = "CLI did not start in time"

FORCE_KILL = getattr(signal, "SIGKILL", signal.SIGTERM)


def describe_exit(returncode: Optional[int]) -> str:
    if returncode is None:
        return "CLI exited early"
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = "unknown"
        return f"CLI exited early: signal: {-returncode} ({name})"
    return f"CLI exited early: exit status: {returncode}"


def send_signal(process: subprocess.Popen, sig: int):
    """Signal the child's process group, or just the child off POSIX."""
    if os.name != "posix":
        process.kill()
        return
    try:
        os.killpg(os.getpgid(process.pid), sig)
    except ProcessLookupError:
        pass


class CliProcessManager:
    """Supervises a single CLI server process."""

    def __init__(
        self,
        resolver: Optional[EntryResolver] = None,
        resolve_host: Callable[[], str] = resolve_listening_host,
        startup_timeout: Optional[float] = None,
        stop_grace_period: Optional[float] = None,
        drain_concurrently: Optional[bool] = None,
    ):
        self._resolver = resolver
        self._resolve_host = resolve_host
        self.startup_timeout = config.startup_timeout if startup_timeout is None else startup_timeout
        self.stop_grace_period = (
            config.stop_grace_period if stop_grace_period is None else stop_grace_period
        )
        self.drain_concurrently = (
            config.drain_concurrently if drain_concurrently is None else drain_concurrently
        )
        self._store = StatusStore()
        self._process: Optional[subprocess.Popen] = None
        self._process_lock = threading.Lock()
        # Serializes start/stop; reentrant because start() calls stop()
        self._lifecycle_lock = threading.RLock()

    @property
    def resolver(self) -> EntryResolver:
        if self._resolver is None:
            self._resolver = EntryResolver()
        return self._resolver

    def status(self) -> CliStatus:
        """Snapshot of the current status."""
        return self._store.snapshot()

    def is_running(self) -> bool:
        with self._process_lock:
            process = self._process
        return process is not None and process.poll() is None

    def start(self, host: HostHandle, dev: bool):
        """Stop any current run and launch the CLI in the background.

        Returns as soon as the status is ``starting``; resolution, spawning
        and readiness detection happen on worker threads.
        """
        logger.info(f"Start requested (dev={dev})")
        with self._lifecycle_lock:
            self.stop()

            generation, snapshot = self._store.begin_run()
            self._emit_status(host, snapshot)

            thread = threading.Thread(
                target=self._setup_worker,
                args=(host, dev, generation),
                name="cli-setup",
                daemon=True,
            )
            thread.start()

    def stop(self):
        """Terminate the child if present and reset status to ``stopped``."""
        with self._lifecycle_lock:
            with self._process_lock:
                process, self._process = self._process, None
                # Workers of the ended run can no longer update the status
                self._store.end_run()

            if process is not None:
                self._terminate(process)

            self._store.reset_stopped()

    def restart(self, host: HostHandle, dev: bool) -> CliStatus:
        self.stop()
        self.start(host, dev)
        return self.status()

    def _terminate(self, process: subprocess.Popen):
        try:
            send_signal(process, signal.SIGTERM)
        except OSError as e:
            logger.warning(f"Failed to signal CLI pid {process.pid}: {e}")

        try:
            process.wait(timeout=self.stop_grace_period)
            logger.info(f"CLI pid {process.pid} stopped")
            return
        except subprocess.TimeoutExpired:
            logger.warning(f"CLI pid {process.pid} did not stop gracefully, forcing kill")

        try:
            send_signal(process, FORCE_KILL)
            process.wait(timeout=self.stop_grace_period)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error(f"Failed to kill CLI pid {process.pid}: {e}")

    def _setup_worker(self, host: HostHandle, dev: bool, generation: int):
        try:
            self._spawn_cli(host, dev, generation)
        except SupervisorError as e:
            self._fail(host, generation, e)
        except Exception as e:
            logger.exception("Unexpected error while starting CLI")
            self._fail(host, generation, SpawnError(str(e)))

    def _spawn_cli(self, host: HostHandle, dev: bool, generation: int):
        logger.info("Resolving CLI entry")
        entry = self.resolver.resolve(dev)
        bind_host = self._resolve_host()
        logger.info(
            f"Resolved CLI entry runner={entry.runner.value} entry={entry.entry} host={bind_host}"
        )

        cli_args = build_cli_args(dev, bind_host)
        logger.info(f"CLI args: {cli_args}")
        invocation = build_invocation(entry, cli_args)

        cwd = self.resolver.workspace_root
        process = self._popen(invocation, cwd)
        logger.info(f"Spawned CLI pid={process.pid}")

        with self._process_lock:
            if generation != self._store.generation:
                # stop() or a newer start() ran while we were spawning
                stale = True
            else:
                stale = False
                self._process = process
        if stale:
            logger.info(f"Discarding CLI pid={process.pid} from a superseded start")
            self._terminate(process)
            for stream in (process.stdout, process.stderr):
                if stream is not None:
                    stream.close()
            return

        snapshot = self._store.set_pid(generation, process.pid)
        if snapshot:
            self._emit_status(host, snapshot)

        workers = (
            ("cli-output", self._monitor_output),
            ("cli-timer", self._readiness_timer),
            ("cli-exit", self._watch_exit),
        )
        for name, target in workers:
            threading.Thread(
                target=target,
                args=(host, process, generation),
                name=name,
                daemon=True,
            ).start()

    def _popen(self, invocation: Invocation, cwd) -> subprocess.Popen:
        logger.info(f"Spawn command: {invocation.program} {list(invocation.args)}")
        try:
            return subprocess.Popen(
                invocation.argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=str(cwd) if cwd else None,
                env=dict(invocation.env) or None,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                start_new_session=os.name == "posix",
            )
        except OSError as e:
            raise SpawnError(f"Failed to spawn CLI: {e}") from e

    def _monitor_output(self, host: HostHandle, process: subprocess.Popen, generation: int):
        def on_line(stream: str, line: str):
            host.emit(LOG_EVENT, {"stream": stream, "message": line})

        monitor = OutputMonitor(
            is_ready=self._store.is_ready,
            on_ready=lambda port: self._mark_ready(host, generation, port),
            on_line=on_line,
        )
        monitor.run(process.stdout, process.stderr, concurrent=self.drain_concurrently)

    def _mark_ready(self, host: HostHandle, generation: int, port: int):
        url = f"http://127.0.0.1:{port}"
        snapshot = self._store.mark_ready(generation, port, url)
        if snapshot is None:
            return
        logger.info(f"CLI ready on {url}")
        host.navigate(url)
        host.emit(READY_EVENT, snapshot.to_dict())
        self._emit_status(host, snapshot)

    def _readiness_timer(self, host: HostHandle, process: subprocess.Popen, generation: int):
        time.sleep(self.startup_timeout)
        if self._store.is_ready():
            return

        error = StartupTimeoutError(STARTUP_TIMEOUT_MESSAGE)
        snapshot = self._store.time_out(generation, error.message)
        if snapshot is None:
            return

        logger.error(f"Timeout waiting for CLI readiness after {self.startup_timeout}s")
        if process.poll() is None:
            try:
                send_signal(process, FORCE_KILL)
            except OSError as e:
                logger.warning(f"Failed to kill CLI pid {process.pid}: {e}")
        host.emit(ERROR_EVENT, {"message": error.message})
        self._emit_status(host, snapshot)

    def _watch_exit(self, host: HostHandle, process: subprocess.Popen, generation: int):
        returncode = process.wait()

        error = EarlyExitError(describe_exit(returncode))
        result = self._store.record_exit(generation, error.message)
        if result is None:
            logger.info(f"CLI pid {process.pid} exited with {returncode} after stop")
            return

        snapshot, failed = result
        if failed:
            logger.error(f"CLI process exited before ready: {snapshot.error}")
            host.emit(ERROR_EVENT, {"message": snapshot.error or ""})
        else:
            logger.info("CLI process stopped cleanly")
        self._emit_status(host, snapshot)

    def _fail(self, host: HostHandle, generation: int, error: SupervisorError):
        logger.error(f"CLI spawn failed: {error.message}")
        snapshot = self._store.fail(generation, error.message)
        if snapshot is None:
            return
        host.emit(ERROR_EVENT, {"message": error.message})
        self._emit_status(host, snapshot)

    @staticmethod
    def _emit_status(host: HostHandle, snapshot: CliStatus):
        host.emit(STATUS_EVENT, snapshot.to_dict())
