"""
Output monitoring for the CLI child process.

Reads the child's stdout to end-of-stream, then its stderr, logging every
line and looking for the readiness signal until one has been seen. Lines keep
being drained after readiness so the child never blocks on a full pipe.
"""

import logging
import threading
from typing import Callable, IO, Optional

from .readiness import extract_ready_port

logger = logging.getLogger(__name__)


class OutputMonitor:
    """Scans child output for the readiness signal."""

    def __init__(
        self,
        is_ready: Callable[[], bool],
        on_ready: Callable[[int], None],
        on_line: Optional[Callable[[str, str], None]] = None,
    ):
        self._is_ready = is_ready
        self._on_ready = on_ready
        self._on_line = on_line

    def run(self, stdout: Optional[IO[str]], stderr: Optional[IO[str]], concurrent: bool = False):
        """Drain both streams.

        Sequential by default: stderr is only read once stdout has closed.
        With ``concurrent`` stderr is drained on its own thread.
        """
        stderr_thread = None
        if concurrent and stderr is not None:
            stderr_thread = threading.Thread(
                target=self.drain,
                args=(stderr, "stderr"),
                name="cli-stderr",
                daemon=True,
            )
            stderr_thread.start()

        if stdout is not None:
            self.drain(stdout, "stdout")

        if stderr_thread is not None:
            stderr_thread.join()
        elif stderr is not None:
            self.drain(stderr, "stderr")

    def drain(self, stream: IO[str], name: str):
        try:
            for raw in iter(stream.readline, ""):
                line = raw.rstrip()
                if line:
                    self.handle_line(line, name)
        except (OSError, ValueError) as e:
            # ValueError: stream closed underneath us during stop
            logger.debug(f"Stopped reading {name}: {e}")
        finally:
            try:
                stream.close()
            except OSError:
                pass

    def handle_line(self, line: str, stream: str):
        logger.info(f"[cli][{stream}] {line}")
        if self._on_line:
            self._on_line(stream, line)

        if self._is_ready():
            return

        port = extract_ready_port(line)
        if port is not None:
            self._on_ready(port)
