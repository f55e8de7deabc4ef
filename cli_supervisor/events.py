"""
Host-side collaborators of the supervisor.

The supervisor talks to its host through two narrow seams: a one-way event
sink (``cli:status``, ``cli:ready``, ``cli:error``, ``cli:log``) and a
navigation request for the primary display surface. ``HostBridge`` provides
both for the FastAPI host: events fan out to Server-Sent Event subscribers
and recent log lines are kept for the logs endpoint.
"""

import asyncio
import logging
import threading
import webbrowser
from collections import deque
from datetime import datetime
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

STATUS_EVENT = "cli:status"
READY_EVENT = "cli:ready"
ERROR_EVENT = "cli:error"
LOG_EVENT = "cli:log"


class HostHandle(Protocol):
    def emit(self, event: str, payload: dict) -> None: ...

    def navigate(self, url: str) -> None: ...


class EventBroker:
    """Fans events out to asyncio subscribers from any thread."""

    def __init__(self, log_history: int = 500, queue_size: int = 1000):
        self._lock = threading.Lock()
        self._subscribers: list[tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = []
        self._logs: deque = deque(maxlen=log_history)
        self._queue_size = queue_size

    def publish(self, event: str, payload: dict):
        message = {"event": event, "payload": payload}
        if event == LOG_EVENT:
            with self._lock:
                self._logs.append({**payload, "timestamp": datetime.now().isoformat()})

        with self._lock:
            subscribers = list(self._subscribers)

        for loop, queue in subscribers:
            try:
                loop.call_soon_threadsafe(self._offer, queue, message)
            except RuntimeError:
                # Loop already closed; the subscriber is gone
                self._remove(queue)

    @staticmethod
    def _offer(queue: asyncio.Queue, message: dict):
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f"Dropping {message['event']} event for slow subscriber")

    def subscribe(self) -> asyncio.Queue:
        """Register a queue on the running loop. Pair with ``unsubscribe``."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        loop = asyncio.get_running_loop()
        with self._lock:
            self._subscribers.append((loop, queue))
        return queue

    def unsubscribe(self, queue: asyncio.Queue):
        self._remove(queue)

    def _remove(self, queue: asyncio.Queue):
        with self._lock:
            self._subscribers = [(l, q) for l, q in self._subscribers if q is not queue]

    def recent_logs(self, limit: int = 100) -> list[dict]:
        with self._lock:
            logs = list(self._logs)
        return logs[-limit:] if limit else logs


class Navigator:
    """Tracks the URL the primary surface should show."""

    def __init__(self, open_browser: bool = False):
        self.open_browser = open_browser
        self._current_url: Optional[str] = None

    @property
    def current_url(self) -> Optional[str]:
        return self._current_url

    def navigate(self, url: str):
        logger.info(f"Navigating main surface to {url}")
        self._current_url = url
        if self.open_browser:
            try:
                webbrowser.open(url)
            except webbrowser.Error as e:
                logger.error(f"Failed to open browser for {url}: {e}")


class HostBridge:
    """HostHandle backed by an EventBroker and a Navigator."""

    def __init__(self, broker: EventBroker, navigator: Navigator):
        self.broker = broker
        self.navigator = navigator

    def emit(self, event: str, payload: dict):
        try:
            self.broker.publish(event, payload)
        except Exception as e:
            logger.error(f"Failed to publish {event}: {e}")

    def navigate(self, url: str):
        try:
            self.navigator.navigate(url)
        except Exception as e:
            logger.error(f"Navigation to {url} failed: {e}")
