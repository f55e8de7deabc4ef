"""
Resource usage of the supervised CLI process.

Collects CPU and memory for the CLI pid and all of its descendants, which
matters when the CLI was launched through a login shell or spawns workers.
"""

import logging
from datetime import datetime
from typing import Optional

import psutil

logger = logging.getLogger(__name__)


def get_process_metrics(pid: Optional[int], sample_interval: float = 0.1) -> Optional[dict]:
    """Get current resource usage for ``pid`` and its children, or None."""
    if not pid:
        return None

    try:
        proc = psutil.Process(pid)
        cpu_percent = proc.cpu_percent(interval=sample_interval)
        memory_mb = proc.memory_info().rss / 1024 / 1024
        started_at = datetime.fromtimestamp(proc.create_time())
    except psutil.NoSuchProcess:
        logger.warning(f"CLI process {pid} no longer exists")
        return None
    except psutil.AccessDenied:
        logger.warning(f"Access denied reading metrics for pid {pid}")
        return None

    # Also collect child processes
    child_count = 0
    try:
        children = proc.children(recursive=True)
        child_count = len(children)
        for child in children:
            try:
                cpu_percent += child.cpu_percent(interval=sample_interval)
                memory_mb += child.memory_info().rss / 1024 / 1024
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                pass
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        pass

    return {
        "pid": pid,
        "cpu_percent": round(cpu_percent, 1),
        "memory_mb": round(memory_mb, 1),
        "child_processes": child_count,
        "uptime_seconds": round((datetime.now() - started_at).total_seconds(), 1),
    }
