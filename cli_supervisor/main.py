"""
CLI supervisor FastAPI application.

Hosts the supervised CLI server: starts it on startup, stops it on shutdown,
and exposes its status, restart/stop commands, recent output, resource usage
and a Server-Sent Events stream of every ``cli:*`` event.
"""

import asyncio
import html
import json
import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, RedirectResponse, StreamingResponse
from pydantic import BaseModel, Field

from .config import config
from .events import EventBroker, HostBridge, Navigator
from .models import CliState
from .monitor import get_process_metrics
from .process import CliProcessManager

# Configure logging with rotation
log_formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

# Rotating file handler (auto-compaction)
file_handler = RotatingFileHandler(
    config.supervisor_log,
    maxBytes=config.log_max_bytes,
    backupCount=config.log_backup_count,
)
file_handler.setFormatter(log_formatter)

# Console handler
console_handler = logging.StreamHandler()
console_handler.setFormatter(log_formatter)

# Configure root logger
logging.basicConfig(
    level=logging.INFO,
    handlers=[file_handler, console_handler],
)
logger = logging.getLogger(__name__)

broker = EventBroker(log_history=config.log_history)
navigator = Navigator(open_browser=config.open_browser)
host = HostBridge(broker, navigator)
cli_manager = CliProcessManager()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info(f"Starting CLI supervisor (dev={config.dev_mode})...")
    cli_manager.start(host, config.dev_mode)

    yield

    logger.info("Shutting down CLI supervisor...")
    await asyncio.to_thread(cli_manager.stop)


app = FastAPI(
    title="CLI Supervisor",
    description="Supervises the CodeNomad CLI server process",
    version="0.1.0",
    lifespan=lifespan,
)

# The host webview is served from another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Response models
class StatusResponse(BaseModel):
    state: str = Field(..., description="starting, ready, error or stopped")
    pid: Optional[int] = None
    port: Optional[int] = None
    url: Optional[str] = None
    error: Optional[str] = None


class LogLineResponse(BaseModel):
    stream: str
    message: str
    timestamp: str


class MetricsResponse(BaseModel):
    pid: int
    cpu_percent: float
    memory_mb: float
    child_processes: int
    uptime_seconds: float


@app.get("/", response_class=HTMLResponse)
async def primary_surface():
    """Show the CLI once it is ready, otherwise its current status."""
    status = cli_manager.status()
    if status.state == CliState.READY and navigator.current_url:
        return RedirectResponse(navigator.current_url)

    detail = html.escape(status.error or "Waiting for the CLI server...")
    return HTMLResponse(
        f"<h1>CodeNomad</h1><p>Status: {status.state.value}</p><p>{detail}</p>"
    )


@app.get("/api/status", response_model=StatusResponse)
async def get_status():
    """Get the current CLI status."""
    return cli_manager.status().to_dict()


@app.post("/api/restart", response_model=StatusResponse)
def restart():
    """Stop the CLI and start it again; returns the status right after start."""
    return cli_manager.restart(host, config.dev_mode).to_dict()


@app.post("/api/stop", response_model=StatusResponse)
def stop():
    """Stop the CLI."""
    cli_manager.stop()
    return cli_manager.status().to_dict()


@app.get("/api/logs", response_model=list[LogLineResponse])
async def get_logs(limit: int = Query(100, ge=1, le=1000)):
    """Get recent CLI output lines."""
    return broker.recent_logs(limit)


@app.get("/api/metrics", response_model=MetricsResponse)
def get_metrics():
    """Get current resource usage for the CLI process."""
    # The last pid is kept after an exit and may since have been reused
    if not cli_manager.is_running():
        raise HTTPException(status_code=404, detail="CLI not running")
    metrics = get_process_metrics(cli_manager.status().pid)
    if not metrics:
        raise HTTPException(status_code=404, detail="CLI not running")
    return metrics


@app.get("/api/events")
async def events():
    """
    Stream CLI events.

    Returns Server-Sent Events (SSE) stream, starting with the current status.
    """
    queue = broker.subscribe()

    async def event_stream():
        try:
            current = {"event": "cli:status", "payload": cli_manager.status().to_dict()}
            yield f"data: {json.dumps(current)}\n\n"
            while True:
                event = await queue.get()
                yield f"data: {json.dumps(event)}\n\n"
        finally:
            broker.unsubscribe(queue)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
