"""
Configuration for the CLI supervisor.

Loads settings from environment variables with sensible defaults.
All persistent data is stored in ~/.cli-supervisor/
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Supervisor configuration."""

    # Paths
    data_dir: Path = Path.home() / ".cli-supervisor"
    supervisor_log: Path = None

    # Logging
    log_max_bytes: int = int(os.environ.get("LOG_MAX_BYTES", str(10 * 1024 * 1024)))  # 10MB
    log_backup_count: int = int(os.environ.get("LOG_BACKUP_COUNT", "5"))
    log_history: int = int(os.environ.get("CLI_LOG_HISTORY", "500"))

    # Host API server
    host: str = os.environ.get("SUPERVISOR_HOST", "127.0.0.1")
    port: int = int(os.environ.get("SUPERVISOR_PORT", "9910"))
    open_browser: bool = _env_flag("CLI_OPEN_BROWSER")

    # CLI launch
    dev_mode: bool = _env_flag("CLI_DEV") or "TAURI_DEV" in os.environ
    node_binary: str = os.environ.get("NODE_BINARY", "node")
    workspace_root: Optional[str] = os.environ.get("CLI_WORKSPACE_ROOT") or None
    ui_dev_server: str = os.environ.get("UI_DEV_SERVER", "http://localhost:3000")

    # Process management
    startup_timeout: float = float(os.environ.get("CLI_STARTUP_TIMEOUT", "60"))
    stop_grace_period: float = float(os.environ.get("CLI_STOP_GRACE", "4"))
    drain_concurrently: bool = _env_flag("CLI_DRAIN_CONCURRENTLY")

    def __post_init__(self):
        """Initialize derived paths and create directories."""
        self.supervisor_log = self.data_dir / "cli-supervisor.log"

        self.data_dir.mkdir(parents=True, exist_ok=True)


config = Config()
