"""
Command construction for the CLI server.

On POSIX hosts the CLI is launched through the user's login shell so that
version managers and other shell-configured environment (nvm, asdf, PATH
tweaks in ~/.zshrc) are in effect. Elsewhere the runtime is spawned directly
and must be resolvable on PATH.
"""

import logging
import os
import re
import shutil
import sys
from pathlib import Path
from typing import Optional

from .config import config
from .errors import RuntimeNotFound
from .models import Invocation, InvocationKind, ResolvedEntry

logger = logging.getLogger(__name__)

# Makes Electron-flavoured runtimes execute the entry as a plain Node script
RUN_AS_NODE_ENV = {"ELECTRON_RUN_AS_NODE": "1"}

# Tokens made only of these characters are passed to the shell unquoted
SHELL_SAFE_PATTERN = re.compile(r"[A-Za-z0-9_@%+=:,./-]+")

# Variables that make nvm refuse to load inside the login shell
SHELL_ENV_BLOCKLIST = ("npm_config_prefix", "NPM_CONFIG_PREFIX")


def build_cli_args(dev: bool, host: str, ui_dev_server: Optional[str] = None) -> list[str]:
    """Arguments for ``codenomad serve`` on an OS-assigned port."""
    args = ["serve", "--host", host, "--port", "0"]
    if dev:
        args += ["--ui-dev-server", ui_dev_server or config.ui_dev_server, "--log-level", "debug"]
    return args


def supports_user_shell() -> bool:
    return os.name == "posix"


def default_shell() -> str:
    shell = os.environ.get("SHELL", "")
    if shell.strip():
        return shell
    if sys.platform == "darwin":
        return "/bin/zsh"
    return "/bin/bash"


def shell_escape(token: str) -> str:
    """Quote ``token`` for a POSIX shell command line."""
    if not token:
        return "''"
    if SHELL_SAFE_PATTERN.fullmatch(token):
        return token
    return "'" + token.replace("'", "'\\''") + "'"


def build_shell_args(shell: str, command: str) -> list[str]:
    """Login-shell flags; zsh only reads ~/.zshrc when interactive."""
    name = Path(shell).name.lower()
    if "zsh" in name:
        return ["-l", "-i", "-c", command]
    return ["-l", "-c", command]


def user_shell_env(base: Optional[dict] = None) -> dict:
    env = dict(os.environ if base is None else base)
    for key in SHELL_ENV_BLOCKLIST:
        env.pop(key, None)
    return env


def build_shell_command(entry: ResolvedEntry, cli_args: list[str]) -> Invocation:
    shell = default_shell()
    quoted = [shell_escape(entry.node_binary)]
    quoted += [shell_escape(arg) for arg in entry.runner_args(cli_args)]
    prefix = " ".join(f"{key}={value}" for key, value in RUN_AS_NODE_ENV.items())
    command = f"{prefix} exec {' '.join(quoted)}"
    args = build_shell_args(shell, command)
    logger.info(f"User shell command: {shell} {args}")
    return Invocation(
        kind=InvocationKind.USER_SHELL,
        program=shell,
        args=tuple(args),
        env={**user_shell_env(), **RUN_AS_NODE_ENV},
    )


def build_direct_command(entry: ResolvedEntry, cli_args: list[str]) -> Invocation:
    if shutil.which(entry.node_binary) is None:
        raise RuntimeNotFound("Node binary not found. Make sure Node.js is installed.")
    return Invocation(
        kind=InvocationKind.DIRECT,
        program=entry.node_binary,
        args=tuple(entry.runner_args(cli_args)),
        env={**os.environ, **RUN_AS_NODE_ENV},
    )


def build_invocation(entry: ResolvedEntry, cli_args: list[str]) -> Invocation:
    """Pick the launch strategy for this platform and build the invocation."""
    if supports_user_shell():
        logger.info("Spawning via user shell")
        return build_shell_command(entry, cli_args)
    logger.info(f"Spawning directly with {entry.node_binary}")
    return build_direct_command(entry, cli_args)
