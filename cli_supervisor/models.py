"""
Data model for the CLI supervisor.

Status is the single record the host reads; ResolvedEntry and Invocation are
the immutable products of entry resolution and command building for one run.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


class CliState(Enum):
    STARTING = "starting"
    READY = "ready"
    ERROR = "error"
    STOPPED = "stopped"


@dataclass
class CliStatus:
    """Supervision state of the CLI server."""

    state: CliState = CliState.STOPPED
    pid: Optional[int] = None
    port: Optional[int] = None
    url: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "pid": self.pid,
            "port": self.port,
            "url": self.url,
            "error": self.error,
        }


class Runner(Enum):
    NODE = "node"
    TSX = "tsx"


@dataclass(frozen=True)
class ResolvedEntry:
    """Which script to run and which runtime launches it."""

    entry: str
    runner: Runner
    node_binary: str
    runner_path: Optional[str] = None

    def runner_args(self, cli_args: list[str]) -> list[str]:
        """Arguments following the runtime binary: [runner script,] entry, CLI args."""
        args = []
        if self.runner == Runner.TSX and self.runner_path:
            args.append(self.runner_path)
        args.append(self.entry)
        args.extend(cli_args)
        return args


class InvocationKind(Enum):
    DIRECT = "direct"
    USER_SHELL = "user_shell"


@dataclass(frozen=True)
class Invocation:
    """A concrete program + argv ready to be handed to Popen."""

    kind: InvocationKind
    program: str
    args: tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        # Read-only view so the frozen invocation cannot change after it is built
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]
