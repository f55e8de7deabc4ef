"""
CLI entry resolution.

Finds the server script to run and the runtime that launches it by probing a
fixed list of candidate locations. In development mode the TypeScript sources
are preferred (run through tsx); otherwise the first built ``dist`` bundle
found in the workspace or in an installed application bundle is used.
"""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from .config import config
from .errors import ResolutionError
from .models import ResolvedEntry, Runner

logger = logging.getLogger(__name__)

TSX_CLI = "node_modules/tsx/dist/cli.js"

DIST_ENTRIES = ("server/dist/bin.js", "server/dist/index.js")

BUNDLED_ENTRIES = (
    "server/dist/bin.js",
    "server/dist/index.js",
    "server/dist/server/bin.js",
    "server/dist/server/index.js",
    "resources/server/dist/bin.js",
    "resources/server/dist/index.js",
    "resources/server/dist/server/bin.js",
    "resources/server/dist/server/index.js",
)

LINUX_RESOURCE_ROOTS = ("../lib/CodeNomad", "../lib/codenomad")


def find_workspace_root(start: Path, levels: int = 3) -> Path:
    """Walk up ``levels`` parents from ``start``, stopping at the filesystem root."""
    path = start
    for _ in range(levels):
        if path.parent == path:
            break
        path = path.parent
    return path


def normalize_path(path: Path) -> str:
    """Canonical form of ``path`` when it can be resolved, else the path as given."""
    try:
        return str(path.resolve(strict=True))
    except (OSError, RuntimeError):
        return str(path)


def first_existing(candidates: Iterable[Optional[Path]]) -> Optional[str]:
    for candidate in candidates:
        if candidate is not None and candidate.exists():
            return normalize_path(candidate)
    return None


class EntryResolver:
    """Locates the CLI server entry point."""

    def __init__(
        self,
        cwd: Optional[Path] = None,
        exe_dir: Optional[Path] = None,
        workspace_root: Optional[Path] = None,
        node_binary: Optional[str] = None,
    ):
        self.cwd = cwd or Path.cwd()
        self.exe_dir = exe_dir or Path(sys.executable).parent
        if workspace_root is None and config.workspace_root:
            workspace_root = Path(config.workspace_root)
        self.workspace_root = workspace_root or find_workspace_root(self.cwd)
        self.node_binary = node_binary or config.node_binary

    def resolve(self, dev: bool) -> ResolvedEntry:
        """Resolve the entry for this run, preferring sources in development mode."""
        if dev:
            tsx_path = self.resolve_tsx()
            entry = self.resolve_dev_entry() if tsx_path else None
            if tsx_path and entry:
                return ResolvedEntry(
                    entry=entry,
                    runner=Runner.TSX,
                    runner_path=tsx_path,
                    node_binary=self.node_binary,
                )
            logger.info("Development sources not found, falling back to built CLI")

        entry = self.resolve_dist_entry()
        if entry:
            return ResolvedEntry(entry=entry, runner=Runner.NODE, node_binary=self.node_binary)

        raise ResolutionError(
            "Unable to locate CodeNomad CLI build (dist/bin.js). "
            "Please build @neuralnomads/codenomad."
        )

    def resolve_tsx(self) -> Optional[str]:
        return first_existing([
            self.cwd / TSX_CLI,
            self.exe_dir / ".." / TSX_CLI,
        ])

    def resolve_dev_entry(self) -> Optional[str]:
        return first_existing([
            self.cwd / "packages/server/src/index.ts",
            self.cwd / "../server/src/index.ts",
        ])

    def dist_candidates(self) -> list[Path]:
        """Built-artifact locations in the order they are checked."""
        base = self.workspace_root
        candidates = [base / "packages" / rel for rel in DIST_ENTRIES]
        candidates += [base / rel for rel in DIST_ENTRIES]

        # macOS-style application bundle
        resources = self.exe_dir / "../Resources"
        candidates += [resources / rel for rel in BUNDLED_ENTRIES]

        # Linux installs put resources under lib/<app>
        for root in LINUX_RESOURCE_ROOTS:
            candidates += [self.exe_dir / root / rel for rel in BUNDLED_ENTRIES]

        return candidates

    def resolve_dist_entry(self) -> Optional[str]:
        return first_existing(self.dist_candidates())
