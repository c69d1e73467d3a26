from __future__ import annotations

import subprocess
from collections.abc import Sequence
from pathlib import Path

UNKNOWN_BRANCH = "unknown"
GIT_TIMEOUT_S = 5


def run_command(cmd: Sequence[str], cwd: str | None = None) -> str | None:
    try:
        out = subprocess.check_output(
            cmd,
            cwd=cwd,
            stderr=subprocess.DEVNULL,
            text=True,
            timeout=GIT_TIMEOUT_S,
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError):
        return None
    return out.strip() or None


def current_branch(cwd: str | None = None) -> str:
    return run_command(["git", "rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd) or UNKNOWN_BRANCH


def head_commit(cwd: str | None = None) -> str | None:
    return run_command(["git", "rev-parse", "HEAD"], cwd=cwd)


def resolve_project_path(cwd: str | None = None) -> str:
    """Repository root when inside a checkout, else the resolved directory."""

    root = run_command(["git", "rev-parse", "--show-toplevel"], cwd=cwd)
    if root:
        return root
    return str(Path(cwd or ".").resolve())
