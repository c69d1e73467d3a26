from __future__ import annotations

import os
from collections.abc import Mapping

UNKNOWN_AGENT = "unknown"

# Checked in order; the first variable present wins.
AGENT_ENV_VARS: tuple[tuple[str, str], ...] = (
    ("CLAUDE_CODE_VERSION", "claude-code"),
    ("CURSOR_VERSION", "cursor"),
    ("AIDER_VERSION", "aider"),
    ("OPENCLAW_VERSION", "openclaw"),
)

AGENT_DISPLAY_NAMES: dict[str, str] = {
    "claude-code": "Claude Code",
    "cursor": "Cursor",
    "aider": "Aider",
    "openclaw": "OpenClaw",
    UNKNOWN_AGENT: "Unknown Agent",
}


def _environ(env: Mapping[str, str] | None) -> Mapping[str, str]:
    return os.environ if env is None else env


def detect_agent_type(env: Mapping[str, str] | None = None) -> str:
    environ = _environ(env)
    for var, agent_type in AGENT_ENV_VARS:
        if environ.get(var):
            return agent_type
    return UNKNOWN_AGENT


def detect_agent_version(env: Mapping[str, str] | None = None) -> str | None:
    environ = _environ(env)
    for var, _agent_type in AGENT_ENV_VARS:
        value = environ.get(var)
        if value:
            return value
    return None


def agent_display_name(agent_type: str) -> str:
    return AGENT_DISPLAY_NAMES.get(agent_type, AGENT_DISPLAY_NAMES[UNKNOWN_AGENT])
