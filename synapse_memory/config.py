from __future__ import annotations

import json
import os
import warnings
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("~/.config/synapse-memory/config.json")

STATS_PERIODS = ("day", "week", "month", "all")

CONFIG_ENV_OVERRIDES = {
    "recent_session_limit": "SYNAPSE_MEMORY_RECENT_SESSION_LIMIT",
    "knowledge_context_limit": "SYNAPSE_MEMORY_KNOWLEDGE_LIMIT",
    "important_files_limit": "SYNAPSE_MEMORY_IMPORTANT_FILES_LIMIT",
    "hourly_rate": "SYNAPSE_MEMORY_HOURLY_RATE",
    "stats_period": "SYNAPSE_MEMORY_STATS_PERIOD",
}

_INT_KEYS = {
    "recent_session_limit",
    "knowledge_context_limit",
    "important_files_limit",
    "recall_limit",
    "knowledge_list_limit",
}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("SYNAPSE_MEMORY_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class SynapseMemoryConfig:
    recent_session_limit: int = 3
    knowledge_context_limit: int = 10
    important_files_limit: int = 5
    recall_limit: int = 10
    knowledge_list_limit: int = 20
    hourly_rate: float = 50.0
    stats_period: str = "week"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    if parsed < 0:
        warnings.warn(f"Negative int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    return parsed


def _parse_float(value: object, default: float, *, key: str) -> float:
    if value is None:
        return default
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid float for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _parse_period(value: object, default: str, *, key: str) -> str:
    if value is None:
        return default
    text = str(value).strip().lower()
    if text in STATS_PERIODS:
        return text
    warnings.warn(f"Invalid period for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return default


def load_config(path: Path | None = None) -> SynapseMemoryConfig:
    """Defaults, then the config file, then environment overrides."""

    try:
        data = read_config_file(path)
    except ValueError as exc:
        warnings.warn(
            f"Ignoring config at {get_config_path(path)}: {exc}", RuntimeWarning, stacklevel=2
        )
        data = {}
    cfg = _apply_dict(SynapseMemoryConfig(), data)
    return _apply_dict(cfg, get_env_overrides())


def _apply_dict(cfg: SynapseMemoryConfig, data: dict[str, Any]) -> SynapseMemoryConfig:
    for key, value in data.items():
        if not hasattr(cfg, key):
            continue
        if key in _INT_KEYS:
            setattr(cfg, key, _parse_int(value, getattr(cfg, key), key=key))
            continue
        if key == "hourly_rate":
            cfg.hourly_rate = _parse_float(value, cfg.hourly_rate, key=key)
            continue
        if key == "stats_period":
            cfg.stats_period = _parse_period(value, cfg.stats_period, key=key)
    return cfg
