import json
from pathlib import Path

import pytest

from synapse_memory.config import (
    SynapseMemoryConfig,
    get_config_path,
    get_env_overrides,
    load_config,
    read_config_file,
)


def test_defaults_without_file(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "missing.json")

    assert cfg == SynapseMemoryConfig()
    assert cfg.to_dict()["stats_period"] == "week"


def test_read_config_file_rejects_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{not-json}")
    with pytest.raises(ValueError, match="invalid config json"):
        read_config_file(config_path)


def test_read_config_file_rejects_non_object(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("[1, 2]")
    with pytest.raises(ValueError, match="config must be an object"):
        read_config_file(config_path)


def test_file_values_are_loaded(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"recent_session_limit": 7, "hourly_rate": 80, "unknown": True}))

    cfg = load_config(config_path)

    assert read_config_file(config_path)["unknown"] is True
    assert cfg.recent_session_limit == 7
    assert cfg.hourly_rate == 80.0


def test_config_path_env_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SYNAPSE_MEMORY_CONFIG", str(tmp_path / "custom.json"))

    assert get_config_path() == tmp_path / "custom.json"


def test_env_overrides_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"knowledge_context_limit": 4, "stats_period": "month"}))
    monkeypatch.setenv("SYNAPSE_MEMORY_KNOWLEDGE_LIMIT", "2")
    monkeypatch.setenv("SYNAPSE_MEMORY_STATS_PERIOD", "DAY")

    cfg = load_config(config_path)

    assert cfg.knowledge_context_limit == 2
    assert cfg.stats_period == "day"
    assert get_env_overrides() == {"knowledge_context_limit": "2", "stats_period": "DAY"}


@pytest.mark.parametrize(
    ("env_var", "value", "field"),
    [
        ("SYNAPSE_MEMORY_RECENT_SESSION_LIMIT", "many", "recent_session_limit"),
        ("SYNAPSE_MEMORY_IMPORTANT_FILES_LIMIT", "-1", "important_files_limit"),
        ("SYNAPSE_MEMORY_HOURLY_RATE", "free", "hourly_rate"),
        ("SYNAPSE_MEMORY_STATS_PERIOD", "fortnight", "stats_period"),
    ],
)
def test_invalid_env_values_warn_and_keep_default(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, env_var: str, value: str, field: str
) -> None:
    monkeypatch.setenv(env_var, value)

    with pytest.warns(RuntimeWarning):
        cfg = load_config(tmp_path / "missing.json")

    assert getattr(cfg, field) == getattr(SynapseMemoryConfig(), field)


def test_invalid_json_file_warns(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{oops")

    with pytest.warns(RuntimeWarning, match="invalid config json"):
        cfg = load_config(config_path)

    assert cfg == SynapseMemoryConfig()


def test_non_object_file_warns_and_env_still_applies(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("[1, 2]")
    monkeypatch.setenv("SYNAPSE_MEMORY_HOURLY_RATE", "75")

    with pytest.warns(RuntimeWarning, match="config must be an object"):
        cfg = load_config(config_path)

    assert cfg.hourly_rate == 75.0
    assert cfg.recent_session_limit == SynapseMemoryConfig().recent_session_limit


def test_every_env_override_is_applied(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SYNAPSE_MEMORY_RECENT_SESSION_LIMIT", "1")
    monkeypatch.setenv("SYNAPSE_MEMORY_KNOWLEDGE_LIMIT", "2")
    monkeypatch.setenv("SYNAPSE_MEMORY_IMPORTANT_FILES_LIMIT", "3")
    monkeypatch.setenv("SYNAPSE_MEMORY_HOURLY_RATE", "4.5")
    monkeypatch.setenv("SYNAPSE_MEMORY_STATS_PERIOD", "all")

    cfg = load_config(tmp_path / "missing.json")

    assert (
        cfg.recent_session_limit,
        cfg.knowledge_context_limit,
        cfg.important_files_limit,
        cfg.hourly_rate,
        cfg.stats_period,
    ) == (1, 2, 3, 4.5, "all")
