from __future__ import annotations

import datetime as dt
import itertools
from collections.abc import Iterator
from pathlib import Path

import pytest

from synapse_memory.store import MemoryStore

START = dt.datetime(2026, 3, 1, 12, 0, tzinfo=dt.UTC)


class FakeClock:
    def __init__(self, start: dt.datetime = START) -> None:
        self.current = start

    def __call__(self) -> dt.datetime:
        return self.current

    def advance(self, **delta: float) -> None:
        self.current = self.current + dt.timedelta(**delta)


@pytest.fixture(autouse=True)
def _isolate_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SYNAPSE_MEMORY_DIR", str(tmp_path / "home"))
    monkeypatch.setenv("SYNAPSE_MEMORY_CONFIG", str(tmp_path / "config.json"))
    monkeypatch.delenv("SYNAPSE_MEMORY_DB", raising=False)
    monkeypatch.delenv("SYNAPSE_MEMORY_PROJECT", raising=False)
    for var in (
        "SYNAPSE_MEMORY_RECENT_SESSION_LIMIT",
        "SYNAPSE_MEMORY_KNOWLEDGE_LIMIT",
        "SYNAPSE_MEMORY_IMPORTANT_FILES_LIMIT",
        "SYNAPSE_MEMORY_HOURLY_RATE",
        "SYNAPSE_MEMORY_STATS_PERIOD",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path, clock: FakeClock) -> Iterator[MemoryStore]:
    counter = itertools.count(1)
    mem = MemoryStore(
        tmp_path / "mem.sqlite",
        clock=clock,
        id_factory=lambda: f"id-{next(counter):04d}",
    )
    try:
        yield mem
    finally:
        mem.close()
