"""Shared fixtures: temporary SQLite store, controllable clock, wired manager."""

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from memoria.core.config import Settings
from memoria.memory.manager import MemoryManager
from memoria.memory.store import SQLiteMemoryStore


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
async def memory_store(tmp_path: Path):
    """Create a temporary memory store."""
    store = SQLiteMemoryStore(tmp_path / "test.db")
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(data_dir=tmp_path, _env_file=None)


@pytest.fixture
def manager(memory_store: SQLiteMemoryStore, settings: Settings, clock: FakeClock) -> MemoryManager:
    return MemoryManager.from_settings(memory_store, settings, clock=clock)
