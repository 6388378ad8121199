"""Tests for the short-term memory manager."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from memoria.core.errors import StoreUnavailable
from memoria.memory.stm import STMManager
from memoria.memory.store import SQLiteMemoryStore


@pytest.fixture
def stm(memory_store: SQLiteMemoryStore, clock) -> STMManager:
    return STMManager(memory_store, max_entries=10, clock=clock)


@pytest.mark.asyncio
async def test_turn_numbers_start_at_one(stm: STMManager):
    assert await stm.append_turn("s1", "hi", "hello") == 1
    assert await stm.append_turn("s1", "again", "sure") == 2
    assert await stm.append_turn("s2", "other", "session") == 1


@pytest.mark.asyncio
async def test_eleventh_append_evicts_first(stm: STMManager, memory_store: SQLiteMemoryStore):
    for i in range(1, 11):
        await stm.append_turn("s1", f"question {i}", f"answer {i}")
    assert await memory_store.count_stm("s1") == 10

    assert await stm.append_turn("s1", "question 11", "answer 11") == 11

    turns = await stm.get_recent_turns("s1")
    assert [t.turn_number for t in turns] == list(range(2, 12))
    assert await memory_store.count_stm("s1") == 10


@pytest.mark.asyncio
async def test_count_never_exceeds_limit(stm: STMManager, memory_store: SQLiteMemoryStore):
    numbers = []
    for i in range(25):
        numbers.append(await stm.append_turn("s1", f"q{i}", f"a{i}"))
        assert await memory_store.count_stm("s1") <= 10

    # Strictly increasing, never reused after eviction
    assert numbers == list(range(1, 26))


@pytest.mark.asyncio
async def test_concurrent_appends_serialized(stm: STMManager, memory_store: SQLiteMemoryStore):
    numbers = await asyncio.gather(
        *(stm.append_turn("s1", f"q{i}", f"a{i}") for i in range(15))
    )

    assert sorted(numbers) == list(range(1, 16))
    assert await memory_store.count_stm("s1") == 10


@pytest.mark.asyncio
async def test_recent_turns_limit(stm: STMManager):
    for i in range(1, 6):
        await stm.append_turn("s1", f"q{i}", f"a{i}")

    recent = await stm.get_recent_turns("s1", limit=3)
    assert [t.turn_number for t in recent] == [3, 4, 5]
    assert recent[-1].user_text == "q5"


@pytest.mark.asyncio
async def test_clear_restarts_numbering(stm: STMManager):
    for i in range(3):
        await stm.append_turn("s1", f"q{i}", f"a{i}")

    assert await stm.clear("s1") == 3
    assert await stm.live_count("s1") == 0
    assert await stm.append_turn("s1", "fresh", "start") == 1


@pytest.mark.asyncio
async def test_live_count_mirror(stm: STMManager, memory_store: SQLiteMemoryStore):
    await stm.append_turn("s1", "q", "a")
    assert await stm.live_count("s1") == 1

    await memory_store.clear_stm("s1")
    # Mirror is advisory until refreshed from the store
    assert await stm.live_count("s1") == 1
    assert await stm.live_count("s1", refresh=True) == 0


@pytest.mark.asyncio
async def test_session_locks_released_when_idle(stm: STMManager):
    await asyncio.gather(
        *(stm.append_turn(f"s{i % 3}", f"q{i}", f"a{i}") for i in range(9))
    )
    await stm.clear("s0")

    assert stm._session_locks == {}
    assert stm._lock_users == {}


@pytest.mark.asyncio
async def test_lock_kept_while_waiters_remain(stm: STMManager):
    async with stm._session_lock("s1"):
        waiter = asyncio.create_task(stm.append_turn("s1", "q", "a"))
        await asyncio.sleep(0)
        assert stm._lock_users["s1"] == 2

    assert await waiter == 1
    assert "s1" not in stm._session_locks


@pytest.mark.asyncio
async def test_count_mirror_bounded(memory_store, clock):
    stm = STMManager(memory_store, clock=clock, max_tracked_sessions=3)
    for i in range(5):
        await stm.append_turn(f"s{i}", "q", "a")

    assert list(stm._turn_counts) == ["s2", "s3", "s4"]
    # Evicted sessions are re-read from the store
    assert await stm.live_count("s0") == 1
    assert "s0" in stm._turn_counts
    assert len(stm._turn_counts) == 3
