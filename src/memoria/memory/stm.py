"""Short-term memory manager - bounded FIFO of recent turns per session."""

import asyncio
from collections import OrderedDict
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

from memoria.core.logging import get_logger
from memoria.memory.base import MemoryStore, STMEntry

logger = get_logger("memory.stm")

MAX_STM = 10
MAX_TRACKED_SESSIONS = 1024


class STMManager:
    """Appends turns to a session's buffer, evicting the oldest past the limit.

    Appends for the same session are serialized with a per-session lock so
    the count, evict and insert sequence cannot interleave. A lock lives only
    while some append or clear holds or awaits it. The turn-count mirror is
    advisory and bounded to the most recently used sessions; the store is
    authoritative and re-read on every append.
    """

    def __init__(
        self,
        store: MemoryStore,
        max_entries: int = MAX_STM,
        clock: Callable[[], datetime] = datetime.now,
        max_tracked_sessions: int = MAX_TRACKED_SESSIONS,
    ):
        self.store = store
        self.max_entries = max_entries
        self.max_tracked_sessions = max_tracked_sessions
        self._clock = clock
        self._session_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._turn_counts: OrderedDict[str, int] = OrderedDict()

    @asynccontextmanager
    async def _session_lock(self, session_id: str) -> AsyncIterator[None]:
        """Hold the session's append lock, dropping it once nobody needs it."""
        lock = self._session_locks.get(session_id)
        if lock is None:
            lock = self._session_locks[session_id] = asyncio.Lock()
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if self._lock_users[session_id] == 0:
                del self._lock_users[session_id]
                del self._session_locks[session_id]

    def _remember_count(self, session_id: str, count: int) -> None:
        self._turn_counts[session_id] = count
        self._turn_counts.move_to_end(session_id)
        while len(self._turn_counts) > self.max_tracked_sessions:
            self._turn_counts.popitem(last=False)

    async def append_turn(self, session_id: str, user_text: str, agent_text: str) -> int:
        """Append a turn and return its turn number.

        Store errors propagate: a dropped turn breaks conversation continuity.
        """
        async with self._session_lock(session_id):
            count = await self.store.count_stm(session_id)
            last_turn = await self.store.last_turn_number(session_id)

            while count >= self.max_entries:
                evicted = await self.store.delete_oldest_stm(session_id)
                if evicted is None:
                    break
                logger.debug(f"Evicted STM turn {evicted} for session {session_id}")
                count -= 1

            turn_number = last_turn + 1
            await self.store.insert_stm(
                STMEntry(
                    session_id=session_id,
                    turn_number=turn_number,
                    user_text=user_text,
                    agent_text=agent_text,
                    created_at=self._clock(),
                )
            )
            self._remember_count(session_id, count + 1)

        logger.info(f"Added STM entry for session {session_id}, turn {turn_number}")
        return turn_number

    async def get_recent_turns(self, session_id: str, limit: int | None = None) -> list[STMEntry]:
        """Most recent turns, ascending by turn number."""
        return await self.store.list_stm(session_id, limit=limit)

    async def live_count(self, session_id: str, refresh: bool = False) -> int:
        """Live entry count, served from the mirror unless missing or refresh requested."""
        if refresh or session_id not in self._turn_counts:
            self._remember_count(session_id, await self.store.count_stm(session_id))
        else:
            self._turn_counts.move_to_end(session_id)
        return self._turn_counts[session_id]

    async def clear(self, session_id: str) -> int:
        """Delete every turn of a session. Other memory kinds are untouched."""
        async with self._session_lock(session_id):
            deleted = await self.store.clear_stm(session_id)
            self._turn_counts.pop(session_id, None)
        logger.info(f"Cleared {deleted} STM entries for session {session_id}")
        return deleted
