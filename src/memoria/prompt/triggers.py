"""
Prompt cache trigger policy.

Per-session state machine deciding when a cached system prompt must be
rebuilt:

    IDLE -> PENDING_REBUILD -> REBUILDING -> IDLE

Triggers move a session to PENDING_REBUILD. The builder claims it
(REBUILDING) and releases it when done, successful or not. The policy does
no I/O and takes time explicitly, so it can be driven directly in tests.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from memoria.core.logging import get_logger
from memoria.memory.base import PromptCacheEntry

logger = get_logger("prompt.triggers")

HIGH_THRESHOLD = 4
MAX_AGE = timedelta(minutes=60)


class SessionState(Enum):
    IDLE = "idle"
    PENDING_REBUILD = "pending_rebuild"
    REBUILDING = "rebuilding"


class TriggerReason(Enum):
    STM_FULL = "stm_limit"
    HIGH_PRIORITY_IMPORTANCE = "high_priority_importance"
    MANUAL = "manual"
    STALE_CACHE = "stale_cache"
    MISSING_CACHE = "missing_cache"


class CacheStatus(Enum):
    FRESH = "fresh"
    STALE = "stale"
    MISSING = "missing"


@dataclass(frozen=True)
class TriggerEvent:
    """A transition into PENDING_REBUILD."""

    session_id: str
    reason: TriggerReason


class TriggerPolicy:
    """Tracks rebuild state per session."""

    def __init__(
        self,
        max_stm: int = 10,
        high_threshold: int = HIGH_THRESHOLD,
        max_age: timedelta = MAX_AGE,
    ):
        self.max_stm = max_stm
        self.high_threshold = high_threshold
        self.max_age = max_age
        self._states: dict[str, SessionState] = {}
        # Insertion-ordered queue of sessions awaiting a rebuild
        self._pending: dict[str, TriggerReason] = {}
        # Triggered while REBUILDING: rebuild again after release
        self._dirty: dict[str, TriggerReason] = {}

    def state(self, session_id: str) -> SessionState:
        return self._states.get(session_id, SessionState.IDLE)

    def pending(self) -> list[str]:
        """Sessions awaiting rebuild, in trigger order."""
        return list(self._pending)

    def reason_for(self, session_id: str) -> TriggerReason | None:
        return self._pending.get(session_id)

    def _trigger(self, session_id: str, reason: TriggerReason) -> TriggerEvent:
        current = self.state(session_id)
        if current is SessionState.REBUILDING:
            # The running rebuild may have read data older than this trigger
            self._dirty.setdefault(session_id, reason)
        elif current is SessionState.IDLE:
            self._states[session_id] = SessionState.PENDING_REBUILD
            self._pending[session_id] = reason
            logger.info(f"Session {session_id} pending rebuild ({reason.value})")
        return TriggerEvent(session_id=session_id, reason=reason)

    # Triggers

    def on_stm_append(self, session_id: str, turn_number: int) -> TriggerEvent | None:
        """STM append; fires once the buffer holds a full window."""
        if turn_number >= self.max_stm:
            return self._trigger(session_id, TriggerReason.STM_FULL)
        return None

    def on_importance_change(self, priority: int, session_ids: Iterable[str]) -> list[TriggerEvent]:
        """Importance insert/update; high priority fans out to the user's recent sessions."""
        if priority < self.high_threshold:
            return []
        return [
            self._trigger(session_id, TriggerReason.HIGH_PRIORITY_IMPORTANCE)
            for session_id in session_ids
        ]

    def request(self, session_id: str) -> TriggerEvent:
        """Explicit rebuild request."""
        return self._trigger(session_id, TriggerReason.MANUAL)

    def cache_status(self, entry: PromptCacheEntry | None, now: datetime) -> CacheStatus:
        """Classify a cache row without changing any state."""
        if entry is None:
            return CacheStatus.MISSING
        if now - entry.last_updated > self.max_age:
            return CacheStatus.STALE
        return CacheStatus.FRESH

    def check_cache(
        self, session_id: str, entry: PromptCacheEntry | None, now: datetime
    ) -> CacheStatus:
        """Cache read; a missing or stale row schedules a rebuild.

        A read during a rebuild schedules nothing: the running rebuild
        rewrites the row the reader is about to wait for.
        """
        status = self.cache_status(entry, now)
        if self.state(session_id) is SessionState.REBUILDING:
            return status
        if status is CacheStatus.MISSING:
            self._trigger(session_id, TriggerReason.MISSING_CACHE)
        elif status is CacheStatus.STALE:
            self._trigger(session_id, TriggerReason.STALE_CACHE)
        return status

    # Builder side

    def claim(self, session_id: str) -> bool:
        """Enter REBUILDING. False when a rebuild is already running."""
        if self.state(session_id) is SessionState.REBUILDING:
            return False
        self._states[session_id] = SessionState.REBUILDING
        self._pending.pop(session_id, None)
        return True

    def release(self, session_id: str) -> None:
        """Leave REBUILDING after success or failure."""
        if self.state(session_id) is not SessionState.REBUILDING:
            return
        self._states.pop(session_id, None)
        reason = self._dirty.pop(session_id, None)
        if reason is not None:
            self._trigger(session_id, reason)

    def discard(self, session_id: str) -> None:
        """Forget a pending session that can no longer be rebuilt."""
        if self.state(session_id) is SessionState.PENDING_REBUILD:
            self._states.pop(session_id, None)
            self._pending.pop(session_id, None)
            logger.info(f"Dropped pending rebuild for session {session_id}")
