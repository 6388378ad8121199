"""Memory manager - wires the per-turn flow through every memory component.

A completed turn is appended to short-term memory, inspected by the
importance classifier, fed to the trigger policy, and any sessions the
policy marks pending are rebuilt before the call returns.
"""

import asyncio
import re
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from memoria.core.config import Settings
from memoria.core.errors import ValidationError
from memoria.core.logging import get_logger
from memoria.core.types import MemoryStats, RebuildResult
from memoria.memory.base import EpisodicEntry, ImportanceEntry, MemoryStore, SemanticEntry, STMEntry
from memoria.memory.classifier import ImportanceClassifier
from memoria.memory.longterm import EpisodicStore, ImportanceStore, SemanticStore
from memoria.memory.stm import STMManager
from memoria.prompt.builder import PromptCacheBuilder
from memoria.prompt.reader import PromptReader
from memoria.prompt.triggers import CacheStatus, TriggerEvent, TriggerPolicy

logger = get_logger("memory.manager")

_WHITESPACE = re.compile(r"\s+")


def sanitize_text(text: Any, max_length: int = 2000) -> str:
    """Trim, collapse whitespace and cap length."""
    if not isinstance(text, str):
        raise ValidationError(f"Turn text must be a string, got {type(text).__name__}")
    return _WHITESPACE.sub(" ", text.strip())[:max_length]


@dataclass
class TurnOutcome:
    """What recording one turn did."""

    turn_number: int
    importance: ImportanceEntry | None = None
    triggers: list[TriggerEvent] = field(default_factory=list)
    rebuilt: list[RebuildResult] = field(default_factory=list)


class MemoryManager:
    """Entry point the conversation layer talks to."""

    def __init__(
        self,
        store: MemoryStore,
        stm: STMManager,
        importance: ImportanceStore,
        semantic: SemanticStore,
        episodic: EpisodicStore,
        classifier: ImportanceClassifier,
        policy: TriggerPolicy,
        builder: PromptCacheBuilder,
        reader: PromptReader,
        recent_session_lookback: int = 5,
        max_text_length: int = 2000,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.stm = stm
        self.importance = importance
        self.semantic = semantic
        self.episodic = episodic
        self.classifier = classifier
        self.policy = policy
        self.builder = builder
        self.reader = reader
        self.recent_session_lookback = recent_session_lookback
        self.max_text_length = max_text_length
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        store: MemoryStore,
        settings: Settings,
        clock: Callable[[], datetime] = datetime.now,
    ) -> "MemoryManager":
        """Build every component from settings around one store."""
        policy = TriggerPolicy(
            max_stm=settings.max_stm_entries,
            high_threshold=settings.high_priority_threshold,
            max_age=settings.prompt_cache_max_age,
        )
        builder = PromptCacheBuilder(
            store,
            policy,
            persona=settings.persona_name,
            importance_min_priority=settings.importance_min_priority,
            importance_limit=settings.importance_limit,
            semantic_limit=settings.semantic_limit,
            episodic_limit=settings.episodic_limit,
            timeout=settings.rebuild_timeout_seconds,
            clock=clock,
        )
        return cls(
            store=store,
            stm=STMManager(store, max_entries=settings.max_stm_entries, clock=clock),
            importance=ImportanceStore(store, clock=clock),
            semantic=SemanticStore(store, clock=clock),
            episodic=EpisodicStore(store, clock=clock),
            classifier=ImportanceClassifier(),
            policy=policy,
            builder=builder,
            reader=PromptReader(store, builder, policy, clock=clock),
            recent_session_lookback=settings.recent_session_lookback,
            max_text_length=settings.max_text_length,
            clock=clock,
        )

    @staticmethod
    def new_session_id() -> str:
        """Opaque session id. User membership lives in the session index."""
        return uuid4().hex

    # Conversation turns

    async def record_turn(
        self,
        session_id: str,
        user_id: str,
        user_text: str,
        agent_text: str,
    ) -> TurnOutcome:
        """Record a completed turn.

        STM failures propagate. Classification and rebuild failures are
        logged and never fail the turn.
        """
        user_text = sanitize_text(user_text, self.max_text_length)
        agent_text = sanitize_text(agent_text, self.max_text_length)
        if not user_text:
            raise ValidationError("User text must not be empty")

        await self.store.touch_session(session_id, user_id, self._clock())
        turn_number = await self.stm.append_turn(session_id, user_text, agent_text)
        outcome = TurnOutcome(turn_number=turn_number)

        event = self.policy.on_stm_append(session_id, turn_number)
        if event:
            logger.info(f"Triggering prompt update for session {session_id} ({turn_number} turns)")
            outcome.triggers.append(event)

        outcome.importance = await self._promote_turn(user_id, user_text, agent_text, outcome)
        outcome.rebuilt = await self.run_pending()
        return outcome

    async def _promote_turn(
        self,
        user_id: str,
        user_text: str,
        agent_text: str,
        outcome: TurnOutcome,
    ) -> ImportanceEntry | None:
        """Best-effort promotion of a turn into importance memory."""
        try:
            proposal = self.classifier.classify(user_text, agent_text)
            if proposal is None:
                return None
            entry = await self.importance.add(
                user_id, proposal.content, proposal.tags, proposal.priority
            )
            outcome.triggers.extend(await self._fan_out(user_id, entry.priority))
            return entry
        except Exception as e:
            logger.warning(f"Importance classification failed for user {user_id}: {e}")
            return None

    async def _fan_out(self, user_id: str, priority: int) -> list[TriggerEvent]:
        """Mark the user's recent sessions pending for a high-priority change."""
        if priority < self.policy.high_threshold:
            return []
        sessions = await self.store.recent_sessions(user_id, self.recent_session_lookback)
        logger.info(
            f"High-priority importance ({priority}) for user {user_id}, "
            f"refreshing {len(sessions)} session(s)"
        )
        return self.policy.on_importance_change(priority, sessions)

    async def run_pending(self) -> list[RebuildResult]:
        """Rebuild every pending session. Failures are logged, not raised."""
        results = []
        for session_id in self.policy.pending():
            try:
                user_id = await self.store.get_session_user(session_id)
                if user_id is None:
                    logger.warning(f"No user recorded for session {session_id}, dropping rebuild")
                    self.policy.discard(session_id)
                    continue
                results.append(await self.builder.rebuild_report(session_id, user_id))
            except Exception as e:
                logger.warning(f"Prompt rebuild failed for session {session_id}: {e}")
        return results

    # Importance memory (manual path)

    async def add_importance(
        self,
        user_id: str,
        content: str,
        tags: Iterable[str] = (),
        priority: Any = 3,
    ) -> ImportanceEntry:
        """Add an entry by hand. Priority >= threshold refreshes recent sessions."""
        entry = await self.importance.add(user_id, content, tags, priority)
        await self._after_importance_change(entry)
        return entry

    async def update_importance(
        self,
        entry_id: str,
        *,
        content: str | None = None,
        tags: Iterable[str] | None = None,
        priority: Any = None,
    ) -> ImportanceEntry | None:
        entry = await self.importance.update(entry_id, content=content, tags=tags, priority=priority)
        if entry is not None:
            await self._after_importance_change(entry)
        return entry

    async def _after_importance_change(self, entry: ImportanceEntry) -> None:
        try:
            await self._fan_out(entry.user_id, entry.priority)
        except Exception as e:
            logger.warning(f"Session lookup for user {entry.user_id} failed: {e}")
        await self.run_pending()

    # Semantic and episodic memory

    async def set_fact(self, user_id: str, key: str, value: str) -> SemanticEntry:
        return await self.semantic.set(user_id, key, value)

    async def add_episode(
        self,
        session_id: str,
        summary: str,
        tags: Iterable[str] = (),
        importance: float = 0.5,
    ) -> EpisodicEntry:
        return await self.episodic.add(session_id, summary, tags, importance)

    # Short-term memory

    async def get_recent_turns(self, session_id: str, limit: int | None = None) -> list[STMEntry]:
        return await self.stm.get_recent_turns(session_id, limit)

    async def clear_session(self, session_id: str) -> int:
        return await self.stm.clear(session_id)

    # Prompt cache

    async def get_prompt(self, session_id: str, user_id: str) -> str:
        """System prompt for the next turn. Never raises."""
        return await self.reader.get_prompt(session_id, user_id)

    async def request_rebuild(self, session_id: str, user_id: str | None = None) -> RebuildResult:
        """Manual rebuild. Errors propagate to the caller."""
        if user_id is None:
            user_id = await self.store.get_session_user(session_id)
            if user_id is None:
                raise ValidationError(f"Unknown session: {session_id}")
        self.policy.request(session_id)
        return await self.builder.rebuild_report(session_id, user_id)

    async def get_stats(self, session_id: str, user_id: str) -> MemoryStats:
        try:
            stm_count, importance_count, cache = await asyncio.gather(
                self.stm.live_count(session_id, refresh=True),
                self.importance.count(user_id),
                self.store.get_prompt_cache(session_id),
            )
        except Exception as e:
            logger.warning(f"Failed to get memory stats for session {session_id}: {e}")
            return MemoryStats(
                stm_count=0,
                importance_count=0,
                has_prompt_cache=False,
                last_prompt_update=None,
            )

        if cache is None:
            return MemoryStats(
                stm_count=stm_count,
                importance_count=importance_count,
                has_prompt_cache=False,
                last_prompt_update=None,
            )

        age = self._clock() - cache.last_updated
        return MemoryStats(
            stm_count=stm_count,
            importance_count=importance_count,
            has_prompt_cache=True,
            last_prompt_update=cache.last_updated,
            cache_age_minutes=age.total_seconds() / 60,
            is_stale=self.policy.cache_status(cache, self._clock()) is CacheStatus.STALE,
        )

    async def should_update(self, session_id: str, user_id: str) -> tuple[bool, list[str]]:
        """Whether the session's prompt needs a rebuild, with human-readable reasons."""
        stats = await self.get_stats(session_id, user_id)
        reasons = []

        if stats.stm_count >= self.stm.max_entries:
            reasons.append(
                f"STM has reached maximum capacity ({self.stm.max_entries} turns)"
            )

        if stats.has_prompt_cache:
            if stats.is_stale:
                reasons.append(
                    f"Prompt cache is stale ({round(stats.cache_age_minutes or 0)} minutes old)"
                )
        else:
            reasons.append("No prompt cache exists")

        return bool(reasons), reasons

    def batch(self) -> "MemoryBatch":
        return MemoryBatch(self)


class MemoryBatch:
    """Queue of memory writes executed concurrently."""

    def __init__(self, manager: MemoryManager):
        self.manager = manager
        self._operations: list[Callable[[], Awaitable[Any]]] = []

    def __len__(self) -> int:
        return len(self._operations)

    def add_turn(self, session_id: str, user_id: str, user_text: str, agent_text: str) -> "MemoryBatch":
        self._operations.append(
            lambda: self.manager.record_turn(session_id, user_id, user_text, agent_text)
        )
        return self

    def add_importance(
        self,
        user_id: str,
        content: str,
        tags: Iterable[str] = (),
        priority: Any = 3,
    ) -> "MemoryBatch":
        tags = list(tags)
        self._operations.append(
            lambda: self.manager.add_importance(user_id, content, tags, priority)
        )
        return self

    async def execute(self) -> list[Any]:
        """Run queued operations. The queue is emptied even when one fails."""
        operations, self._operations = self._operations, []
        results = await asyncio.gather(*(op() for op in operations))
        logger.info(f"Executed {len(operations)} memory operations")
        return list(results)
