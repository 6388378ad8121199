"""Long-term memory stores: importance, semantic and episodic."""

import math
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any
from uuid import uuid4

from memoria.core.errors import ValidationError
from memoria.core.logging import get_logger
from memoria.memory.base import EpisodicEntry, ImportanceEntry, MemoryStore, SemanticEntry

logger = get_logger("memory.longterm")

MIN_PRIORITY = 1
MAX_PRIORITY = 5


def clamp_priority(priority: Any) -> int:
    """Floor a numeric priority and clamp it to [1, 5]."""
    if isinstance(priority, bool):
        raise ValidationError(f"Priority must be a number, got {priority!r}")
    try:
        value = float(priority)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Priority must be a number, got {priority!r}") from e
    if math.isnan(value):
        raise ValidationError("Priority must be a number, got NaN")
    if math.isinf(value):
        return MAX_PRIORITY if value > 0 else MIN_PRIORITY
    return max(MIN_PRIORITY, min(MAX_PRIORITY, math.floor(value)))


def normalize_tags(tags: Iterable[str]) -> list[str]:
    """Strip, drop empties and de-duplicate tags, keeping first-seen order."""
    seen: list[str] = []
    for tag in tags:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class ImportanceStore:
    """User-scoped, priority-ranked durable facts."""

    def __init__(self, store: MemoryStore, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self._clock = clock

    async def add(
        self,
        user_id: str,
        content: str,
        tags: Iterable[str] = (),
        priority: Any = 3,
    ) -> ImportanceEntry:
        """Insert an entry. Priority is clamped, never rejected for range."""
        if not content or not content.strip():
            raise ValidationError("Importance content must not be empty")
        entry = ImportanceEntry(
            id=str(uuid4()),
            user_id=user_id,
            content=content,
            tags=normalize_tags(tags),
            priority=clamp_priority(priority),
            last_updated=self._clock(),
        )
        await self.store.insert_importance(entry)
        logger.info(f"Added importance entry with priority {entry.priority}: {content[:50]}...")
        return entry

    async def update(
        self,
        entry_id: str,
        *,
        content: str | None = None,
        tags: Iterable[str] | None = None,
        priority: Any = None,
    ) -> ImportanceEntry | None:
        """Edit an entry; returns None when it does not exist."""
        fields: dict[str, Any] = {"last_updated": self._clock()}
        if content is not None:
            if not content.strip():
                raise ValidationError("Importance content must not be empty")
            fields["content"] = content
        if tags is not None:
            fields["tags"] = normalize_tags(tags)
        if priority is not None:
            fields["priority"] = clamp_priority(priority)
        return await self.store.update_importance(entry_id, **fields)

    async def get(self, entry_id: str) -> ImportanceEntry | None:
        return await self.store.get_importance(entry_id)

    async def delete(self, entry_id: str) -> bool:
        return await self.store.delete_importance(entry_id)

    async def for_user(
        self,
        user_id: str,
        min_priority: int = MIN_PRIORITY,
        limit: int | None = None,
    ) -> list[ImportanceEntry]:
        return await self.store.list_importance(user_id, min_priority=min_priority, limit=limit)

    async def count(self, user_id: str) -> int:
        return await self.store.count_importance(user_id)


class SemanticStore:
    """User-scoped key/value facts, last write wins per key."""

    def __init__(self, store: MemoryStore, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self._clock = clock

    async def set(self, user_id: str, key: str, value: str) -> SemanticEntry:
        key = key.strip()
        if not key:
            raise ValidationError("Semantic key must not be empty")
        entry = SemanticEntry(user_id=user_id, key=key, value=value, updated_at=self._clock())
        await self.store.upsert_semantic(entry)
        return entry

    async def get(self, user_id: str, key: str) -> SemanticEntry | None:
        return await self.store.get_semantic(user_id, key)

    async def delete(self, user_id: str, key: str) -> bool:
        return await self.store.delete_semantic(user_id, key)

    async def for_user(self, user_id: str, limit: int | None = None) -> list[SemanticEntry]:
        return await self.store.list_semantic(user_id, limit=limit)


class EpisodicStore:
    """Session-scoped summaries ranked by importance then recency."""

    def __init__(self, store: MemoryStore, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self._clock = clock

    async def add(
        self,
        session_id: str,
        summary: str,
        tags: Iterable[str] = (),
        importance: float = 0.5,
    ) -> EpisodicEntry:
        if not summary or not summary.strip():
            raise ValidationError("Episode summary must not be empty")
        entry = EpisodicEntry(
            id=str(uuid4()),
            session_id=session_id,
            summary=summary.strip(),
            tags=normalize_tags(tags),
            importance=max(0.0, min(1.0, float(importance))),
            created_at=self._clock(),
        )
        await self.store.insert_episode(entry)
        return entry

    async def top(self, session_id: str, limit: int | None = 5) -> list[EpisodicEntry]:
        return await self.store.list_episodes(session_id, limit=limit)
