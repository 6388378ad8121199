"""
Memory records and the persistent store interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class STMEntry:
    """One conversation turn in a session's short-term buffer."""

    session_id: str
    turn_number: int
    user_text: str
    agent_text: str
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class ImportanceEntry:
    """Durable, priority-ranked fact about a user."""

    id: str
    user_id: str
    content: str
    tags: list[str] = field(default_factory=list)
    priority: int = 3  # 1-5
    last_updated: datetime = field(default_factory=datetime.now)


@dataclass
class SemanticEntry:
    """Key/value fact about a user (one row per key)."""

    user_id: str
    key: str
    value: str
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass
class EpisodicEntry:
    """Summary of a past stretch of conversation."""

    id: str
    session_id: str
    summary: str
    tags: list[str] = field(default_factory=list)
    importance: float = 0.5
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class PromptCacheEntry:
    """Precomputed system prompt for a session."""

    session_id: str
    prompt: str
    last_updated: datetime


class MemoryStore(ABC):
    """Abstract persistent storage for all memory kinds and the prompt cache.

    Implementations raise ``StoreUnavailable`` for any I/O failure.
    """

    # Short-term memory

    @abstractmethod
    async def count_stm(self, session_id: str) -> int:
        """Number of live STM entries for a session."""
        ...

    @abstractmethod
    async def last_turn_number(self, session_id: str) -> int:
        """Highest live turn number for a session, 0 when empty."""
        ...

    @abstractmethod
    async def insert_stm(self, entry: STMEntry) -> None:
        ...

    @abstractmethod
    async def delete_oldest_stm(self, session_id: str) -> int | None:
        """Delete the entry with the smallest turn number, return that number."""
        ...

    @abstractmethod
    async def list_stm(self, session_id: str, limit: int | None = None) -> list[STMEntry]:
        """Most recent ``limit`` entries (all when None), ascending by turn number."""
        ...

    @abstractmethod
    async def clear_stm(self, session_id: str) -> int:
        """Delete every STM entry of a session, return deleted count."""
        ...

    # Importance memory

    @abstractmethod
    async def insert_importance(self, entry: ImportanceEntry) -> str:
        ...

    @abstractmethod
    async def get_importance(self, entry_id: str) -> ImportanceEntry | None:
        ...

    @abstractmethod
    async def update_importance(self, entry_id: str, **fields: Any) -> ImportanceEntry | None:
        """Update content/tags/priority, bump last_updated, return the new row."""
        ...

    @abstractmethod
    async def delete_importance(self, entry_id: str) -> bool:
        ...

    @abstractmethod
    async def list_importance(
        self,
        user_id: str,
        min_priority: int = 1,
        limit: int | None = None,
    ) -> list[ImportanceEntry]:
        """Entries ordered by (priority desc, last_updated desc)."""
        ...

    @abstractmethod
    async def count_importance(self, user_id: str) -> int:
        ...

    # Semantic memory

    @abstractmethod
    async def upsert_semantic(self, entry: SemanticEntry) -> None:
        ...

    @abstractmethod
    async def get_semantic(self, user_id: str, key: str) -> SemanticEntry | None:
        ...

    @abstractmethod
    async def list_semantic(self, user_id: str, limit: int | None = None) -> list[SemanticEntry]:
        """Entries ordered by recency (updated_at desc)."""
        ...

    @abstractmethod
    async def delete_semantic(self, user_id: str, key: str) -> bool:
        ...

    # Episodic memory

    @abstractmethod
    async def insert_episode(self, entry: EpisodicEntry) -> str:
        ...

    @abstractmethod
    async def list_episodes(self, session_id: str, limit: int | None = None) -> list[EpisodicEntry]:
        """Entries ordered by (importance desc, created_at desc)."""
        ...

    # Prompt cache

    @abstractmethod
    async def get_prompt_cache(self, session_id: str) -> PromptCacheEntry | None:
        ...

    @abstractmethod
    async def upsert_prompt_cache(self, entry: PromptCacheEntry) -> None:
        """Replace the session's cached prompt wholesale."""
        ...

    # Session index

    @abstractmethod
    async def touch_session(self, session_id: str, user_id: str, when: datetime) -> None:
        """Record that a user was active in a session."""
        ...

    @abstractmethod
    async def get_session_user(self, session_id: str) -> str | None:
        ...

    @abstractmethod
    async def recent_sessions(self, user_id: str, limit: int) -> list[str]:
        """Session ids for a user, most recently active first."""
        ...
