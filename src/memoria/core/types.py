"""
Shared type definitions.

Core data structures used across modules.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from memoria.core.typing import JSONDict


class ContentType(Enum):
    TEXT = "text"


@dataclass
class Message:
    """Conversation message exchanged with the agent."""

    id: str
    timestamp: datetime
    role: str  # "user" | "assistant" | "system"
    content: str
    content_type: ContentType = ContentType.TEXT
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ContextCounts:
    """How many records of each memory kind went into a prompt."""

    importance: int = 0
    semantic: int = 0
    stm: int = 0
    episodic: int = 0

    def to_dict(self) -> JSONDict:
        return {
            "importance": self.importance,
            "semantic": self.semantic,
            "stm": self.stm,
            "episodic": self.episodic,
        }


@dataclass
class RebuildResult:
    """Outcome of one prompt cache rebuild."""

    session_id: str
    user_id: str
    prompt: str
    counts: ContextCounts
    built_at: datetime

    @property
    def prompt_length(self) -> int:
        return len(self.prompt)


@dataclass
class MemoryStats:
    """Snapshot of a session's memory state."""

    stm_count: int
    importance_count: int
    has_prompt_cache: bool
    last_prompt_update: datetime | None
    cache_age_minutes: float | None = None
    is_stale: bool = False
