"""Prompt reader - serves the cached system prompt, rebuilding when needed."""

from collections.abc import Callable
from datetime import datetime

from memoria.core.logging import get_logger
from memoria.memory.base import MemoryStore
from memoria.prompt import templates
from memoria.prompt.builder import PromptCacheBuilder
from memoria.prompt.triggers import CacheStatus, SessionState, TriggerPolicy

logger = get_logger("prompt.reader")


class PromptReader:
    """Returns a usable system prompt on every call.

    Freshness degrades before availability: a stale prompt is served when a
    rebuild fails, and the base prompt when nothing else is reachable.
    """

    def __init__(
        self,
        store: MemoryStore,
        builder: PromptCacheBuilder,
        policy: TriggerPolicy,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.builder = builder
        self.policy = policy
        self._clock = clock

    @property
    def base_prompt(self) -> str:
        return templates.base_prompt(self.builder.persona)

    async def get_prompt(self, session_id: str, user_id: str) -> str:
        try:
            entry = await self.store.get_prompt_cache(session_id)
        except Exception as e:
            logger.warning(f"Prompt cache unreachable for session {session_id}: {e}")
            return self.base_prompt

        status = self.policy.check_cache(session_id, entry, self._clock())
        pending = self.policy.state(session_id) is SessionState.PENDING_REBUILD
        if status is CacheStatus.FRESH and not pending:
            logger.debug(f"Retrieved fresh cached prompt for session {session_id}")
            return entry.prompt

        if status is CacheStatus.FRESH:
            logger.info(f"Cached prompt for session {session_id} predates a pending trigger, rebuilding")
        elif status is CacheStatus.STALE:
            logger.info(f"Cached prompt for session {session_id} is stale, rebuilding")
        else:
            logger.info(f"No cached prompt for session {session_id}, building")

        try:
            return await self.builder.rebuild(session_id, user_id)
        except Exception as e:
            if entry is not None:
                logger.warning(f"Rebuild failed for session {session_id}, serving stale prompt: {e}")
                return entry.prompt
            logger.warning(f"Rebuild failed for session {session_id}, serving base prompt: {e}")
            return self.base_prompt
