"""Prompt cache builder - aggregates every memory kind into one system prompt."""

import asyncio
from collections.abc import Callable
from datetime import datetime

from memoria.core.errors import MemoriaError, RebuildTimeout
from memoria.core.logging import get_logger
from memoria.core.types import ContextCounts, RebuildResult
from memoria.memory.base import (
    EpisodicEntry,
    ImportanceEntry,
    MemoryStore,
    PromptCacheEntry,
    SemanticEntry,
    STMEntry,
)
from memoria.prompt import templates
from memoria.prompt.triggers import SessionState, TriggerPolicy

logger = get_logger("prompt.builder")

# Extra passes for triggers that keep arriving mid-build; the reader catches any left pending
MAX_FOLLOW_UPS = 2


class PromptCacheBuilder:
    """Builds and stores the cached system prompt for a session.

    At most one rebuild runs per session. A caller arriving while a rebuild
    is in flight awaits that rebuild's result instead of starting its own.
    """

    def __init__(
        self,
        store: MemoryStore,
        policy: TriggerPolicy,
        persona: str = "Zyra",
        importance_min_priority: int = 3,
        importance_limit: int = 20,
        semantic_limit: int = 50,
        episodic_limit: int = 5,
        timeout: float = 10.0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.policy = policy
        self.persona = persona
        self.importance_min_priority = importance_min_priority
        self.importance_limit = importance_limit
        self.semantic_limit = semantic_limit
        self.episodic_limit = episodic_limit
        self.timeout = timeout
        self._clock = clock
        self._inflight: dict[str, asyncio.Task[RebuildResult]] = {}

    async def rebuild(self, session_id: str, user_id: str) -> str:
        """Rebuild the session's cached prompt and return its text."""
        result = await self.rebuild_report(session_id, user_id)
        return result.prompt

    async def rebuild_report(self, session_id: str, user_id: str) -> RebuildResult:
        """Rebuild and return the prompt with its context counts."""
        task = self._inflight.get(session_id)
        if task is None:
            task = asyncio.create_task(self._run(session_id, user_id))
            self._inflight[session_id] = task
        else:
            logger.debug(f"Joining in-flight rebuild for session {session_id}")
        # A cancelled waiter must not cancel the rebuild other callers share
        return await asyncio.shield(task)

    def is_rebuilding(self, session_id: str) -> bool:
        return session_id in self._inflight

    async def _run(self, session_id: str, user_id: str) -> RebuildResult:
        try:
            result = await self._run_once(session_id, user_id)
            # A trigger that landed mid-build re-queued the session; its data may be missing
            for _ in range(MAX_FOLLOW_UPS):
                if self.policy.state(session_id) is not SessionState.PENDING_REBUILD:
                    break
                logger.info(f"Session {session_id} changed during rebuild, rebuilding again")
                result = await self._run_once(session_id, user_id)
            return result
        finally:
            self._inflight.pop(session_id, None)

    async def _run_once(self, session_id: str, user_id: str) -> RebuildResult:
        if not self.policy.claim(session_id):
            raise MemoriaError(f"Session {session_id} is already being rebuilt")
        try:
            return await asyncio.wait_for(self._build(session_id, user_id), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"Prompt rebuild for session {session_id} timed out after {self.timeout}s")
            raise RebuildTimeout(session_id, self.timeout) from e
        finally:
            self.policy.release(session_id)

    async def _build(self, session_id: str, user_id: str) -> RebuildResult:
        logger.info(f"Updating system prompt for session: {session_id}")

        stm, importance, semantic, episodic = await asyncio.gather(
            self.store.list_stm(session_id),
            self.store.list_importance(
                user_id,
                min_priority=self.importance_min_priority,
                limit=self.importance_limit,
            ),
            self.store.list_semantic(user_id, limit=self.semantic_limit),
            self._fetch_episodes(session_id),
        )

        prompt = self.format_prompt(stm, importance, semantic, episodic)
        built_at = self._clock()
        await self.store.upsert_prompt_cache(
            PromptCacheEntry(session_id=session_id, prompt=prompt, last_updated=built_at)
        )

        counts = ContextCounts(
            importance=len(importance),
            semantic=len(semantic),
            stm=len(stm),
            episodic=len(episodic),
        )
        logger.info(
            f"System prompt updated for session {session_id}: "
            f"{counts.importance} important, {counts.semantic} facts, "
            f"{counts.stm} STM turns, {counts.episodic} episodes"
        )
        return RebuildResult(
            session_id=session_id,
            user_id=user_id,
            prompt=prompt,
            counts=counts,
            built_at=built_at,
        )

    async def _fetch_episodes(self, session_id: str) -> list[EpisodicEntry]:
        """Episodic context is optional; a failed fetch contributes nothing."""
        try:
            return await self.store.list_episodes(session_id, limit=self.episodic_limit)
        except Exception as e:
            logger.warning(f"Episodic fetch failed for session {session_id}: {e}")
            return []

    def format_prompt(
        self,
        stm: list[STMEntry],
        importance: list[ImportanceEntry],
        semantic: list[SemanticEntry],
        episodic: list[EpisodicEntry],
    ) -> str:
        """Render the prompt. Output depends only on the records passed in."""
        sections = [templates.PERSONA_PREAMBLE.format(persona=self.persona)]

        if importance:
            lines = [templates.IMPORTANCE_HEADER]
            for index, entry in enumerate(importance, start=1):
                line = f"{index}. [Priority {entry.priority}] {entry.content}"
                if entry.tags:
                    line += f" (Tags: {', '.join(entry.tags)})"
                lines.append(line)
            sections.append("\n".join(lines))

        if semantic:
            lines = [templates.SEMANTIC_HEADER]
            lines.extend(f"- {entry.key}: {entry.value}" for entry in semantic)
            sections.append("\n".join(lines))

        if stm:
            turns = [
                f"Turn {entry.turn_number}:\nUser: {entry.user_text}\nYou: {entry.agent_text}"
                for entry in sorted(stm, key=lambda e: e.turn_number)
            ]
            sections.append(templates.STM_HEADER + "\n" + "\n\n".join(turns))

        if episodic:
            lines = [templates.EPISODIC_HEADER]
            for index, entry in enumerate(episodic, start=1):
                line = f"{index}. [Importance {entry.importance:.2f}] {entry.summary}"
                if entry.tags:
                    line += f" ({', '.join(entry.tags)})"
                lines.append(line)
            sections.append("\n".join(lines))

        sections.append(templates.CLOSING_INSTRUCTIONS)
        return "\n\n".join(sections)
