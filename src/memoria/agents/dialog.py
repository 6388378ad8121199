"""Dialog agent - conversation handler whose system prompt comes from memory."""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from memoria.core.logging import get_logger
from memoria.core.types import ContentType, Message
from memoria.core.typing import MessageDict
from memoria.llm.base import LLMConfig, LLMProvider, LLMResponse
from memoria.memory.base import EpisodicEntry, STMEntry
from memoria.memory.manager import MemoryManager

SUMMARIZE_PROMPT = """Write a 2-3 sentence summary of the conversation below for long-term memory.
Keep what should be recalled in later sessions:
- Topics the user raised
- Facts the user shared about themselves
- Decisions or plans agreed on

Conversation:
{conversation}

Summary:"""

IMPORTANCE_PROMPT = """How much should this conversation shape future replies to the user?
Answer with a single number between 0.0 (forgettable) and 1.0 (essential), e.g. 0.6

Summary: {summary}

Score:"""

logger = get_logger("agents.dialog")


class AgentState(Enum):
    READY = "ready"
    ACTIVE = "active"


class DialogAgent:
    """Turn-by-turn conversation bound to one user and session."""

    def __init__(
        self,
        llm: LLMProvider,
        memory: MemoryManager,
        user_id: str,
        session_id: str | None = None,
        history_turns: int = 5,
        llm_config: LLMConfig | None = None,
    ):
        self.llm = llm
        self.memory = memory
        self.user_id = user_id
        self.session_id = session_id or memory.new_session_id()
        self.history_turns = history_turns
        self.llm_config = llm_config or LLMConfig()
        self.state = AgentState.READY

    async def process(self, message: Message) -> Message:
        """Answer a user message and record the exchange."""
        self.state = AgentState.ACTIVE
        try:
            system_prompt = await self.memory.get_prompt(self.session_id, self.user_id)
            logger.debug(f"DialogAgent system prompt: {len(system_prompt)} chars")

            history = await self._recent_history()
            response = await self.complete(system_prompt, message.content, history)
            logger.debug(f"DialogAgent response: {len(response.content)} chars")

            outcome = await self.memory.record_turn(
                self.session_id, self.user_id, message.content, response.content
            )
        finally:
            self.state = AgentState.READY

        return Message(
            id=str(uuid4()),
            timestamp=datetime.now(),
            role="assistant",
            content=response.content,
            content_type=ContentType.TEXT,
            metadata={
                "model": response.model,
                "tokens": response.input_tokens + response.output_tokens,
                "turn_number": outcome.turn_number,
                "prompt_rebuilt": bool(outcome.rebuilt),
            },
        )

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        recent_history: list[STMEntry],
    ) -> LLMResponse:
        """Chat completion boundary: system prompt, prior turns, new message."""
        messages: list[MessageDict] = [{"role": "system", "content": system_prompt}]
        for turn in recent_history:
            messages.append({"role": "user", "content": turn.user_text})
            messages.append({"role": "assistant", "content": turn.agent_text})
        messages.append({"role": "user", "content": user_message})
        return await self.llm.complete(messages, self.llm_config)

    async def _recent_history(self) -> list[STMEntry]:
        if self.history_turns <= 0:
            return []
        try:
            return await self.memory.get_recent_turns(self.session_id, self.history_turns)
        except Exception as e:
            logger.warning(f"Recent history unavailable: {e}")
            return []

    async def summarize_session(self) -> EpisodicEntry | None:
        """Summarize the session's short-term memory into an episodic entry."""
        turns = await self.memory.get_recent_turns(self.session_id)
        if not turns:
            return None

        conv_text = "\n".join(
            f"user: {t.user_text[:500]}\nassistant: {t.agent_text[:500]}" for t in turns
        )
        llm_config = LLMConfig(model=self.llm_config.model, max_tokens=256, temperature=0.3)
        messages = [{"role": "user", "content": SUMMARIZE_PROMPT.format(conversation=conv_text)}]

        try:
            response = await self.llm.complete(messages, llm_config)
            summary = response.content.strip()
            if not summary:
                return None

            importance = await self._score_importance(summary)
            tags = self.memory.classifier.tags_for(summary.lower())
            entry = await self.memory.add_episode(self.session_id, summary, tags, importance)

            logger.info(f"Session summarized (importance: {importance:.2f}): {summary[:100]}")
            return entry

        except Exception as e:
            logger.warning(f"Failed to summarize session: {e}")
            return None

    async def _score_importance(self, summary: str) -> float:
        """Score importance of a conversation summary (0.0-1.0)."""
        try:
            llm_config = LLMConfig(model=self.llm_config.model, max_tokens=10, temperature=0.1)
            messages = [{"role": "user", "content": IMPORTANCE_PROMPT.format(summary=summary)}]
            response = await self.llm.complete(messages, llm_config)

            score = float(response.content.strip().split()[0])
            return max(0.0, min(1.0, score))
        except Exception:
            return 0.5  # Default importance
