"""Tests for the dialog agent."""

from datetime import datetime
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from memoria.agents.dialog import AgentState, DialogAgent
from memoria.core.errors import StoreUnavailable
from memoria.core.types import ContentType, Message
from memoria.llm.base import LLMProvider, LLMResponse


def make_message(content: str) -> Message:
    """Create a user message."""
    return Message(
        id=str(uuid4()),
        timestamp=datetime.now(),
        role="user",
        content=content,
        content_type=ContentType.TEXT,
    )


def make_llm(*replies: str) -> AsyncMock:
    llm = AsyncMock(spec=LLMProvider)
    llm.complete.side_effect = [
        LLMResponse(content=reply, model="test-model", input_tokens=10, output_tokens=5)
        for reply in replies
    ]
    return llm


@pytest.mark.asyncio
async def test_process_records_turn(manager):
    llm = make_llm("Hi Ana!")
    agent = DialogAgent(llm=llm, memory=manager, user_id="u1", session_id="s1")

    response = await agent.process(make_message("hello"))

    assert response.role == "assistant"
    assert response.content == "Hi Ana!"
    assert response.metadata["turn_number"] == 1
    assert response.metadata["tokens"] == 15
    assert agent.state is AgentState.READY

    turns = await manager.get_recent_turns("s1")
    assert [(t.user_text, t.agent_text) for t in turns] == [("hello", "Hi Ana!")]


@pytest.mark.asyncio
async def test_system_prompt_and_history_sent(manager):
    llm = make_llm("first reply", "second reply")
    agent = DialogAgent(llm=llm, memory=manager, user_id="u1", session_id="s1", history_turns=5)

    await agent.process(make_message("one"))
    await agent.process(make_message("two"))

    messages = llm.complete.call_args_list[1].args[0]
    assert messages[0]["role"] == "system"
    assert messages[0]["content"].startswith("You are Zyra")
    assert messages[1:] == [
        {"role": "user", "content": "one"},
        {"role": "assistant", "content": "first reply"},
        {"role": "user", "content": "two"},
    ]


@pytest.mark.asyncio
async def test_history_disabled(manager):
    llm = make_llm("a", "b")
    agent = DialogAgent(llm=llm, memory=manager, user_id="u1", session_id="s1", history_turns=0)

    await agent.process(make_message("one"))
    await agent.process(make_message("two"))

    messages = llm.complete.call_args_list[1].args[0]
    assert len(messages) == 2


@pytest.mark.asyncio
async def test_generates_session_id(manager):
    agent = DialogAgent(llm=make_llm(), memory=manager, user_id="u1")
    assert agent.session_id


@pytest.mark.asyncio
async def test_llm_failure_records_nothing(manager):
    llm = AsyncMock(spec=LLMProvider)
    llm.complete.side_effect = RuntimeError("provider down")
    agent = DialogAgent(llm=llm, memory=manager, user_id="u1", session_id="s1")

    with pytest.raises(RuntimeError):
        await agent.process(make_message("hello"))

    assert agent.state is AgentState.READY
    assert await manager.get_recent_turns("s1") == []


@pytest.mark.asyncio
async def test_stm_failure_surfaces(manager):
    manager.stm.append_turn = AsyncMock(side_effect=StoreUnavailable("disk full"))
    agent = DialogAgent(llm=make_llm("reply"), memory=manager, user_id="u1", session_id="s1")

    with pytest.raises(StoreUnavailable):
        await agent.process(make_message("hello"))


@pytest.mark.asyncio
async def test_summarize_session(manager):
    await manager.record_turn("s1", "u1", "My goal is to run a marathon", "Great goal!")
    llm = make_llm("User wants to run a marathon.", "0.8")
    agent = DialogAgent(llm=llm, memory=manager, user_id="u1", session_id="s1")

    entry = await agent.summarize_session()

    assert entry is not None
    assert entry.summary == "User wants to run a marathon."
    assert entry.importance == 0.8
    episodes = await manager.episodic.top("s1")
    assert [e.id for e in episodes] == [entry.id]


@pytest.mark.asyncio
async def test_summarize_defaults_importance(manager):
    await manager.record_turn("s1", "u1", "hello", "hi")
    agent = DialogAgent(
        llm=make_llm("Brief greeting.", "very important"),
        memory=manager,
        user_id="u1",
        session_id="s1",
    )

    entry = await agent.summarize_session()

    assert entry is not None
    assert entry.importance == 0.5


@pytest.mark.asyncio
async def test_summarize_empty_session(manager):
    llm = make_llm()
    agent = DialogAgent(llm=llm, memory=manager, user_id="u1", session_id="s1")

    assert await agent.summarize_session() is None
    llm.complete.assert_not_called()
