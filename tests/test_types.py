"""Tests for shared types and errors."""

from datetime import datetime

from memoria.core.errors import MemoriaError, RebuildTimeout, StoreUnavailable, ValidationError
from memoria.core.types import ContentType, ContextCounts, Message, RebuildResult


def test_message_defaults():
    msg = Message(
        id="1",
        timestamp=datetime.now(),
        role="user",
        content="Hello",
    )
    assert msg.content_type is ContentType.TEXT
    assert msg.metadata == {}


def test_rebuild_result_prompt_length():
    result = RebuildResult(
        session_id="s1",
        user_id="u1",
        prompt="abc",
        counts=ContextCounts(stm=2),
        built_at=datetime.now(),
    )
    assert result.prompt_length == 3
    assert result.counts.to_dict() == {"importance": 0, "semantic": 0, "stm": 2, "episodic": 0}


def test_error_hierarchy():
    assert issubclass(StoreUnavailable, MemoriaError)
    assert issubclass(ValidationError, ValueError)
    err = RebuildTimeout("s1", 2.5)
    assert isinstance(err, MemoriaError)
    assert err.session_id == "s1"
    assert "2.5s" in str(err)
