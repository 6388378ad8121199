"""Tests for the rebuild trigger endpoint."""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from memoria.core.errors import RebuildTimeout
from memoria.interfaces.rebuild import RebuildEndpoint, RebuildRequest


@pytest.fixture
def endpoint(manager, clock) -> RebuildEndpoint:
    return RebuildEndpoint(manager, clock=clock)


def test_request_accepts_aliases():
    request = RebuildRequest.model_validate({"sessionId": "s1", "userId": "u1"})
    assert request.session_id == "s1"
    assert request.user_id == "u1"


@pytest.mark.asyncio
async def test_success_payload(endpoint, manager, clock):
    await manager.record_turn("s1", "u1", "hello", "hi")
    await manager.set_fact("u1", "name", "Ana")

    payload = await endpoint.handle({"sessionId": "s1"})

    assert payload["success"] is True
    assert payload["sessionId"] == "s1"
    assert payload["contextCounts"] == {"importance": 0, "semantic": 1, "stm": 1, "episodic": 0}
    cached = await manager.store.get_prompt_cache("s1")
    assert payload["promptLength"] == len(cached.prompt)
    assert datetime.fromisoformat(payload["timestamp"]) == clock.now


@pytest.mark.asyncio
async def test_explicit_user_id(endpoint, manager):
    await manager.add_importance("u9", "Runs marathons", priority=5)

    payload = await endpoint.handle({"sessionId": "fresh", "userId": "u9"})

    assert payload["success"] is True
    assert payload["contextCounts"]["importance"] == 1


@pytest.mark.asyncio
async def test_missing_session_id(endpoint):
    payload = await endpoint.handle({})

    assert payload["error"] == "sessionId is required"
    assert "timestamp" in payload
    assert "success" not in payload


@pytest.mark.asyncio
async def test_non_mapping_payload(endpoint):
    payload = await endpoint.handle(None)
    assert payload["error"] == "Invalid rebuild request"


@pytest.mark.asyncio
async def test_unknown_session(endpoint):
    payload = await endpoint.handle({"sessionId": "ghost"})
    assert "Unknown session" in payload["error"]


@pytest.mark.asyncio
async def test_rebuild_failure_becomes_error_payload(endpoint, manager):
    manager.request_rebuild = AsyncMock(side_effect=RebuildTimeout("s1", 10.0))

    payload = await endpoint.handle({"sessionId": "s1", "userId": "u1"})

    assert payload["error"] == "Prompt rebuild for session s1 exceeded 10.0s"
