"""Tests for the prompt cache trigger policy."""

from datetime import datetime, timedelta

from memoria.memory.base import PromptCacheEntry
from memoria.prompt.triggers import (
    CacheStatus,
    SessionState,
    TriggerPolicy,
    TriggerReason,
)

NOW = datetime(2024, 5, 1, 12, 0, 0)


def cache(age: timedelta) -> PromptCacheEntry:
    return PromptCacheEntry(session_id="s1", prompt="cached", last_updated=NOW - age)


def test_sessions_start_idle():
    policy = TriggerPolicy()
    assert policy.state("s1") is SessionState.IDLE
    assert policy.pending() == []


def test_stm_full_triggers_at_limit():
    policy = TriggerPolicy(max_stm=10)

    assert policy.on_stm_append("s1", 9) is None
    event = policy.on_stm_append("s1", 10)

    assert event is not None
    assert event.reason is TriggerReason.STM_FULL
    assert policy.state("s1") is SessionState.PENDING_REBUILD
    assert policy.reason_for("s1") is TriggerReason.STM_FULL


def test_importance_fans_out_above_threshold():
    policy = TriggerPolicy(high_threshold=4)

    assert policy.on_importance_change(3, ["s1", "s2"]) == []
    events = policy.on_importance_change(4, ["s1", "s2"])

    assert [e.session_id for e in events] == ["s1", "s2"]
    assert policy.pending() == ["s1", "s2"]


def test_repeat_trigger_keeps_first_reason():
    policy = TriggerPolicy()
    policy.request("s1")
    policy.on_stm_append("s1", 12)

    assert policy.pending() == ["s1"]
    assert policy.reason_for("s1") is TriggerReason.MANUAL


def test_claim_and_release():
    policy = TriggerPolicy()
    policy.request("s1")

    assert policy.claim("s1") is True
    assert policy.state("s1") is SessionState.REBUILDING
    assert policy.pending() == []
    assert policy.claim("s1") is False

    policy.release("s1")
    assert policy.state("s1") is SessionState.IDLE


def test_trigger_during_rebuild_requeues_after_release():
    policy = TriggerPolicy()
    policy.claim("s1")
    policy.request("s1")

    # Still rebuilding; not queued twice
    assert policy.state("s1") is SessionState.REBUILDING
    assert policy.pending() == []

    policy.release("s1")
    assert policy.state("s1") is SessionState.PENDING_REBUILD
    assert policy.reason_for("s1") is TriggerReason.MANUAL


def test_release_without_claim_is_noop():
    policy = TriggerPolicy()
    policy.request("s1")
    policy.release("s1")
    assert policy.state("s1") is SessionState.PENDING_REBUILD


def test_cache_status():
    policy = TriggerPolicy(max_age=timedelta(minutes=60))

    assert policy.cache_status(None, NOW) is CacheStatus.MISSING
    assert policy.cache_status(cache(timedelta(minutes=60)), NOW) is CacheStatus.FRESH
    assert policy.cache_status(cache(timedelta(minutes=61)), NOW) is CacheStatus.STALE
    # Pure classification never schedules anything
    assert policy.pending() == []


def test_check_cache_schedules_stale_and_missing():
    policy = TriggerPolicy()

    assert policy.check_cache("s1", cache(timedelta(minutes=61)), NOW) is CacheStatus.STALE
    assert policy.reason_for("s1") is TriggerReason.STALE_CACHE

    assert policy.check_cache("s2", None, NOW) is CacheStatus.MISSING
    assert policy.reason_for("s2") is TriggerReason.MISSING_CACHE

    assert policy.check_cache("s3", cache(timedelta(minutes=5)), NOW) is CacheStatus.FRESH
    assert policy.state("s3") is SessionState.IDLE


def test_cache_read_during_rebuild_schedules_nothing():
    policy = TriggerPolicy()
    policy.claim("s1")

    assert policy.check_cache("s1", None, NOW) is CacheStatus.MISSING
    assert policy.check_cache("s1", cache(timedelta(minutes=90)), NOW) is CacheStatus.STALE

    policy.release("s1")
    assert policy.state("s1") is SessionState.IDLE
    assert policy.pending() == []


def test_discard_pending_session():
    policy = TriggerPolicy()
    policy.request("s1")
    policy.request("s2")

    policy.discard("s1")

    assert policy.state("s1") is SessionState.IDLE
    assert policy.pending() == ["s2"]


def test_discard_leaves_running_rebuild_alone():
    policy = TriggerPolicy()
    policy.claim("s1")

    policy.discard("s1")

    assert policy.state("s1") is SessionState.REBUILDING
