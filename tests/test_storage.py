"""
Interaction log and versioned session rows.
"""

from datetime import datetime, timedelta, timezone

import pytest

from pathway.db import engine_options
from pathway.errors import StaleSessionError
from pathway.intake.state import SessionState
from pathway.preferences import PreferenceStore

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_query_returns_latest_window_oldest_first(log):
    for i in range(5):
        log.append("u1", f"msg {i}", f"reply {i}", timestamp=T0 + timedelta(minutes=i))
    log.append("u2", "other", "other")

    records = log.query("u1", limit=3)
    assert [r.user_utterance for r in records] == ["msg 2", "msg 3", "msg 4"]
    assert all(r.timestamp.tzinfo is not None for r in records)


def test_query_filters_by_session_type(log):
    log.append("u1", "a", "b", session_type="intake")
    log.append("u1", "c", "d", session_type="companion")
    assert [r.user_utterance for r in log.query("u1", session_type="companion")] == ["c"]


def test_save_session_versions_increase(log):
    state = SessionState(active=True, steps_completed=["personal_basics"])
    assert log.save_session("u1", state, "v", expected_version=0) == 1

    loaded = log.load_session("u1")
    assert loaded.version == 1
    assert loaded.script_version == "v"
    assert loaded.steps_completed == ["personal_basics"]

    loaded.steps_completed.append("justice_context")
    assert log.save_session("u1", loaded, "v", expected_version=1) == 2


def test_save_session_rejects_stale_writers(log):
    log.save_session("u1", SessionState(), "v", expected_version=0)
    log.save_session("u1", SessionState(), "v", expected_version=1)

    with pytest.raises(StaleSessionError):
        log.save_session("u1", SessionState(), "v", expected_version=1)
    with pytest.raises(StaleSessionError):
        log.save_session("u1", SessionState(), "v", expected_version=0)


def test_preferences_update_and_invalidate():
    store = PreferenceStore()
    store.update("u1", contact_preferences="text", check_in_frequency=None)
    assert store.get("u1") == {"contact_preferences": "text"}
    assert store.value("u1", "check_in_frequency", "weekly") == "weekly"

    store.invalidate("u1")
    assert store.get("u1") == {}


def test_engine_options_per_backend():
    assert engine_options("sqlite:///./pathway.db") == {
        "connect_args": {"check_same_thread": False}
    }
    assert engine_options("sqlite://") == {"connect_args": {"check_same_thread": False}}
    assert engine_options("postgresql+psycopg://app@db/pathway") == {"pool_pre_ping": True}
