import pytest
from unittest.mock import MagicMock

from site_allocation.services.orchestrator import AllocationOrchestrator
from site_allocation.services.sessions import OperatorSessions
from site_allocation.services.store import EntityStore


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def store():
    return MagicMock(spec=EntityStore)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_sessions(store, clock):
    def _make(max_sessions=3, ttl_seconds=60.0):
        return OperatorSessions(
            lambda operator_id: AllocationOrchestrator(store, operator_id),
            max_sessions=max_sessions,
            ttl_seconds=ttl_seconds,
            clock=clock,
        )
    return _make


def test_same_operator_gets_same_session(make_sessions):
    sessions = make_sessions()

    first = sessions.get("operator-1")

    assert sessions.get("operator-1") is first
    assert first.operator_id == "operator-1"
    assert len(sessions) == 1


def test_least_recently_used_session_is_evicted(make_sessions):
    sessions = make_sessions(max_sessions=2)
    sessions.get("operator-1")
    sessions.get("operator-2")
    sessions.get("operator-1")  # operator-2 is now the oldest

    sessions.get("operator-3")

    assert len(sessions) == 2
    assert "operator-1" in sessions
    assert "operator-2" not in sessions
    assert "operator-3" in sessions


def test_idle_sessions_expire(make_sessions, clock):
    sessions = make_sessions(ttl_seconds=60.0)
    first = sessions.get("operator-1")
    clock.now = 30.0
    sessions.get("operator-2")

    clock.now = 75.0
    renewed = sessions.get("operator-1")

    assert renewed is not first
    assert not renewed.is_loaded
    assert "operator-2" in sessions


def test_limit_comes_from_environment(store, monkeypatch):
    monkeypatch.setenv("MAX_OPERATOR_SESSIONS", "1")
    sessions = OperatorSessions(lambda operator_id: AllocationOrchestrator(store, operator_id))

    sessions.get("operator-1")
    sessions.get("operator-2")

    assert len(sessions) == 1
    assert "operator-2" in sessions
