import pytest

from api.guard_sessions.guard_sessions_service import FORCE_ALL, GuardSessionService
from utils.exceptions import CheckpointBusyError, SessionNotFoundError, ValidationError


@pytest.fixture
def svc(db, locks, clock):
    return GuardSessionService(db, locks, clock)


def test_start_returns_active_session(svc, clock):
    session = svc.start("G1", "Carlos Ramos", "Puerta 1", {"platform": "android"})

    assert session.is_active
    assert len(session.token) >= 32
    assert session.device_info == {"platform": "android"}
    assert [s.token for s in svc.list_active()] == [session.token]


def test_start_requires_guard_and_checkpoint(svc):
    with pytest.raises(ValidationError) as exc:
        svc.start("G1", "", None)
    assert exc.value.extra["missing_fields"] == ["guard_name", "checkpoint"]


def test_checkpoint_busy_names_holder(svc):
    svc.start("G1", "Carlos Ramos", "Puerta 1")

    with pytest.raises(CheckpointBusyError) as exc:
        svc.start("G2", "Rosa Flores", "Puerta 1")

    holder = exc.value.active_guard
    assert holder["guard_id"] == "G1"
    assert holder["guard_name"] == "Carlos Ramos"
    assert holder["stale"] is False
    assert exc.value.to_dict()["conflict"] is True


def test_checkpoint_free_after_finalize(svc):
    first = svc.start("G1", "Carlos Ramos", "Puerta 1")
    svc.finalize(first.token)

    second = svc.start("G2", "Rosa Flores", "Puerta 1")
    assert second.guard_id == "G2"


def test_restart_closes_previous_sessions_of_same_guard(svc):
    first = svc.start("G1", "Carlos Ramos", "Puerta 1")
    second = svc.start("G1", "Carlos Ramos", "Puerta 2")

    assert not svc.get(first.token).is_active
    assert svc.get(first.token).ended_at is not None
    assert [s.token for s in svc.list_active()] == [second.token]


def test_heartbeat_updates_last_activity(svc, clock):
    session = svc.start("G1", "Carlos Ramos", "Puerta 1")
    clock.advance(seconds=45)

    beat = svc.heartbeat(session.token)
    assert beat.last_activity.replace(tzinfo=None) == clock.now.replace(tzinfo=None)


def test_heartbeat_on_closed_session(svc):
    session = svc.start("G1", "Carlos Ramos", "Puerta 1")
    svc.finalize(session.token)

    with pytest.raises(SessionNotFoundError):
        svc.heartbeat(session.token)
    with pytest.raises(SessionNotFoundError):
        svc.finalize(session.token)


def test_force_finalize_one(svc):
    a = svc.start("G1", "Carlos Ramos", "Puerta 1")
    b = svc.start("G2", "Rosa Flores", "Puerta 2")

    assert svc.force_finalize(a.token, "admin-1") == 1
    assert svc.get(a.token).forced_by == "admin-1"
    assert [s.token for s in svc.list_active()] == [b.token]


def test_force_finalize_all(svc):
    svc.start("G1", "Carlos Ramos", "Puerta 1")
    svc.start("G2", "Rosa Flores", "Puerta 2")

    assert svc.force_finalize(FORCE_ALL) == 2
    assert svc.list_active() == []
    assert svc.force_finalize(FORCE_ALL) == 0


def test_stale_session_still_blocks_but_is_flagged(svc, clock):
    session = svc.start("G1", "Carlos Ramos", "Puerta 1")
    clock.advance(seconds=301)

    assert svc.is_stale(session)
    with pytest.raises(CheckpointBusyError) as exc:
        svc.start("G2", "Rosa Flores", "Puerta 1")
    assert exc.value.active_guard["stale"] is True


def test_concurrent_start_hits_unique_index(svc, monkeypatch):
    svc.start("G1", "Carlos Ramos", "Puerta 1")

    # the other guard's session is not visible at check time
    real_holder = svc._active_holder
    calls = []

    def holder_late(checkpoint, exclude_guard_id=None):
        calls.append(checkpoint)
        if len(calls) == 1:
            return None
        return real_holder(checkpoint, exclude_guard_id=exclude_guard_id)

    monkeypatch.setattr(svc, "_active_holder", holder_late)

    with pytest.raises(CheckpointBusyError) as exc:
        svc.start("G2", "Rosa Flores", "Puerta 1")

    assert exc.value.active_guard["guard_id"] == "G1"
    assert [s.guard_id for s in svc.list_active()] == ["G1"]
