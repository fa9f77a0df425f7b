from datetime import timedelta

import pytest

from api.presence.presence_model import DENIED_ENTRY_MARKER
from api.presence.presence_service import Person, PresenceService
from utils.clock import as_utc
from utils.exceptions import DuplicateEntryError, NoActivePresenceError
from utils.query_params import QueryParams

ANA = Person(dni="70123456", name="Ana Quispe", faculty_code="FIIS", school_code="SIS")


@pytest.fixture
def svc(db, clock):
    return PresenceService(db, clock)


def test_entry_then_exit_records_duration(svc, clock):
    entered = svc.on_entry_authorized(ANA, "Puerta 1", "G1", clock.now, "att-1")
    assert entered.inside
    assert svc.find_inside(ANA.dni).id == entered.id

    closed = svc.on_exit_authorized(ANA.dni, "Puerta 2", "G2", clock.now + timedelta(seconds=90), "att-2")

    assert not closed.inside
    assert closed.duration_ms == 90_000
    assert closed.exit_checkpoint == "Puerta 2"
    assert closed.exit_attendance_id == "att-2"
    assert svc.find_inside(ANA.dni) is None
    assert svc.find_by_exit("att-2").id == closed.id


def test_second_entry_is_a_duplicate(svc, clock):
    first = svc.on_entry_authorized(ANA, "Puerta 1", "G1", clock.now, "att-1")

    with pytest.raises(DuplicateEntryError) as exc:
        svc.on_entry_authorized(ANA, "Puerta 1", "G1", clock.now, "att-1")

    assert exc.value.code == "ALREADY_INSIDE"
    assert exc.value.extra["presence_id"] == first.id
    assert len(svc.list_inside()) == 1


def test_exit_without_entry(svc, clock):
    with pytest.raises(NoActivePresenceError):
        svc.on_exit_authorized(ANA.dni, "Puerta 1", "G1", clock.now)


def test_exit_before_entry_timestamp_clamps_duration(svc, clock):
    svc.on_entry_authorized(ANA, "Puerta 1", "G1", clock.now)
    closed = svc.on_exit_authorized(ANA.dni, "Puerta 1", "G1", clock.now - timedelta(seconds=5))
    assert closed.duration_ms == 0


def test_denied_entry_invalidates_presence(svc, clock):
    svc.on_entry_authorized(ANA, "Puerta 1", "G1", clock.now, "att-1")

    invalidated = svc.on_entry_denied(ANA.dni, "G1", clock.now + timedelta(minutes=2), "att-1")

    assert invalidated.invalidated
    assert invalidated.exit_checkpoint == DENIED_ENTRY_MARKER
    assert invalidated.duration_ms == 0
    assert svc.find_inside(ANA.dni) is None


def test_denied_entry_only_touches_its_own_presence(svc, clock):
    svc.on_entry_authorized(ANA, "Puerta 1", "G1", clock.now, "att-2")
    assert svc.on_entry_denied(ANA.dni, "G1", clock.now, "att-1") is None
    assert svc.find_inside(ANA.dni) is not None


def test_denied_entry_without_presence_is_noop(svc, clock):
    assert svc.on_entry_denied(ANA.dni, "G1", clock.now, "att-1") is None


def test_reauthorized_entry_keeps_original_timestamp(svc, clock):
    entry_time = clock.now
    svc.on_entry_authorized(ANA, "Puerta 1", "G1", entry_time, "att-1")
    svc.on_entry_denied(ANA.dni, "G1", entry_time + timedelta(minutes=1), "att-1")

    restored = svc.on_entry_reauthorized(ANA, "Puerta 1", "G1", entry_time, "att-1")

    assert restored.inside
    assert as_utc(restored.entered_at) == entry_time
    assert restored.entry_checkpoint == "Puerta 1"


def test_reauthorized_entry_when_already_inside_is_noop(svc, clock):
    svc.on_entry_authorized(ANA, "Puerta 1", "G1", clock.now, "att-1")
    assert svc.on_entry_reauthorized(ANA, "Puerta 1", "G1", clock.now, "att-1") is None
    assert len(svc.list_inside()) == 1


def test_long_stays(svc, clock):
    svc.on_entry_authorized(ANA, "Puerta 1", "G1", clock.now - timedelta(hours=9))
    svc.on_entry_authorized(Person("11111111", "Luis Mamani"), "Puerta 1", "G1", clock.now - timedelta(hours=1))

    stays = svc.long_stays(hours=8)
    assert [p.person_dni for p in stays] == [ANA.dni]


def test_history_paginates(svc, clock):
    for i in range(3):
        svc.on_entry_authorized(ANA, "Puerta 1", "G1", clock.now + timedelta(hours=i))
        svc.on_exit_authorized(ANA.dni, "Puerta 1", "G1", clock.now + timedelta(hours=i, minutes=30))

    page = svc.history(QueryParams(limit=2, offset=0, sort_order="desc"))
    assert len(page) == 2
    assert as_utc(page[0].entered_at) == clock.now + timedelta(hours=2)
    assert len(svc.history()) == 3


def test_invalidation_does_not_claim_an_exit(svc, clock):
    svc.on_entry_authorized(ANA, "Puerta 1", "G1", clock.now, "att-1")

    invalidated = svc.on_entry_denied(ANA.dni, "G1", clock.now, "att-1")

    assert invalidated.exit_attendance_id is None
    assert svc.find_by_exit("att-1") is None
    assert svc.find_applied_entry("att-1") is None


def test_applied_entry_survives_exit(svc, clock):
    opened = svc.on_entry_authorized(ANA, "Puerta 1", "G1", clock.now, "att-1")
    svc.on_exit_authorized(ANA.dni, "Puerta 1", "G1", clock.now + timedelta(hours=1), "att-2")
    svc.on_entry_authorized(ANA, "Puerta 2", "G1", clock.now + timedelta(hours=2), "att-3")

    assert svc.find_applied_entry("att-1").id == opened.id
    assert svc.find_applied_entry("att-3").inside


def test_concurrent_entry_hits_unique_index(svc, clock, monkeypatch):
    first = svc.on_entry_authorized(ANA, "Puerta 1", "G1", clock.now, "att-1")

    # the other writer's row is not visible at check time
    real_find_inside = svc.find_inside
    calls = []

    def find_inside_late(dni):
        calls.append(dni)
        return None if len(calls) == 1 else real_find_inside(dni)

    monkeypatch.setattr(svc, "find_inside", find_inside_late)

    with pytest.raises(DuplicateEntryError) as exc:
        svc.on_entry_authorized(ANA, "Puerta 2", "G2", clock.now, "att-2")

    assert exc.value.extra["presence_id"] == first.id
    monkeypatch.undo()
    assert [p.entry_attendance_id for p in svc.list_inside()] == ["att-1"]


def test_exit_loses_race_to_other_checkpoint(svc, session_factory, clock, monkeypatch):
    stale = svc.on_entry_authorized(ANA, "Puerta 1", "G1", clock.now, "att-1")

    other = session_factory()
    try:
        PresenceService(other, clock).on_exit_authorized(ANA.dni, "Puerta 2", "G2", clock.now, "att-2")
    finally:
        other.close()

    monkeypatch.setattr(svc, "find_inside", lambda dni: stale)

    with pytest.raises(NoActivePresenceError) as exc:
        svc.on_exit_authorized(ANA.dni, "Puerta 3", "G3", clock.now, "att-3")
    assert "another checkpoint" in exc.value.message

    assert svc._close(stale, exited_at=clock.now, exit_checkpoint="Puerta 3") is False
    assert svc.find_by_exit("att-2").exit_checkpoint == "Puerta 2"
    assert svc.find_by_exit("att-3") is None


def test_invalidation_loses_race_to_exit(svc, session_factory, clock, monkeypatch):
    svc.on_entry_authorized(ANA, "Puerta 1", "G1", clock.now, "att-1")

    # the row is read as inside, then closed before the UPDATE runs
    real_close = svc._close

    def close_after_exit(presence, **values):
        other = session_factory()
        try:
            PresenceService(other, clock).on_exit_authorized(ANA.dni, "Puerta 2", "G2", clock.now, "att-2")
        finally:
            other.close()
        return real_close(presence, **values)

    monkeypatch.setattr(svc, "_close", close_after_exit)

    assert svc.on_entry_denied(ANA.dni, "G1", clock.now, "att-1") is None
    assert svc.find_by_exit("att-2").exit_checkpoint == "Puerta 2"
