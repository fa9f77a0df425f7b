import pytest

from api.attendance.attendance_records_model import AuthorizationState, PresenceSync
from api.audit.audit_service import presence_sync_failed
from api.checkpoint.checkpoint_service import CheckpointService
from api.manual_decisions.manual_decisions_service import ManualDecisionService
from api.presence.presence_service import PresenceService
from utils.exceptions import DuplicateEntryError, NoActivePresenceError, StorageError


@pytest.fixture
def svc(db, locks, clock):
    return CheckpointService(db, locks, clock)


def _storage_down(*args, **kwargs):
    raise StorageError("presence entry failed: database unavailable")


def test_authorized_entry_opens_presence(svc, scan):
    rec = svc.record_scan(scan())

    assert rec.presence_sync is PresenceSync.applied
    presence = svc.presence.find_inside("70123456")
    assert presence.entry_attendance_id == rec.id
    assert presence.entry_checkpoint == "Puerta 1"


def test_entry_then_exit(svc, scan, clock):
    svc.record_scan(scan())
    clock.advance(hours=2)
    exit_rec = svc.record_scan(scan(type="exit", checkpoint="Puerta 3"))

    assert exit_rec.presence_sync is PresenceSync.applied
    closed = svc.presence.find_by_exit(exit_rec.id)
    assert closed.duration_ms == 2 * 3600 * 1000
    assert svc.presence.find_inside("70123456") is None


def test_denied_scan_does_not_touch_presence(svc, scan):
    rec = svc.record_scan(scan(state="denied"))

    assert rec.presence_sync is PresenceSync.not_required
    assert svc.presence.find_inside("70123456") is None


def test_duplicate_entry_is_kept_and_flagged(svc, scan, clock):
    svc.record_scan(scan())
    clock.advance(minutes=10)

    with pytest.raises(DuplicateEntryError) as exc:
        svc.record_scan(scan())

    second = svc.attendance.get(exc.value.extra["attendance_id"])
    assert second.presence_sync is PresenceSync.conflict
    assert second.presence_sync_error == "ALREADY_INSIDE"
    assert len(svc.presence.list_inside()) == 1


def test_exit_without_entry_is_flagged(svc, scan):
    with pytest.raises(NoActivePresenceError) as exc:
        svc.record_scan(scan(type="exit"))

    rec = svc.attendance.get(exc.value.extra["attendance_id"])
    assert rec.presence_sync is PresenceSync.conflict


def test_storage_failure_leaves_record_pending(svc, scan, monkeypatch):
    failures = []

    def on_failure(sender, **kwargs):
        failures.append(kwargs["record"].id)

    monkeypatch.setattr(PresenceService, "on_entry_authorized", _storage_down)
    with presence_sync_failed.connected_to(on_failure):
        rec = svc.record_scan(scan())

    assert rec.presence_sync is PresenceSync.pending
    assert "unavailable" in rec.presence_sync_error
    assert failures == [rec.id]
    assert svc.presence.find_inside("70123456") is None


def test_reconcile_replays_pending_entry(svc, scan, monkeypatch):
    with monkeypatch.context() as m:
        m.setattr(PresenceService, "on_entry_authorized", _storage_down)
        rec = svc.record_scan(scan())
    assert rec.presence_sync is PresenceSync.pending

    svc.reconcile(rec.id)
    assert rec.presence_sync is PresenceSync.applied
    assert svc.presence.find_inside("70123456").entry_attendance_id == rec.id

    # second replay finds its own presence
    svc.reconcile(rec.id)
    assert rec.presence_sync is PresenceSync.applied
    assert len(svc.presence.list_inside()) == 1


def test_reconcile_after_exit_and_reentry_is_applied(svc, scan, clock):
    first = svc.record_scan(scan())
    clock.advance(hours=1)
    svc.record_scan(scan(type="exit"))
    clock.advance(hours=1)
    second = svc.record_scan(scan(checkpoint="Puerta 2"))

    rec = svc.reconcile(first.id)

    assert rec.presence_sync is PresenceSync.applied
    inside = svc.presence.list_inside()
    assert [p.entry_attendance_id for p in inside] == [second.id]
    assert svc.presence.find_applied_entry(first.id).inside is False


def test_reconcile_pending_batch(svc, scan, monkeypatch):
    with monkeypatch.context() as m:
        m.setattr(PresenceService, "on_entry_authorized", _storage_down)
        svc.record_scan(scan())
        svc.record_scan(scan(person_dni="11111111"))
    svc.record_scan(scan(person_dni="22222222", state="denied"))

    summary = svc.reconcile_pending(limit=10)

    assert summary["checked"] == 2
    assert summary["applied"] == 2
    assert svc.attendance.list_pending_sync() == []


def test_denial_invalidates_presence_and_is_audited(svc, scan, clock, db):
    rec = svc.record_scan(scan())
    clock.advance(minutes=3)

    amended = svc.amend_decision(rec.id, "denied", "Carnet ajeno")

    assert amended.state is AuthorizationState.denied
    assert amended.presence_sync is PresenceSync.applied
    assert svc.presence.find_inside("70123456") is None
    assert svc.presence.find_by_entry(rec.id).invalidated

    audit = ManualDecisionService(db).list_for_attendance(rec.id)
    assert len(audit) == 1
    assert audit[0].authorized is False
    assert audit[0].details["previous_state"] == "authorized"


def test_reversal_restores_presence_from_original_entry(svc, scan, clock):
    rec = svc.record_scan(scan())
    entered_at = svc.presence.find_inside("70123456").entered_at
    clock.advance(minutes=2)
    svc.amend_decision(rec.id, "denied")
    clock.advance(minutes=2)

    restored = svc.amend_decision(rec.id, "authorized")

    assert restored.presence_sync is PresenceSync.applied
    presence = svc.presence.find_inside("70123456")
    assert presence.entered_at == entered_at
    assert presence.entry_attendance_id == rec.id


def test_denied_at_creation_then_authorized(svc, scan, clock):
    rec = svc.record_scan(scan(state="denied"))
    clock.advance(minutes=1)

    svc.amend_decision(rec.id, "authorized")

    assert svc.presence.find_inside("70123456").entry_attendance_id == rec.id


def test_same_state_amend_is_not_audited(svc, scan, db):
    rec = svc.record_scan(scan())
    svc.amend_decision(rec.id, "authorized")
    assert ManualDecisionService(db).list_for_attendance(rec.id) == []


def test_exit_amendment_leaves_presence_alone(svc, scan, clock):
    svc.record_scan(scan())
    clock.advance(minutes=30)
    exit_rec = svc.record_scan(scan(type="exit"))
    clock.advance(minutes=1)

    amended = svc.amend_decision(exit_rec.id, "denied")

    assert amended.presence_sync is PresenceSync.applied
    assert svc.presence.find_inside("70123456") is None
