# api/checkpoint/checkpoint_service.py
"""
Attendance -> presence saga.

Attendance is written and committed first. Presence is reconciled as a
second, separate step:

  * applied       presence updated
  * not_required  nothing to do (denied at creation, exit corrections)
  * conflict      presence rejected the change (already inside / not inside);
                  the error is re-raised so the guard sees it
  * pending       storage failed; the reconcile worker retries later

New records start as ``pending`` and amendments flip them back to
``pending`` in the same UPDATE, so if the marker write itself fails the
record is still picked up by the worker.
"""
import logging
from contextlib import nullcontext
from typing import Any, Callable, Dict, Optional, Union

from sqlalchemy.orm import Session

from api.attendance.attendance_records_model import (
    AttendanceRecord,
    AttendanceType,
    AuthorizationState,
    PresenceSync,
)
from api.attendance.attendance_schema import AttendanceIn
from api.attendance.attendance_service import AttendanceService
from api.audit.audit_service import attendance_recorded, decision_changed, presence_sync_failed
from api.presence.presence_model import PresenceRecord
from api.presence.presence_service import PresenceService, person_from_record
from utils.clock import Clock, as_utc, utc_now
from utils.exceptions import (
    CheckpointError,
    DuplicateEntryError,
    NoActivePresenceError,
    StorageError,
)
from utils.lock_utils import KeyLockManager, person_key

logger = logging.getLogger(__name__)


class CheckpointService:
    def __init__(self, db: Session, locks: Optional[KeyLockManager] = None, clock: Clock = utc_now):
        self.db = db
        self.locks = locks
        self.clock = clock
        self.attendance = AttendanceService(db, clock)
        self.presence = PresenceService(db, clock)

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------
    def record_scan(self, payload: Union[AttendanceIn, Dict[str, Any]]) -> AttendanceRecord:
        data = payload.model_dump() if isinstance(payload, AttendanceIn) else dict(payload)
        dni = (data.get("person_dni") or "").strip()

        with self._person_lock(dni):
            rec = self.attendance.append(data)

            if rec.state is AuthorizationState.denied:
                self._mark(rec, PresenceSync.not_required)
            elif rec.type is AttendanceType.entry:
                self._sync(rec, lambda: self.presence.on_entry_authorized(
                    person_from_record(rec), rec.checkpoint, rec.guard_id, rec.recorded_at, rec.id,
                ))
            else:
                self._sync(rec, lambda: self.presence.on_exit_authorized(
                    rec.person_dni, rec.checkpoint, rec.guard_id, rec.recorded_at, rec.id,
                ))

        attendance_recorded.send(self, record=rec)
        return rec

    # ------------------------------------------------------------------
    # Decision correction
    # ------------------------------------------------------------------
    def amend_decision(self, record_id: str, state, reason: Optional[str] = None) -> AttendanceRecord:
        rec = self.attendance.get(record_id)
        is_entry = rec.type is AttendanceType.entry

        with self._person_lock(rec.person_dni):
            previous = rec.state
            now = as_utc(self.clock())
            rec = self.attendance.amend(record_id, state, reason, now=now, resync=is_entry)
            if rec.state is previous:
                return rec

            if not is_entry:
                # exits are corrected on the record only
                pass
            elif rec.state is AuthorizationState.denied:
                self._sync(rec, lambda: self.presence.on_entry_denied(
                    rec.person_dni, rec.guard_id, now, rec.id,
                ))
            else:
                self._sync(rec, lambda: self.presence.on_entry_reauthorized(
                    person_from_record(rec), rec.checkpoint, rec.guard_id, rec.recorded_at, rec.id,
                ))

        decision_changed.send(self, db=self.db, record=rec, previous_state=previous)
        return rec

    # ------------------------------------------------------------------
    # Replay (worker / manual retry)
    # ------------------------------------------------------------------
    def reconcile(self, record_id: str) -> AttendanceRecord:
        """
        Bring presence in line with the current state of one record.
        Safe to repeat: a presence already carrying this attendance id
        counts as applied.
        """
        rec = self.attendance.get(record_id)
        with self._person_lock(rec.person_dni):
            self.db.refresh(rec)
            self._sync(rec, lambda: self._replay(rec))
        return rec

    def reconcile_pending(self, limit: int = 100) -> Dict[str, int]:
        summary = {"checked": 0, "applied": 0, "not_required": 0, "conflict": 0, "pending": 0}
        for rec in self.attendance.list_pending_sync(limit):
            summary["checked"] += 1
            try:
                rec = self.reconcile(rec.id)
            except (DuplicateEntryError, NoActivePresenceError):
                summary["conflict"] += 1
                continue
            except CheckpointError:
                logger.exception(f"❌ Reconciliation of attendance {rec.id} failed")
                summary["pending"] += 1
                continue
            summary[rec.presence_sync.value] += 1
        return summary

    def _replay(self, rec: AttendanceRecord) -> Optional[PresenceRecord]:
        if rec.state is AuthorizationState.denied:
            if rec.type is AttendanceType.exit or rec.decision_at is None:
                return None
            return self.presence.on_entry_denied(rec.person_dni, rec.guard_id, rec.decision_at, rec.id)

        if rec.type is AttendanceType.exit:
            done = self.presence.find_by_exit(rec.id)
            if done:
                return done
            return self.presence.on_exit_authorized(
                rec.person_dni, rec.checkpoint, rec.guard_id, rec.recorded_at, rec.id,
            )

        # open, or already closed by a later exit
        applied = self.presence.find_applied_entry(rec.id)
        if applied is not None:
            return applied
        return self.presence.on_entry_authorized(
            person_from_record(rec), rec.checkpoint, rec.guard_id, rec.recorded_at, rec.id,
        )

    # ------------------------------------------------------------------
    def _sync(self, rec: AttendanceRecord, step: Callable[[], Any]) -> None:
        try:
            result = step()
        except (DuplicateEntryError, NoActivePresenceError) as exc:
            self._mark(rec, PresenceSync.conflict, exc.code)
            presence_sync_failed.send(self, record=rec, error=exc)
            # the attendance row is committed; let the caller find it
            exc.extra.setdefault("attendance_id", rec.id)
            raise
        except StorageError as exc:
            self._mark(rec, PresenceSync.pending, exc.message)
            presence_sync_failed.send(self, record=rec, error=exc)
            return

        if result is None and rec.state is AuthorizationState.denied:
            # no presence was ever opened for this entry
            self._mark(rec, PresenceSync.not_required)
        else:
            self._mark(rec, PresenceSync.applied)

    def _mark(self, rec: AttendanceRecord, status: PresenceSync, error: Optional[str] = None) -> None:
        try:
            self.attendance.mark_presence_sync(rec, status, error)
        except StorageError:
            # record keeps its pending marker and the worker will retry
            logger.exception(f"❌ Could not write presence marker {status.value} for attendance {rec.id}")

    def _person_lock(self, dni: str):
        if not self.locks or not dni:
            return nullcontext()
        return self.locks.hold(person_key(dni))
