# api/attendance/attendance_service.py

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from api.attendance.attendance_records_model import (
    AttendanceRecord,
    AttendanceType,
    AuthorizationState,
    PresenceSync,
)
from api.attendance.attendance_schema import AttendanceIn
from api.attendance import decision_window
from config.settings import settings
from utils.clock import Clock, as_utc, local_day_bounds, utc_now
from utils.database_utils import DatabaseUtils, storage_errors
from utils.exceptions import ConcurrentUpdateError, PolicyError, ValidationError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "person_dni",
    "first_name",
    "last_name",
    "faculty_code",
    "school_code",
    "type",
    "guard_id",
    "guard_name",
)

# Values sent by devices whose guard was never configured
UNASSIGNED_GUARD_IDS = frozenset({"SIN_GUARDIA", "SIN_GUARDIA_ERROR"})
UNASSIGNED_GUARD_NAMES = frozenset({"Guardia No Identificado", "GUARDIA_NO_IDENTIFICADO"})

DEFAULT_ENTRY_METHOD = "nfc"
DEFAULT_CHECKPOINT = "Principal"


def validate_attendance_payload(data: Dict[str, Any]) -> None:
    require_fields(data, REQUIRED_FIELDS)
    check_access_type(data["type"])

    state = data.get("state")
    if _present(state) and state not in {s.value for s in AuthorizationState}:
        raise ValidationError("state must be 'authorized' or 'denied'", field="state")

    check_guard(data)


def require_fields(data: Dict[str, Any], fields) -> None:
    missing = [f for f in fields if not _present(data.get(f))]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            missing_fields=missing,
        )


def check_access_type(value) -> AttendanceType:
    if value not in {t.value for t in AttendanceType}:
        raise ValidationError("type must be 'entry' or 'exit'", field="type")
    return AttendanceType(value)


def check_guard(data: Dict[str, Any]) -> None:
    """Reject the placeholder guard values sent by unconfigured devices."""
    if data.get("guard_id") in UNASSIGNED_GUARD_IDS:
        raise PolicyError("Guard is not configured on this device", field="guard_id")
    if data.get("guard_name") in UNASSIGNED_GUARD_NAMES:
        raise PolicyError("Guard name is not valid", field="guard_name")


def _present(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _has_guard():
    return and_(
        AttendanceRecord.guard_id.isnot(None),
        AttendanceRecord.guard_id != "",
        AttendanceRecord.guard_id.notin_(UNASSIGNED_GUARD_IDS),
        AttendanceRecord.guard_name.isnot(None),
        AttendanceRecord.guard_name != "",
        AttendanceRecord.guard_name.notin_(UNASSIGNED_GUARD_NAMES),
    )


class AttendanceService:
    """Append/amend store for attendance records plus their read projections."""

    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def append(self, payload: Union[AttendanceIn, Dict[str, Any]], now: Optional[datetime] = None) -> AttendanceRecord:
        data = payload.model_dump() if isinstance(payload, AttendanceIn) else dict(payload)
        data = {k: (v.strip() if isinstance(v, str) else v) for k, v in data.items()}
        validate_attendance_payload(data)

        now = as_utc(now or self.clock())
        state = AuthorizationState(data["state"]) if _present(data.get("state")) else AuthorizationState.authorized

        rec = AttendanceRecord(
            person_dni           = data["person_dni"],
            first_name           = data["first_name"],
            last_name            = data["last_name"],
            university_code      = data.get("university_code") or None,
            faculty_code         = data["faculty_code"],
            school_code          = data["school_code"],
            type                 = AttendanceType(data["type"]),
            recorded_at          = as_utc(data.get("recorded_at")) or now,
            entry_method         = data.get("entry_method") or DEFAULT_ENTRY_METHOD,
            checkpoint           = data.get("checkpoint") or DEFAULT_CHECKPOINT,
            guard_id             = data["guard_id"],
            guard_name           = data["guard_name"],
            manual_authorization = bool(data.get("manual_authorization")),
            coordinates          = data.get("coordinates") or None,
            location_description = data.get("location_description") or None,
            state                = state,
            decision_reason      = data.get("decision_reason") or None,
            # set only by a later state change
            decision_at          = None,
            presence_sync        = PresenceSync.pending,
        )

        with storage_errors(self.db, "attendance append"):
            self.db.add(rec)
            self.db.commit()
            self.db.refresh(rec)

        logger.info(
            f"✅ Attendance {rec.id} stored: {rec.type.value} dni={rec.person_dni} "
            f"checkpoint={rec.checkpoint} guard={rec.guard_id} state={rec.state.value}"
        )
        return rec

    def amend(
        self,
        record_id: str,
        new_state,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
        resync: bool = False,
    ) -> AttendanceRecord:
        """
        Change the authorization state of a record inside the correction window.
        Requesting the state the record already has is a no-op.

        With `resync`, the same UPDATE flags the record as pending presence
        reconciliation, so a crash before the presence step leaves a marker
        the reconcile worker will pick up.
        """
        now = as_utc(now or self.clock())
        requested = decision_window.coerce_state(new_state)

        with storage_errors(self.db, "attendance amend"):
            rec = self.get(record_id)
            current = rec.state
            if requested is current:
                logger.info(f"▶️ Attendance {rec.id} already {current.value}; nothing to amend")
                return rec

            decision_window.check_transition(
                record_timestamp=rec.recorded_at,
                decision_timestamp=rec.decision_at,
                current_state=current,
                requested_state=requested,
                now=now,
                window=timedelta(minutes=settings.CORRECTION_WINDOW_MINUTES),
                missing_decision_policy=settings.REVERSAL_FALLBACK,
            )

            values = {
                "state": requested,
                "decision_reason": reason or None,
                "decision_at": now,
            }
            if resync:
                values.update(presence_sync=PresenceSync.pending, presence_sync_error=None)

            updated = (
                self.db.query(AttendanceRecord)
                .filter(AttendanceRecord.id == rec.id, AttendanceRecord.state == current)
                .update(values, synchronize_session=False)
            )
            if updated != 1:
                self.db.rollback()
                raise ConcurrentUpdateError(
                    f"Attendance {rec.id} changed while the decision was being applied",
                    id=rec.id,
                )
            self.db.commit()
            self.db.refresh(rec)

        logger.info(f"✅ Attendance {rec.id} decision {current.value} -> {requested.value}")
        return rec

    def mark_presence_sync(self, rec: AttendanceRecord, status: PresenceSync, error: Optional[str] = None) -> AttendanceRecord:
        with storage_errors(self.db, "presence sync marker"):
            rec.presence_sync = status
            rec.presence_sync_error = error
            self.db.commit()
            self.db.refresh(rec)
        return rec

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, record_id: str) -> AttendanceRecord:
        return DatabaseUtils.get_by_id_or_404(self.db, AttendanceRecord, record_id, label="Attendance")

    def list_with_guard(self) -> List[AttendanceRecord]:
        return (
            self.db.query(AttendanceRecord)
                .filter(_has_guard())
                .order_by(AttendanceRecord.recorded_at.desc())
                .all()
        )

    def list_for_person(self, dni: str, limit: int = 10) -> List[AttendanceRecord]:
        return (
            self.db.query(AttendanceRecord)
                .filter_by(person_dni=dni)
                .order_by(AttendanceRecord.recorded_at.desc())
                .limit(limit)
                .all()
        )

    def last_access_type(self, dni: str) -> AttendanceType:
        """Type of the last non-denied scan; `exit` when the person has none, so the next scan is an entry."""
        last = (
            self.db.query(AttendanceRecord)
                .filter(
                    AttendanceRecord.person_dni == dni,
                    AttendanceRecord.state != AuthorizationState.denied,
                )
                .order_by(AttendanceRecord.recorded_at.desc())
                .first()
        )
        return last.type if last else AttendanceType.exit

    def list_for_guard(self, guard_id: str, hours: int = 24, now: Optional[datetime] = None) -> List[AttendanceRecord]:
        since = as_utc(now or self.clock()) - timedelta(hours=hours)
        return (
            self.db.query(AttendanceRecord)
                .filter(AttendanceRecord.guard_id == guard_id, AttendanceRecord.recorded_at >= since)
                .order_by(AttendanceRecord.recorded_at.desc())
                .all()
        )

    def today_stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = as_utc(now or self.clock())
        start, end = local_day_bounds(now, settings.tz)
        rows = (
            self.db.query(AttendanceRecord.type, func.count(AttendanceRecord.id))
                .filter(AttendanceRecord.recorded_at >= start, AttendanceRecord.recorded_at < end)
                .group_by(AttendanceRecord.type)
                .all()
        )
        counts = {t: c for t, c in rows}
        entries = counts.get(AttendanceType.entry, 0)
        exits = counts.get(AttendanceType.exit, 0)
        return {
            "date": now.astimezone(settings.tz).date().isoformat(),
            "entries": entries,
            "exits": exits,
            "total": entries + exits,
        }

    def guard_coverage_stats(self) -> Dict[str, Any]:
        total = DatabaseUtils.count(self.db, AttendanceRecord)
        with_guard = self.db.query(AttendanceRecord).filter(_has_guard()).count()
        percent = (with_guard / total * 100) if total else 0.0
        return {
            "total_records": total,
            "with_guard": with_guard,
            "without_guard": total - with_guard,
            "with_guard_percent": f"{percent:.2f}%",
        }

    def list_pending_sync(self, limit: int = 100) -> List[AttendanceRecord]:
        return (
            self.db.query(AttendanceRecord)
                .filter(AttendanceRecord.presence_sync == PresenceSync.pending)
                .order_by(AttendanceRecord.recorded_at.asc())
                .limit(limit)
                .all()
        )
