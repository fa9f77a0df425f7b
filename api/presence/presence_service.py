# api/presence/presence_service.py

import logging
from datetime import datetime, timedelta
from typing import List, NamedTuple, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from api.presence.presence_model import PresenceRecord, DENIED_ENTRY_MARKER
from utils.clock import Clock, as_utc, utc_now
from utils.database_utils import storage_errors
from utils.exceptions import DuplicateEntryError, NoActivePresenceError
from utils.query_params import QueryParams

logger = logging.getLogger(__name__)


class Person(NamedTuple):
    dni: str
    name: str
    faculty_code: Optional[str] = None
    school_code: Optional[str] = None


def person_from_record(rec) -> Person:
    return Person(
        dni=rec.person_dni,
        name=rec.person_name,
        faculty_code=rec.faculty_code,
        school_code=rec.school_code,
    )


class PresenceService:
    """
    Keeps the "currently inside" view in step with authorized attendance.

    Each person has at most one open PresenceRecord. The partial unique
    index on (person_dni) WHERE inside backs that up at the database level,
    and every close is a conditional UPDATE ... WHERE inside, so two
    writers racing on the same person cannot both win.
    """

    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    def on_entry_authorized(
        self,
        person: Person,
        checkpoint: str,
        guard_id: str,
        at: datetime,
        attendance_id: Optional[str] = None,
    ) -> PresenceRecord:
        with storage_errors(self.db, "presence entry"):
            existing = self.find_inside(person.dni)
            if existing:
                raise self._already_inside(existing)

            presence = PresenceRecord(
                person_dni=person.dni,
                person_name=person.name,
                faculty_code=person.faculty_code,
                school_code=person.school_code,
                entered_at=as_utc(at),
                entry_checkpoint=checkpoint,
                entry_guard_id=guard_id,
                entry_attendance_id=attendance_id,
                inside=True,
            )
            self.db.add(presence)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                raise self._already_inside(self.find_inside(person.dni), dni=person.dni)
            self.db.refresh(presence)

        logger.info(f"✅ Presence opened for DNI {person.dni} at {checkpoint}")
        return presence

    def on_exit_authorized(
        self,
        person_dni: str,
        checkpoint: str,
        guard_id: str,
        at: datetime,
        attendance_id: Optional[str] = None,
    ) -> PresenceRecord:
        at = as_utc(at)
        with storage_errors(self.db, "presence exit"):
            presence = self.find_inside(person_dni)
            if not presence:
                raise NoActivePresenceError(
                    f"DNI {person_dni} is not registered as inside",
                    person_dni=person_dni,
                )

            duration = at - as_utc(presence.entered_at)
            closed = self._close(
                presence,
                exited_at=at,
                exit_checkpoint=checkpoint,
                exit_guard_id=guard_id,
                exit_attendance_id=attendance_id,
                duration_ms=max(int(duration.total_seconds() * 1000), 0),
            )
            if not closed:
                raise NoActivePresenceError(
                    f"DNI {person_dni} left through another checkpoint meanwhile",
                    person_dni=person_dni,
                )

        logger.info(f"✅ Presence closed for DNI {person_dni} at {checkpoint}")
        return presence

    def on_entry_denied(
        self,
        person_dni: str,
        guard_id: str,
        at: datetime,
        attendance_id: Optional[str] = None,
    ) -> Optional[PresenceRecord]:
        """
        Soft-invalidate the open presence that came from the denied entry.
        Returns None when there is nothing to invalidate.
        """
        with storage_errors(self.db, "presence invalidation"):
            query = self.db.query(PresenceRecord).filter(
                PresenceRecord.person_dni == person_dni,
                PresenceRecord.inside.is_(True),
            )
            if attendance_id is not None:
                query = query.filter(PresenceRecord.entry_attendance_id == attendance_id)
            presence = query.first()
            if not presence:
                return None

            closed = self._close(
                presence,
                exited_at=as_utc(at),
                exit_checkpoint=DENIED_ENTRY_MARKER,
                exit_guard_id=guard_id,
                duration_ms=0,
            )
            if not closed:
                return None

        logger.info(f"🚫 Presence invalidated for DNI {person_dni} after entry denial")
        return presence

    def on_entry_reauthorized(
        self,
        person: Person,
        checkpoint: str,
        guard_id: str,
        entry_timestamp: datetime,
        attendance_id: Optional[str] = None,
    ) -> Optional[PresenceRecord]:
        """
        Rebuild the open presence of a reverted denial from the original
        entry (its timestamp and checkpoint, not the time of the reversal).
        No-op when the person is already inside.
        """
        with storage_errors(self.db, "presence restore"):
            if self.find_inside(person.dni):
                return None

            presence = PresenceRecord(
                person_dni=person.dni,
                person_name=person.name,
                faculty_code=person.faculty_code,
                school_code=person.school_code,
                entered_at=as_utc(entry_timestamp),
                entry_checkpoint=checkpoint,
                entry_guard_id=guard_id,
                entry_attendance_id=attendance_id,
                inside=True,
            )
            self.db.add(presence)
            try:
                self.db.commit()
            except IntegrityError:
                # someone else opened it first; still a no-op
                self.db.rollback()
                return None
            self.db.refresh(presence)

        logger.info(f"✅ Presence restored for DNI {person.dni} after denial reversal")
        return presence

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def find_inside(self, person_dni: str) -> Optional[PresenceRecord]:
        return (
            self.db.query(PresenceRecord)
                .filter(PresenceRecord.person_dni == person_dni, PresenceRecord.inside.is_(True))
                .first()
        )

    def find_by_entry(self, attendance_id: str) -> Optional[PresenceRecord]:
        return (
            self.db.query(PresenceRecord)
                .filter(PresenceRecord.entry_attendance_id == attendance_id)
                .order_by(PresenceRecord.created_at.desc())
                .first()
        )

    def find_applied_entry(self, attendance_id: str) -> Optional[PresenceRecord]:
        """Presence opened by this entry that was not invalidated, open or closed."""
        return (
            self.db.query(PresenceRecord)
                .filter(
                    PresenceRecord.entry_attendance_id == attendance_id,
                    or_(
                        PresenceRecord.exit_checkpoint.is_(None),
                        PresenceRecord.exit_checkpoint != DENIED_ENTRY_MARKER,
                    ),
                )
                .order_by(PresenceRecord.inside.desc())
                .first()
        )

    def find_by_exit(self, attendance_id: str) -> Optional[PresenceRecord]:
        return self.db.query(PresenceRecord).filter(PresenceRecord.exit_attendance_id == attendance_id).first()

    def list_inside(self) -> List[PresenceRecord]:
        return (
            self.db.query(PresenceRecord)
                .filter(PresenceRecord.inside.is_(True))
                .order_by(PresenceRecord.entered_at.desc())
                .all()
        )

    def history(self, params: Optional[QueryParams] = None) -> List[PresenceRecord]:
        params = params or QueryParams()
        query = self.db.query(PresenceRecord)
        return params.apply(query, PresenceRecord, default_sort="entered_at").all()

    def long_stays(self, hours: int, now: Optional[datetime] = None) -> List[PresenceRecord]:
        cutoff = as_utc(now or self.clock()) - timedelta(hours=hours)
        return (
            self.db.query(PresenceRecord)
                .filter(PresenceRecord.inside.is_(True), PresenceRecord.entered_at <= cutoff)
                .order_by(PresenceRecord.entered_at.asc())
                .all()
        )

    # ------------------------------------------------------------------
    def _close(self, presence: PresenceRecord, **values) -> bool:
        updated = (
            self.db.query(PresenceRecord)
                .filter(PresenceRecord.id == presence.id, PresenceRecord.inside.is_(True))
                .update(dict(values, inside=False), synchronize_session=False)
        )
        if updated != 1:
            self.db.rollback()
            return False
        self.db.commit()
        self.db.refresh(presence)
        return True

    @staticmethod
    def _already_inside(existing: Optional[PresenceRecord], dni: Optional[str] = None) -> DuplicateEntryError:
        if existing is None:
            return DuplicateEntryError(f"DNI {dni} is already inside the campus", person_dni=dni)
        return DuplicateEntryError(
            f"DNI {existing.person_dni} is already inside the campus",
            person_dni=existing.person_dni,
            presence_id=existing.id,
            entered_at=as_utc(existing.entered_at).isoformat(),
        )
