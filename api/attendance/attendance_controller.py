# api/attendance/attendance_controller.py

from typing import List
from sqlalchemy.orm import Session

from api.attendance.attendance_records_model import AttendanceRecord
from api.attendance.attendance_service import AttendanceService
from api.attendance.attendance_schema import (
    AttendanceIn,
    AttendanceOut,
    AttendanceListOut,
    DecisionIn,
    GuardCoverageOut,
    LastAccessOut,
    PersonHistoryOut,
    TodayStatsOut,
)
from api.checkpoint.checkpoint_service import CheckpointService
from utils.database_utils import DatabaseUtils
from utils.lock_utils import KeyLockManager


class AttendanceController:
    @staticmethod
    def record_scan(payload: AttendanceIn, db: Session, locks: KeyLockManager) -> AttendanceOut:
        rec = CheckpointService(db, locks).record_scan(payload)
        return AttendanceOut.model_validate(rec)

    @staticmethod
    def amend_decision(record_id: str, payload: DecisionIn, db: Session, locks: KeyLockManager) -> AttendanceOut:
        rec = CheckpointService(db, locks).amend_decision(record_id, payload.state, payload.reason)
        return AttendanceOut.model_validate(rec)

    @staticmethod
    def get_record(record_id: str, db: Session) -> AttendanceOut:
        return AttendanceOut.model_validate(AttendanceService(db).get(record_id))

    @staticmethod
    def list_records(db: Session) -> AttendanceListOut:
        records = AttendanceService(db).list_with_guard()
        return AttendanceListOut(
            total=len(records),
            records=[AttendanceOut.model_validate(r) for r in records],
        )

    @staticmethod
    def today_stats(db: Session) -> TodayStatsOut:
        return TodayStatsOut(**AttendanceService(db).today_stats())

    @staticmethod
    def guard_coverage(db: Session) -> GuardCoverageOut:
        return GuardCoverageOut(**AttendanceService(db).guard_coverage_stats())

    @staticmethod
    def person_history(dni: str, limit: int, db: Session) -> PersonHistoryOut:
        recent = AttendanceService(db).list_for_person(dni, limit=limit)
        return PersonHistoryOut(
            person_dni=dni,
            total=DatabaseUtils.count(db, AttendanceRecord, person_dni=dni),
            last_record=AttendanceOut.model_validate(recent[0]) if recent else None,
            recent=[AttendanceOut.model_validate(r) for r in recent],
        )

    @staticmethod
    def last_access(dni: str, db: Session) -> LastAccessOut:
        return LastAccessOut(last_type=AttendanceService(db).last_access_type(dni))

    @staticmethod
    def list_for_guard(guard_id: str, hours: int, db: Session) -> List[AttendanceOut]:
        records = AttendanceService(db).list_for_guard(guard_id, hours=hours)
        return [AttendanceOut.model_validate(r) for r in records]
