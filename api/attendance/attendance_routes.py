# api/attendance/attendance_routes.py

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config.database import get_db
from utils.deps import get_locks
from utils.lock_utils import KeyLockManager
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
from api.attendance.attendance_controller import AttendanceController

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.post(
    "",
    response_model=AttendanceOut,
    status_code=201,
    summary="Record an entry or exit scan from a guard device",
)
def record_scan(
    payload: AttendanceIn,
    db: Session = Depends(get_db),
    locks: KeyLockManager = Depends(get_locks),
) -> AttendanceOut:
    return AttendanceController.record_scan(payload, db, locks)


@router.get(
    "",
    response_model=AttendanceListOut,
    summary="List attendance recorded by an identified guard",
)
def list_records(db: Session = Depends(get_db)) -> AttendanceListOut:
    return AttendanceController.list_records(db)


@router.get(
    "/today",
    response_model=TodayStatsOut,
    summary="Entries and exits of the current local day",
)
def today_stats(db: Session = Depends(get_db)) -> TodayStatsOut:
    return AttendanceController.today_stats(db)


@router.get(
    "/stats",
    response_model=GuardCoverageOut,
    summary="How many records carry a real guard",
)
def guard_coverage(db: Session = Depends(get_db)) -> GuardCoverageOut:
    return AttendanceController.guard_coverage(db)


@router.get(
    "/person/{dni}",
    response_model=PersonHistoryOut,
    summary="Recent attendance of one person",
)
def person_history(
    dni: str,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
) -> PersonHistoryOut:
    return AttendanceController.person_history(dni, limit, db)


@router.get(
    "/person/{dni}/last-access",
    response_model=LastAccessOut,
    summary="Type of the last accepted scan, used to pick the next one",
)
def last_access(dni: str, db: Session = Depends(get_db)) -> LastAccessOut:
    return AttendanceController.last_access(dni, db)


@router.get(
    "/guard/{guard_id}",
    response_model=List[AttendanceOut],
    summary="Attendance recorded by one guard in the last hours",
)
def list_for_guard(
    guard_id: str,
    hours: int = Query(24, ge=1, le=24 * 31),
    db: Session = Depends(get_db),
) -> List[AttendanceOut]:
    return AttendanceController.list_for_guard(guard_id, hours, db)


@router.get(
    "/{record_id}",
    response_model=AttendanceOut,
    summary="Fetch one attendance record",
)
def get_record(record_id: str, db: Session = Depends(get_db)) -> AttendanceOut:
    return AttendanceController.get_record(record_id, db)


@router.put(
    "/{record_id}/decision",
    response_model=AttendanceOut,
    summary="Correct the authorization decision inside the correction window",
)
def amend_decision(
    record_id: str,
    payload: DecisionIn,
    db: Session = Depends(get_db),
    locks: KeyLockManager = Depends(get_locks),
) -> AttendanceOut:
    return AttendanceController.amend_decision(record_id, payload, db, locks)
