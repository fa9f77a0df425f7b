# api/attendance/attendance_schema.py

from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime

from api.attendance.attendance_records_model import AttendanceType, AuthorizationState, PresenceSync


class AttendanceIn(BaseModel):
    """
    Payload sent by a guard's device for one scan.

    Required fields are validated by the attendance service so a missing
    field is reported with the same error shape whatever the caller.
    """
    person_dni: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    university_code: Optional[str] = None
    faculty_code: Optional[str] = None
    school_code: Optional[str] = None
    type: Optional[str] = None
    recorded_at: Optional[datetime] = None
    entry_method: Optional[str] = None
    checkpoint: Optional[str] = None
    guard_id: Optional[str] = None
    guard_name: Optional[str] = None
    manual_authorization: bool = False
    decision_reason: Optional[str] = None
    coordinates: Optional[str] = None
    location_description: Optional[str] = None
    state: Optional[str] = None


class DecisionIn(BaseModel):
    state: str
    reason: Optional[str] = None


class AttendanceOut(BaseModel):
    id: str
    person_dni: str
    first_name: str
    last_name: str
    university_code: Optional[str] = None
    faculty_code: str
    school_code: str
    type: AttendanceType
    recorded_at: datetime
    entry_method: str
    checkpoint: str
    guard_id: str
    guard_name: str
    manual_authorization: bool
    coordinates: Optional[str] = None
    location_description: Optional[str] = None
    state: AuthorizationState
    decision_reason: Optional[str] = None
    decision_at: Optional[datetime] = None
    presence_sync: PresenceSync
    presence_sync_error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AttendanceListOut(BaseModel):
    total: int
    records: List[AttendanceOut]


class PersonHistoryOut(BaseModel):
    person_dni: str
    total: int
    last_record: Optional[AttendanceOut] = None
    recent: List[AttendanceOut]


class LastAccessOut(BaseModel):
    last_type: AttendanceType


class TodayStatsOut(BaseModel):
    date: str
    entries: int
    exits: int
    total: int


class GuardCoverageOut(BaseModel):
    total_records: int
    with_guard: int
    without_guard: int
    with_guard_percent: str
