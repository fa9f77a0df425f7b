from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

from api.attendance.attendance_records_model import AttendanceType, AuthorizationState


class ExternalVisitIn(BaseModel):
    # required fields are checked by the service, like attendance scans
    full_name: Optional[str] = None
    dni: Optional[str] = None
    reason: Optional[str] = None
    type: Optional[str] = None
    location_description: Optional[str] = None
    guard_id: Optional[str] = None
    guard_name: Optional[str] = None


class ExternalVisitOut(BaseModel):
    id: str
    full_name: str
    dni: str
    reason: str
    type: AttendanceType
    state: AuthorizationState
    location_description: Optional[str] = None
    guard_id: str
    guard_name: str
    recorded_at: datetime

    model_config = ConfigDict(from_attributes=True)
