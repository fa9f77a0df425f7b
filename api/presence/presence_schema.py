from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime


class PresenceOut(BaseModel):
    id: str
    person_dni: str
    person_name: str
    faculty_code: Optional[str] = None
    school_code: Optional[str] = None
    entered_at: datetime
    entry_checkpoint: str
    entry_guard_id: str
    entry_attendance_id: Optional[str] = None
    exited_at: Optional[datetime] = None
    exit_checkpoint: Optional[str] = None
    exit_guard_id: Optional[str] = None
    exit_attendance_id: Optional[str] = None
    inside: bool
    duration_ms: Optional[int] = None
    invalidated: bool = False

    model_config = ConfigDict(from_attributes=True)


class ReconcileOut(BaseModel):
    attendance_id: str
    presence_sync: str
    presence: Optional[PresenceOut] = None
