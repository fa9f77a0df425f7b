from pydantic import BaseModel, ConfigDict
from typing import Optional, Dict, Any
from datetime import datetime


class ManualDecisionCreate(BaseModel):
    attendance_id: Optional[str] = None
    person_dni: Optional[str] = None
    person_name: Optional[str] = None
    guard_id: str
    guard_name: Optional[str] = None
    authorized: bool
    reason: Optional[str] = None
    checkpoint: Optional[str] = None
    access_type: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class ManualDecisionOut(ManualDecisionCreate):
    id: str
    decided_at: datetime

    model_config = ConfigDict(from_attributes=True)
