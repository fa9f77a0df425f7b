from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime


class DeviceInfo(BaseModel):
    platform: Optional[str] = None
    device_id: Optional[str] = None
    app_version: Optional[str] = None


class SessionStartIn(BaseModel):
    guard_id: Optional[str] = None
    guard_name: Optional[str] = None
    checkpoint: Optional[str] = None
    device_info: Optional[DeviceInfo] = None


class SessionTokenIn(BaseModel):
    session_token: str


class ForceFinalizeIn(BaseModel):
    # a single token, or "all"
    session_token: str
    admin_id: Optional[str] = None


class GuardSessionOut(BaseModel):
    token: str
    guard_id: str
    guard_name: str
    checkpoint: str
    device_info: Optional[DeviceInfo] = None
    is_active: bool
    last_activity: datetime
    started_at: datetime
    ended_at: Optional[datetime] = None
    forced_by: Optional[str] = None
    stale: bool = False

    model_config = ConfigDict(from_attributes=True)


class SessionStartOut(BaseModel):
    session_token: str
    message: str
    session: GuardSessionOut


class HeartbeatOut(BaseModel):
    message: str
    last_activity: datetime


class FinalizeOut(BaseModel):
    message: str
    session: GuardSessionOut


class ForceFinalizeOut(BaseModel):
    message: str
    closed: int
