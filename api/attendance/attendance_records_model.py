from sqlalchemy import (
    Column,
    String,
    Text,
    Boolean,
    DateTime,
    Enum,
    Index,
    func,
)
import enum
import uuid
from config.database import Base


class AttendanceType(enum.Enum):
    entry = "entry"
    exit  = "exit"


class AuthorizationState(enum.Enum):
    authorized = "authorized"
    denied     = "denied"


class PresenceSync(enum.Enum):
    applied      = "applied"
    pending      = "pending"
    conflict     = "conflict"
    not_required = "not_required"


def _new_id() -> str:
    return str(uuid.uuid4())


class AttendanceRecord(Base):
    """One row per physical scan at a checkpoint. Never deleted."""
    __tablename__ = "attendance_records"
    __table_args__ = (
        Index("ix_attendance_person_recorded", "person_dni", "recorded_at"),
        Index("ix_attendance_presence_sync", "presence_sync"),
    )

    id                   = Column(String(36), primary_key=True, default=_new_id)
    person_dni           = Column(String(20), nullable=False, index=True)
    first_name           = Column(String(120), nullable=False)
    last_name            = Column(String(120), nullable=False)
    university_code      = Column(String(32), nullable=True, index=True)
    faculty_code         = Column(String(20), nullable=False)
    school_code          = Column(String(20), nullable=False)
    type                 = Column(Enum(AttendanceType, name="attendancetype"), nullable=False)
    recorded_at          = Column(DateTime(timezone=True), nullable=False)
    entry_method         = Column(String(20), nullable=False, default="nfc")
    checkpoint           = Column(String(64), nullable=False, default="Principal", index=True)
    guard_id             = Column(String(64), nullable=False, index=True)
    guard_name           = Column(String(120), nullable=False)
    manual_authorization = Column(Boolean, nullable=False, default=False)
    coordinates          = Column(String(64), nullable=True)
    location_description = Column(Text, nullable=True)
    state                = Column(
        Enum(AuthorizationState, name="authorizationstate"),
        nullable=False,
        default=AuthorizationState.authorized,
    )
    decision_reason      = Column(Text, nullable=True)
    decision_at          = Column(DateTime(timezone=True), nullable=True)
    presence_sync        = Column(
        Enum(PresenceSync, name="presencesync"),
        nullable=False,
        default=PresenceSync.pending,
    )
    presence_sync_error  = Column(Text, nullable=True)
    created_at           = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def person_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
