from sqlalchemy import Column, String, Text, DateTime, Enum, Index
import uuid
from config.database import Base
from api.attendance.attendance_records_model import AttendanceType, AuthorizationState


class ExternalVisit(Base):
    """Entry or exit of someone who is not a student, registered by hand at a checkpoint."""
    __tablename__ = "external_visits"
    __table_args__ = (
        Index("ix_external_visits_dni_recorded", "dni", "recorded_at"),
    )

    id                   = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    full_name            = Column(String(250), nullable=False)
    dni                  = Column(String(20), nullable=False, index=True)
    reason               = Column(Text, nullable=False)
    type                 = Column(Enum(AttendanceType, name="attendancetype"), nullable=False)
    state                = Column(
        Enum(AuthorizationState, name="authorizationstate"),
        nullable=False,
        default=AuthorizationState.authorized,
    )
    location_description = Column(Text, nullable=True)
    guard_id             = Column(String(64), nullable=False, index=True)
    guard_name           = Column(String(120), nullable=False)
    recorded_at          = Column(DateTime(timezone=True), nullable=False, index=True)
