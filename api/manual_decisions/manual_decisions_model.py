from sqlalchemy import Column, String, Text, Boolean, DateTime, JSON
import uuid
from config.database import Base


class ManualDecision(Base):
    """Audit trail of guard decisions (manual authorizations and corrections)."""
    __tablename__ = "manual_decisions"

    id            = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    attendance_id = Column(String(36), nullable=True, index=True)
    person_dni    = Column(String(20), nullable=True, index=True)
    person_name   = Column(String(250), nullable=True)
    guard_id      = Column(String(64), nullable=False, index=True)
    guard_name    = Column(String(120), nullable=True)
    authorized    = Column(Boolean, nullable=False)
    reason        = Column(Text, nullable=True)
    checkpoint    = Column(String(64), nullable=True)
    access_type   = Column(String(10), nullable=True)
    decided_at    = Column(DateTime(timezone=True), nullable=False, index=True)
    details       = Column(JSON, nullable=True)
