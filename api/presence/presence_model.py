from sqlalchemy import Column, String, Boolean, DateTime, BigInteger, Index, func, text
import uuid
from config.database import Base

# Written into exit_checkpoint when an entry is denied after the fact
DENIED_ENTRY_MARKER = "DENIED_ENTRY"


class PresenceRecord(Base):
    __tablename__ = "presence_records"
    __table_args__ = (
        # at most one open presence per person
        Index(
            "uq_presence_person_inside",
            "person_dni",
            unique=True,
            postgresql_where=text("inside"),
            sqlite_where=text("inside = 1"),
        ),
        Index("ix_presence_person_inside", "person_dni", "inside"),
    )

    id                  = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    person_dni          = Column(String(20), nullable=False)
    person_name         = Column(String(250), nullable=False)
    faculty_code        = Column(String(20), nullable=True)
    school_code         = Column(String(20), nullable=True)

    entered_at          = Column(DateTime(timezone=True), nullable=False, index=True)
    entry_checkpoint    = Column(String(64), nullable=False)
    entry_guard_id      = Column(String(64), nullable=False)
    entry_attendance_id = Column(String(36), nullable=True, index=True)

    exited_at           = Column(DateTime(timezone=True), nullable=True)
    exit_checkpoint     = Column(String(64), nullable=True)
    exit_guard_id       = Column(String(64), nullable=True)
    exit_attendance_id  = Column(String(36), nullable=True, index=True)

    inside              = Column(Boolean, nullable=False, default=True)
    duration_ms         = Column(BigInteger, nullable=True)
    created_at          = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def invalidated(self) -> bool:
        return self.exit_checkpoint == DENIED_ENTRY_MARKER
