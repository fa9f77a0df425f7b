from sqlalchemy import Column, String, Boolean, DateTime, JSON, Index, text
from config.database import Base


class GuardSession(Base):
    __tablename__ = "guard_sessions"
    __table_args__ = (
        # one active operator per checkpoint
        Index(
            "uq_guard_sessions_checkpoint_active",
            "checkpoint",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("ix_guard_sessions_guard_active", "guard_id", "is_active"),
    )

    token         = Column(String(64), primary_key=True)
    guard_id      = Column(String(64), nullable=False)
    guard_name    = Column(String(120), nullable=False)
    checkpoint    = Column(String(64), nullable=False, index=True)
    device_info   = Column(JSON, nullable=True)
    is_active     = Column(Boolean, nullable=False, default=True)
    last_activity = Column(DateTime(timezone=True), nullable=False)
    started_at    = Column(DateTime(timezone=True), nullable=False)
    ended_at      = Column(DateTime(timezone=True), nullable=True)
    forced_by     = Column(String(64), nullable=True)
