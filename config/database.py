import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from config.settings import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL


def _engine_options(url: str) -> dict:
    """Pool and timeout settings per backend; every storage call must be bounded."""
    if url.startswith("postgresql"):
        return {
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_pre_ping": True,
            "pool_recycle": settings.DB_POOL_RECYCLE,
            "pool_timeout": settings.DB_POOL_TIMEOUT,
            "connect_args": {
                "connect_timeout": settings.DB_CONNECT_TIMEOUT,
                "options": f"-c timezone=utc -c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}",
            },
        }
    # sqlite: busy timeout in seconds
    return {"connect_args": {"check_same_thread": False, "timeout": settings.DB_CONNECT_TIMEOUT}}


engine = create_engine(DATABASE_URL, echo=settings.DEBUG, **_engine_options(DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create all tables for the registered models (development / tests)."""
    # model modules must be imported so they register on Base.metadata
    import api.attendance.attendance_records_model  # noqa: F401
    import api.presence.presence_model  # noqa: F401
    import api.guard_sessions.guard_sessions_model  # noqa: F401
    import api.manual_decisions.manual_decisions_model  # noqa: F401
    import api.external_visitors.external_visitors_model  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("✅ Database tables initialized")
