"""
Database utilities shared by the checkpoint services
"""
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Type, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from utils.exceptions import RecordNotFoundError, StorageError, StorageTimeoutError

T = TypeVar('T')

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATEs for statement/lock timeouts
_TIMEOUT_SQLSTATES = {"57014", "55P03"}


def _is_timeout(exc: DBAPIError) -> bool:
    code = getattr(exc.orig, "pgcode", None)
    if code in _TIMEOUT_SQLSTATES:
        return True
    text = str(exc.orig).lower()
    return "timeout" in text or "timed out" in text or "database is locked" in text


class DatabaseUtils:
    """Utility class for common database operations"""

    @staticmethod
    def get_by_id_or_404(db: Session, model_class: Type[T], obj_id: Any, label: Optional[str] = None) -> T:
        """
        Get object by primary key or raise RecordNotFoundError

        Args:
            db: Database session
            model_class: SQLAlchemy model class
            obj_id: Primary key value
            label: Name used in the error message

        Returns:
            Model instance
        """
        obj = db.get(model_class, obj_id)
        if not obj:
            raise RecordNotFoundError(f"{label or model_class.__name__} {obj_id} not found", id=str(obj_id))
        return obj

    @staticmethod
    def exists(db: Session, model_class: Type[T], **filters) -> bool:
        """Check if object exists with given filters"""
        return db.query(
            db.query(model_class).filter_by(**filters).exists()
        ).scalar()

    @staticmethod
    def count(db: Session, model_class: Type[T], **filters) -> int:
        """Count objects with given filters"""
        query = db.query(model_class)
        if filters:
            query = query.filter_by(**filters)
        return query.count()


@contextmanager
def storage_errors(db: Optional[Session] = None, action: str = "storage call") -> Iterator[None]:
    """
    Translate transient SQLAlchemy failures into retryable StorageError.

    Integrity and programming errors pass through untouched: they are
    semantic and the caller decides what they mean. The session is rolled
    back so it stays usable after a failure.
    """
    try:
        yield
    except PoolTimeoutError as exc:
        _rollback(db)
        logger.error(f"❌ {action}: connection pool exhausted")
        raise StorageTimeoutError(f"{action} timed out waiting for a connection") from exc
    except OperationalError as exc:
        _rollback(db)
        if _is_timeout(exc):
            logger.error(f"❌ {action}: timed out")
            raise StorageTimeoutError(f"{action} timed out") from exc
        logger.error(f"❌ {action}: database unavailable ({exc.orig})")
        raise StorageError(f"{action} failed: database unavailable") from exc
    except DBAPIError as exc:
        if not exc.connection_invalidated:
            raise
        _rollback(db)
        logger.error(f"❌ {action}: connection lost")
        raise StorageError(f"{action} failed: connection lost") from exc


def _rollback(db: Optional[Session]) -> None:
    if db is None:
        return
    try:
        db.rollback()
    except Exception:
        logger.exception("❌ Rollback after storage failure also failed")
