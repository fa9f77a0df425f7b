# api/guard_sessions/guard_sessions_service.py

import logging
import secrets
from contextlib import nullcontext
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from api.guard_sessions.guard_sessions_model import GuardSession
from config.settings import settings
from utils.clock import Clock, as_utc, utc_now
from utils.database_utils import storage_errors
from utils.exceptions import CheckpointBusyError, SessionNotFoundError, ValidationError
from utils.lock_utils import KeyLockManager, checkpoint_key, guard_key

logger = logging.getLogger(__name__)

FORCE_ALL = "all"


class GuardSessionService:
    """
    Tracks which guard operates which checkpoint.

    The "one active guard per checkpoint" rule is enforced by a partial
    unique index over (checkpoint) WHERE is_active, so a start() racing
    another start() on the same checkpoint loses at INSERT time instead of
    slipping past a read-then-write check. The upfront read only exists to
    name the current holder in the error.
    """

    def __init__(
        self,
        db: Session,
        locks: Optional[KeyLockManager] = None,
        clock: Clock = utc_now,
        stale_after: Optional[timedelta] = None,
    ):
        self.db = db
        self.locks = locks
        self.clock = clock
        self.stale_after = stale_after or timedelta(seconds=settings.SESSION_STALE_AFTER_SECONDS)

    def start(
        self,
        guard_id: Optional[str],
        guard_name: Optional[str],
        checkpoint: Optional[str],
        device_info: Optional[Dict[str, Any]] = None,
    ) -> GuardSession:
        missing = [
            name for name, value in (
                ("guard_id", guard_id),
                ("guard_name", guard_name),
                ("checkpoint", checkpoint),
            )
            if not value or not str(value).strip()
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing_fields=missing)

        lock = self.locks.hold(checkpoint_key(checkpoint), guard_key(guard_id)) if self.locks else nullcontext()
        with lock, storage_errors(self.db, "guard session start"):
            holder = self._active_holder(checkpoint, exclude_guard_id=guard_id)
            if holder:
                raise self._busy(holder)

            now = as_utc(self.clock())
            closed = (
                self.db.query(GuardSession)
                    .filter(GuardSession.guard_id == guard_id, GuardSession.is_active.is_(True))
                    .update({"is_active": False, "ended_at": now}, synchronize_session=False)
            )
            if closed:
                logger.info(f"▶️ Closed {closed} previous session(s) of guard {guard_id}")

            session = GuardSession(
                token=secrets.token_urlsafe(32),
                guard_id=guard_id,
                guard_name=guard_name,
                checkpoint=checkpoint,
                device_info=device_info or {},
                is_active=True,
                last_activity=now,
                started_at=now,
            )
            self.db.add(session)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.warning(f"⚠️ Lost race for checkpoint {checkpoint} (guard {guard_id})")
                raise self._busy(self._active_holder(checkpoint))
            self.db.refresh(session)

        logger.info(f"✅ Guard {guard_id} started session at checkpoint {checkpoint}")
        return session

    def heartbeat(self, token: str) -> GuardSession:
        now = as_utc(self.clock())
        return self._update_active(token, {"last_activity": now}, action="heartbeat")

    def finalize(self, token: str) -> GuardSession:
        now = as_utc(self.clock())
        session = self._update_active(token, {"is_active": False, "ended_at": now}, action="finalize")
        logger.info(f"✅ Session of guard {session.guard_id} at {session.checkpoint} finalized")
        return session

    def force_finalize(self, token: str, admin_id: Optional[str] = None) -> int:
        """Close one session by token, or every active session with token 'all'."""
        now = as_utc(self.clock())
        with storage_errors(self.db, "guard session force-finalize"):
            query = self.db.query(GuardSession).filter(GuardSession.is_active.is_(True))
            if token != FORCE_ALL:
                query = query.filter(GuardSession.token == token)
            closed = query.update(
                {"is_active": False, "ended_at": now, "forced_by": admin_id or "unknown"},
                synchronize_session=False,
            )
            self.db.commit()
        logger.info(f"✅ {closed} session(s) force-finalized by {admin_id or 'unknown'}")
        return closed

    def list_active(self) -> List[GuardSession]:
        return (
            self.db.query(GuardSession)
                .filter(GuardSession.is_active.is_(True))
                .order_by(GuardSession.started_at.asc())
                .all()
        )

    def get(self, token: str) -> Optional[GuardSession]:
        return self.db.get(GuardSession, token)

    def is_stale(self, session: GuardSession, now: Optional[datetime] = None) -> bool:
        """Read-time liveness: an active session whose heartbeats stopped."""
        if not session.is_active:
            return False
        now = as_utc(now or self.clock())
        return now - as_utc(session.last_activity) > self.stale_after

    def holder_info(self, session: GuardSession) -> Dict[str, Any]:
        return {
            "guard_id": session.guard_id,
            "guard_name": session.guard_name,
            "session_start": as_utc(session.started_at).isoformat(),
            "last_activity": as_utc(session.last_activity).isoformat(),
            "stale": self.is_stale(session),
        }

    # ------------------------------------------------------------------
    def _active_holder(self, checkpoint: str, exclude_guard_id: Optional[str] = None) -> Optional[GuardSession]:
        query = self.db.query(GuardSession).filter(
            GuardSession.checkpoint == checkpoint,
            GuardSession.is_active.is_(True),
        )
        if exclude_guard_id is not None:
            query = query.filter(GuardSession.guard_id != exclude_guard_id)
        return query.first()

    def _busy(self, holder: Optional[GuardSession]) -> CheckpointBusyError:
        if holder is None:
            return CheckpointBusyError("Another guard is active at this checkpoint")
        return CheckpointBusyError(
            f"Guard {holder.guard_name} is already active at checkpoint {holder.checkpoint}",
            active_guard=self.holder_info(holder),
        )

    def _update_active(self, token: str, values: Dict[str, Any], action: str) -> GuardSession:
        if not token:
            raise ValidationError("session_token is required", field="session_token")
        with storage_errors(self.db, f"guard session {action}"):
            updated = (
                self.db.query(GuardSession)
                    .filter(GuardSession.token == token, GuardSession.is_active.is_(True))
                    .update(values, synchronize_session=False)
            )
            if updated != 1:
                self.db.rollback()
                raise SessionNotFoundError("Session not found or already finalized")
            self.db.commit()
            session = self.db.get(GuardSession, token)
            self.db.refresh(session)
        return session
