from typing import List
from sqlalchemy.orm import Session

from api.audit.audit_service import guard_sessions_forced
from api.guard_sessions.guard_sessions_model import GuardSession
from api.guard_sessions.guard_sessions_service import FORCE_ALL, GuardSessionService
from api.guard_sessions.guard_sessions_schema import (
    FinalizeOut,
    ForceFinalizeIn,
    ForceFinalizeOut,
    GuardSessionOut,
    HeartbeatOut,
    SessionStartIn,
    SessionStartOut,
    SessionTokenIn,
)
from utils.lock_utils import KeyLockManager


def _session_out(svc: GuardSessionService, session: GuardSession) -> GuardSessionOut:
    out = GuardSessionOut.model_validate(session)
    out.stale = svc.is_stale(session)
    return out


class GuardSessionController:
    @staticmethod
    def start(payload: SessionStartIn, db: Session, locks: KeyLockManager) -> SessionStartOut:
        svc = GuardSessionService(db, locks)
        session = svc.start(
            payload.guard_id,
            payload.guard_name,
            payload.checkpoint,
            payload.device_info.model_dump() if payload.device_info else None,
        )
        return SessionStartOut(
            session_token=session.token,
            message="Session started",
            session=_session_out(svc, session),
        )

    @staticmethod
    def heartbeat(payload: SessionTokenIn, db: Session) -> HeartbeatOut:
        session = GuardSessionService(db).heartbeat(payload.session_token)
        return HeartbeatOut(message="Heartbeat recorded", last_activity=session.last_activity)

    @staticmethod
    def finalize(payload: SessionTokenIn, db: Session) -> FinalizeOut:
        svc = GuardSessionService(db)
        session = svc.finalize(payload.session_token)
        return FinalizeOut(message="Session finalized", session=_session_out(svc, session))

    @staticmethod
    def force_finalize(payload: ForceFinalizeIn, db: Session) -> ForceFinalizeOut:
        closed = GuardSessionService(db).force_finalize(payload.session_token, payload.admin_id)
        guard_sessions_forced.send(
            GuardSessionController,
            admin_id=payload.admin_id,
            target=FORCE_ALL if payload.session_token == FORCE_ALL else "single",
            closed=closed,
        )
        return ForceFinalizeOut(message=f"{closed} session(s) finalized", closed=closed)

    @staticmethod
    def list_active(db: Session) -> List[GuardSessionOut]:
        svc = GuardSessionService(db)
        return [_session_out(svc, s) for s in svc.list_active()]
