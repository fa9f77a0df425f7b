from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from utils.deps import get_locks
from utils.lock_utils import KeyLockManager
from api.guard_sessions.guard_sessions_controller import GuardSessionController
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

router = APIRouter(prefix="/sessions", tags=["guard sessions"])


@router.post(
    "/start",
    response_model=SessionStartOut,
    status_code=201,
    summary="Start a guard session at a checkpoint",
)
def start_session(
    payload: SessionStartIn,
    db: Session = Depends(get_db),
    locks: KeyLockManager = Depends(get_locks),
):
    return GuardSessionController.start(payload, db, locks)


@router.post("/heartbeat", response_model=HeartbeatOut, summary="Keep a guard session alive")
def heartbeat(payload: SessionTokenIn, db: Session = Depends(get_db)):
    return GuardSessionController.heartbeat(payload, db)


@router.post("/finalize", response_model=FinalizeOut, summary="End a guard session")
def finalize(payload: SessionTokenIn, db: Session = Depends(get_db)):
    return GuardSessionController.finalize(payload, db)


@router.post(
    "/force-finalize",
    response_model=ForceFinalizeOut,
    summary="Close one session, or every active session with 'all'",
)
def force_finalize(payload: ForceFinalizeIn, db: Session = Depends(get_db)):
    return GuardSessionController.force_finalize(payload, db)


@router.get("/active", response_model=List[GuardSessionOut], summary="Active guard sessions")
def list_active(db: Session = Depends(get_db)):
    return GuardSessionController.list_active(db)
