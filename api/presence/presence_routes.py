from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config.database import get_db
from utils.deps import get_locks, optional_pagination
from utils.lock_utils import KeyLockManager
from utils.query_params import QueryParams
from api.presence.presence_schema import PresenceOut, ReconcileOut
from api.presence.presence_controller import PresenceController

router = APIRouter(prefix="/presence", tags=["presence"])


@router.get("", response_model=List[PresenceOut], summary="People currently inside the campus")
def list_inside(db: Session = Depends(get_db)):
    return PresenceController.list_inside(db)


@router.get("/history", response_model=List[PresenceOut], summary="Presence history, newest first")
def history(
    params: Optional[QueryParams] = Depends(optional_pagination),
    db: Session = Depends(get_db),
):
    return PresenceController.history(params, db)


@router.get("/long-stay", response_model=List[PresenceOut], summary="People inside for longer than the threshold")
def long_stays(
    hours: Optional[int] = Query(None, ge=1, le=24 * 7),
    db: Session = Depends(get_db),
):
    return PresenceController.long_stays(hours, db)


@router.post(
    "/reconcile/{attendance_id}",
    response_model=ReconcileOut,
    summary="Replay the presence step of one attendance record",
)
def reconcile(
    attendance_id: str,
    db: Session = Depends(get_db),
    locks: KeyLockManager = Depends(get_locks),
):
    return PresenceController.reconcile(attendance_id, db, locks)
