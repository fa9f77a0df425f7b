from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from api.manual_decisions.manual_decisions_controller import ManualDecisionController
from api.manual_decisions.manual_decisions_schema import ManualDecisionCreate, ManualDecisionOut

router = APIRouter(prefix="/manual-decisions", tags=["manual decisions"])


@router.post("", response_model=ManualDecisionOut, status_code=201, summary="Log a guard's manual decision")
def create_decision(payload: ManualDecisionCreate, db: Session = Depends(get_db)):
    return ManualDecisionController.create(payload, db)


@router.get("", response_model=List[ManualDecisionOut], summary="All manual decisions, newest first")
def list_decisions(db: Session = Depends(get_db)):
    return ManualDecisionController.list_all(db)


@router.get("/guard/{guard_id}", response_model=List[ManualDecisionOut], summary="Manual decisions of one guard")
def list_guard_decisions(guard_id: str, db: Session = Depends(get_db)):
    return ManualDecisionController.list_for_guard(guard_id, db)
