from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from api.external_visitors.external_visitors_controller import ExternalVisitController
from api.external_visitors.external_visitors_schema import ExternalVisitIn, ExternalVisitOut

router = APIRouter(prefix="/external-visitors", tags=["external visitors"])


@router.post("", response_model=ExternalVisitOut, status_code=201, summary="Register an external visitor at a checkpoint")
def register_visit(payload: ExternalVisitIn, db: Session = Depends(get_db)):
    return ExternalVisitController.register(payload, db)


@router.get("", response_model=List[ExternalVisitOut], summary="All external visits, newest first")
def list_visits(db: Session = Depends(get_db)):
    return ExternalVisitController.list_all(db)


@router.get("/{dni}", response_model=ExternalVisitOut, summary="Latest external visit of one DNI")
def latest_visit(dni: str, db: Session = Depends(get_db)):
    return ExternalVisitController.latest_for_dni(dni, db)
