from typing import List
from sqlalchemy.orm import Session

from api.manual_decisions.manual_decisions_schema import ManualDecisionCreate, ManualDecisionOut
from api.manual_decisions.manual_decisions_service import ManualDecisionService


class ManualDecisionController:
    @staticmethod
    def create(payload: ManualDecisionCreate, db: Session) -> ManualDecisionOut:
        return ManualDecisionOut.model_validate(ManualDecisionService(db).record(payload))

    @staticmethod
    def list_all(db: Session) -> List[ManualDecisionOut]:
        return [ManualDecisionOut.model_validate(d) for d in ManualDecisionService(db).list_all()]

    @staticmethod
    def list_for_guard(guard_id: str, db: Session) -> List[ManualDecisionOut]:
        rows = ManualDecisionService(db).list_for_guard(guard_id)
        return [ManualDecisionOut.model_validate(d) for d in rows]
