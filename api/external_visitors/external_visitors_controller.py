from typing import List
from sqlalchemy.orm import Session

from api.external_visitors.external_visitors_schema import ExternalVisitIn, ExternalVisitOut
from api.external_visitors.external_visitors_service import ExternalVisitService


class ExternalVisitController:
    @staticmethod
    def register(payload: ExternalVisitIn, db: Session) -> ExternalVisitOut:
        return ExternalVisitOut.model_validate(ExternalVisitService(db).register(payload))

    @staticmethod
    def list_all(db: Session) -> List[ExternalVisitOut]:
        return [ExternalVisitOut.model_validate(v) for v in ExternalVisitService(db).list_all()]

    @staticmethod
    def latest_for_dni(dni: str, db: Session) -> ExternalVisitOut:
        return ExternalVisitOut.model_validate(ExternalVisitService(db).latest_for_dni(dni))
