import logging
from typing import Any, Dict, List, Union

from sqlalchemy.orm import Session

from api.attendance.attendance_service import UNASSIGNED_GUARD_IDS
from api.manual_decisions.manual_decisions_model import ManualDecision
from api.manual_decisions.manual_decisions_schema import ManualDecisionCreate
from utils.clock import Clock, as_utc, utc_now
from utils.database_utils import storage_errors
from utils.exceptions import PolicyError

logger = logging.getLogger(__name__)


class ManualDecisionService:
    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    def record(self, data: Union[ManualDecisionCreate, Dict[str, Any]]) -> ManualDecision:
        values = data.model_dump() if isinstance(data, ManualDecisionCreate) else dict(data)
        if values.get("guard_id") in UNASSIGNED_GUARD_IDS:
            raise PolicyError("Guard is not configured on this device", field="guard_id")

        decision = ManualDecision(decided_at=as_utc(self.clock()), **values)
        with storage_errors(self.db, "manual decision"):
            self.db.add(decision)
            self.db.commit()
            self.db.refresh(decision)
        logger.info(
            f"📝 Manual decision by guard {decision.guard_id}: "
            f"{'authorized' if decision.authorized else 'denied'} dni={decision.person_dni}"
        )
        return decision

    def list_all(self) -> List[ManualDecision]:
        return self.db.query(ManualDecision).order_by(ManualDecision.decided_at.desc()).all()

    def list_for_guard(self, guard_id: str) -> List[ManualDecision]:
        return (
            self.db.query(ManualDecision)
                .filter_by(guard_id=guard_id)
                .order_by(ManualDecision.decided_at.desc())
                .all()
        )

    def list_for_attendance(self, attendance_id: str) -> List[ManualDecision]:
        return (
            self.db.query(ManualDecision)
                .filter_by(attendance_id=attendance_id)
                .order_by(ManualDecision.decided_at.asc())
                .all()
        )
