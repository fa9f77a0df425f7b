import logging
from typing import Any, Dict, List, Union

from sqlalchemy.orm import Session

from api.attendance.attendance_records_model import AttendanceType, AuthorizationState
from api.attendance.attendance_service import check_access_type, check_guard, require_fields
from api.external_visitors.external_visitors_model import ExternalVisit
from api.external_visitors.external_visitors_schema import ExternalVisitIn
from utils.clock import Clock, as_utc, utc_now
from utils.database_utils import storage_errors
from utils.exceptions import RecordNotFoundError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("full_name", "dni", "reason", "guard_id", "guard_name")


class ExternalVisitService:
    """
    Visitors without a university card. They never enter the presence
    view, so a registration is a single committed row.
    """

    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    def register(self, payload: Union[ExternalVisitIn, Dict[str, Any]]) -> ExternalVisit:
        data = payload.model_dump() if isinstance(payload, ExternalVisitIn) else dict(payload)
        data = {k: (v.strip() if isinstance(v, str) else v) for k, v in data.items()}

        require_fields(data, REQUIRED_FIELDS)
        access_type = check_access_type(data.get("type") or AttendanceType.entry.value)
        check_guard(data)

        visit = ExternalVisit(
            full_name            = data["full_name"],
            dni                  = data["dni"],
            reason               = data["reason"],
            type                 = access_type,
            state                = AuthorizationState.authorized,
            location_description = data.get("location_description") or None,
            guard_id             = data["guard_id"],
            guard_name           = data["guard_name"],
            recorded_at          = as_utc(self.clock()),
        )
        with storage_errors(self.db, "external visit"):
            self.db.add(visit)
            self.db.commit()
            self.db.refresh(visit)

        logger.info(f"✅ External visit {visit.id} stored: {visit.type.value} dni={visit.dni} guard={visit.guard_id}")
        return visit

    def list_all(self) -> List[ExternalVisit]:
        return self.db.query(ExternalVisit).order_by(ExternalVisit.recorded_at.desc()).all()

    def latest_for_dni(self, dni: str) -> ExternalVisit:
        visit = (
            self.db.query(ExternalVisit)
                .filter_by(dni=dni)
                .order_by(ExternalVisit.recorded_at.desc())
                .first()
        )
        if not visit:
            raise RecordNotFoundError(f"No external visit registered for DNI {dni}", dni=dni)
        return visit
