from typing import List, Optional
from sqlalchemy.orm import Session

from api.checkpoint.checkpoint_service import CheckpointService
from api.presence.presence_schema import PresenceOut, ReconcileOut
from api.presence.presence_service import PresenceService
from config.settings import settings
from utils.lock_utils import KeyLockManager
from utils.query_params import QueryParams


class PresenceController:
    @staticmethod
    def list_inside(db: Session) -> List[PresenceOut]:
        return [PresenceOut.model_validate(p) for p in PresenceService(db).list_inside()]

    @staticmethod
    def history(params: Optional[QueryParams], db: Session) -> List[PresenceOut]:
        return [PresenceOut.model_validate(p) for p in PresenceService(db).history(params)]

    @staticmethod
    def long_stays(hours: Optional[int], db: Session) -> List[PresenceOut]:
        rows = PresenceService(db).long_stays(hours or settings.LONG_PRESENCE_HOURS)
        return [PresenceOut.model_validate(p) for p in rows]

    @staticmethod
    def reconcile(attendance_id: str, db: Session, locks: KeyLockManager) -> ReconcileOut:
        svc = CheckpointService(db, locks)
        rec = svc.reconcile(attendance_id)
        presence = (
            svc.presence.find_by_exit(rec.id)
            or svc.presence.find_applied_entry(rec.id)
            or svc.presence.find_by_entry(rec.id)
        )
        return ReconcileOut(
            attendance_id=rec.id,
            presence_sync=rec.presence_sync.value,
            presence=PresenceOut.model_validate(presence) if presence else None,
        )
