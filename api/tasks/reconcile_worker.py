# api/tasks/reconcile_worker.py

import logging
from typing import Callable, Dict, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from api.checkpoint.checkpoint_service import CheckpointService
from api.guard_sessions.guard_sessions_model import GuardSession
from api.guard_sessions.guard_sessions_service import GuardSessionService
from config.database import SessionLocal
from config.settings import settings
from utils.exceptions import CheckpointError
from utils.lock_utils import KeyLockManager

logger = logging.getLogger(__name__)

JOB_ID = "presence_reconcile"


def reconcile_pending_presence(
    locks: Optional[KeyLockManager] = None,
    session_factory: Callable[[], Session] = SessionLocal,
    batch_size: Optional[int] = None,
) -> Dict[str, int]:
    """Replay the presence step of every attendance record still marked pending."""
    db = session_factory()
    try:
        summary = CheckpointService(db, locks).reconcile_pending(batch_size or settings.RECONCILE_BATCH_SIZE)
    except CheckpointError:
        logger.exception("❌ Presence reconciliation run failed")
        return {}
    finally:
        db.close()

    if summary["checked"]:
        logger.info(
            f"▶️ Reconciled {summary['checked']} attendance record(s): "
            f"applied={summary['applied']} not_required={summary['not_required']} "
            f"conflict={summary['conflict']} still_pending={summary['pending']}"
        )
    return summary


def list_stale_sessions(session_factory: Callable[[], Session] = SessionLocal) -> List[GuardSession]:
    db = session_factory()
    try:
        svc = GuardSessionService(db)
        stale = [s for s in svc.list_active() if svc.is_stale(s)]
        for s in stale:
            logger.info(
                f"⚠️ Stale session: guard={s.guard_id} checkpoint={s.checkpoint} "
                f"last_activity={s.last_activity.isoformat()}"
            )
        return stale
    finally:
        db.close()


def start_reconcile_scheduler(locks: Optional[KeyLockManager] = None, interval: Optional[int] = None) -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        reconcile_pending_presence,
        'interval',
        seconds=interval or settings.RECONCILE_INTERVAL_SECONDS,
        kwargs={"locks": locks},
        id=JOB_ID,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info(f"▶️ Presence reconcile job scheduled every {interval or settings.RECONCILE_INTERVAL_SECONDS}s")
    return scheduler
