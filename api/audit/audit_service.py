import logging
from blinker import signal

from api.manual_decisions.manual_decisions_service import ManualDecisionService
from utils.exceptions import CheckpointError

logger = logging.getLogger(__name__)

# ------------------------------------------
# Define signals
# ------------------------------------------
attendance_recorded   = signal("attendance_recorded")
decision_changed      = signal("decision_changed")
presence_sync_failed  = signal("presence_sync_failed")
guard_sessions_forced = signal("guard_sessions_forced")


# ------------------------------------------
# Listener: Attendance recorded
# ------------------------------------------
@attendance_recorded.connect
def on_attendance_recorded(sender, **kwargs):
    record = kwargs.get("record")
    logger.debug(f"[listener] attendance_recorded {record.id} ({record.type.value}) sync={record.presence_sync.value}")


# ------------------------------------------
# Listener: Decision changed -> audit row
# ------------------------------------------
@decision_changed.connect
def on_decision_changed(sender, **kwargs):
    db = kwargs["db"]
    record = kwargs["record"]
    previous = kwargs.get("previous_state")
    try:
        ManualDecisionService(db).record({
            "attendance_id": record.id,
            "person_dni": record.person_dni,
            "person_name": record.person_name,
            "guard_id": record.guard_id,
            "guard_name": record.guard_name,
            "authorized": record.state.value == "authorized",
            "reason": record.decision_reason,
            "checkpoint": record.checkpoint,
            "access_type": record.type.value,
            "details": {"previous_state": previous.value if previous else None, "source": "correction"},
        })
    except CheckpointError:
        # the amendment itself is already committed; the audit row is best effort
        logger.exception(f"❌ Failed to record audit row for attendance {record.id}")


# ------------------------------------------
# Listener: Presence reconciliation failed
# ------------------------------------------
@presence_sync_failed.connect
def on_presence_sync_failed(sender, **kwargs):
    record = kwargs.get("record")
    error = kwargs.get("error")
    logger.warning(
        f"⚠️ Presence not reconciled for attendance {record.id} "
        f"(dni={record.person_dni}, status={record.presence_sync.value}): {error}"
    )


# ------------------------------------------
# Listener: Guard sessions forced closed
# ------------------------------------------
@guard_sessions_forced.connect
def on_guard_sessions_forced(sender, **kwargs):
    logger.warning(
        f"⚠️ Admin {kwargs.get('admin_id') or 'unknown'} force-finalized "
        f"{kwargs.get('closed', 0)} session(s) (target={kwargs.get('target')})"
    )
