"""
Correction window for attendance authorization decisions.

A guard may deny a scan only shortly after it happened, and may revert a
denial only shortly after the denial was made. The policy is pure: it takes
every timestamp as an argument and never reads the clock or the database,
so callers pass ``now`` explicitly.

The clock is wall time. An NTP step or manual clock change shifts every
comparison here by the same amount; nothing below tries to compensate.
"""
from datetime import datetime, timedelta
from typing import Optional

from api.attendance.attendance_records_model import AuthorizationState
from utils.clock import as_utc
from utils.exceptions import ValidationError, WindowExpiredError

CORRECTION_WINDOW = timedelta(minutes=5)

# What to do when a denial is reverted but no decision timestamp was stored
# (records that were denied at creation time).
FALLBACK_EVENT_TIMESTAMP = "event_timestamp"
FALLBACK_DENY = "deny"


def coerce_state(value) -> AuthorizationState:
    if isinstance(value, AuthorizationState):
        return value
    try:
        return AuthorizationState(value)
    except ValueError:
        raise ValidationError(
            f"Invalid authorization state {value!r}; expected 'authorized' or 'denied'",
            field="state",
        )


def check_transition(
    record_timestamp: datetime,
    decision_timestamp: Optional[datetime],
    current_state,
    requested_state,
    now: datetime,
    window: timedelta = CORRECTION_WINDOW,
    missing_decision_policy: str = FALLBACK_EVENT_TIMESTAMP,
) -> None:
    """
    Raise WindowExpiredError if moving `current_state` -> `requested_state`
    is not allowed at `now`. Returns None when the change may proceed.
    """
    current = coerce_state(current_state)
    requested = coerce_state(requested_state)
    now = as_utc(now)

    if requested is AuthorizationState.denied:
        elapsed = now - as_utc(record_timestamp)
        if elapsed > window:
            raise WindowExpiredError(
                "An access can only be denied within "
                f"{_minutes(window)} minutes of the scan.",
                elapsed_seconds=int(elapsed.total_seconds()),
            )
        return

    if current is AuthorizationState.denied:
        if decision_timestamp is None:
            if missing_decision_policy == FALLBACK_DENY:
                raise WindowExpiredError(
                    "This denial has no decision timestamp and cannot be reverted.",
                )
            reference = as_utc(record_timestamp)
        else:
            reference = as_utc(decision_timestamp)

        elapsed = now - reference
        if elapsed > window:
            raise WindowExpiredError(
                "A denial can only be reverted within "
                f"{_minutes(window)} minutes of the decision.",
                elapsed_seconds=int(elapsed.total_seconds()),
            )


def _minutes(window: timedelta) -> int:
    return int(window.total_seconds() // 60)
