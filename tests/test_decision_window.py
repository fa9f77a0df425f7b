from datetime import datetime, timedelta, timezone

import pytest

from api.attendance import decision_window
from api.attendance.attendance_records_model import AuthorizationState
from utils.exceptions import ValidationError, WindowExpiredError

T0 = datetime(2026, 3, 2, 13, 0, tzinfo=timezone.utc)
AUTHORIZED = AuthorizationState.authorized
DENIED = AuthorizationState.denied


def test_deny_inside_window_is_allowed():
    decision_window.check_transition(T0, None, AUTHORIZED, DENIED, now=T0 + timedelta(minutes=4))


def test_deny_exactly_at_window_edge_is_allowed():
    decision_window.check_transition(T0, None, AUTHORIZED, DENIED, now=T0 + timedelta(minutes=5))


def test_deny_after_window_expires():
    with pytest.raises(WindowExpiredError) as exc:
        decision_window.check_transition(T0, None, AUTHORIZED, DENIED, now=T0 + timedelta(minutes=6))
    assert exc.value.extra["elapsed_seconds"] == 360


def test_reversal_measured_from_decision_time():
    decided = T0 + timedelta(minutes=4)
    # 8 minutes after the scan but 4 after the denial
    decision_window.check_transition(T0, decided, DENIED, AUTHORIZED, now=T0 + timedelta(minutes=8))

    with pytest.raises(WindowExpiredError):
        decision_window.check_transition(T0, decided, DENIED, AUTHORIZED, now=T0 + timedelta(minutes=10))


def test_reversal_without_decision_time_falls_back_to_scan_time():
    decision_window.check_transition(T0, None, DENIED, AUTHORIZED, now=T0 + timedelta(minutes=3))
    with pytest.raises(WindowExpiredError):
        decision_window.check_transition(T0, None, DENIED, AUTHORIZED, now=T0 + timedelta(minutes=7))


def test_reversal_without_decision_time_can_be_refused():
    with pytest.raises(WindowExpiredError):
        decision_window.check_transition(
            T0, None, DENIED, AUTHORIZED,
            now=T0 + timedelta(seconds=10),
            missing_decision_policy=decision_window.FALLBACK_DENY,
        )


def test_authorized_to_authorized_has_nothing_to_check():
    decision_window.check_transition(T0, None, AUTHORIZED, AUTHORIZED, now=T0 + timedelta(days=3))


def test_naive_timestamps_are_read_as_utc():
    naive = T0.replace(tzinfo=None)
    decision_window.check_transition(naive, None, AUTHORIZED, DENIED, now=T0 + timedelta(minutes=1))


def test_custom_window():
    with pytest.raises(WindowExpiredError):
        decision_window.check_transition(
            T0, None, AUTHORIZED, DENIED,
            now=T0 + timedelta(minutes=2),
            window=timedelta(minutes=1),
        )


def test_unknown_state_is_a_validation_error():
    with pytest.raises(ValidationError):
        decision_window.check_transition(T0, None, AUTHORIZED, "maybe", now=T0)
