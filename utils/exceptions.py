"""
Error taxonomy shared by the checkpoint services.

Every error carries a stable ``code`` and an HTTP ``status_code`` so the
exception handler in ``main.py`` can render it as
``{"detail": {"code": ..., "message": ..., "retryable": ...}}``.
Only storage failures are ``retryable``; semantic errors are reported as-is.
"""
from typing import Any, Dict, Optional


class CheckpointError(Exception):
    code = "CHECKPOINT_ERROR"
    status_code = 400
    retryable = False

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        payload = {"code": self.code, "message": self.message, "retryable": self.retryable}
        payload.update(self.extra)
        return payload


class ValidationError(CheckpointError):
    code = "VALIDATION_ERROR"


class PolicyError(CheckpointError):
    code = "POLICY_ERROR"


class RecordNotFoundError(CheckpointError):
    code = "NOT_FOUND"
    status_code = 404


class WindowExpiredError(CheckpointError):
    code = "WINDOW_EXPIRED"


class DuplicateEntryError(CheckpointError):
    code = "ALREADY_INSIDE"
    status_code = 409


class NoActivePresenceError(CheckpointError):
    code = "NOT_INSIDE"
    status_code = 409


class CheckpointBusyError(CheckpointError):
    code = "CHECKPOINT_BUSY"
    status_code = 409

    def __init__(self, message: str, active_guard: Optional[Dict[str, Any]] = None):
        super().__init__(message, conflict=True, active_guard=active_guard)
        self.active_guard = active_guard


class SessionNotFoundError(CheckpointError):
    code = "SESSION_NOT_FOUND"
    status_code = 404


class ConcurrentUpdateError(CheckpointError):
    code = "CONCURRENT_UPDATE"
    status_code = 409
    retryable = True


class StorageError(CheckpointError):
    code = "STORAGE_UNAVAILABLE"
    status_code = 503
    retryable = True


class StorageTimeoutError(StorageError):
    code = "STORAGE_TIMEOUT"
    status_code = 504
