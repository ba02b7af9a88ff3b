"""
SmartDisplay domain errors.

Each error carries a stable `code` that the HTTP layer maps to an
envelope error code. State machines do not raise for rejected events;
they return a TransitionResult instead.
"""

from typing import Optional

from .domain.enums import FetchFailureKind


class SmartDisplayError(Exception):
    """Base class for core errors."""
    code = "internal_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class InvalidTransitionError(SmartDisplayError):
    code = "invalid_transition"


class AlreadyPendingError(SmartDisplayError):
    code = "already_pending"

    def __init__(self, request_id: str):
        super().__init__(f"guest request {request_id} is already pending")
        self.request_id = request_id


class RequestNotFoundError(SmartDisplayError):
    code = "not_found"

    def __init__(self, request_id: str):
        super().__init__(f"guest request {request_id} not found")
        self.request_id = request_id


class RequestNotPendingError(SmartDisplayError):
    code = "not_pending"

    def __init__(self, request_id: str, status: str):
        super().__init__(f"guest request {request_id} is not pending (status={status})")
        self.request_id = request_id
        self.status = status


class FailsafeActiveError(SmartDisplayError):
    """A write was attempted while failsafe is active."""
    code = "failsafe_active"


class InvalidSettingsError(SmartDisplayError):
    """A runtime config change set failed validation."""
    code = "invalid_settings"


class ConfigPersistenceError(SmartDisplayError):
    code = "config_persistence"


class MirrorFetchError(SmartDisplayError):
    """HA mirror fetch failure. Messages never include the URL or token."""
    code = "upstream_error"

    def __init__(self, kind: FetchFailureKind, message: str = "", status: Optional[int] = None):
        super().__init__(message or kind.value)
        self.kind = kind
        self.status = status
