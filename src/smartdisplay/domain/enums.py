"""
SmartDisplay Core Enums

All enumerations shared between the state machines, the screen
derivers and the HTTP layer. Values are part of the UI wire format.
"""

from enum import Enum


# =============================================================================
# Identity
# =============================================================================

class Role(str, Enum):
    """Caller role resolved from the transport identity."""
    ADMIN = "admin"
    USER = "user"
    GUEST = "guest"


class Permission(str, Enum):
    """Fixed permission bits."""
    ALARM = "alarm"
    DEVICE = "device"
    GUEST = "guest"


# =============================================================================
# HA Mirror
# =============================================================================

class MirrorMode(str, Enum):
    """Normalized alarm panel modes reported by HA.

    Unknown raw states pass through as the raw string.
    """
    DISARMED = "disarmed"
    ARMING = "arming"
    ARMED = "armed"
    TRIGGERED = "triggered"
    UNKNOWN = "unknown"


class ArmedMode(str, Enum):
    NONE = ""
    HOME = "home"
    AWAY = "away"
    NIGHT = "night"


class FetchFailureKind(str, Enum):
    """Why a mirror fetch failed."""
    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    UNAUTHORIZED = "unauthorized"
    HTTP_5XX = "http_5xx"
    HTTP_STATUS = "http_status"   # any other non-200
    PARSE = "parse"


# =============================================================================
# Alarm State Machine
# =============================================================================

class AlarmState(str, Enum):
    """Local arming intent."""
    DISARMED = "DISARMED"
    ARMING = "ARMING"
    ARMED = "ARMED"
    TRIGGERED = "TRIGGERED"


class AlarmEvent(str, Enum):
    ARM_REQUEST = "ARM_REQUEST"
    DISARM_REQUEST = "DISARM_REQUEST"
    ARM_COMPLETE = "ARM_COMPLETE"
    TRIGGER = "TRIGGER"
    RESET = "RESET"
    HA_SYNC = "HA_SYNC"           # reconciliation with the HA mirror


# =============================================================================
# Guest Access
# =============================================================================

class GuestState(str, Enum):
    IDLE = "IDLE"
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"
    DENIED = "DENIED"
    EXPIRED = "EXPIRED"


class GuestEvent(str, Enum):
    REQUEST = "REQUEST"
    APPROVE = "APPROVE"
    DENY = "DENY"
    TIMEOUT = "TIMEOUT"
    EXIT = "EXIT"


class RequestStatus(str, Enum):
    """Guest request lifecycle. Only PENDING is non-terminal."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


# =============================================================================
# Screens
# =============================================================================

class ScreenMode(str, Enum):
    """Alarm screen presentation mode."""
    DISARMED = "disarmed"
    ARMING = "arming"
    ARMED = "armed"
    TRIGGERED = "triggered"
    BLOCKED = "blocked"


class BlockReason(str, Enum):
    FIRST_BOOT_ACTIVE = "first_boot_active"
    GUEST_REQUEST_PENDING = "guest_request_pending"
    FAILSAFE_ACTIVE = "failsafe_active"


class HomeState(str, Enum):
    SETUP_REDIRECT = "setup_redirect"
    IDLE = "idle"
    ACTIVE = "active"
    ALERT = "alert"


class GuestScreenState(str, Enum):
    GUEST_IDLE = "guest_idle"
    GUEST_REQUESTING = "guest_requesting"
    GUEST_APPROVED = "guest_approved"
    GUEST_DENIED = "guest_denied"
    GUEST_EXPIRED = "guest_expired"
    GUEST_EXIT = "guest_exit"


class HiddenReason(str, Enum):
    """Why a menu section is not visible."""
    FIRST_BOOT_ACTIVE = "first_boot_active"
    PERMISSION_INSUFFICIENT = "permission_insufficient"


class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# =============================================================================
# Notifications
# =============================================================================

class NotificationType(str, Enum):
    """Owner notifications emitted by the coordinator."""
    GUEST_ACCESS_REQUESTED = "GuestAccessRequested"
    GUEST_ACCESS_APPROVED = "GuestAccessApproved"
    GUEST_ACCESS_DENIED = "GuestAccessDenied"
    ALARM_TRIGGERED = "AlarmTriggered"
    ALARM_REARMED = "AlarmRearmed"
