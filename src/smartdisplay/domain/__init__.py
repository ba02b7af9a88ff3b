"""SmartDisplay Domain Models"""

from .enums import (
    # Identity
    Role,
    Permission,

    # HA mirror
    MirrorMode,
    ArmedMode,
    FetchFailureKind,

    # State machines
    AlarmState,
    AlarmEvent,
    GuestState,
    GuestEvent,
    RequestStatus,

    # Screens
    ScreenMode,
    BlockReason,
    HomeState,
    GuestScreenState,
    HiddenReason,
    AlertSeverity,

    # Notifications
    NotificationType,
)

from .models import (
    AlarmMirrorState,
    HACredentials,
    HealthState,
    FailsafeState,
    GuestRequest,
    TransitionResult,
)

__all__ = [
    # Enums
    'Role',
    'Permission',
    'MirrorMode',
    'ArmedMode',
    'FetchFailureKind',
    'AlarmState',
    'AlarmEvent',
    'GuestState',
    'GuestEvent',
    'RequestStatus',
    'ScreenMode',
    'BlockReason',
    'HomeState',
    'GuestScreenState',
    'HiddenReason',
    'AlertSeverity',
    'NotificationType',

    # Models
    'AlarmMirrorState',
    'HACredentials',
    'HealthState',
    'FailsafeState',
    'GuestRequest',
    'TransitionResult',
]
