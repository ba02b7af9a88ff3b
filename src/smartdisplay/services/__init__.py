"""SmartDisplay Services"""

from .countdown import Countdown, CountdownSnapshot
from .alarm_sm import (
    AlarmStateMachine,
    AlarmSMConfig,
    AlarmSnapshot,
    GuestGate,
)
from .guest_sm import GuestStateMachine, GuestSnapshot
from .guest_request import (
    GuestRequestManager,
    ExpiryTimer,
    run_in_thread,
    run_inline,
)
from .health import RuntimeHealthMonitor
from .failsafe import FailsafeController, HardwareHealth, NoHardware
from .firstboot import FirstBootWizard, FirstBootStep, StepResult, STEPS
from .ha_mirror import AlarmoMirror, normalize_entity, map_raw_state
from .notifier import Notifier, LoggingNotifier, HANotifier
from .logbook import Logbook, MemoryLogbook
from .roles import RoleResolver, has_permission

__all__ = [
    # Alarm
    'Countdown',
    'CountdownSnapshot',
    'AlarmStateMachine',
    'AlarmSMConfig',
    'AlarmSnapshot',
    'GuestGate',

    # Guest access
    'GuestStateMachine',
    'GuestSnapshot',
    'GuestRequestManager',
    'ExpiryTimer',
    'run_in_thread',
    'run_inline',

    # Health
    'RuntimeHealthMonitor',
    'FailsafeController',
    'HardwareHealth',
    'NoHardware',

    # Setup
    'FirstBootWizard',
    'FirstBootStep',
    'StepResult',
    'STEPS',

    # HA
    'AlarmoMirror',
    'normalize_entity',
    'map_raw_state',
    'Notifier',
    'LoggingNotifier',
    'HANotifier',

    # Misc
    'Logbook',
    'MemoryLogbook',
    'RoleResolver',
    'has_permission',
]
