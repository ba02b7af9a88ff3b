"""SmartDisplay screen derivers (pure functions of input snapshots)."""

from .alarm import AlarmScreenInputs, AlarmScreenState, AlarmSummary, derive_alarm_screen, summarize_alarm_screen
from .home import HomeActivity, HomeAlert, HomeScreenInputs, HomeScreenState, derive_home_screen
from .guest import GuestScreenInputs, GuestScreenData, derive_guest_screen, summarize_guest_screen
from .menu import MenuResponse, resolve_menu, validate_menu

__all__ = [
    'AlarmScreenInputs',
    'AlarmScreenState',
    'AlarmSummary',
    'derive_alarm_screen',
    'summarize_alarm_screen',
    'HomeActivity',
    'HomeAlert',
    'HomeScreenInputs',
    'HomeScreenState',
    'derive_home_screen',
    'GuestScreenInputs',
    'GuestScreenData',
    'derive_guest_screen',
    'summarize_guest_screen',
    'MenuResponse',
    'resolve_menu',
    'validate_menu',
]
