"""
Home Screen

HomeActivity tracks the two inputs that belong to the home screen itself
(last user interaction and posted alerts, keyed by type). The deriver is a
pure function of a snapshot of those plus alarm/guest/HA state.

Read-time precedence: setup_redirect > alert > active (within timeout) > idle.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from pydantic import BaseModel

from ..domain.enums import AlarmState, AlertSeverity, GuestState, HomeState, Role
from ..services.countdown import CountdownSnapshot

SEVERITY_RANK = {
    AlertSeverity.CRITICAL: 0,
    AlertSeverity.HIGH: 1,
    AlertSeverity.MEDIUM: 2,
    AlertSeverity.LOW: 3,
}


@dataclass(frozen=True)
class HomeAlert:
    type: str
    severity: AlertSeverity
    message: str
    posted_at: datetime


@dataclass(frozen=True)
class HomeActivitySnapshot:
    last_interaction_at: Optional[datetime]
    alerts: Dict[str, HomeAlert] = field(default_factory=dict)


class HomeActivity:
    def __init__(self):
        self._lock = threading.Lock()
        self._last_interaction_at: Optional[datetime] = None
        self._alerts: Dict[str, HomeAlert] = {}

    def record_interaction(self, now: datetime) -> None:
        with self._lock:
            self._last_interaction_at = now

    def post_alert(self, alert: HomeAlert) -> None:
        with self._lock:
            self._alerts[alert.type] = alert

    def resolve_alert(self, alert_type: str) -> bool:
        with self._lock:
            return self._alerts.pop(alert_type, None) is not None

    def snapshot(self) -> HomeActivitySnapshot:
        with self._lock:
            return HomeActivitySnapshot(self._last_interaction_at, dict(self._alerts))


# =============================================================================
# Inputs / Response Models
# =============================================================================

@dataclass(frozen=True)
class HomeScreenInputs:
    role: Role
    first_boot_active: bool
    activity: HomeActivitySnapshot
    active_timeout_sec: int
    alarm_state: AlarmState
    countdown: CountdownSnapshot
    ha_connected: bool
    failsafe_active: bool
    guest_state: GuestState


class HomeAction(BaseModel):
    id: str
    label: str
    enabled: bool = True


class HomeActions(BaseModel):
    primary: List[HomeAction]
    secondary: List[HomeAction]


class HomeAlertInfo(BaseModel):
    type: str
    severity: str
    message: str
    posted_at: datetime


class HomeSummaryInfo(BaseModel):
    alarm_state: str
    ha_connected: bool
    current_time: datetime
    guest_state: Optional[str] = None
    countdown_active: bool = False
    countdown_remaining: int = 0


class HomeExpandedInfo(BaseModel):
    failsafe_active: bool
    pending_alerts: int
    guest_active: bool


class HomeScreenState(BaseModel):
    state: HomeState
    message: str
    timestamp: datetime
    system_ready: bool
    summary: HomeSummaryInfo
    alert: Optional[HomeAlertInfo] = None
    actions: Optional[HomeActions] = None
    expanded_info: Optional[HomeExpandedInfo] = None


class HomeSummary(BaseModel):
    state: HomeState
    message: str
    alarm_state: str
    ha_connected: bool
    system_ready: bool
    has_pending_alerts: bool
    timestamp: datetime


# =============================================================================
# Derivation
# =============================================================================

def top_alert(alerts: Dict[str, HomeAlert]) -> Optional[HomeAlert]:
    """Most severe alert; newest wins within the same severity."""
    if not alerts:
        return None
    return min(
        alerts.values(),
        key=lambda a: (SEVERITY_RANK[a.severity], -a.posted_at.timestamp()),
    )


def home_state_at(inputs: HomeScreenInputs, now: datetime) -> HomeState:
    if inputs.first_boot_active:
        return HomeState.SETUP_REDIRECT
    if inputs.activity.alerts:
        return HomeState.ALERT
    last = inputs.activity.last_interaction_at
    if last is not None and now - last < timedelta(seconds=inputs.active_timeout_sec):
        return HomeState.ACTIVE
    return HomeState.IDLE


def derive_home_screen(inputs: HomeScreenInputs, now: datetime) -> HomeScreenState:
    state = home_state_at(inputs, now)
    summary = HomeSummaryInfo(
        alarm_state=inputs.alarm_state.value,
        ha_connected=inputs.ha_connected,
        current_time=now,
        countdown_active=inputs.countdown.active,
        countdown_remaining=inputs.countdown.remaining_sec if inputs.countdown.active else 0,
    )
    if inputs.guest_state != GuestState.IDLE:
        summary.guest_state = inputs.guest_state.value

    screen = HomeScreenState(
        state=state,
        message=_MESSAGES[state],
        timestamp=now,
        system_ready=state not in (HomeState.SETUP_REDIRECT, HomeState.ALERT),
        summary=summary,
    )

    if state == HomeState.ALERT:
        alert = top_alert(inputs.activity.alerts)
        screen.alert = HomeAlertInfo(
            type=alert.type,
            severity=alert.severity.value,
            message=alert.message,
            posted_at=alert.posted_at,
        )
        if alert.severity != AlertSeverity.CRITICAL:
            screen.message = alert.message or "Attention needed"
    elif state == HomeState.ACTIVE:
        screen.actions = HomeActions(
            primary=_primary_actions(inputs.alarm_state),
            secondary=_secondary_actions(inputs.role),
        )
        screen.expanded_info = HomeExpandedInfo(
            failsafe_active=inputs.failsafe_active,
            pending_alerts=len(inputs.activity.alerts),
            guest_active=inputs.guest_state != GuestState.IDLE,
        )
    return screen


def summarize_home_screen(screen: HomeScreenState, inputs: HomeScreenInputs) -> HomeSummary:
    return HomeSummary(
        state=screen.state,
        message=screen.message,
        alarm_state=screen.summary.alarm_state,
        ha_connected=screen.summary.ha_connected,
        system_ready=screen.system_ready,
        has_pending_alerts=bool(inputs.activity.alerts),
        timestamp=screen.timestamp,
    )


_MESSAGES = {
    HomeState.SETUP_REDIRECT: "Setup required",
    HomeState.IDLE: "All systems calm",
    HomeState.ACTIVE: "Ready for input",
    HomeState.ALERT: "Critical alert",
}


def _primary_actions(alarm_state: AlarmState) -> List[HomeAction]:
    return [
        HomeAction(id="arm", label="Arm", enabled=alarm_state == AlarmState.DISARMED),
        HomeAction(id="disarm", label="Disarm", enabled=alarm_state == AlarmState.ARMED),
    ]


def _secondary_actions(role: Role) -> List[HomeAction]:
    if role == Role.ADMIN:
        return [
            HomeAction(id="guests", label="Guest Requests"),
            HomeAction(id="anomalies", label="Anomalies"),
            HomeAction(id="settings", label="Settings"),
        ]
    if role == Role.USER:
        return [HomeAction(id="anomalies", label="Anomalies")]
    return [HomeAction(id="request_entry", label="Request entry")]
