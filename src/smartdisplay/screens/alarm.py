"""
Alarm Screen Deriver

Pure function from an AlarmScreenInputs snapshot to the alarm screen
presentation. Mode precedence:

1. first-boot active      → blocked (first_boot_active)
2. guest request pending  → blocked (guest_request_pending)
3. failsafe active        → blocked (failsafe_active)
4. alarm TRIGGERED        → triggered
5. countdown running      → arming (local countdown, else HA exit delay)
6. ARMED → armed, anything else → disarmed
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from ..clock import seconds_between
from ..domain.enums import AlarmState, BlockReason, MirrorMode, ScreenMode
from ..domain.models import AlarmMirrorState, FailsafeState, GuestRequest
from ..services.alarm_sm import AlarmSnapshot

ESCALATION_WINDOW_SEC = 300


# =============================================================================
# Inputs
# =============================================================================

@dataclass(frozen=True)
class AlarmScreenInputs:
    first_boot_active: bool
    first_boot_step: int
    first_boot_steps_remaining: int
    pending_request: Optional[GuestRequest]
    failsafe: FailsafeState
    alarm: AlarmSnapshot
    mirror: Optional[AlarmMirrorState] = None
    can_arm: bool = True


# =============================================================================
# Response Models
# =============================================================================

class CountdownInfo(BaseModel):
    total_seconds: int
    remaining_seconds: int
    percentage: int
    started_at: Optional[datetime] = None
    will_complete_at: Optional[datetime] = None
    source: str = "local"


class TriggerInfo(BaseModel):
    severity: str = "critical"
    priority: int = 1
    triggered_at: Optional[datetime] = None
    trigger_reason: str = ""
    trigger_location: str = ""
    time_triggered_ago_seconds: int = 0


class ActionInfo(BaseModel):
    id: str
    label: str
    enabled: bool = True
    requires_auth: bool = False


class GuestBlockInfo(BaseModel):
    guest_id: str
    requested_at: datetime
    time_waiting_seconds: int
    expires_at: datetime


class FirstBootBlockInfo(BaseModel):
    wizard_active: bool
    current_step: int
    steps_remaining: int


class FailsafeBlockInfo(BaseModel):
    failsafe_active: bool
    reason: str
    started_at: Optional[datetime] = None
    estimated_recovery_time: Optional[int] = None


class AlarmInfo(BaseModel):
    can_arm: bool = False
    can_disarm: bool = False
    can_cancel: bool = False
    acknowledgment_required: bool = False
    reason_blocked: str = ""
    next_action: str = ""
    sensors_active: bool = False
    last_check: Optional[datetime] = None
    protection_status: str = ""
    escalation_time_remaining: Optional[int] = None
    recovery_action: str = ""
    estimated_seconds: Optional[int] = None
    guest_info: Optional[GuestBlockInfo] = None
    first_boot_info: Optional[FirstBootBlockInfo] = None
    failsafe_info: Optional[FailsafeBlockInfo] = None


class AlarmScreenState(BaseModel):
    mode: ScreenMode
    block_reason: str = ""
    message: str
    context: str = ""
    timestamp: datetime
    armed_at: Optional[datetime] = None
    countdown: Optional[CountdownInfo] = None
    alert: Optional[TriggerInfo] = None
    actions: List[ActionInfo] = []
    info: AlarmInfo


class AlarmSummary(BaseModel):
    mode: ScreenMode
    message: str
    context: str = ""
    countdown_remaining_seconds: Optional[int] = None
    triggered_ago_seconds: Optional[int] = None
    actions_available: List[str] = []
    priority: str = "normal"


# =============================================================================
# Derivation
# =============================================================================

def derive_alarm_screen(inputs: AlarmScreenInputs, now: datetime) -> AlarmScreenState:
    if inputs.first_boot_active:
        return _blocked_first_boot(inputs, now)
    if inputs.pending_request is not None:
        return _blocked_guest(inputs.pending_request, now)
    if inputs.failsafe.active:
        return _blocked_failsafe(inputs.failsafe, now)

    alarm = inputs.alarm
    if alarm.state == AlarmState.TRIGGERED:
        return _triggered(alarm, now)

    countdown = _countdown_info(inputs, now)
    if countdown is not None:
        return _arming(countdown, now)

    if alarm.state == AlarmState.ARMED:
        return _armed(alarm, now)
    return _disarmed(now, inputs.can_arm)


def summarize_alarm_screen(screen: AlarmScreenState, now: datetime) -> AlarmSummary:
    summary = AlarmSummary(
        mode=screen.mode,
        message=screen.message,
        context=screen.context,
        actions_available=[a.id for a in screen.actions if a.enabled],
    )
    if screen.countdown is not None:
        summary.countdown_remaining_seconds = screen.countdown.remaining_seconds
    if screen.alert is not None:
        summary.triggered_ago_seconds = screen.alert.time_triggered_ago_seconds

    if screen.mode == ScreenMode.TRIGGERED:
        summary.priority = "critical"
    elif screen.mode == ScreenMode.ARMING:
        summary.priority = "warning"
    return summary


def _countdown_info(inputs: AlarmScreenInputs, now: datetime) -> Optional[CountdownInfo]:
    local = inputs.alarm.countdown
    if local.active:
        return CountdownInfo(
            total_seconds=local.duration_sec,
            remaining_seconds=local.remaining_sec,
            percentage=local.percentage,
            started_at=local.started_at,
            will_complete_at=local.will_complete_at(now),
        )

    mirror = inputs.mirror
    if mirror is None or mirror.mode != MirrorMode.ARMING.value or mirror.exit_delay_sec <= 0:
        return None
    remaining = max(0, mirror.exit_delay_sec - seconds_between(mirror.last_changed, now))
    return CountdownInfo(
        total_seconds=mirror.exit_delay_sec,
        remaining_seconds=remaining,
        percentage=int(round(remaining * 100 / mirror.exit_delay_sec)),
        started_at=mirror.last_changed,
        source="ha",
    )


def _blocked_first_boot(inputs: AlarmScreenInputs, now: datetime) -> AlarmScreenState:
    return AlarmScreenState(
        mode=ScreenMode.BLOCKED,
        block_reason=BlockReason.FIRST_BOOT_ACTIVE.value,
        message="Alarm: Setup in progress",
        context="Finish first-time setup to use the alarm",
        timestamp=now,
        actions=[ActionInfo(id="continue_setup", label="Continue setup")],
        info=AlarmInfo(
            reason_blocked=BlockReason.FIRST_BOOT_ACTIVE.value,
            recovery_action="continue_setup",
            first_boot_info=FirstBootBlockInfo(
                wizard_active=True,
                current_step=inputs.first_boot_step,
                steps_remaining=inputs.first_boot_steps_remaining,
            ),
        ),
    )


def _blocked_guest(request: GuestRequest, now: datetime) -> AlarmScreenState:
    return AlarmScreenState(
        mode=ScreenMode.BLOCKED,
        block_reason=BlockReason.GUEST_REQUEST_PENDING.value,
        message="Alarm: Waiting for approval",
        context="A guest is waiting for the owner to respond",
        timestamp=now,
        info=AlarmInfo(
            reason_blocked=BlockReason.GUEST_REQUEST_PENDING.value,
            estimated_seconds=seconds_between(now, request.expires_at),
            guest_info=GuestBlockInfo(
                guest_id=request.id,
                requested_at=request.requested_at,
                time_waiting_seconds=seconds_between(request.requested_at, now),
                expires_at=request.expires_at,
            ),
        ),
    )


def _blocked_failsafe(failsafe: FailsafeState, now: datetime) -> AlarmScreenState:
    return AlarmScreenState(
        mode=ScreenMode.BLOCKED,
        block_reason=BlockReason.FAILSAFE_ACTIVE.value,
        message="Alarm: System recovering",
        context=failsafe.explanation,
        timestamp=now,
        info=AlarmInfo(
            reason_blocked=BlockReason.FAILSAFE_ACTIVE.value,
            estimated_seconds=failsafe.estimated_recovery_sec,
            failsafe_info=FailsafeBlockInfo(
                failsafe_active=True,
                reason=failsafe.explanation,
                started_at=failsafe.started_at,
                estimated_recovery_time=failsafe.estimated_recovery_sec,
            ),
        ),
    )


def _triggered(alarm: AlarmSnapshot, now: datetime) -> AlarmScreenState:
    triggered_at = alarm.last_trigger or now
    ago = seconds_between(triggered_at, now)
    reason = alarm.trigger_reason or "alarm_triggered"
    return AlarmScreenState(
        mode=ScreenMode.TRIGGERED,
        message="ALARM TRIGGERED",
        context=f"Breach detected: {reason}",
        timestamp=now,
        alert=TriggerInfo(
            triggered_at=triggered_at,
            trigger_reason=reason,
            time_triggered_ago_seconds=ago,
        ),
        actions=[
            ActionInfo(id="disarm", label="Disarm", requires_auth=True),
            ActionInfo(id="acknowledge", label="Acknowledge", requires_auth=True),
            ActionInfo(id="call_support", label="Call support"),
        ],
        info=AlarmInfo(
            can_disarm=True,
            acknowledgment_required=True,
            sensors_active=True,
            protection_status="breach",
            escalation_time_remaining=max(0, ESCALATION_WINDOW_SEC - ago),
        ),
    )


def _arming(countdown: CountdownInfo, now: datetime) -> AlarmScreenState:
    return AlarmScreenState(
        mode=ScreenMode.ARMING,
        message=f"Arming in {countdown.remaining_seconds} seconds...",
        context="Keep system clear until armed",
        timestamp=now,
        countdown=countdown,
        actions=[ActionInfo(id="cancel", label="Cancel")],
        info=AlarmInfo(
            can_cancel=True,
            next_action="armed",
            protection_status="arming",
            estimated_seconds=countdown.remaining_seconds,
        ),
    )


def _armed(alarm: AlarmSnapshot, now: datetime) -> AlarmScreenState:
    return AlarmScreenState(
        mode=ScreenMode.ARMED,
        message="Alarm: Armed",
        context="Sensors active. System protecting.",
        timestamp=now,
        armed_at=alarm.armed_at,
        actions=[
            ActionInfo(id="disarm", label="Disarm", requires_auth=True),
            ActionInfo(id="status", label="Status"),
            ActionInfo(id="settings", label="Settings", requires_auth=True),
        ],
        info=AlarmInfo(
            can_disarm=True,
            sensors_active=True,
            last_check=now,
            protection_status="active",
        ),
    )


def _disarmed(now: datetime, can_arm: bool) -> AlarmScreenState:
    # guest gate: arming waits until the guest session is closed
    return AlarmScreenState(
        mode=ScreenMode.DISARMED,
        message="Alarm: Disarmed",
        context="Ready to arm when you leave" if can_arm else "Arming unavailable during a guest visit",
        timestamp=now,
        actions=[
            ActionInfo(id="arm", label="Arm", enabled=can_arm),
            ActionInfo(id="history", label="History"),
            ActionInfo(id="settings", label="Settings", requires_auth=True),
        ],
        info=AlarmInfo(
            can_arm=can_arm,
            reason_blocked="" if can_arm else "guest_session_active",
            next_action="arm" if can_arm else "",
            protection_status="inactive",
        ),
    )
