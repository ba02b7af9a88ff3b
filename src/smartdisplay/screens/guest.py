"""
Guest Screen Deriver

First-boot renders guest_idle with reason_blocked=first_boot_active.
Otherwise the guest state machine is projected and decayed by the clock:
a request past its timeout, or an approval past its window, renders as
guest_expired even before the sweep task updates the machine.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from pydantic import BaseModel

from ..clock import seconds_between
from ..domain.enums import AlarmState, GuestEvent, GuestScreenState, GuestState
from ..domain.models import GuestRequest
from ..services.guest_sm import GuestSnapshot


@dataclass(frozen=True)
class GuestScreenInputs:
    first_boot_active: bool
    guest: GuestSnapshot
    request: Optional[GuestRequest]
    request_timeout_sec: int
    exit_display_sec: int
    alarm_state: AlarmState
    alarm_state_before_visit: Optional[AlarmState] = None


# =============================================================================
# Response Models
# =============================================================================

class GuestAction(BaseModel):
    id: str
    label: str
    enabled: bool = True


class GuestCountdown(BaseModel):
    total_seconds: int
    remaining_seconds: int
    percentage: int
    started_at: datetime
    will_expire_at: datetime


class GuestApproval(BaseModel):
    approved_at: datetime
    expires_at: datetime
    duration_minutes: int
    time_remaining_seconds: int


class GuestDenial(BaseModel):
    denied_at: datetime
    reason: str
    permanent: bool = False
    can_retry: bool = True


class GuestExpiration(BaseModel):
    expired_at: datetime
    reason: str = "timeout"
    timeout_seconds: int


class GuestExitInfo(BaseModel):
    exited_at: datetime
    duration_minutes: int
    approved_until: Optional[datetime] = None
    alarm_status_before: Optional[str] = None
    alarm_status_now: str


class OwnerNotification(BaseModel):
    title: str
    body: str


class GuestScreenData(BaseModel):
    state: GuestScreenState
    message: str
    timestamp: datetime
    reason_blocked: str = ""
    request_id: Optional[str] = None
    countdown: Optional[GuestCountdown] = None
    approval: Optional[GuestApproval] = None
    denial: Optional[GuestDenial] = None
    expiration: Optional[GuestExpiration] = None
    exit: Optional[GuestExitInfo] = None
    owner_notification: Optional[OwnerNotification] = None
    actions: List[GuestAction] = []


class GuestSummary(BaseModel):
    state: GuestScreenState
    message: str
    priority: str
    countdown_remaining_seconds: Optional[int] = None
    approval_remaining_seconds: Optional[int] = None


# =============================================================================
# Derivation
# =============================================================================

_RULES = GuestAction(id="rules", label="House rules")
_CALL = GuestAction(id="call", label="Call owner")
_DISCONNECT = GuestAction(id="disconnect", label="Disconnect")

_PRIORITY = {
    GuestScreenState.GUEST_IDLE: "normal",
    GuestScreenState.GUEST_REQUESTING: "high",
    GuestScreenState.GUEST_APPROVED: "normal",
    GuestScreenState.GUEST_DENIED: "low",
    GuestScreenState.GUEST_EXPIRED: "low",
    GuestScreenState.GUEST_EXIT: "normal",
}


def derive_guest_screen(inputs: GuestScreenInputs, now: datetime) -> GuestScreenData:
    if inputs.first_boot_active:
        return GuestScreenData(
            state=GuestScreenState.GUEST_IDLE,
            message="Alarm: Setup in progress",
            timestamp=now,
            reason_blocked="first_boot_active",
            actions=[GuestAction(id="request", label="Request entry", enabled=False), _RULES],
        )

    guest = inputs.guest
    if guest.state == GuestState.REQUESTED:
        started_at = guest.requested_at or now
        deadline = _request_deadline(inputs, started_at)
        if now > deadline:
            return _expired(inputs, deadline, now)
        return _requesting(inputs, started_at, deadline, now)

    if guest.state == GuestState.APPROVED:
        if guest.approval_expires_at is not None and now > guest.approval_expires_at:
            return _expired(inputs, guest.approval_expires_at, now)
        return _approved(inputs, now)

    if guest.state == GuestState.DENIED:
        return GuestScreenData(
            state=GuestScreenState.GUEST_DENIED,
            message="Entry not approved",
            timestamp=now,
            request_id=_request_id(inputs),
            denial=GuestDenial(denied_at=guest.denied_at or now, reason=guest.deny_reason or "denied_by_owner"),
            owner_notification=OwnerNotification(
                title="Guest request denied",
                body="You declined the guest entry request.",
            ),
            actions=[_RULES, _CALL, _DISCONNECT],
        )

    if guest.state == GuestState.EXPIRED:
        return _expired(inputs, guest.expired_at or now, now)

    if _recently_exited(inputs, now):
        return _exit(inputs, now)

    return GuestScreenData(
        state=GuestScreenState.GUEST_IDLE,
        message="Request entry to continue",
        timestamp=now,
        actions=[GuestAction(id="request", label="Request entry"), _RULES],
    )


def summarize_guest_screen(screen: GuestScreenData) -> GuestSummary:
    summary = GuestSummary(
        state=screen.state,
        message=screen.message,
        priority=_PRIORITY[screen.state],
    )
    if screen.countdown is not None:
        summary.countdown_remaining_seconds = screen.countdown.remaining_seconds
    if screen.approval is not None:
        summary.approval_remaining_seconds = screen.approval.time_remaining_seconds
    return summary


def _request_id(inputs: GuestScreenInputs) -> Optional[str]:
    return inputs.request.id if inputs.request is not None else None


def _request_deadline(inputs: GuestScreenInputs, started_at: datetime) -> datetime:
    if inputs.request is not None:
        return inputs.request.expires_at
    return started_at + timedelta(seconds=inputs.request_timeout_sec)


def _requesting(inputs: GuestScreenInputs, started_at: datetime, deadline: datetime, now: datetime) -> GuestScreenData:
    total = max(1, seconds_between(started_at, deadline))
    remaining = seconds_between(now, deadline)
    return GuestScreenData(
        state=GuestScreenState.GUEST_REQUESTING,
        message="Waiting for owner approval...",
        timestamp=now,
        request_id=_request_id(inputs),
        countdown=GuestCountdown(
            total_seconds=total,
            remaining_seconds=remaining,
            percentage=int(round(remaining * 100 / total)),
            started_at=started_at,
            will_expire_at=deadline,
        ),
        owner_notification=OwnerNotification(
            title="Guest requesting entry",
            body=f"Respond within {remaining} seconds.",
        ),
    )


def _approved(inputs: GuestScreenInputs, now: datetime) -> GuestScreenData:
    guest = inputs.guest
    approved_at = guest.approved_at or now
    expires_at = guest.approval_expires_at or (approved_at + timedelta(minutes=guest.approval_minutes))
    return GuestScreenData(
        state=GuestScreenState.GUEST_APPROVED,
        message="Welcome! Entry approved",
        timestamp=now,
        request_id=_request_id(inputs),
        approval=GuestApproval(
            approved_at=approved_at,
            expires_at=expires_at,
            duration_minutes=guest.approval_minutes,
            time_remaining_seconds=seconds_between(now, expires_at),
        ),
        owner_notification=OwnerNotification(
            title="Guest inside (approved)",
            body=f"Access until {expires_at.strftime('%H:%M')} UTC.",
        ),
        actions=[
            GuestAction(id="exit", label="I'm leaving"),
            _RULES,
            GuestAction(id="disarm", label="Disarm"),
        ],
    )


def _expired(inputs: GuestScreenInputs, expired_at: datetime, now: datetime) -> GuestScreenData:
    guest = inputs.guest
    if guest.approved_at is not None:
        timeout = guest.approval_minutes * 60
    else:
        timeout = inputs.request_timeout_sec
    return GuestScreenData(
        state=GuestScreenState.GUEST_EXPIRED,
        message="Request expired",
        timestamp=now,
        request_id=_request_id(inputs),
        expiration=GuestExpiration(expired_at=expired_at, timeout_seconds=timeout),
        owner_notification=OwnerNotification(
            title="Guest request expired (no action)",
            body="The guest request timed out without a response.",
        ),
        actions=[_RULES, _CALL, _DISCONNECT],
    )


def _recently_exited(inputs: GuestScreenInputs, now: datetime) -> bool:
    guest = inputs.guest
    return (
        guest.last_event == GuestEvent.EXIT
        and guest.previous_state == GuestState.APPROVED
        and guest.exited_at is not None
        and now - guest.exited_at <= timedelta(seconds=inputs.exit_display_sec)
    )


def _exit(inputs: GuestScreenInputs, now: datetime) -> GuestScreenData:
    guest = inputs.guest
    visit_start = guest.approved_at or guest.exited_at
    return GuestScreenData(
        state=GuestScreenState.GUEST_EXIT,
        message="Goodbye! Visit ended",
        timestamp=now,
        exit=GuestExitInfo(
            exited_at=guest.exited_at,
            duration_minutes=seconds_between(visit_start, guest.exited_at) // 60,
            approved_until=guest.approval_expires_at,
            alarm_status_before=inputs.alarm_state_before_visit.value if inputs.alarm_state_before_visit else None,
            alarm_status_now=inputs.alarm_state.value,
        ),
        owner_notification=OwnerNotification(
            title="Guest has exited",
            body="The guest visit has ended.",
        ),
        actions=[_RULES, _CALL, _DISCONNECT],
    )
