"""
SmartDisplay Guest State Machine

IDLE → REQUESTED → APPROVED | DENIED | EXPIRED → IDLE

APPROVED carries a bounded access window; check_timeouts() moves an
elapsed approval to EXPIRED.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..clock import Clock, utcnow
from ..domain.enums import GuestEvent, GuestState
from ..domain.models import TransitionResult

logger = logging.getLogger(__name__)


TRANSITIONS = {
    (GuestState.IDLE, GuestEvent.REQUEST): GuestState.REQUESTED,
    (GuestState.REQUESTED, GuestEvent.APPROVE): GuestState.APPROVED,
    (GuestState.REQUESTED, GuestEvent.DENY): GuestState.DENIED,
    (GuestState.REQUESTED, GuestEvent.TIMEOUT): GuestState.EXPIRED,
    (GuestState.APPROVED, GuestEvent.EXIT): GuestState.IDLE,
    (GuestState.APPROVED, GuestEvent.TIMEOUT): GuestState.EXPIRED,
    (GuestState.DENIED, GuestEvent.EXIT): GuestState.IDLE,
    (GuestState.EXPIRED, GuestEvent.EXIT): GuestState.IDLE,
}


@dataclass(frozen=True)
class GuestSnapshot:
    state: GuestState
    previous_state: Optional[GuestState]
    last_event: Optional[GuestEvent]
    requested_at: Optional[datetime]
    approved_at: Optional[datetime]
    approval_expires_at: Optional[datetime]
    denied_at: Optional[datetime]
    deny_reason: str
    expired_at: Optional[datetime]
    exited_at: Optional[datetime]
    approval_minutes: int


class GuestStateMachine:
    def __init__(
        self,
        approval_minutes: int = 30,
        clock: Clock = utcnow,
        on_state_change: Optional[Callable[[TransitionResult], None]] = None,
    ):
        self.approval_minutes = approval_minutes
        self.on_state_change = on_state_change
        self._clock = clock
        self._lock = threading.RLock()

        self._state = GuestState.IDLE
        self._previous: Optional[GuestState] = None
        self._last_event: Optional[GuestEvent] = None
        self._requested_at: Optional[datetime] = None
        self._approved_at: Optional[datetime] = None
        self._approval_expires_at: Optional[datetime] = None
        self._denied_at: Optional[datetime] = None
        self._deny_reason = ""
        self._expired_at: Optional[datetime] = None
        self._exited_at: Optional[datetime] = None

    @property
    def state(self) -> GuestState:
        with self._lock:
            return self._state

    def snapshot(self) -> GuestSnapshot:
        with self._lock:
            return GuestSnapshot(
                state=self._state,
                previous_state=self._previous,
                last_event=self._last_event,
                requested_at=self._requested_at,
                approved_at=self._approved_at,
                approval_expires_at=self._approval_expires_at,
                denied_at=self._denied_at,
                deny_reason=self._deny_reason,
                expired_at=self._expired_at,
                exited_at=self._exited_at,
                approval_minutes=self.approval_minutes,
            )

    def handle(self, event: GuestEvent, reason: str = "") -> TransitionResult:
        with self._lock:
            from_state = self._state
            to_state = TRANSITIONS.get((from_state, event))
            if to_state is None:
                return TransitionResult.invalid(from_state.value, event.value)

            now = self._clock()
            if event == GuestEvent.REQUEST:
                self._requested_at = now
                self._approved_at = None
                self._approval_expires_at = None
                self._denied_at = None
                self._deny_reason = ""
                self._expired_at = None
                self._exited_at = None
            elif event == GuestEvent.APPROVE:
                self._approved_at = now
                self._approval_expires_at = now + timedelta(minutes=self.approval_minutes)
            elif event == GuestEvent.DENY:
                self._denied_at = now
                self._deny_reason = reason or "denied_by_owner"
            elif event == GuestEvent.TIMEOUT:
                self._expired_at = now
            elif event == GuestEvent.EXIT:
                self._exited_at = now

            self._previous = from_state
            self._state = to_state
            self._last_event = event
            result = TransitionResult(
                success=True,
                from_state=from_state.value,
                to_state=to_state.value,
                event=event.value,
                reason=reason,
                timestamp=now,
            )

        logger.info("[GUEST] %s --%s--> %s", from_state.value, event.value, to_state.value)
        if self.on_state_change:
            self.on_state_change(result)
        return result

    def check_timeouts(self, now: Optional[datetime] = None) -> Optional[TransitionResult]:
        """Expire an approval whose access window has elapsed."""
        now = now or self._clock()
        with self._lock:
            if self._state != GuestState.APPROVED or self._approval_expires_at is None:
                return None
            if now < self._approval_expires_at:
                return None
        return self.handle(GuestEvent.TIMEOUT, reason="approval_window_elapsed")
