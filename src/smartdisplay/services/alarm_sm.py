"""
SmartDisplay Alarm State Machine

Local mirror of arming intent:
DISARMED → ARMING → ARMED → TRIGGERED

Key rules:
1. ARM_REQUEST starts a fresh arming countdown; ARM_COMPLETE stops it
2. DISARM_REQUEST from ARMING or ARMED resets the countdown
3. Countdown is active if and only if the state is ARMING
4. ARM/DISARM requests consult the guest gate before transitioning
5. HA is ground truth; sync_to_mirror() reconciles on mirror changes
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol

from ..clock import Clock, utcnow
from ..domain.enums import AlarmEvent, AlarmState, GuestState, MirrorMode
from ..domain.models import TransitionResult
from .countdown import Countdown, CountdownSnapshot

logger = logging.getLogger(__name__)


class GuestGate(Protocol):
    """Read-only view of the guest state used for gating.

    Returns None when no guest session exists (including after an exit),
    otherwise a GuestState value.
    """

    def current_state(self) -> Optional[str]:
        ...


@dataclass
class AlarmSMConfig:
    """Configuration for the alarm state machine."""
    countdown_sec: int = 30


@dataclass(frozen=True)
class AlarmSnapshot:
    state: AlarmState
    last_event: Optional[AlarmEvent]
    last_trigger: Optional[datetime]
    trigger_reason: str
    armed_at: Optional[datetime]
    countdown: CountdownSnapshot


# (from, event) -> to
TRANSITIONS = {
    (AlarmState.DISARMED, AlarmEvent.ARM_REQUEST): AlarmState.ARMING,
    (AlarmState.ARMING, AlarmEvent.ARM_COMPLETE): AlarmState.ARMED,
    (AlarmState.ARMING, AlarmEvent.DISARM_REQUEST): AlarmState.DISARMED,
    (AlarmState.ARMED, AlarmEvent.DISARM_REQUEST): AlarmState.DISARMED,
    (AlarmState.ARMED, AlarmEvent.TRIGGER): AlarmState.TRIGGERED,
    (AlarmState.TRIGGERED, AlarmEvent.RESET): AlarmState.DISARMED,
}


class AlarmStateMachine:
    """Alarm state machine with an attached arming countdown.

    Thread-safe; every transition is serialized by the machine's lock.
    """

    def __init__(
        self,
        config: Optional[AlarmSMConfig] = None,
        guest_gate: Optional[GuestGate] = None,
        clock: Clock = utcnow,
        on_state_change: Optional[Callable[[TransitionResult], None]] = None,
    ):
        self.config = config or AlarmSMConfig()
        self.on_state_change = on_state_change
        self._guest_gate = guest_gate
        self._clock = clock
        self._lock = threading.RLock()

        self._state = AlarmState.DISARMED
        self._last_event: Optional[AlarmEvent] = None
        self._last_trigger: Optional[datetime] = None
        self._trigger_reason = ""
        self._armed_at: Optional[datetime] = None
        self._countdown = Countdown(self.config.countdown_sec, clock=clock)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def state(self) -> AlarmState:
        with self._lock:
            return self._state

    @property
    def last_event(self) -> Optional[AlarmEvent]:
        return self._last_event

    @property
    def last_trigger(self) -> Optional[datetime]:
        return self._last_trigger

    @property
    def countdown(self) -> Countdown:
        return self._countdown

    def snapshot(self) -> AlarmSnapshot:
        with self._lock:
            return AlarmSnapshot(
                state=self._state,
                last_event=self._last_event,
                last_trigger=self._last_trigger,
                trigger_reason=self._trigger_reason,
                armed_at=self._armed_at,
                countdown=self._countdown.snapshot(),
            )

    # -------------------------------------------------------------------------
    # Guest Gate
    # -------------------------------------------------------------------------

    def _guest_state(self) -> Optional[str]:
        if self._guest_gate is None:
            return None
        return self._guest_gate.current_state()

    def can_arm(self) -> bool:
        guest = self._guest_state()
        return guest is None

    def can_disarm(self) -> bool:
        guest = self._guest_state()
        return guest is None or guest == GuestState.APPROVED.value

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def handle(self, event: AlarmEvent, reason: str = "") -> TransitionResult:
        """Apply an event. Rejected events leave the state unchanged."""
        with self._lock:
            from_state = self._state
            to_state = TRANSITIONS.get((from_state, event))
            if to_state is None:
                return TransitionResult.invalid(from_state.value, event.value)

            if event == AlarmEvent.ARM_REQUEST and not self.can_arm():
                return TransitionResult.invalid(
                    from_state.value, event.value,
                    f"arming blocked by guest state {self._guest_state()}",
                )
            if event == AlarmEvent.DISARM_REQUEST and not self.can_disarm():
                return TransitionResult.invalid(
                    from_state.value, event.value,
                    f"disarming blocked by guest state {self._guest_state()}",
                )

            result = self._apply(event, to_state, reason)

        self._notify(result)
        return result

    def _apply(self, event: AlarmEvent, to_state: AlarmState, reason: str) -> TransitionResult:
        now = self._clock()
        from_state = self._state

        if event == AlarmEvent.ARM_REQUEST:
            self._countdown = Countdown(self.config.countdown_sec, clock=self._clock)
            self._countdown.start()
        elif event == AlarmEvent.ARM_COMPLETE:
            self._countdown.stop()
        elif event == AlarmEvent.DISARM_REQUEST:
            self._countdown.reset()
        elif event == AlarmEvent.TRIGGER:
            self._last_trigger = now
            self._trigger_reason = reason or "alarm_triggered"

        self._enter(to_state, now)
        self._last_event = event

        logger.info("[ALARM] %s --%s--> %s", from_state.value, event.value, to_state.value)
        return TransitionResult(
            success=True,
            from_state=from_state.value,
            to_state=to_state.value,
            event=event.value,
            reason=reason,
            timestamp=now,
        )

    def _enter(self, state: AlarmState, now: datetime) -> None:
        self._state = state
        if state == AlarmState.ARMED:
            self._armed_at = now
        elif state == AlarmState.DISARMED:
            self._armed_at = None

    def tick(self) -> Optional[TransitionResult]:
        """Advance the arming countdown; completes arming on expiry."""
        with self._lock:
            if self._state != AlarmState.ARMING:
                return None
            if not self._countdown.tick():
                return None
            result = self._apply(AlarmEvent.ARM_COMPLETE, AlarmState.ARMED, "countdown_expired")
        self._notify(result)
        return result

    # -------------------------------------------------------------------------
    # HA Reconciliation
    # -------------------------------------------------------------------------

    def sync_to_mirror(self, mode: str, reason: str = "ha_sync") -> Optional[TransitionResult]:
        """Reconcile local intent with a changed HA mode.

        A local ARMING is never interrupted by HA reporting disarmed; HA
        catches up once the panel receives the arm command.
        """
        with self._lock:
            current = self._state
            if mode == MirrorMode.ARMED.value:
                if current == AlarmState.ARMING:
                    result = self._apply(AlarmEvent.ARM_COMPLETE, AlarmState.ARMED, reason)
                elif current in (AlarmState.DISARMED, AlarmState.TRIGGERED):
                    result = self._sync(AlarmState.ARMED, reason)
                else:
                    return None
            elif mode == MirrorMode.TRIGGERED.value:
                if current == AlarmState.ARMED:
                    result = self._apply(AlarmEvent.TRIGGER, AlarmState.TRIGGERED, reason)
                elif current in (AlarmState.DISARMED, AlarmState.ARMING):
                    self._last_trigger = self._clock()
                    self._trigger_reason = reason
                    result = self._sync(AlarmState.TRIGGERED, reason)
                else:
                    return None
            elif mode == MirrorMode.DISARMED.value:
                if current in (AlarmState.ARMED, AlarmState.TRIGGERED):
                    result = self._sync(AlarmState.DISARMED, reason)
                else:
                    return None
            else:
                return None
        self._notify(result)
        return result

    def _sync(self, to_state: AlarmState, reason: str) -> TransitionResult:
        now = self._clock()
        from_state = self._state
        self._countdown.reset()
        self._enter(to_state, now)
        self._last_event = AlarmEvent.HA_SYNC
        logger.info("[ALARM] %s synced to %s from HA", from_state.value, to_state.value)
        return TransitionResult(
            success=True,
            from_state=from_state.value,
            to_state=to_state.value,
            event=AlarmEvent.HA_SYNC.value,
            reason=reason,
            timestamp=now,
        )

    def _notify(self, result: TransitionResult) -> None:
        if self.on_state_change and result.success:
            self.on_state_change(result)
