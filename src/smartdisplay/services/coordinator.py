"""
SmartDisplay Coordinator

Owns every core component and wires them together:
- HA mirror → health monitor → failsafe (health loop, every 5 s)
- Local arming countdown (tick loop, every 1 s)
- Guest request manager ↔ guest state machine ↔ alarm state machine
- Screen/menu snapshots for the HTTP layer

Writers and snapshot readers share one re-entrant lock so that paired
updates (approve then disarm) are observed together.
"""

import asyncio
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

from ..clock import Clock, rfc3339, utcnow
from ..config import CoreConfig, CredentialsProvider, EnvCredentials, RuntimeConfig, RuntimeConfigStore
from ..domain.enums import (
    AlarmEvent,
    AlarmState,
    AlertSeverity,
    FetchFailureKind,
    GuestEvent,
    GuestState,
    NotificationType,
    Role,
)
from ..domain.models import AlarmMirrorState, FailsafeState, GuestRequest, TransitionResult
from ..errors import AlreadyPendingError, FailsafeActiveError, InvalidTransitionError, MirrorFetchError
from ..screens.alarm import AlarmScreenInputs, AlarmScreenState, AlarmSummary, derive_alarm_screen, summarize_alarm_screen
from ..screens.guest import GuestScreenData, GuestScreenInputs, GuestSummary, derive_guest_screen, summarize_guest_screen
from ..screens.home import (
    HomeActivity,
    HomeAlert,
    HomeScreenInputs,
    HomeScreenState,
    HomeSummary,
    derive_home_screen,
    summarize_home_screen,
)
from ..screens.menu import MenuResponse, resolve_menu
from .alarm_sm import AlarmSMConfig, AlarmStateMachine
from .failsafe import FailsafeController, HardwareHealth
from .firstboot import FirstBootWizard, StepResult
from .guest_request import CallbackRunner, ExpiryTimer, GuestRequestManager, run_in_thread
from .guest_sm import GuestStateMachine
from .ha_mirror import AlarmoMirror
from .health import RuntimeHealthMonitor
from .logbook import Logbook, MemoryLogbook
from .notifier import LoggingNotifier, Notifier
from .roles import RoleResolver

logger = logging.getLogger(__name__)


ALERT_ALARM_TRIGGERED = "alarm_triggered"
ALERT_HA_UNREACHABLE = "ha_unreachable"


class _GuestGateAdapter:
    """Alarm gate view of the guest machine: IDLE means no guest session."""

    def __init__(self, guest_sm: GuestStateMachine):
        self._guest_sm = guest_sm

    def current_state(self) -> Optional[str]:
        state = self._guest_sm.state
        if state == GuestState.IDLE:
            return None
        return state.value


class Coordinator:
    def __init__(
        self,
        config: Optional[CoreConfig] = None,
        config_store: Optional[RuntimeConfigStore] = None,
        credentials: Optional[CredentialsProvider] = None,
        notifier: Optional[Notifier] = None,
        logbook: Optional[Logbook] = None,
        hardware: Optional[HardwareHealth] = None,
        mirror: Optional[AlarmoMirror] = None,
        clock: Clock = utcnow,
        callback_runner: CallbackRunner = run_in_thread,
        timer_factory: Callable[[], ExpiryTimer] = ExpiryTimer,
    ):
        self.config = config or CoreConfig()
        self.config_store = config_store or RuntimeConfigStore(path=None)
        self.credentials = credentials or EnvCredentials()
        self.notifier = notifier or LoggingNotifier()
        self.logbook = logbook or MemoryLogbook(clock=clock)
        self._clock = clock
        self._lock = threading.RLock()

        runtime = self.config_store.get()

        self.mirror = mirror or AlarmoMirror(
            entity_id=self.config.alarm_entity_id,
            timeout=self.config.ha_timeout_sec,
            clock=clock,
        )
        self.health = RuntimeHealthMonitor(self.config.failure_threshold, clock=clock)
        self.failsafe = FailsafeController(
            self.health, hardware, cadence_sec=self.config.health_interval_sec, clock=clock,
        )
        self.firstboot = FirstBootWizard(self.config_store)
        self.guest_sm = GuestStateMachine(approval_minutes=runtime.guest_approval_minutes, clock=clock)
        self.alarm = AlarmStateMachine(
            AlarmSMConfig(countdown_sec=runtime.arming_countdown_sec),
            guest_gate=_GuestGateAdapter(self.guest_sm),
            clock=clock,
            on_state_change=self._on_alarm_transition,
        )
        self.guest_requests = GuestRequestManager(
            timeout_sec=runtime.guest_request_timeout_sec,
            clock=clock,
            callback_runner=callback_runner,
            timer_factory=timer_factory,
        )
        self.guest_requests.set_on_approved(self._on_guest_approved)
        self.guest_requests.set_on_rejected(self._on_guest_rejected)
        self.guest_requests.set_on_expired(self._on_guest_expired)
        self.home = HomeActivity()
        self.roles = RoleResolver({Role.ADMIN: self.config.admin_pin, Role.USER: self.config.user_pin})

        self._failsafe_active = False
        self._credentials_invalid = False
        self._last_mirror_mode: Optional[str] = None
        self._alarm_state_before_visit: Optional[AlarmState] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: List[asyncio.Task] = []
        self._pending_notifications: Set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._tasks = [
            asyncio.create_task(self._run_every(self.config.health_interval_sec, self.health_tick, "health")),
            asyncio.create_task(self._run_every(self.config.countdown_tick_sec, self.tick_countdown, "countdown")),
            asyncio.create_task(self._run_every(self.config.guest_sweep_sec, self.sweep_guests, "guest-sweep")),
        ]
        logger.info("[CORE] coordinator started")

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self.guest_requests.shutdown()
        self._loop = None
        logger.info("[CORE] coordinator stopped")

    async def _run_every(self, interval: float, fn: Callable[[], Any], name: str) -> None:
        while True:
            try:
                result = fn()
                if asyncio.iscoroutine(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("[CORE] %s loop iteration failed", name)
            await asyncio.sleep(interval)

    # -------------------------------------------------------------------------
    # Health Loop
    # -------------------------------------------------------------------------

    async def health_tick(self) -> None:
        """One mirror fetch, then health and failsafe updates."""
        creds = self.credentials.load()
        if creds is None:
            return
        try:
            state = await self.mirror.fetch(creds.base_url, creds.token)
        except MirrorFetchError as e:
            self._record_fetch_failure(e)
            return
        self._record_fetch_success(state)

    def _record_fetch_failure(self, error: MirrorFetchError) -> None:
        with self._lock:
            if error.kind == FetchFailureKind.UNAUTHORIZED and not self._credentials_invalid:
                self._credentials_invalid = True
                logger.warning("[HEALTH] HA rejected the stored credentials")
            logger.debug("[HEALTH] mirror fetch failed: %s", error.kind.value)
            if self.health.record_failure():
                self.logbook.record("system", "Home Assistant unreachable")
            self._refresh_failsafe()

    def _record_fetch_success(self, state: AlarmMirrorState) -> None:
        with self._lock:
            self._credentials_invalid = False
            self.health.record_success()
            if state.mode != self._last_mirror_mode:
                self._last_mirror_mode = state.mode
                self.alarm.sync_to_mirror(state.mode, reason=f"ha_{state.raw}")
            self._refresh_failsafe()

    def _refresh_failsafe(self) -> FailsafeState:
        state = self.failsafe.refresh()
        if state.active and not self._failsafe_active:
            self._failsafe_active = True
            self.home.post_alert(HomeAlert(
                type=ALERT_HA_UNREACHABLE,
                severity=AlertSeverity.HIGH,
                message=state.explanation,
                posted_at=self._clock(),
            ))
            self.logbook.record("system", f"Failsafe entered: {state.explanation}")
        elif not state.active and self._failsafe_active:
            self._failsafe_active = False
            self.home.resolve_alert(ALERT_HA_UNREACHABLE)
            self.logbook.record("system", "Failsafe exited")
        return state

    def failsafe_state(self) -> FailsafeState:
        with self._lock:
            return self._refresh_failsafe()

    @property
    def credentials_invalid(self) -> bool:
        return self._credentials_invalid

    def health_status(self) -> Dict[str, Any]:
        with self._lock:
            failsafe = self._refresh_failsafe()
            health = self.health.snapshot()
            return {
                "active": failsafe.active,
                "explanation": failsafe.explanation,
                "started_at": failsafe.started_at,
                "estimated_recovery_sec": failsafe.estimated_recovery_sec,
                "ha": {
                    "configured": self.credentials.load() is not None,
                    "unreachable": health.unreachable,
                    "consecutive_failures": health.consecutive_failures,
                    "threshold": health.threshold,
                    "last_seen_at": health.last_seen_at,
                    "credentials_invalid": self._credentials_invalid,
                    "mode": self.mirror.state.mode if self.mirror.state else None,
                },
            }

    async def check_ha_connection(self) -> AlarmMirrorState:
        """Single fetch against HA, surfacing the failure to the caller."""
        creds = self.credentials.load()
        if creds is None:
            raise MirrorFetchError(FetchFailureKind.TRANSPORT, "ha_not_configured")
        now = self._clock()
        try:
            state = await self.mirror.fetch(creds.base_url, creds.token)
        except MirrorFetchError as e:
            self.config_store.update(ha_connected=False, ha_last_tested_at=now)
            self._record_fetch_failure(e)
            raise
        self.config_store.update(ha_connected=True, ha_last_tested_at=now)
        self._record_fetch_success(state)
        return state

    # -------------------------------------------------------------------------
    # Alarm
    # -------------------------------------------------------------------------

    def tick_countdown(self) -> Optional[TransitionResult]:
        with self._lock:
            return self.alarm.tick()

    def alarm_event(self, event: AlarmEvent, reason: str = "") -> TransitionResult:
        with self._lock:
            if event == AlarmEvent.ARM_REQUEST:
                self.alarm.config.countdown_sec = self.config_store.get().arming_countdown_sec
            return self.alarm.handle(event, reason)

    def cancel_arming(self, reason: str = "cancel") -> TransitionResult:
        """Abort a running arming countdown. Any other state is rejected."""
        with self._lock:
            state = self.alarm.state
            if state != AlarmState.ARMING:
                return TransitionResult.invalid(
                    state.value, AlarmEvent.DISARM_REQUEST.value, f"cancel not allowed in {state.value}",
                )
            return self.alarm.handle(AlarmEvent.DISARM_REQUEST, reason)

    def _on_alarm_transition(self, result: TransitionResult) -> None:
        to_state = AlarmState(result.to_state)
        self.logbook.record("alarm", f"{result.from_state} -> {result.to_state} ({result.event})")
        if to_state == AlarmState.TRIGGERED:
            snapshot = self.alarm.snapshot()
            self.home.post_alert(HomeAlert(
                type=ALERT_ALARM_TRIGGERED,
                severity=AlertSeverity.CRITICAL,
                message=f"Alarm triggered: {snapshot.trigger_reason}",
                posted_at=result.timestamp,
            ))
            self._notify(NotificationType.ALARM_TRIGGERED, {
                "reason": snapshot.trigger_reason,
                "triggered_at": rfc3339(snapshot.last_trigger),
            })
        elif AlarmState(result.from_state) == AlarmState.TRIGGERED:
            self.home.resolve_alert(ALERT_ALARM_TRIGGERED)

    # -------------------------------------------------------------------------
    # Guest Access
    # -------------------------------------------------------------------------

    def request_guest_access(self, target_user: str = "owner") -> GuestRequest:
        """Create a guest request and move the guest machine to REQUESTED."""
        with self._lock:
            pending = self.guest_requests.pending()
            if pending is not None:
                raise AlreadyPendingError(pending.id)
            if self.guest_sm.state in (GuestState.DENIED, GuestState.EXPIRED):
                self.guest_sm.handle(GuestEvent.EXIT, reason="request_again")
            if self.guest_sm.state != GuestState.IDLE:
                raise InvalidTransitionError(f"guest session already {self.guest_sm.state.value}")

            self.guest_requests.timeout_sec = self.config_store.get().guest_request_timeout_sec
            request = self.guest_requests.create(target_user)
            result = self.guest_sm.handle(GuestEvent.REQUEST)
            if not result.success:
                self.guest_requests.clear()
                raise InvalidTransitionError(result.detail)
            self.logbook.record("guest", f"Guest request {request.id} created")

        self._notify(NotificationType.GUEST_ACCESS_REQUESTED, {
            "request_id": request.id,
            "target_user": request.target_user,
            "expires_at": rfc3339(request.expires_at),
        })
        return request

    def approve_guest(self, request_id: str) -> GuestRequest:
        return self.guest_requests.approve(request_id)

    def reject_guest(self, request_id: str) -> GuestRequest:
        return self.guest_requests.reject(request_id)

    def guest_request(self, request_id: str) -> GuestRequest:
        return self.guest_requests.get(request_id)

    def guest_exit(self) -> TransitionResult:
        """End the guest session; re-arms if the alarm was armed before the visit."""
        with self._lock:
            previous = self.guest_sm.state
            result = self.guest_sm.handle(GuestEvent.EXIT)
            if not result.success:
                raise InvalidTransitionError(result.detail)
            self.guest_requests.clear()
            self.logbook.record("guest", "Guest session ended")

            rearm = (
                previous == GuestState.APPROVED
                and self._alarm_state_before_visit in (AlarmState.ARMING, AlarmState.ARMED)
                and self.alarm.state == AlarmState.DISARMED
            )
            if rearm:
                rearm_result = self.alarm_event(AlarmEvent.ARM_REQUEST, reason="guest_exit")
                rearm = rearm_result.success

        if rearm:
            self._notify(NotificationType.ALARM_REARMED, {"reason": "guest_exit"})
        return result

    def _on_guest_approved(self, request: GuestRequest) -> None:
        with self._lock:
            self.guest_sm.handle(GuestEvent.APPROVE)
            self._alarm_state_before_visit = self.alarm.state
            if self.alarm.state in (AlarmState.ARMING, AlarmState.ARMED):
                result = self.alarm.handle(AlarmEvent.DISARM_REQUEST, reason="guest_approved")
                if not result.success:
                    logger.warning("[GUEST] disarm after approval rejected: %s", result.detail)
            self.logbook.record("guest", f"Guest request {request.id} approved")
        self._notify(NotificationType.GUEST_ACCESS_APPROVED, {
            "request_id": request.id,
            "target_user": request.target_user,
        })

    def _on_guest_rejected(self, request: GuestRequest) -> None:
        with self._lock:
            self.guest_sm.handle(GuestEvent.DENY, reason="denied_by_owner")
            self.logbook.record("guest", f"Guest request {request.id} denied")
        self._notify(NotificationType.GUEST_ACCESS_DENIED, {
            "request_id": request.id,
            "target_user": request.target_user,
        })

    def _on_guest_expired(self, request: GuestRequest) -> None:
        with self._lock:
            if self.guest_sm.state == GuestState.REQUESTED:
                self.guest_sm.handle(GuestEvent.TIMEOUT, reason="request_timeout")
            self.logbook.record("guest", f"Guest request {request.id} expired")

    def sweep_guests(self, now: Optional[datetime] = None) -> None:
        now = now or self._clock()
        self.guest_requests.sweep(now)
        with self._lock:
            self.guest_sm.check_timeouts(now)

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def _notify(self, ntype: NotificationType, payload: Dict[str, Any]) -> None:
        """Dispatch on the coordinator loop when it runs, else inline. Failures are logged."""
        loop = self._loop
        if loop is not None and loop.is_running():
            asyncio.run_coroutine_threadsafe(self._safe_notify(ntype, payload), loop)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._safe_notify(ntype, payload))
            return
        task = running.create_task(self._safe_notify(ntype, payload))
        self._pending_notifications.add(task)
        task.add_done_callback(self._pending_notifications.discard)

    async def _safe_notify(self, ntype: NotificationType, payload: Dict[str, Any]) -> None:
        try:
            await self.notifier.notify(ntype, payload)
        except Exception:
            logger.exception("[NOTIFY] notifier failed for %s", ntype.value)

    # -------------------------------------------------------------------------
    # First Boot
    # -------------------------------------------------------------------------

    def firstboot_next(self) -> StepResult:
        return self.firstboot.next()

    def firstboot_back(self) -> StepResult:
        return self.firstboot.back()

    def firstboot_complete(self) -> StepResult:
        result = self.firstboot.complete()
        if result.ok:
            self.logbook.record("system", "First-boot setup completed")
        return result

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def runtime_config(self) -> RuntimeConfig:
        return self.config_store.get()

    def update_accessibility(self, **flags) -> RuntimeConfig:
        """Accessibility stays writable during failsafe."""
        return self.config_store.update(**flags)

    def update_timing(self, **values) -> RuntimeConfig:
        with self._lock:
            if self._refresh_failsafe().active:
                raise FailsafeActiveError("settings are read-only while failsafe is active")
            updated = self.config_store.update(**values)
            self.alarm.config.countdown_sec = updated.arming_countdown_sec
            self.guest_requests.timeout_sec = updated.guest_request_timeout_sec
            self.guest_sm.approval_minutes = updated.guest_approval_minutes
            self.logbook.record("system", "Timing settings updated")
            return updated

    def record_interaction(self) -> None:
        self.home.record_interaction(self._clock())

    # -------------------------------------------------------------------------
    # Screen Snapshots
    # -------------------------------------------------------------------------

    def _alarm_inputs(self) -> AlarmScreenInputs:
        return AlarmScreenInputs(
            first_boot_active=self.firstboot.active(),
            first_boot_step=self.firstboot.current_step().order,
            first_boot_steps_remaining=self.firstboot.steps_remaining(),
            pending_request=self.guest_requests.pending(),
            failsafe=self._refresh_failsafe(),
            alarm=self.alarm.snapshot(),
            mirror=self.mirror.state if not self.health.is_unreachable() else None,
            can_arm=self.alarm.can_arm(),
        )

    def alarm_screen(self) -> AlarmScreenState:
        with self._lock:
            inputs = self._alarm_inputs()
        return derive_alarm_screen(inputs, self._clock())

    def alarm_summary(self) -> AlarmSummary:
        now = self._clock()
        with self._lock:
            inputs = self._alarm_inputs()
        return summarize_alarm_screen(derive_alarm_screen(inputs, now), now)

    def _ha_connected(self) -> bool:
        return self.health.last_seen_at() is not None and not self.health.is_unreachable()

    def _home_inputs(self, role: Role) -> HomeScreenInputs:
        alarm = self.alarm.snapshot()
        return HomeScreenInputs(
            role=role,
            first_boot_active=self.firstboot.active(),
            activity=self.home.snapshot(),
            active_timeout_sec=self.config_store.get().home_active_timeout_sec,
            alarm_state=alarm.state,
            countdown=alarm.countdown,
            ha_connected=self._ha_connected(),
            failsafe_active=self._refresh_failsafe().active,
            guest_state=self.guest_sm.state,
        )

    def home_screen(self, role: Role) -> HomeScreenState:
        with self._lock:
            inputs = self._home_inputs(role)
        return derive_home_screen(inputs, self._clock())

    def home_summary(self, role: Role) -> HomeSummary:
        with self._lock:
            inputs = self._home_inputs(role)
        return summarize_home_screen(derive_home_screen(inputs, self._clock()), inputs)

    def _guest_inputs(self) -> GuestScreenInputs:
        return GuestScreenInputs(
            first_boot_active=self.firstboot.active(),
            guest=self.guest_sm.snapshot(),
            request=self.guest_requests.active(),
            request_timeout_sec=self.guest_requests.timeout_sec,
            exit_display_sec=self.config.guest_exit_display_sec,
            alarm_state=self.alarm.state,
            alarm_state_before_visit=self._alarm_state_before_visit,
        )

    def guest_screen(self) -> GuestScreenData:
        with self._lock:
            inputs = self._guest_inputs()
        return derive_guest_screen(inputs, self._clock())

    def guest_summary(self) -> GuestSummary:
        return summarize_guest_screen(self.guest_screen())

    def guest_active(self) -> bool:
        with self._lock:
            return self.guest_sm.state != GuestState.IDLE or self.guest_requests.pending() is not None

    def menu(self, role: Role) -> MenuResponse:
        with self._lock:
            first_boot = self.firstboot.active()
            failsafe = self._refresh_failsafe().active
            guest_active = self.guest_active()
        return resolve_menu(role, first_boot, failsafe, guest_active)
