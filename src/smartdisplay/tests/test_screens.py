"""
Tests for the alarm, home, guest and menu screen derivers
"""

from datetime import timedelta

import pytest

from smartdisplay.domain.enums import (
    AlarmEvent,
    AlarmState,
    AlertSeverity,
    GuestEvent,
    GuestScreenState,
    GuestState,
    HiddenReason,
    HomeState,
    RequestStatus,
    Role,
    ScreenMode,
)
from smartdisplay.domain.models import AlarmMirrorState, FailsafeState, GuestRequest
from smartdisplay.screens.alarm import AlarmScreenInputs, derive_alarm_screen, summarize_alarm_screen
from smartdisplay.screens.guest import GuestScreenInputs, derive_guest_screen, summarize_guest_screen
from smartdisplay.screens.home import (
    HomeActivity,
    HomeAlert,
    HomeScreenInputs,
    derive_home_screen,
    summarize_home_screen,
    top_alert,
)
from smartdisplay.screens.menu import SECTION_ORDER, resolve_menu, validate_menu
from smartdisplay.services.alarm_sm import AlarmStateMachine
from smartdisplay.services.guest_sm import GuestStateMachine


def pending_request(clock, timeout=60):
    return GuestRequest(
        id="greq-1",
        target_user="owner",
        status=RequestStatus.PENDING,
        requested_at=clock.now,
        expires_at=clock.now + timedelta(seconds=timeout),
    )


# =============================================================================
# Alarm Screen
# =============================================================================

class TestAlarmScreen:
    """Mode precedence and per-mode content"""

    @pytest.fixture
    def alarm(self, clock):
        return AlarmStateMachine(clock=clock)

    def inputs(self, alarm, **overrides):
        values = dict(
            first_boot_active=False,
            first_boot_step=5,
            first_boot_steps_remaining=0,
            pending_request=None,
            failsafe=FailsafeState(active=False),
            alarm=alarm.snapshot(),
            mirror=None,
        )
        values.update(overrides)
        return AlarmScreenInputs(**values)

    def test_disarmed(self, alarm, clock):
        screen = derive_alarm_screen(self.inputs(alarm), clock.now)
        assert screen.mode == ScreenMode.DISARMED
        assert screen.message == "Alarm: Disarmed"
        assert screen.info.can_arm is True
        assert [a.id for a in screen.actions] == ["arm", "history", "settings"]
        assert screen.actions[0].enabled is True

    def test_disarmed_arm_disabled_during_guest_visit(self, alarm, clock):
        screen = derive_alarm_screen(self.inputs(alarm, can_arm=False), clock.now)
        assert screen.mode == ScreenMode.DISARMED
        assert screen.info.can_arm is False
        assert screen.info.reason_blocked == "guest_session_active"
        assert screen.actions[0].id == "arm"
        assert screen.actions[0].enabled is False

    def test_first_boot_wins_over_everything(self, alarm, clock):
        alarm.handle(AlarmEvent.ARM_REQUEST)
        screen = derive_alarm_screen(self.inputs(
            alarm,
            first_boot_active=True,
            first_boot_step=2,
            first_boot_steps_remaining=4,
            pending_request=pending_request(clock),
            failsafe=FailsafeState(active=True, explanation="HA unreachable after 3 failures"),
        ), clock.now)
        assert screen.mode == ScreenMode.BLOCKED
        assert screen.block_reason == "first_boot_active"
        assert screen.message == "Alarm: Setup in progress"
        assert screen.info.first_boot_info.current_step == 2
        assert [a.id for a in screen.actions] == ["continue_setup"]

    def test_guest_pending_before_failsafe(self, alarm, clock):
        request = pending_request(clock)
        clock.advance(20)
        screen = derive_alarm_screen(self.inputs(
            alarm,
            pending_request=request,
            failsafe=FailsafeState(active=True, explanation="x"),
        ), clock.now)
        assert screen.block_reason == "guest_request_pending"
        assert screen.message == "Alarm: Waiting for approval"
        assert screen.info.guest_info.time_waiting_seconds == 20
        assert screen.info.estimated_seconds == 40

    def test_failsafe(self, alarm, clock):
        failsafe = FailsafeState(
            active=True,
            explanation="HA unreachable after 3 failures",
            started_at=clock.now,
            estimated_recovery_sec=15,
        )
        screen = derive_alarm_screen(self.inputs(alarm, failsafe=failsafe), clock.now)
        assert screen.mode == ScreenMode.BLOCKED
        assert screen.block_reason == "failsafe_active"
        assert screen.message == "Alarm: System recovering"
        assert screen.info.failsafe_info.estimated_recovery_time == 15

    def test_arming_from_local_countdown(self, alarm, clock):
        alarm.handle(AlarmEvent.ARM_REQUEST)
        for _ in range(10):
            alarm.tick()
        screen = derive_alarm_screen(self.inputs(alarm), clock.now)
        assert screen.mode == ScreenMode.ARMING
        assert screen.message == "Arming in 20 seconds..."
        assert screen.countdown.total_seconds == 30
        assert screen.countdown.remaining_seconds == 20
        assert screen.countdown.source == "local"
        assert [a.id for a in screen.actions] == ["cancel"]

    def test_arming_from_ha_exit_delay(self, alarm, clock):
        mirror = AlarmMirrorState(
            raw="arming", mode="arming", exit_delay_sec=60, last_changed=clock.now,
        )
        clock.advance(15)
        screen = derive_alarm_screen(self.inputs(alarm, mirror=mirror), clock.now)
        assert screen.mode == ScreenMode.ARMING
        assert screen.countdown.source == "ha"
        assert screen.countdown.remaining_seconds == 45

    def test_armed(self, alarm, clock):
        alarm.sync_to_mirror("armed")
        screen = derive_alarm_screen(self.inputs(alarm), clock.now)
        assert screen.mode == ScreenMode.ARMED
        assert screen.armed_at == clock.now
        assert screen.info.can_disarm is True

    def test_triggered(self, alarm, clock):
        alarm.sync_to_mirror("armed")
        alarm.handle(AlarmEvent.TRIGGER, reason="back_door")
        clock.advance(100)
        screen = derive_alarm_screen(self.inputs(alarm), clock.now)
        assert screen.mode == ScreenMode.TRIGGERED
        assert screen.alert.severity == "critical"
        assert screen.alert.time_triggered_ago_seconds == 100
        assert screen.info.escalation_time_remaining == 200
        assert screen.info.acknowledgment_required is True

    def test_summary_priority(self, alarm, clock):
        alarm.handle(AlarmEvent.ARM_REQUEST)
        summary = summarize_alarm_screen(derive_alarm_screen(self.inputs(alarm), clock.now), clock.now)
        assert summary.priority == "warning"
        assert summary.countdown_remaining_seconds == 30
        assert summary.actions_available == ["cancel"]


# =============================================================================
# Home Screen
# =============================================================================

class TestHomeScreen:

    @pytest.fixture
    def activity(self):
        return HomeActivity()

    def inputs(self, activity, role=Role.ADMIN, **overrides):
        alarm = AlarmStateMachine()
        values = dict(
            role=role,
            first_boot_active=False,
            activity=activity.snapshot(),
            active_timeout_sec=300,
            alarm_state=AlarmState.DISARMED,
            countdown=alarm.countdown.snapshot(),
            ha_connected=True,
            failsafe_active=False,
            guest_state=GuestState.IDLE,
        )
        values.update(overrides)
        return HomeScreenInputs(**values)

    def test_idle(self, activity, clock):
        screen = derive_home_screen(self.inputs(activity), clock.now)
        assert screen.state == HomeState.IDLE
        assert screen.message == "All systems calm"
        assert screen.actions is None
        assert screen.summary.guest_state is None

    def test_setup_redirect(self, activity, clock):
        activity.post_alert(HomeAlert("x", AlertSeverity.CRITICAL, "boom", clock.now))
        screen = derive_home_screen(self.inputs(activity, first_boot_active=True), clock.now)
        assert screen.state == HomeState.SETUP_REDIRECT
        assert screen.system_ready is False

    def test_active_within_timeout(self, activity, clock):
        activity.record_interaction(clock.now)
        clock.advance(299)
        screen = derive_home_screen(self.inputs(activity), clock.now)
        assert screen.state == HomeState.ACTIVE
        assert [a.id for a in screen.actions.primary] == ["arm", "disarm"]
        assert screen.actions.primary[0].enabled is True
        assert screen.actions.primary[1].enabled is False
        assert [a.id for a in screen.actions.secondary] == ["guests", "anomalies", "settings"]

    def test_active_decays_to_idle(self, activity, clock):
        activity.record_interaction(clock.now)
        clock.advance(300)
        assert derive_home_screen(self.inputs(activity), clock.now).state == HomeState.IDLE

    @pytest.mark.parametrize("role,secondary", [
        (Role.USER, ["anomalies"]),
        (Role.GUEST, ["request_entry"]),
    ])
    def test_secondary_actions_by_role(self, activity, clock, role, secondary):
        activity.record_interaction(clock.now)
        screen = derive_home_screen(self.inputs(activity, role=role), clock.now)
        assert [a.id for a in screen.actions.secondary] == secondary

    def test_alert_picks_most_severe(self, activity, clock):
        activity.post_alert(HomeAlert("low", AlertSeverity.LOW, "battery low", clock.now))
        activity.post_alert(HomeAlert("ha_unreachable", AlertSeverity.HIGH, "HA unreachable", clock.now))
        activity.record_interaction(clock.now)
        screen = derive_home_screen(self.inputs(activity), clock.now)
        assert screen.state == HomeState.ALERT
        assert screen.alert.type == "ha_unreachable"
        assert screen.message == "HA unreachable"
        assert screen.actions is None

    def test_critical_alert_message(self, activity, clock):
        activity.post_alert(HomeAlert("alarm_triggered", AlertSeverity.CRITICAL, "Alarm triggered", clock.now))
        screen = derive_home_screen(self.inputs(activity), clock.now)
        assert screen.message == "Critical alert"

    def test_top_alert_newest_within_severity(self, clock):
        older = HomeAlert("a", AlertSeverity.HIGH, "a", clock.now)
        newer = HomeAlert("b", AlertSeverity.HIGH, "b", clock.now + timedelta(seconds=5))
        assert top_alert({"a": older, "b": newer}) is newer

    def test_resolving_alert_leaves_alert_state(self, activity, clock):
        activity.post_alert(HomeAlert("ha_unreachable", AlertSeverity.HIGH, "x", clock.now))
        assert activity.resolve_alert("ha_unreachable") is True
        assert derive_home_screen(self.inputs(activity), clock.now).state == HomeState.IDLE

    def test_summary(self, activity, clock):
        inputs = self.inputs(activity, guest_state=GuestState.REQUESTED)
        screen = derive_home_screen(inputs, clock.now)
        summary = summarize_home_screen(screen, inputs)
        assert screen.summary.guest_state == "REQUESTED"
        assert summary.has_pending_alerts is False
        assert summary.alarm_state == "DISARMED"


# =============================================================================
# Guest Screen
# =============================================================================

class TestGuestScreen:

    @pytest.fixture
    def guest(self, clock):
        return GuestStateMachine(approval_minutes=30, clock=clock)

    def inputs(self, guest, request=None, **overrides):
        values = dict(
            first_boot_active=False,
            guest=guest.snapshot(),
            request=request,
            request_timeout_sec=60,
            exit_display_sec=120,
            alarm_state=AlarmState.DISARMED,
            alarm_state_before_visit=None,
        )
        values.update(overrides)
        return GuestScreenInputs(**values)

    def test_idle(self, guest, clock):
        screen = derive_guest_screen(self.inputs(guest), clock.now)
        assert screen.state == GuestScreenState.GUEST_IDLE
        assert [a.id for a in screen.actions] == ["request", "rules"]

    def test_first_boot_blocks_request(self, guest, clock):
        screen = derive_guest_screen(self.inputs(guest, first_boot_active=True), clock.now)
        assert screen.state == GuestScreenState.GUEST_IDLE
        assert screen.reason_blocked == "first_boot_active"
        assert screen.actions[0].enabled is False

    def test_requesting_countdown(self, guest, clock):
        request = pending_request(clock)
        guest.handle(GuestEvent.REQUEST)
        clock.advance(15)
        screen = derive_guest_screen(self.inputs(guest, request), clock.now)
        assert screen.state == GuestScreenState.GUEST_REQUESTING
        assert screen.request_id == "greq-1"
        assert screen.countdown.remaining_seconds == 45
        assert screen.countdown.percentage == 75
        assert screen.actions == []
        assert screen.owner_notification.title == "Guest requesting entry"

    def test_requesting_decays_to_expired(self, guest, clock):
        request = pending_request(clock)
        guest.handle(GuestEvent.REQUEST)
        clock.advance(61)
        screen = derive_guest_screen(self.inputs(guest, request), clock.now)
        assert screen.state == GuestScreenState.GUEST_EXPIRED
        assert screen.expiration.timeout_seconds == 60

    def test_approved(self, guest, clock):
        guest.handle(GuestEvent.REQUEST)
        guest.handle(GuestEvent.APPROVE)
        clock.advance(60)
        screen = derive_guest_screen(self.inputs(guest), clock.now)
        assert screen.state == GuestScreenState.GUEST_APPROVED
        assert screen.approval.time_remaining_seconds == 29 * 60
        assert [a.id for a in screen.actions] == ["exit", "rules", "disarm"]
        assert screen.owner_notification.title == "Guest inside (approved)"

    def test_approval_window_decays(self, guest, clock):
        guest.handle(GuestEvent.REQUEST)
        guest.handle(GuestEvent.APPROVE)
        clock.advance(31 * 60)
        screen = derive_guest_screen(self.inputs(guest), clock.now)
        assert screen.state == GuestScreenState.GUEST_EXPIRED
        assert screen.expiration.timeout_seconds == 30 * 60

    def test_denied(self, guest, clock):
        guest.handle(GuestEvent.REQUEST)
        guest.handle(GuestEvent.DENY)
        screen = derive_guest_screen(self.inputs(guest), clock.now)
        assert screen.state == GuestScreenState.GUEST_DENIED
        assert screen.denial.reason == "denied_by_owner"
        assert [a.id for a in screen.actions] == ["rules", "call", "disconnect"]
        assert summarize_guest_screen(screen).priority == "low"

    def test_exit_shown_then_idle(self, guest, clock):
        guest.handle(GuestEvent.REQUEST)
        guest.handle(GuestEvent.APPROVE)
        clock.advance(600)
        guest.handle(GuestEvent.EXIT)
        inputs = self.inputs(guest, alarm_state=AlarmState.ARMING, alarm_state_before_visit=AlarmState.ARMED)
        screen = derive_guest_screen(inputs, clock.now)
        assert screen.state == GuestScreenState.GUEST_EXIT
        assert screen.exit.duration_minutes == 10
        assert screen.exit.alarm_status_before == "ARMED"
        assert screen.exit.alarm_status_now == "ARMING"
        clock.advance(121)
        assert derive_guest_screen(inputs, clock.now).state == GuestScreenState.GUEST_IDLE

    def test_exit_after_denial_is_idle(self, guest, clock):
        guest.handle(GuestEvent.REQUEST)
        guest.handle(GuestEvent.DENY)
        guest.handle(GuestEvent.EXIT)
        assert derive_guest_screen(self.inputs(guest), clock.now).state == GuestScreenState.GUEST_IDLE

    def test_summary_requesting_is_high(self, guest, clock):
        guest.handle(GuestEvent.REQUEST)
        summary = summarize_guest_screen(derive_guest_screen(self.inputs(guest, pending_request(clock)), clock.now))
        assert summary.priority == "high"
        assert summary.countdown_remaining_seconds == 60


# =============================================================================
# Menu
# =============================================================================

def section(menu, section_id):
    return next(s for s in menu.sections if s.id == section_id)


def action(menu, section_id, action_id):
    return next(a for a in section(menu, section_id).actions if a.id == action_id)


class TestMenu:

    @pytest.mark.parametrize("role", list(Role))
    @pytest.mark.parametrize("first_boot", [True, False])
    @pytest.mark.parametrize("failsafe", [True, False])
    @pytest.mark.parametrize("guest_active", [True, False])
    def test_always_six_sections_and_valid(self, role, first_boot, failsafe, guest_active):
        menu = resolve_menu(role, first_boot, failsafe, guest_active)
        assert [s.id for s in menu.sections] == SECTION_ORDER
        assert validate_menu(menu) == []

    def test_guest_role_hides_admin_sections(self):
        menu = resolve_menu(Role.GUEST, first_boot=False, failsafe=False, guest_active=False)
        for section_id in ("devices", "history", "settings"):
            hidden = section(menu, section_id)
            assert hidden.visible is False
            assert hidden.reason_hidden == HiddenReason.PERMISSION_INSUFFICIENT
            assert hidden.actions == []
        assert section(menu, "guest").visible is True

    def test_user_cannot_see_settings(self):
        menu = resolve_menu(Role.USER, first_boot=False, failsafe=False, guest_active=False)
        assert section(menu, "settings").reason_hidden == HiddenReason.PERMISSION_INSUFFICIENT
        assert section(menu, "devices").visible is True

    def test_first_boot_hides_for_admin(self):
        menu = resolve_menu(Role.ADMIN, first_boot=True, failsafe=False, guest_active=False)
        assert section(menu, "guest").reason_hidden == HiddenReason.FIRST_BOOT_ACTIVE
        assert section(menu, "settings").reason_hidden == HiddenReason.FIRST_BOOT_ACTIVE
        assert action(menu, "alarm", "arm").enabled is False
        assert action(menu, "home", "setup_progress").enabled is True

    def test_permission_reported_before_first_boot(self):
        menu = resolve_menu(Role.GUEST, first_boot=True, failsafe=False, guest_active=False)
        assert section(menu, "settings").reason_hidden == HiddenReason.PERMISSION_INSUFFICIENT
        assert section(menu, "guest").reason_hidden == HiddenReason.FIRST_BOOT_ACTIVE

    def test_failsafe_disables_writes_only(self):
        menu = resolve_menu(Role.ADMIN, first_boot=False, failsafe=True, guest_active=True)
        assert action(menu, "alarm", "arm").enabled is False
        assert action(menu, "alarm", "disarm").enabled is False
        assert action(menu, "alarm", "view_state").enabled is True
        assert action(menu, "guest", "approve").enabled is False
        assert action(menu, "settings", "accessibility").enabled is True

    def test_guest_activity_gates_actions(self):
        admin = resolve_menu(Role.ADMIN, first_boot=False, failsafe=False, guest_active=True)
        assert action(admin, "alarm", "arm").enabled is False
        assert action(admin, "guest", "approve").enabled is True

        guest = resolve_menu(Role.GUEST, first_boot=False, failsafe=False, guest_active=True)
        assert action(guest, "guest", "request_access").enabled is False
        assert action(guest, "guest", "exit").enabled is True
