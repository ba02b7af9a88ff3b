"""
Menu / Action Gate

resolve_menu(role, first_boot, failsafe, guest_active) always returns the
six sections in a fixed order: home, alarm, guest, devices, history,
settings. Hidden sections are returned with visible=False, a
reason_hidden and no actions.

Failsafe disables every write action; reads stay enabled.
"""

from typing import List, Optional

from pydantic import BaseModel

from ..domain.enums import HiddenReason, Role

SECTION_ORDER = ["home", "alarm", "guest", "devices", "history", "settings"]

# Actions that change state; disabled while failsafe is active
WRITE_ACTIONS = {
    "alarm": {"arm", "disarm"},
    "guest": {"approve", "deny", "request_access", "exit"},
    "devices": {"manage"},
    "settings": {"alarm_config", "user_mgmt", "device_mgmt"},
}


class MenuAction(BaseModel):
    id: str
    label: str
    enabled: bool = True


class MenuSubSection(BaseModel):
    id: str
    name: str
    visible: bool = True


class MenuSection(BaseModel):
    id: str
    name: str
    description: str = ""
    visible: bool = True
    reason_hidden: Optional[HiddenReason] = None
    actions: List[MenuAction] = []
    sub_sections: List[MenuSubSection] = []


class MenuResponse(BaseModel):
    role: Role
    first_boot_active: bool
    failsafe_active: bool
    guest_active: bool
    sections: List[MenuSection]


# =============================================================================
# Sections
# =============================================================================

def _home(role: Role, first_boot: bool) -> MenuSection:
    actions = [
        MenuAction(id="view_summary", label="View summary"),
        MenuAction(id="quick_alarm", label="Quick alarm"),
    ]
    if role == Role.ADMIN and first_boot:
        actions.append(MenuAction(id="setup_progress", label="Setup progress"))
    return MenuSection(id="home", name="Home", description="Overview and quick actions", actions=actions)


def _alarm(role: Role, first_boot: bool, guest_active: bool) -> MenuSection:
    actions = [MenuAction(id="view_state", label="View state")]
    if role == Role.ADMIN:
        actions += [
            MenuAction(id="arm", label="Arm", enabled=not first_boot and not guest_active),
            MenuAction(id="disarm", label="Disarm", enabled=not first_boot),
            MenuAction(id="view_history", label="View history"),
        ]
    elif role == Role.USER:
        actions.append(MenuAction(id="view_history", label="View history"))
    return MenuSection(id="alarm", name="Alarm", description="Alarm state and control", actions=actions)


def _guest(role: Role, guest_active: bool) -> MenuSection:
    if role == Role.ADMIN:
        actions = [
            MenuAction(id="view_requests", label="View requests"),
            MenuAction(id="approve", label="Approve", enabled=guest_active),
            MenuAction(id="deny", label="Deny", enabled=guest_active),
            MenuAction(id="view_history", label="View history"),
        ]
    elif role == Role.USER:
        actions = [
            MenuAction(id="view_requests", label="View requests"),
            MenuAction(id="view_history", label="View history"),
        ]
    else:
        actions = [
            MenuAction(id="view_status", label="View status"),
            MenuAction(id="request_access", label="Request access", enabled=not guest_active),
            MenuAction(id="exit", label="Exit", enabled=guest_active),
        ]
    return MenuSection(id="guest", name="Guest Access", description="Guest entry requests", actions=actions)


def _devices(role: Role) -> MenuSection:
    if role == Role.ADMIN:
        actions = [
            MenuAction(id="view_list", label="View devices"),
            MenuAction(id="view_details", label="View details"),
            MenuAction(id="manage", label="Manage devices"),
        ]
    else:
        actions = [
            MenuAction(id="view_list", label="View devices"),
            MenuAction(id="view_battery", label="View battery"),
        ]
    return MenuSection(id="devices", name="Devices", description="Sensors and hardware", actions=actions)


def _history(role: Role) -> MenuSection:
    actions = [MenuAction(id="view_events", label="View events")]
    if role == Role.ADMIN:
        actions += [
            MenuAction(id="search", label="Search"),
            MenuAction(id="export", label="Export"),
        ]
    return MenuSection(id="history", name="History", description="Logbook events", actions=actions)


def _settings() -> MenuSection:
    return MenuSection(
        id="settings",
        name="Settings",
        description="System configuration",
        actions=[
            MenuAction(id="alarm_config", label="Alarm configuration"),
            MenuAction(id="user_mgmt", label="Users"),
            MenuAction(id="device_mgmt", label="Devices"),
            MenuAction(id="accessibility", label="Accessibility"),
        ],
        sub_sections=[
            MenuSubSection(id="general", name="General"),
            MenuSubSection(id="security", name="Security"),
            MenuSubSection(id="homeassistant", name="Home Assistant"),
            MenuSubSection(id="accessibility", name="Accessibility"),
        ],
    )


def _hide(section: MenuSection, reason: HiddenReason) -> MenuSection:
    return MenuSection(
        id=section.id,
        name=section.name,
        description=section.description,
        visible=False,
        reason_hidden=reason,
    )


# =============================================================================
# Resolver
# =============================================================================

def resolve_menu(role: Role, first_boot: bool, failsafe: bool, guest_active: bool) -> MenuResponse:
    sections = [
        _home(role, first_boot),
        _alarm(role, first_boot, guest_active),
    ]

    guest = _guest(role, guest_active)
    sections.append(_hide(guest, HiddenReason.FIRST_BOOT_ACTIVE) if first_boot else guest)

    for section, allowed in (
        (_devices(role), role != Role.GUEST),
        (_history(role), role != Role.GUEST),
        (_settings(), role == Role.ADMIN),
    ):
        if not allowed:
            sections.append(_hide(section, HiddenReason.PERMISSION_INSUFFICIENT))
        elif first_boot:
            sections.append(_hide(section, HiddenReason.FIRST_BOOT_ACTIVE))
        else:
            sections.append(section)

    if failsafe:
        for section in sections:
            for action in section.actions:
                if action.id in WRITE_ACTIONS.get(section.id, ()):
                    action.enabled = False

    return MenuResponse(
        role=role,
        first_boot_active=first_boot,
        failsafe_active=failsafe,
        guest_active=guest_active,
        sections=sections,
    )


def validate_menu(menu: MenuResponse) -> List[str]:
    """Return violations; a hidden section must carry no enabled action."""
    errors = []
    ids = [s.id for s in menu.sections]
    if ids != SECTION_ORDER:
        errors.append(f"unexpected section order: {ids}")
    for section in menu.sections:
        if not section.visible and any(a.enabled for a in section.actions):
            errors.append(f"hidden section {section.id} has enabled actions")
        if not section.visible and section.reason_hidden is None:
            errors.append(f"hidden section {section.id} has no reason")
    return errors
