"""
Alarm API

- GET  /api/ui/alarm/state     alarm screen (any role)
- GET  /api/ui/alarm/summary   compact alarm screen (any role)
- POST /api/ui/alarm/action    arm / disarm / cancel / acknowledge / trigger
- POST /api/alarm/arm|disarm   legacy aliases (alarm permission)
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..domain.enums import AlarmEvent, Permission, Role
from ..services.coordinator import Coordinator
from .deps import get_coordinator, get_role, require_permission
from .errors import ApiError, ErrorCode, ok

alarm_router = APIRouter(prefix="/api/ui/alarm", tags=["alarm"])
legacy_alarm_router = APIRouter(prefix="/api/alarm", tags=["alarm"])


# (event, admin only)
ACTIONS = {
    "arm": (AlarmEvent.ARM_REQUEST, False),
    "disarm": (AlarmEvent.DISARM_REQUEST, False),
    "cancel": (AlarmEvent.DISARM_REQUEST, False),
    "acknowledge": (AlarmEvent.RESET, False),
    "reset": (AlarmEvent.RESET, False),
    "trigger": (AlarmEvent.TRIGGER, True),
}


class AlarmActionRequest(BaseModel):
    action: str = Field(..., description="arm, disarm, cancel, acknowledge, reset or trigger")
    reason: str = Field("", max_length=120)


def _apply(coordinator: Coordinator, action: str, event: AlarmEvent, reason: str = "") -> dict:
    if coordinator.firstboot.active():
        raise ApiError(ErrorCode.CONFLICT, "first-boot setup in progress")
    # cancel only aborts a running countdown and stays available in failsafe
    if action == "cancel":
        result = coordinator.cancel_arming(reason=reason)
    elif coordinator.failsafe_state().active:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, "alarm writes are disabled while failsafe is active")
    else:
        result = coordinator.alarm_event(event, reason=reason)
    if not result.success:
        raise ApiError(ErrorCode.BAD_REQUEST, f"invalid_transition: {result.detail}")
    return {
        "from_state": result.from_state,
        "to_state": result.to_state,
        "event": result.event,
        "screen": coordinator.alarm_screen(),
    }


@alarm_router.get("/state")
async def get_alarm_state(
    role: Role = Depends(get_role),
    coordinator: Coordinator = Depends(get_coordinator),
):
    return ok(coordinator.alarm_screen())


@alarm_router.get("/summary")
async def get_alarm_summary(
    role: Role = Depends(get_role),
    coordinator: Coordinator = Depends(get_coordinator),
):
    return ok(coordinator.alarm_summary())


@alarm_router.post("/action")
async def post_alarm_action(
    request: AlarmActionRequest,
    role: Role = Depends(require_permission(Permission.ALARM)),
    coordinator: Coordinator = Depends(get_coordinator),
):
    action = request.action.strip().lower()
    if action not in ACTIONS:
        raise ApiError(ErrorCode.BAD_REQUEST, f"unknown action: {request.action}")
    event, admin_only = ACTIONS[action]
    if admin_only and role != Role.ADMIN:
        raise ApiError(ErrorCode.FORBIDDEN, f"action {action} requires admin")
    return ok(_apply(coordinator, action, event, request.reason or action))


@legacy_alarm_router.post("/arm")
async def legacy_arm(
    role: Role = Depends(require_permission(Permission.ALARM)),
    coordinator: Coordinator = Depends(get_coordinator),
):
    return ok(_apply(coordinator, "arm", AlarmEvent.ARM_REQUEST, "arm"))


@legacy_alarm_router.post("/disarm")
async def legacy_disarm(
    role: Role = Depends(require_permission(Permission.ALARM)),
    coordinator: Coordinator = Depends(get_coordinator),
):
    return ok(_apply(coordinator, "disarm", AlarmEvent.DISARM_REQUEST, "disarm"))
