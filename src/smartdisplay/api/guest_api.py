"""
Guest Access API

Guest-facing screen (/api/ui/guest):
- GET  /state, /summary        any role
- POST /request, /exit         guest permission
- GET  /request/{request_id}   any role

Owner decisions (/api/guest):
- POST /approve, /deny         admin
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..domain.enums import Permission, Role
from ..services.coordinator import Coordinator
from .deps import get_coordinator, get_role, require_admin, require_permission
from .errors import ApiError, ErrorCode, ok

guest_ui_router = APIRouter(prefix="/api/ui/guest", tags=["guest"])
guest_admin_router = APIRouter(prefix="/api/guest", tags=["guest"])


class GuestRequestCreate(BaseModel):
    target_user: str = Field("owner", min_length=1, max_length=64)


class GuestDecision(BaseModel):
    request_id: str = Field(..., min_length=1)


def _reject_in_failsafe(coordinator: Coordinator) -> None:
    if coordinator.failsafe_state().active:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, "guest access changes are disabled while failsafe is active")


# =============================================================================
# Guest Screen
# =============================================================================

@guest_ui_router.get("/state")
async def get_guest_state(
    role: Role = Depends(get_role),
    coordinator: Coordinator = Depends(get_coordinator),
):
    return ok(coordinator.guest_screen())


@guest_ui_router.get("/summary")
async def get_guest_summary(
    role: Role = Depends(get_role),
    coordinator: Coordinator = Depends(get_coordinator),
):
    return ok(coordinator.guest_summary())


@guest_ui_router.post("/request")
async def create_guest_request(
    body: Optional[GuestRequestCreate] = None,
    role: Role = Depends(require_permission(Permission.GUEST)),
    coordinator: Coordinator = Depends(get_coordinator),
):
    if coordinator.firstboot.active():
        raise ApiError(ErrorCode.CONFLICT, "first-boot setup in progress")
    _reject_in_failsafe(coordinator)
    request = coordinator.request_guest_access(body.target_user if body else "owner")
    return ok({"request": request.to_dict(), "screen": coordinator.guest_screen()}, status_code=201)


@guest_ui_router.post("/exit")
async def guest_exit(
    role: Role = Depends(require_permission(Permission.GUEST)),
    coordinator: Coordinator = Depends(get_coordinator),
):
    coordinator.guest_exit()
    return ok({"screen": coordinator.guest_screen()})


@guest_ui_router.get("/request/{request_id}")
async def get_guest_request(
    request_id: str,
    role: Role = Depends(get_role),
    coordinator: Coordinator = Depends(get_coordinator),
):
    return ok(coordinator.guest_request(request_id).to_dict())


# =============================================================================
# Owner Decisions
# =============================================================================

@guest_admin_router.post("/approve")
async def approve_guest(
    body: GuestDecision,
    role: Role = Depends(require_admin),
    coordinator: Coordinator = Depends(get_coordinator),
):
    _reject_in_failsafe(coordinator)
    request = coordinator.approve_guest(body.request_id)
    return ok(request.to_dict())


@guest_admin_router.post("/deny")
async def deny_guest(
    body: GuestDecision,
    role: Role = Depends(require_admin),
    coordinator: Coordinator = Depends(get_coordinator),
):
    _reject_in_failsafe(coordinator)
    request = coordinator.reject_guest(body.request_id)
    return ok(request.to_dict())
