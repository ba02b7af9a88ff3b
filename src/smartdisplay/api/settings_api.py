"""
Settings, logbook and HA connection API

- GET  /api/ui/settings                    admin
- POST /api/ui/settings/accessibility      admin/user, allowed in failsafe
- POST /api/ui/settings/timing             admin, rejected in failsafe
- POST /api/settings/homeassistant/test    admin
- GET  /api/ui/logbook                     admin/user
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ..clock import rfc3339
from ..domain.enums import FetchFailureKind, Permission, Role
from ..errors import MirrorFetchError
from ..services.coordinator import Coordinator
from .deps import get_coordinator, require_admin, require_permission
from .errors import ApiError, ErrorCode, ok

settings_router = APIRouter(prefix="/api/ui", tags=["settings"])
ha_router = APIRouter(prefix="/api/settings/homeassistant", tags=["settings"])


class AccessibilityUpdate(BaseModel):
    high_contrast: Optional[bool] = None
    large_text: Optional[bool] = None
    reduced_motion: Optional[bool] = None
    voice_enabled: Optional[bool] = None
    language: Optional[str] = Field(None, min_length=2, max_length=8)


class TimingUpdate(BaseModel):
    arming_countdown_sec: Optional[int] = Field(None, ge=1, le=600)
    guest_request_timeout_sec: Optional[int] = Field(None, ge=5, le=3600)
    guest_approval_minutes: Optional[int] = Field(None, ge=1, le=24 * 60)
    home_active_timeout_sec: Optional[int] = Field(None, ge=10, le=3600)


@settings_router.get("/settings")
async def get_settings(
    role: Role = Depends(require_admin),
    coordinator: Coordinator = Depends(get_coordinator),
):
    config = coordinator.runtime_config()
    data = config.model_dump(mode="json")
    data["ha_credentials_invalid"] = coordinator.credentials_invalid
    return ok(data)


@settings_router.post("/settings/accessibility")
async def update_accessibility(
    body: AccessibilityUpdate,
    role: Role = Depends(require_permission(Permission.DEVICE)),
    coordinator: Coordinator = Depends(get_coordinator),
):
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise ApiError(ErrorCode.BAD_REQUEST, "no settings provided")
    return ok(coordinator.update_accessibility(**changes))


@settings_router.post("/settings/timing")
async def update_timing(
    body: TimingUpdate,
    role: Role = Depends(require_admin),
    coordinator: Coordinator = Depends(get_coordinator),
):
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise ApiError(ErrorCode.BAD_REQUEST, "no settings provided")
    return ok(coordinator.update_timing(**changes))


@settings_router.get("/logbook")
async def get_logbook(
    limit: int = Query(50, ge=1, le=500),
    role: Role = Depends(require_permission(Permission.ALARM)),
    coordinator: Coordinator = Depends(get_coordinator),
):
    entries = [
        {"timestamp": rfc3339(e.timestamp), "category": e.category, "message": e.message}
        for e in coordinator.logbook.entries(limit)
    ]
    return ok({"entries": entries})


@ha_router.post("/test")
async def test_connection(
    role: Role = Depends(require_admin),
    coordinator: Coordinator = Depends(get_coordinator),
):
    if coordinator.credentials.load() is None:
        raise ApiError(ErrorCode.BAD_REQUEST, "ha_not_configured")
    try:
        state = await coordinator.check_ha_connection()
    except MirrorFetchError as e:
        reason = "ha_unauthorized" if e.kind == FetchFailureKind.UNAUTHORIZED else f"ha_{e.kind.value}"
        raise ApiError(ErrorCode.UPSTREAM_ERROR, reason) from e
    return ok({"connected": True, "mode": state.mode, "raw": state.raw})
