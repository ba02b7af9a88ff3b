"""
First-boot setup API (admin only)

- GET  /api/setup/firstboot/status
- POST /api/setup/firstboot/next
- POST /api/setup/firstboot/back
- POST /api/setup/firstboot/complete
"""

from fastapi import APIRouter, Depends

from ..domain.enums import Role
from ..services.coordinator import Coordinator
from ..services.firstboot import FINAL_STEP, StepResult
from .deps import get_coordinator, require_admin
from .errors import ApiError, ErrorCode, ok

setup_router = APIRouter(prefix="/api/setup/firstboot", tags=["setup"])


def _step_response(coordinator: Coordinator, result: StepResult, code: ErrorCode = ErrorCode.BAD_REQUEST):
    if not result.ok:
        raise ApiError(code, result.error)
    return ok(coordinator.firstboot.all_steps_status())


@setup_router.get("/status")
async def get_firstboot_status(
    role: Role = Depends(require_admin),
    coordinator: Coordinator = Depends(get_coordinator),
):
    return ok(coordinator.firstboot.all_steps_status())


@setup_router.post("/next")
async def firstboot_next(
    role: Role = Depends(require_admin),
    coordinator: Coordinator = Depends(get_coordinator),
):
    return _step_response(coordinator, coordinator.firstboot_next())


@setup_router.post("/back")
async def firstboot_back(
    role: Role = Depends(require_admin),
    coordinator: Coordinator = Depends(get_coordinator),
):
    return _step_response(coordinator, coordinator.firstboot_back())


@setup_router.post("/complete")
async def firstboot_complete(
    role: Role = Depends(require_admin),
    coordinator: Coordinator = Depends(get_coordinator),
):
    result = coordinator.firstboot_complete()
    if not result.ok and coordinator.firstboot.active() and coordinator.firstboot.current_step().order == FINAL_STEP:
        # persistence failure; the wizard stays at the final step
        return _step_response(coordinator, result, ErrorCode.INTERNAL_ERROR)
    return _step_response(coordinator, result)
