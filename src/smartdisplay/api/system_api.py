"""Failsafe status and liveness."""

from fastapi import APIRouter, Depends

from .. import __version__
from ..domain.enums import Role
from ..services.coordinator import Coordinator
from .deps import get_coordinator, get_role
from .errors import ok

system_router = APIRouter(tags=["system"])


@system_router.get("/api/failsafe")
async def get_failsafe(
    role: Role = Depends(get_role),
    coordinator: Coordinator = Depends(get_coordinator),
):
    return ok(coordinator.health_status())


@system_router.get("/health")
async def health():
    return ok({"status": "ok", "version": __version__})
