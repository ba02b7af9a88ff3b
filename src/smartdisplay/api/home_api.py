"""Home screen and menu API."""

from fastapi import APIRouter, Depends

from ..domain.enums import Role
from ..services.coordinator import Coordinator
from .deps import get_coordinator, get_role
from .errors import ok

home_router = APIRouter(prefix="/api/ui/home", tags=["home"])
menu_router = APIRouter(prefix="/api/ui", tags=["menu"])


@home_router.get("/state")
async def get_home_state(
    role: Role = Depends(get_role),
    coordinator: Coordinator = Depends(get_coordinator),
):
    return ok(coordinator.home_screen(role))


@home_router.get("/summary")
async def get_home_summary(
    role: Role = Depends(get_role),
    coordinator: Coordinator = Depends(get_coordinator),
):
    return ok(coordinator.home_summary(role))


@home_router.post("/interaction")
async def post_home_interaction(
    role: Role = Depends(get_role),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """Touch on the home screen; keeps it in the active state."""
    coordinator.record_interaction()
    return ok(coordinator.home_screen(role))


@menu_router.get("/menu")
async def get_menu(
    role: Role = Depends(get_role),
    coordinator: Coordinator = Depends(get_coordinator),
):
    return ok(coordinator.menu(role))
