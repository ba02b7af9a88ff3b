"""
SmartDisplay API application.

create_app(coordinator) builds the FastAPI app: routers, envelope error
handlers, request ids, and coordinator start/stop on server lifecycle.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request

from .. import __version__
from ..services.coordinator import Coordinator
from .alarm_api import alarm_router, legacy_alarm_router
from .deps import set_coordinator
from .errors import install_error_handlers, new_request_id
from .guest_api import guest_admin_router, guest_ui_router
from .home_api import home_router, menu_router
from .settings_api import ha_router, settings_router
from .setup_api import setup_router
from .system_api import system_router

logger = logging.getLogger(__name__)


def create_app(coordinator: Optional[Coordinator] = None) -> FastAPI:
    coordinator = coordinator or Coordinator()
    set_coordinator(coordinator)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        set_coordinator(coordinator)
        await coordinator.start()
        try:
            yield
        finally:
            await coordinator.stop()

    app = FastAPI(
        title="SmartDisplay Core",
        description="Local control plane for the SmartDisplay wall panel",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.coordinator = coordinator

    @app.middleware("http")
    async def assign_request_id(request: Request, call_next):
        request.state.request_id = request.headers.get("X-Request-ID") or new_request_id()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request.state.request_id
        return response

    install_error_handlers(app)

    for router in (
        home_router,
        menu_router,
        alarm_router,
        legacy_alarm_router,
        guest_ui_router,
        guest_admin_router,
        setup_router,
        settings_router,
        ha_router,
        system_router,
    ):
        app.include_router(router)

    return app
