"""
Shared API dependencies: the coordinator instance and caller identity.

Identity headers:
- X-User-Role: explicit role (admin / user / guest)
- X-SmartDisplay-PIN: PIN resolved to a role
Missing or unknown identities resolve to guest.
"""

from typing import Callable, Optional

from fastapi import Depends, Header

from ..domain.enums import Permission, Role
from ..services.coordinator import Coordinator
from ..services.roles import has_permission
from .errors import ApiError, ErrorCode


# =============================================================================
# Global State
# =============================================================================

_coordinator: Optional[Coordinator] = None


def set_coordinator(coordinator: Optional[Coordinator]) -> None:
    global _coordinator
    _coordinator = coordinator


def current_coordinator() -> Optional[Coordinator]:
    return _coordinator


def get_coordinator() -> Coordinator:
    if _coordinator is None:
        raise ApiError(ErrorCode.SERVICE_UNAVAILABLE, "coordinator not initialized")
    return _coordinator


# =============================================================================
# Identity
# =============================================================================

def get_role(
    x_user_role: Optional[str] = Header(None),
    x_smartdisplay_pin: Optional[str] = Header(None),
    coordinator: Coordinator = Depends(get_coordinator),
) -> Role:
    return coordinator.roles.resolve(role_name=x_user_role, pin=x_smartdisplay_pin)


def require_permission(permission: Permission) -> Callable[..., Role]:
    def dependency(role: Role = Depends(get_role)) -> Role:
        if not has_permission(role, permission):
            raise ApiError(ErrorCode.FORBIDDEN, f"role {role.value} lacks {permission.value} permission")
        return role
    return dependency


def require_admin(role: Role = Depends(get_role)) -> Role:
    if role != Role.ADMIN:
        raise ApiError(ErrorCode.FORBIDDEN, "admin role required")
    return role
