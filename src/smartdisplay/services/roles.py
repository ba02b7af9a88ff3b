"""
Role & permission resolver.

Permission matrix (fixed, no dynamic grants):
- admin: alarm, device, guest
- user:  alarm, device
- guest: guest

Identity arrives either as an explicit role name or as a PIN. PINs are
held only as SHA-256 digests and are never logged.
"""

import hashlib
import hmac
import logging
from typing import Dict, FrozenSet, Optional

from ..domain.enums import Permission, Role

logger = logging.getLogger(__name__)


PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    Role.ADMIN: frozenset({Permission.ALARM, Permission.DEVICE, Permission.GUEST}),
    Role.USER: frozenset({Permission.ALARM, Permission.DEVICE}),
    Role.GUEST: frozenset({Permission.GUEST}),
}


def has_permission(role: Role, permission: Permission) -> bool:
    return permission in PERMISSIONS.get(role, frozenset())


def hash_pin(pin: str) -> str:
    return hashlib.sha256(pin.encode("utf-8")).hexdigest()


def parse_role(value: Optional[str]) -> Optional[Role]:
    if not value:
        return None
    try:
        return Role(value.strip().lower())
    except ValueError:
        return None


class RoleResolver:
    def __init__(self, pins: Optional[Dict[Role, str]] = None):
        pins = pins or {Role.ADMIN: "1234", Role.USER: "5678"}
        self._pin_hashes: Dict[str, Role] = {hash_pin(pin): role for role, pin in pins.items()}

    def set_pin(self, role: Role, pin: str) -> None:
        if len(pin) < 4 or not pin.isdigit():
            raise ValueError("PIN must be at least 4 digits")
        self._pin_hashes = {h: r for h, r in self._pin_hashes.items() if r != role}
        self._pin_hashes[hash_pin(pin)] = role

    def resolve_pin(self, pin: Optional[str]) -> Optional[Role]:
        if not pin:
            return None
        digest = hash_pin(pin)
        for known, role in self._pin_hashes.items():
            if hmac.compare_digest(known, digest):
                return role
        logger.info("[AUTH] PIN rejected")
        return None

    def resolve(self, role_name: Optional[str] = None, pin: Optional[str] = None) -> Role:
        """Map an identity to a role; anything unknown becomes guest."""
        role = parse_role(role_name)
        if role is not None:
            return role
        role = self.resolve_pin(pin)
        if role is not None:
            return role
        return Role.GUEST
