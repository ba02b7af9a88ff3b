"""
HA Alarm Mirror

Read-only client for the Alarmo alarm entity:
- GET {base}/api/states/<entity> with a bearer token and a 5 s deadline
- Normalizes the raw state into AlarmMirrorState
- Keeps the last good state; each fetch replaces it atomically

Never issues arm/disarm commands. URL and token are never logged.
"""

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional, Tuple

import aiohttp

from ..clock import Clock, utcnow
from ..domain.enums import ArmedMode, FetchFailureKind, MirrorMode
from ..domain.models import AlarmMirrorState
from ..errors import MirrorFetchError

logger = logging.getLogger(__name__)


DEFAULT_ENTITY_ID = "alarm_control_panel.alarmo"

# raw -> (mode, armed_mode, triggered)
STATE_MAP = {
    "disarmed": (MirrorMode.DISARMED, ArmedMode.NONE, False),
    "arming": (MirrorMode.ARMING, ArmedMode.NONE, False),
    "pending": (MirrorMode.ARMING, ArmedMode.NONE, False),
    "armed_home": (MirrorMode.ARMED, ArmedMode.HOME, False),
    "armed_away": (MirrorMode.ARMED, ArmedMode.AWAY, False),
    "armed_night": (MirrorMode.ARMED, ArmedMode.NIGHT, False),
    "triggered": (MirrorMode.TRIGGERED, ArmedMode.NONE, True),
}

_FRACTION = re.compile(r"(\.\d+)")


# =============================================================================
# Normalization
# =============================================================================

def map_raw_state(raw: str) -> Tuple[str, str, bool]:
    """Map a raw Alarmo state to (mode, armed_mode, triggered)."""
    mapped = STATE_MAP.get(raw)
    if mapped is None:
        return raw, ArmedMode.NONE.value, False
    mode, armed_mode, triggered = mapped
    return mode.value, armed_mode.value, triggered


def parse_delay(value: Any) -> int:
    """Delay attribute as whole seconds; numeric strings accepted, else 0."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return max(0, int(value))
    if isinstance(value, str):
        try:
            return max(0, int(float(value.strip())))
        except ValueError:
            return 0
    return 0


def parse_last_changed(value: Any, now: datetime) -> datetime:
    """Parse an HA timestamp (fractional seconds up to nanoseconds)."""
    if not isinstance(value, str) or not value:
        return now
    text = value.strip().replace("Z", "+00:00")
    # datetime supports microseconds only
    text = _FRACTION.sub(lambda m: m.group(1)[:7], text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return now
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_entity(payload: dict, now: datetime) -> AlarmMirrorState:
    """Build an AlarmMirrorState from an HA /api/states entity payload."""
    raw = payload.get("state")
    if not isinstance(raw, str):
        raise MirrorFetchError(FetchFailureKind.PARSE, "entity has no state")
    attributes = payload.get("attributes") or {}
    if not isinstance(attributes, dict):
        attributes = {}

    mode, armed_mode, triggered = map_raw_state(raw)
    return AlarmMirrorState(
        raw=raw,
        mode=mode,
        armed_mode=armed_mode,
        entry_delay_sec=parse_delay(attributes.get("entry_delay")),
        exit_delay_sec=parse_delay(attributes.get("exit_delay")),
        triggered=triggered,
        last_changed=parse_last_changed(payload.get("last_changed"), now),
    )


# =============================================================================
# Mirror
# =============================================================================

class AlarmoMirror:
    """Periodically refreshed, read-only view of the HA alarm entity."""

    def __init__(
        self,
        entity_id: str = DEFAULT_ENTITY_ID,
        timeout: float = 5.0,
        clock: Clock = utcnow,
    ):
        self.entity_id = entity_id
        self.timeout = timeout
        self._clock = clock
        self._state: Optional[AlarmMirrorState] = None

    @property
    def state(self) -> Optional[AlarmMirrorState]:
        return self._state

    async def fetch(self, base_url: str, token: str) -> AlarmMirrorState:
        """Fetch and normalize the alarm entity. Raises MirrorFetchError."""
        url = f"{base_url.rstrip('/')}/api/states/{self.entity_id}"
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    url,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status in (401, 403):
                        raise MirrorFetchError(FetchFailureKind.UNAUTHORIZED, "ha_unauthorized", response.status)
                    if response.status >= 500:
                        raise MirrorFetchError(FetchFailureKind.HTTP_5XX, f"HTTP {response.status}", response.status)
                    if response.status != 200:
                        raise MirrorFetchError(FetchFailureKind.HTTP_STATUS, f"HTTP {response.status}", response.status)
                    try:
                        payload = await response.json(content_type=None)
                    except ValueError as e:
                        raise MirrorFetchError(FetchFailureKind.PARSE, f"invalid JSON: {e}") from e
        except asyncio.TimeoutError as e:
            raise MirrorFetchError(FetchFailureKind.TIMEOUT, f"timeout after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise MirrorFetchError(FetchFailureKind.TRANSPORT, type(e).__name__) from e

        if not isinstance(payload, dict):
            raise MirrorFetchError(FetchFailureKind.PARSE, "entity payload is not an object")

        try:
            state = normalize_entity(payload, self._clock())
        except ValueError as e:
            raise MirrorFetchError(FetchFailureKind.PARSE, str(e)) from e
        self._state = state
        logger.debug("[MIRROR] %s -> mode=%s", state.raw, state.mode)
        return state
