"""
Failsafe controller.

active = HA unreachable OR any hardware device degraded.
Re-evaluated lazily on every read; started_at and the recovery estimate
are recorded on the rising edge and cleared on the falling edge.
"""

import logging
import threading
from datetime import datetime
from typing import List, Optional, Protocol

from ..clock import Clock, utcnow
from ..domain.models import FailsafeState
from .health import RuntimeHealthMonitor

logger = logging.getLogger(__name__)


class HardwareHealth(Protocol):
    def degraded_devices(self) -> List[str]:
        ...


class NoHardware:
    """Hardware capability for deployments without a monitored HAL."""

    def degraded_devices(self) -> List[str]:
        return []


class FailsafeController:
    def __init__(
        self,
        health: RuntimeHealthMonitor,
        hardware: Optional[HardwareHealth] = None,
        cadence_sec: float = 5.0,
        clock: Clock = utcnow,
    ):
        self.health = health
        self.hardware = hardware or NoHardware()
        self.cadence_sec = cadence_sec
        self._clock = clock
        self._lock = threading.Lock()
        self._state = FailsafeState(active=False)

    def refresh(self) -> FailsafeState:
        health = self.health.snapshot()
        degraded = list(self.hardware.degraded_devices())

        reasons = []
        if health.unreachable:
            reasons.append(f"HA unreachable after {health.consecutive_failures} failures")
        for device_id in degraded:
            reasons.append(f"Hardware degraded: {device_id}")
        active = bool(reasons)

        with self._lock:
            previous = self._state
            if active and not previous.active:
                estimate = int(self.cadence_sec * health.threshold) if health.unreachable else None
                self._state = FailsafeState(
                    active=True,
                    explanation="; ".join(reasons),
                    started_at=self._clock(),
                    estimated_recovery_sec=estimate,
                )
                logger.warning("[FAILSAFE] entered: %s", self._state.explanation)
            elif active:
                self._state = FailsafeState(
                    active=True,
                    explanation="; ".join(reasons),
                    started_at=previous.started_at,
                    estimated_recovery_sec=previous.estimated_recovery_sec,
                )
            elif previous.active:
                self._state = FailsafeState(active=False)
                logger.info("[FAILSAFE] exited")
            return self._state

    def state(self) -> FailsafeState:
        return self.refresh()

    def active(self) -> bool:
        return self.refresh().active

    def explanation(self) -> str:
        return self.refresh().explanation

    def started_at(self) -> Optional[datetime]:
        return self.refresh().started_at
