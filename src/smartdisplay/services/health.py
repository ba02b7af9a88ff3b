"""
Runtime health monitor for the HA connection.

HA is considered unreachable after `threshold` consecutive failed reads.
The latch is only cleared by a success, so a single failure below the
threshold never flips the state back and forth.
"""

import logging
import threading
from datetime import datetime
from typing import Optional

from ..clock import Clock, utcnow
from ..domain.models import HealthState

logger = logging.getLogger(__name__)


class RuntimeHealthMonitor:
    def __init__(self, threshold: int = 3, clock: Clock = utcnow):
        if threshold < 1:
            raise ValueError("failure threshold must be >= 1")
        self.threshold = threshold
        self._clock = clock
        self._lock = threading.Lock()
        self._consecutive_failures = 0
        self._unreachable = False
        self._last_seen_at: Optional[datetime] = None

    def record_success(self) -> None:
        with self._lock:
            was_unreachable = self._unreachable
            self._consecutive_failures = 0
            self._unreachable = False
            self._last_seen_at = self._clock()
        if was_unreachable:
            logger.info("[HEALTH] ha runtime recovered")

    def record_failure(self) -> bool:
        """Count a failure. Returns True only on the reachable→unreachable edge."""
        with self._lock:
            self._consecutive_failures += 1
            if self._unreachable or self._consecutive_failures < self.threshold:
                return False
            self._unreachable = True
            failures = self._consecutive_failures
        logger.warning("[HEALTH] ha runtime unreachable after %d consecutive failures", failures)
        return True

    def is_unreachable(self) -> bool:
        with self._lock:
            return self._unreachable

    def last_seen_at(self) -> Optional[datetime]:
        with self._lock:
            return self._last_seen_at

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._consecutive_failures

    def snapshot(self) -> HealthState:
        with self._lock:
            return HealthState(
                consecutive_failures=self._consecutive_failures,
                unreachable=self._unreachable,
                last_seen_at=self._last_seen_at,
                threshold=self.threshold,
            )
