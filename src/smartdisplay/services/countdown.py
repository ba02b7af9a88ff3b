"""
Arming countdown.

Second-tick counter driven externally (the coordinator ticks it once per
second). The tick that brings `remaining` to zero reports expiry exactly
once and deactivates the countdown.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..clock import Clock, utcnow


@dataclass(frozen=True)
class CountdownSnapshot:
    duration_sec: int
    remaining_sec: int
    active: bool
    started_at: Optional[datetime]

    @property
    def percentage(self) -> int:
        """Remaining share of the countdown, 0-100."""
        if self.duration_sec <= 0:
            return 0
        return int(round(self.remaining_sec * 100 / self.duration_sec))

    def will_complete_at(self, now: datetime) -> Optional[datetime]:
        if not self.active:
            return None
        return now + timedelta(seconds=self.remaining_sec)


class Countdown:
    def __init__(self, duration_sec: int = 30, clock: Clock = utcnow):
        if duration_sec < 1:
            raise ValueError("countdown duration must be at least 1 second")
        self._clock = clock
        self._lock = threading.Lock()
        self._duration = duration_sec
        self._remaining = duration_sec
        self._active = False
        self._started_at: Optional[datetime] = None

    @property
    def duration_sec(self) -> int:
        return self._duration

    @property
    def remaining_sec(self) -> int:
        with self._lock:
            return self._remaining

    @property
    def active(self) -> bool:
        with self._lock:
            return self._active

    @property
    def started_at(self) -> Optional[datetime]:
        with self._lock:
            return self._started_at

    def start(self) -> None:
        with self._lock:
            self._remaining = self._duration
            self._active = True
            self._started_at = self._clock()

    def stop(self) -> None:
        with self._lock:
            self._active = False

    def reset(self) -> None:
        """Return to full duration without starting."""
        with self._lock:
            self._remaining = self._duration
            self._active = False
            self._started_at = None

    def tick(self) -> bool:
        """Advance one second. Returns True on the expiring tick only."""
        with self._lock:
            if not self._active or self._remaining <= 0:
                return False
            self._remaining -= 1
            if self._remaining == 0:
                self._active = False
                return True
            return False

    def snapshot(self) -> CountdownSnapshot:
        with self._lock:
            return CountdownSnapshot(
                duration_sec=self._duration,
                remaining_sec=self._remaining,
                active=self._active,
                started_at=self._started_at,
            )
