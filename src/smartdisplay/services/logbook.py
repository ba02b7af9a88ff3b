"""Logbook capability and a bounded in-memory implementation."""

import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import List, Protocol

from ..clock import Clock, utcnow


@dataclass(frozen=True)
class LogbookEntry:
    timestamp: datetime
    category: str
    message: str


class Logbook(Protocol):
    def record(self, category: str, message: str) -> None:
        ...

    def entries(self, limit: int = 50) -> List[LogbookEntry]:
        ...


class MemoryLogbook:
    def __init__(self, max_entries: int = 500, clock: Clock = utcnow):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: deque = deque(maxlen=max_entries)

    def record(self, category: str, message: str) -> None:
        with self._lock:
            self._entries.append(LogbookEntry(self._clock(), category, message))

    def entries(self, limit: int = 50) -> List[LogbookEntry]:
        """Most recent first."""
        with self._lock:
            items = list(self._entries)
        return list(reversed(items))[:limit]
