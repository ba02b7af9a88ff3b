"""
Shared test fixtures - fake clock, fake timers, recording notifier
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from smartdisplay.config import CoreConfig, RuntimeConfig, RuntimeConfigStore, StaticCredentials
from smartdisplay.domain.enums import NotificationType
from smartdisplay.services.coordinator import Coordinator
from smartdisplay.services.guest_request import run_inline


T0 = datetime(2025, 1, 15, 10, 30, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeTimer:
    """ExpiryTimer stand-in that only fires when told to."""
    instances: List["FakeTimer"] = []

    def __init__(self):
        self.delay: Optional[float] = None
        self.callback: Optional[Callable[[], None]] = None
        self.cancelled = False
        FakeTimer.instances.append(self)

    def start(self, delay_sec: float, callback: Callable[[], None]) -> None:
        self.delay = delay_sec
        self.callback = callback

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled and self.callback:
            self.callback()


class RecordingNotifier:
    def __init__(self):
        self.sent: List[Tuple[NotificationType, Dict[str, Any]]] = []

    async def notify(self, ntype: NotificationType, payload: Dict[str, Any]) -> bool:
        self.sent.append((ntype, payload))
        return True

    @property
    def types(self) -> List[NotificationType]:
        return [t for t, _ in self.sent]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_timers():
    FakeTimer.instances = []
    yield FakeTimer
    FakeTimer.instances = []


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def store():
    """Memory-only runtime config with setup already completed."""
    return RuntimeConfigStore(path=None, initial=RuntimeConfig(wizard_completed=True))


@pytest.fixture
def fresh_store():
    """Memory-only runtime config for a first boot."""
    return RuntimeConfigStore(path=None, initial=RuntimeConfig(wizard_completed=False))


def _build_coordinator(store, clock, notifier, **kwargs) -> Coordinator:
    return Coordinator(
        config=kwargs.pop("config", CoreConfig()),
        config_store=store,
        credentials=kwargs.pop("credentials", StaticCredentials(None)),
        notifier=notifier,
        clock=clock,
        callback_runner=run_inline,
        timer_factory=FakeTimer,
        **kwargs,
    )


@pytest.fixture
def make_coordinator(store, clock, notifier, fake_timers):
    """Coordinator factory; keyword overrides go straight to Coordinator."""
    def factory(**kwargs) -> Coordinator:
        return _build_coordinator(
            kwargs.pop("store", store), clock, kwargs.pop("notifier", notifier), **kwargs,
        )
    return factory


@pytest.fixture
def coordinator(make_coordinator):
    return make_coordinator()


@pytest.fixture
def firstboot_coordinator(make_coordinator, fresh_store):
    return make_coordinator(store=fresh_store)
