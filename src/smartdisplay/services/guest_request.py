"""
Guest Access Request Manager

Single-slot guest request store:
- At most one request may be pending at a time
- Each request expires at requested_at + timeout unless approved/rejected
- Approve/reject cancel the expiry timer and fire callbacks off-thread
- When the expiry timer races a decision, the decision wins (status is
  re-checked under the manager lock)
"""

import logging
import threading
import time
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..clock import Clock, utcnow
from ..domain.enums import RequestStatus
from ..domain.models import GuestRequest
from ..errors import AlreadyPendingError, RequestNotFoundError, RequestNotPendingError

logger = logging.getLogger(__name__)


RequestCallback = Callable[[GuestRequest], None]
CallbackRunner = Callable[[RequestCallback, GuestRequest], None]


def run_in_thread(callback: RequestCallback, request: GuestRequest) -> None:
    """Default runner: callbacks never block the approve/reject caller."""
    threading.Thread(
        target=_safe_call, args=(callback, request),
        name=f"guest-cb-{request.id}", daemon=True,
    ).start()


def run_inline(callback: RequestCallback, request: GuestRequest) -> None:
    """Synchronous runner, for deterministic wiring in tests and tools."""
    _safe_call(callback, request)


def _safe_call(callback: RequestCallback, request: GuestRequest) -> None:
    try:
        callback(request)
    except Exception:
        logger.exception("[GUEST] callback failed for request %s", request.id)


class ExpiryTimer:
    """Background timer that fires once unless cancelled."""

    def __init__(self):
        self._timer_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    def start(self, delay_sec: float, callback: Callable[[], None]) -> None:
        self.cancel()
        self._stop_event = threading.Event()

        self._timer_thread = threading.Thread(
            target=self._run, args=(self._stop_event, delay_sec, callback), daemon=True,
        )
        self._timer_thread.start()

    @staticmethod
    def _run(stop_event: threading.Event, delay_sec: float, callback: Callable[[], None]) -> None:
        if stop_event.wait(timeout=delay_sec):
            return  # cancelled
        callback()

    def cancel(self) -> None:
        self._stop_event.set()
        self._timer_thread = None


class GuestRequestManager:
    """Owns the active guest request and its expiry timer."""

    def __init__(
        self,
        timeout_sec: int = 60,
        clock: Clock = utcnow,
        callback_runner: CallbackRunner = run_in_thread,
        timer_factory: Callable[[], ExpiryTimer] = ExpiryTimer,
    ):
        self.timeout_sec = timeout_sec
        self._clock = clock
        self._run_callback = callback_runner
        self._timer_factory = timer_factory
        self._lock = threading.Lock()

        self._active: Optional[GuestRequest] = None
        self._timer: Optional[ExpiryTimer] = None
        self._on_approved: Optional[RequestCallback] = None
        self._on_rejected: Optional[RequestCallback] = None
        self._on_expired: Optional[RequestCallback] = None

    # -------------------------------------------------------------------------
    # Callbacks
    # -------------------------------------------------------------------------

    def set_on_approved(self, callback: Optional[RequestCallback]) -> None:
        self._on_approved = callback

    def set_on_rejected(self, callback: Optional[RequestCallback]) -> None:
        self._on_rejected = callback

    def set_on_expired(self, callback: Optional[RequestCallback]) -> None:
        self._on_expired = callback

    def _fire(self, callback: Optional[RequestCallback], request: GuestRequest) -> None:
        if callback is not None:
            self._run_callback(callback, request)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def create(self, target_user: str = "owner") -> GuestRequest:
        """Create a new pending request. Raises AlreadyPendingError."""
        expired = self._expire_overdue()
        try:
            with self._lock:
                if self._active is not None and self._active.is_pending:
                    raise AlreadyPendingError(self._active.id)

                now = self._clock()
                request = GuestRequest(
                    id=f"greq-{time.time_ns()}",
                    target_user=target_user,
                    status=RequestStatus.PENDING,
                    requested_at=now,
                    expires_at=now + timedelta(seconds=self.timeout_sec),
                )
                self._active = request
                self._stop_timer()
                self._timer = self._timer_factory()
                self._timer.start(self.timeout_sec, lambda rid=request.id: self._expire(rid))
                logger.info("[GUEST] request %s created (timeout %ss)", request.id, self.timeout_sec)
                return replace(request)
        finally:
            if expired is not None:
                self._fire(self._on_expired, expired)

    def active(self) -> Optional[GuestRequest]:
        """Return the current request (any status), or None."""
        expired = self._expire_overdue()
        if expired is not None:
            self._fire(self._on_expired, expired)
        with self._lock:
            return replace(self._active) if self._active is not None else None

    def pending(self) -> Optional[GuestRequest]:
        """Return the current request only while it is pending."""
        request = self.active()
        return request if request is not None and request.is_pending else None

    def get(self, request_id: str) -> GuestRequest:
        request = self.active()
        if request is None or request.id != request_id:
            raise RequestNotFoundError(request_id)
        return request

    def approve(self, request_id: str) -> GuestRequest:
        request = self._decide(request_id, RequestStatus.APPROVED)
        logger.info("[GUEST] request %s approved", request_id)
        self._fire(self._on_approved, request)
        return request

    def reject(self, request_id: str) -> GuestRequest:
        request = self._decide(request_id, RequestStatus.REJECTED)
        logger.info("[GUEST] request %s rejected", request_id)
        self._fire(self._on_rejected, request)
        return request

    def clear(self) -> None:
        with self._lock:
            self._stop_timer()
            self._active = None

    def sweep(self, now: Optional[datetime] = None) -> Optional[GuestRequest]:
        """Expire the pending request if its deadline has passed."""
        expired = self._expire_overdue(now)
        if expired is not None:
            self._fire(self._on_expired, expired)
        return expired

    def shutdown(self) -> None:
        with self._lock:
            self._stop_timer()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _decide(self, request_id: str, status: RequestStatus) -> GuestRequest:
        expired = self._expire_overdue()
        if expired is not None:
            self._fire(self._on_expired, expired)
        with self._lock:
            if self._active is None or self._active.id != request_id:
                raise RequestNotFoundError(request_id)
            if not self._active.is_pending:
                raise RequestNotPendingError(request_id, self._active.status.value)
            self._stop_timer()
            self._active.status = status
            self._active.decided_at = self._clock()
            return replace(self._active)

    def _expire(self, request_id: str) -> None:
        """Timer callback. No-op unless the request is still pending."""
        with self._lock:
            if self._active is None or self._active.id != request_id or not self._active.is_pending:
                return
            expired = self._mark_expired()
        self._fire(self._on_expired, expired)

    def _expire_overdue(self, now: Optional[datetime] = None) -> Optional[GuestRequest]:
        now = now or self._clock()
        with self._lock:
            if self._active is None or not self._active.is_pending:
                return None
            if now < self._active.expires_at:
                return None
            return self._mark_expired()

    def _mark_expired(self) -> GuestRequest:
        self._stop_timer()
        self._active.status = RequestStatus.EXPIRED
        self._active.decided_at = self._clock()
        logger.info("[GUEST] request %s expired", self._active.id)
        return replace(self._active)

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
