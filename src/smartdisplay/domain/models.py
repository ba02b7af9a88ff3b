"""
SmartDisplay Core Models

Value objects exchanged between the core components:
- AlarmMirrorState: normalized HA alarm entity (replaced, never mutated)
- HealthState / FailsafeState: runtime health snapshots
- GuestRequest: single-slot guest access request
- TransitionResult: outcome of a state machine event
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import ArmedMode, MirrorMode, RequestStatus


# =============================================================================
# HA Mirror
# =============================================================================

class AlarmMirrorState(BaseModel):
    """Normalized HA alarm entity state."""
    model_config = ConfigDict(frozen=True)

    raw: str
    mode: str
    armed_mode: str = ArmedMode.NONE.value
    entry_delay_sec: int = Field(default=0, ge=0)
    exit_delay_sec: int = Field(default=0, ge=0)
    triggered: bool = False
    last_changed: datetime

    @model_validator(mode="after")
    def check_consistency(self) -> "AlarmMirrorState":
        if self.triggered and self.mode != MirrorMode.TRIGGERED.value:
            raise ValueError("triggered state must have mode=triggered")
        if self.armed_mode and self.mode != MirrorMode.ARMED.value:
            raise ValueError("armed_mode requires mode=armed")
        return self


@dataclass(frozen=True)
class HACredentials:
    base_url: str
    token: str

    def __repr__(self) -> str:
        return "HACredentials(base_url=<hidden>, token=<hidden>)"


# =============================================================================
# Health / Failsafe
# =============================================================================

@dataclass(frozen=True)
class HealthState:
    consecutive_failures: int
    unreachable: bool
    last_seen_at: Optional[datetime]
    threshold: int


@dataclass(frozen=True)
class FailsafeState:
    active: bool
    explanation: str = ""
    started_at: Optional[datetime] = None
    estimated_recovery_sec: Optional[int] = None


# =============================================================================
# Guest Requests
# =============================================================================

@dataclass
class GuestRequest:
    """Guest access request. Only `pending` may transition."""
    id: str
    target_user: str
    status: RequestStatus
    requested_at: datetime
    expires_at: datetime
    decided_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "target_user": self.target_user,
            "status": self.status.value,
            "requested_at": self.requested_at,
            "expires_at": self.expires_at,
            "decided_at": self.decided_at,
        }


# =============================================================================
# State Machine Results
# =============================================================================

@dataclass
class TransitionResult:
    """Result of a state transition attempt."""
    success: bool
    from_state: str
    to_state: str
    event: str
    reason: str = ""
    detail: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def invalid(cls, state: str, event: str, detail: str = "") -> "TransitionResult":
        return cls(
            success=False,
            from_state=state,
            to_state=state,
            event=event,
            reason="invalid_transition",
            detail=detail or f"{event} not allowed in {state}",
        )
