"""
SmartDisplay Configuration

Two layers:
- CoreConfig: process-level knobs (cadences, thresholds), fixed at startup
- RuntimeConfig: user-facing settings persisted as JSON by RuntimeConfigStore

Credentials for HA come from a CredentialsProvider; encryption at rest is
owned by the platform secret store, not by this module.
"""

import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol

from pydantic import BaseModel, Field, ValidationError, field_validator

from .domain.models import HACredentials
from .errors import ConfigPersistenceError, InvalidSettingsError

logger = logging.getLogger(__name__)


DEFAULT_RUNTIME_PATH = Path("data/runtime.json")


# =============================================================================
# Process Configuration
# =============================================================================

@dataclass
class CoreConfig:
    """Process configuration for the coordinator and its loops."""
    # Health monitor (HA considered unreachable after N consecutive failures)
    failure_threshold: int = 3
    health_interval_sec: float = 5.0
    ha_timeout_sec: float = 5.0
    alarm_entity_id: str = "alarm_control_panel.alarmo"

    # Local loops
    countdown_tick_sec: float = 1.0
    guest_sweep_sec: float = 1.0

    # How long the guest screen keeps showing guest_exit
    guest_exit_display_sec: int = 120

    # Default PINs, stored hashed by the role resolver
    admin_pin: str = "1234"
    user_pin: str = "5678"

    @classmethod
    def from_env(cls) -> "CoreConfig":
        config = cls()
        if os.environ.get("SMARTDISPLAY_FAILURE_THRESHOLD"):
            config.failure_threshold = int(os.environ["SMARTDISPLAY_FAILURE_THRESHOLD"])
        if os.environ.get("SMARTDISPLAY_HEALTH_INTERVAL"):
            config.health_interval_sec = float(os.environ["SMARTDISPLAY_HEALTH_INTERVAL"])
        if os.environ.get("SMARTDISPLAY_ADMIN_PIN"):
            config.admin_pin = os.environ["SMARTDISPLAY_ADMIN_PIN"]
        if os.environ.get("SMARTDISPLAY_USER_PIN"):
            config.user_pin = os.environ["SMARTDISPLAY_USER_PIN"]
        return config


# =============================================================================
# Runtime Configuration
# =============================================================================

class RuntimeConfig(BaseModel):
    """Persisted runtime settings (data/runtime.json)."""
    wizard_completed: bool = False

    # Locale & accessibility
    language: str = "en"
    timezone: str = "UTC"
    high_contrast: bool = False
    large_text: bool = False
    reduced_motion: bool = False
    voice_enabled: bool = False

    # HA connection flags (credentials are not stored here)
    ha_connected: bool = False
    ha_last_tested_at: Optional[datetime] = None

    # Timing
    arming_countdown_sec: int = Field(default=30, ge=1, le=600)
    guest_request_timeout_sec: int = Field(default=60, ge=5, le=3600)
    guest_approval_minutes: int = Field(default=30, ge=1, le=24 * 60)
    home_active_timeout_sec: int = Field(default=300, ge=10, le=3600)

    @field_validator('language')
    @classmethod
    def validate_language(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError('language must not be empty')
        return v


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        field = ".".join(str(p) for p in item.get("loc", ())) or "settings"
        parts.append(f"{field}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)


class RuntimeConfigStore:
    """Single-writer / multi-reader JSON store for RuntimeConfig.

    With `path=None` the store is memory-only.
    """

    def __init__(self, path: Optional[Path] = DEFAULT_RUNTIME_PATH, initial: Optional[RuntimeConfig] = None):
        self.path = Path(path) if path is not None else None
        self._lock = threading.Lock()
        self._config = initial or self._load()

    def _load(self) -> RuntimeConfig:
        if self.path is None or not self.path.exists():
            return self._apply_env(RuntimeConfig())
        try:
            config = RuntimeConfig.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("[CONFIG] unreadable runtime config %s, using defaults: %s", self.path, e)
            config = RuntimeConfig()
        return self._apply_env(config)

    @staticmethod
    def _apply_env(config: RuntimeConfig) -> RuntimeConfig:
        language = os.environ.get("LANGUAGE")
        if not language:
            return config
        try:
            return RuntimeConfig.model_validate({**config.model_dump(), "language": language})
        except ValidationError:
            logger.warning("[CONFIG] ignoring invalid LANGUAGE override")
            return config

    def get(self) -> RuntimeConfig:
        with self._lock:
            return self._config.model_copy()

    def update(self, **changes) -> RuntimeConfig:
        """Validate, persist and publish a change set.

        Raises InvalidSettingsError for rejected values and
        ConfigPersistenceError if the file cannot be written; the in-memory
        config is left unchanged in both cases.
        """
        with self._lock:
            try:
                candidate = RuntimeConfig.model_validate({**self._config.model_dump(), **changes})
            except ValidationError as e:
                raise InvalidSettingsError(_describe(e)) from e
            self._write(candidate)
            self._config = candidate
            return candidate.model_copy()

    def _write(self, config: RuntimeConfig) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".runtime-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(config.model_dump_json(indent=2))
            os.replace(tmp_name, self.path)
        except OSError as e:
            raise ConfigPersistenceError(f"failed to save runtime config: {e}") from e

    # Wizard persistence capability

    def is_wizard_completed(self) -> bool:
        return self.get().wizard_completed

    def set_wizard_completed(self, completed: bool) -> None:
        self.update(wizard_completed=completed)


# =============================================================================
# HA Credentials
# =============================================================================

class CredentialsProvider(Protocol):
    def load(self) -> Optional[HACredentials]:
        ...


class EnvCredentials:
    """Reads HA credentials from SMARTDISPLAY_HA_URL / SMARTDISPLAY_HA_TOKEN."""

    def __init__(self, url_var: str = "SMARTDISPLAY_HA_URL", token_var: str = "SMARTDISPLAY_HA_TOKEN"):
        self.url_var = url_var
        self.token_var = token_var

    def load(self) -> Optional[HACredentials]:
        url = os.environ.get(self.url_var, "").strip()
        token = os.environ.get(self.token_var, "").strip()
        if not url or not token:
            return None
        return HACredentials(base_url=url.rstrip("/"), token=token)


class StaticCredentials:
    def __init__(self, credentials: Optional[HACredentials] = None):
        self.credentials = credentials

    def load(self) -> Optional[HACredentials]:
        return self.credentials
