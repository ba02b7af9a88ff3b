"""
Owner notifications.

Notifier capability plus two implementations:
- LoggingNotifier: default, writes notifications to the log
- HANotifier: fires `smartdisplay_<type>` events on the HA REST API
  (POST /api/events/<event_type>) with retries
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Protocol

import aiohttp

from ..config import CredentialsProvider
from ..domain.enums import NotificationType

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def notify(self, ntype: NotificationType, payload: Dict[str, Any]) -> bool:
        ...


class LoggingNotifier:
    """Stub notifier used when no HA event bus is configured."""

    def __init__(self):
        self.sent_count = 0

    async def notify(self, ntype: NotificationType, payload: Dict[str, Any]) -> bool:
        self.sent_count += 1
        logger.info("[NOTIFY] %s %s", ntype.value, payload)
        return True


class HANotifier:
    """
    HA event notifier

    - POSTs each notification as an HA event
    - Retries (3 attempts) with linear backoff
    - Timeout per attempt
    """

    def __init__(
        self,
        credentials: CredentialsProvider,
        event_prefix: str = "smartdisplay_",
        timeout: int = 5,
        max_retries: int = 3,
        backoff_sec: float = 1.0,
    ):
        self.credentials = credentials
        self.event_prefix = event_prefix
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_sec = backoff_sec

        self.success_count = 0
        self.failure_count = 0
        self.last_error: Optional[str] = None

    def event_type(self, ntype: NotificationType) -> str:
        return f"{self.event_prefix}{ntype.value.lower()}"

    async def notify(self, ntype: NotificationType, payload: Dict[str, Any]) -> bool:
        creds = self.credentials.load()
        if creds is None:
            logger.debug("[NOTIFY] HA not configured, dropping %s", ntype.value)
            return False

        url = f"{creds.base_url}/api/events/{self.event_type(ntype)}"
        headers = {
            "Authorization": f"Bearer {creds.token}",
            "Content-Type": "application/json",
        }

        for attempt in range(1, self.max_retries + 1):
            try:
                async with aiohttp.ClientSession() as session:
                    async with session.post(
                        url,
                        json=payload,
                        headers=headers,
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ) as response:
                        if response.status in (200, 201):
                            self.success_count += 1
                            return True
                        error_msg = f"HTTP {response.status}"
            except asyncio.TimeoutError:
                error_msg = f"timeout after {self.timeout}s"
            except aiohttp.ClientError as e:
                error_msg = type(e).__name__

            if attempt == self.max_retries:
                self.failure_count += 1
                self.last_error = error_msg
                logger.warning("[NOTIFY] %s failed: %s", ntype.value, error_msg)
                return False
            logger.info("[NOTIFY] %s retry %d/%d: %s", ntype.value, attempt, self.max_retries, error_msg)
            await asyncio.sleep(self.backoff_sec * attempt)

        return False
