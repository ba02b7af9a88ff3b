"""
First-boot wizard.

Fixed five-step flow: welcome → language → ha_check → alarm_role → ready.
While active, the wizard blocks the alarm screen, the guest screen and
most of the menu. Completion is persisted through the runtime config.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Protocol

from ..errors import ConfigPersistenceError

logger = logging.getLogger(__name__)


class WizardPersistence(Protocol):
    def is_wizard_completed(self) -> bool:
        ...

    def set_wizard_completed(self, completed: bool) -> None:
        ...


@dataclass(frozen=True)
class FirstBootStep:
    id: str
    title: str
    order: int


STEPS: List[FirstBootStep] = [
    FirstBootStep("welcome", "Welcome", 1),
    FirstBootStep("language", "Language Confirmation", 2),
    FirstBootStep("ha_check", "Home Assistant Check", 3),
    FirstBootStep("alarm_role", "Alarm Role Explanation", 4),
    FirstBootStep("ready", "Ready", 5),
]
FINAL_STEP = len(STEPS)


@dataclass(frozen=True)
class StepResult:
    ok: bool
    error: str = ""


class FirstBootWizard:
    def __init__(self, persistence: WizardPersistence):
        self._persistence = persistence
        self._lock = threading.Lock()

        completed = persistence.is_wizard_completed()
        self._active = not completed
        self._current = FINAL_STEP if completed else 1
        self._completed: Dict[str, bool] = {step.id: completed for step in STEPS}

    def active(self) -> bool:
        with self._lock:
            return self._active

    def current_step(self) -> FirstBootStep:
        with self._lock:
            return STEPS[self._current - 1]

    def steps_remaining(self) -> int:
        with self._lock:
            if not self._active:
                return 0
            return FINAL_STEP - self._current + 1

    def all_steps_status(self) -> dict:
        with self._lock:
            current = STEPS[self._current - 1]
            return {
                "active": self._active,
                "current_step": {"id": current.id, "order": current.order, "title": current.title},
                "steps": [
                    {
                        "id": step.id,
                        "title": step.title,
                        "order": step.order,
                        "completed": self._completed[step.id],
                        "current": self._active and step.order == self._current,
                    }
                    for step in STEPS
                ],
            }

    def next(self) -> StepResult:
        with self._lock:
            if not self._active:
                return StepResult(False, "first boot is not active")
            if self._current >= FINAL_STEP:
                return StepResult(False, "already at final step")
            self._completed[STEPS[self._current - 1].id] = True
            self._current += 1
            logger.info("[FIRSTBOOT] advanced to step %d (%s)", self._current, STEPS[self._current - 1].id)
            return StepResult(True)

    def back(self) -> StepResult:
        with self._lock:
            if not self._active:
                return StepResult(False, "first boot is not active")
            if self._current <= 1:
                return StepResult(False, "already at first step")
            self._current -= 1
            return StepResult(True)

    def complete(self) -> StepResult:
        """Finish the wizard. On a persistence failure it stays at step 5."""
        with self._lock:
            if not self._active:
                return StepResult(False, "first boot is not active")
            if self._current != FINAL_STEP:
                return StepResult(False, f"cannot complete from step {self._current}")
            try:
                self._persistence.set_wizard_completed(True)
            except ConfigPersistenceError as e:
                logger.error("[FIRSTBOOT] failed to persist completion: %s", e)
                return StepResult(False, "failed to save completion")
            self._finish()
            logger.info("[FIRSTBOOT] wizard completed")
            return StepResult(True)

    def save_completion(self, completed: bool) -> None:
        """Persist the completion flag and align the wizard with it.

        Saving False re-opens the wizard at the first step.
        """
        with self._lock:
            self._persistence.set_wizard_completed(completed)
            if completed:
                self._finish()
            else:
                self._active = True
                self._current = 1
                self._completed = {step.id: False for step in STEPS}

    def _finish(self) -> None:
        self._current = FINAL_STEP
        self._completed = {step.id: True for step in STEPS}
        self._active = False
