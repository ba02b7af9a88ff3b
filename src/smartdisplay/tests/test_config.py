"""
Tests for runtime configuration, credentials and the first-boot wizard
"""

import json

import pytest

from smartdisplay.config import EnvCredentials, RuntimeConfig, RuntimeConfigStore
from smartdisplay.errors import ConfigPersistenceError, InvalidSettingsError
from smartdisplay.services.firstboot import FINAL_STEP, FirstBootWizard


class FailingPersistence:
    def __init__(self):
        self.completed = False

    def is_wizard_completed(self) -> bool:
        return self.completed

    def set_wizard_completed(self, completed: bool) -> None:
        raise ConfigPersistenceError("disk full")


# =============================================================================
# Runtime Config Store
# =============================================================================

class TestRuntimeConfigStore:

    def test_defaults_when_missing(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LANGUAGE", raising=False)
        store = RuntimeConfigStore(tmp_path / "runtime.json")
        config = store.get()
        assert config.wizard_completed is False
        assert config.language == "en"
        assert config.arming_countdown_sec == 30

    def test_update_persists(self, tmp_path):
        path = tmp_path / "data" / "runtime.json"
        store = RuntimeConfigStore(path)
        store.update(high_contrast=True, arming_countdown_sec=45)

        on_disk = json.loads(path.read_text())
        assert on_disk["high_contrast"] is True
        assert on_disk["arming_countdown_sec"] == 45

        reloaded = RuntimeConfigStore(path).get()
        assert reloaded.high_contrast is True
        assert reloaded.arming_countdown_sec == 45

    def test_invalid_update_rejected(self):
        store = RuntimeConfigStore(path=None)
        with pytest.raises(InvalidSettingsError) as exc:
            store.update(arming_countdown_sec=0)
        assert exc.value.code == "invalid_settings"
        assert "arming_countdown_sec" in exc.value.message
        assert store.get().arming_countdown_sec == 30

    def test_blank_language_rejected(self, monkeypatch):
        monkeypatch.delenv("LANGUAGE", raising=False)
        store = RuntimeConfigStore(path=None)
        with pytest.raises(InvalidSettingsError):
            store.update(language="  ")
        assert store.get().language == "en"

    def test_corrupt_file_falls_back(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LANGUAGE", raising=False)
        path = tmp_path / "runtime.json"
        path.write_text("{not json")
        assert RuntimeConfigStore(path).get() == RuntimeConfig()

    def test_language_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LANGUAGE", "TR")
        assert RuntimeConfigStore(tmp_path / "runtime.json").get().language == "tr"

    def test_language_env_override_persists_normalized(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LANGUAGE", "DE")
        path = tmp_path / "runtime.json"
        RuntimeConfigStore(path).update(large_text=True)
        assert json.loads(path.read_text())["language"] == "de"

    def test_blank_language_env_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LANGUAGE", "   ")
        assert RuntimeConfigStore(tmp_path / "runtime.json").get().language == "en"

    def test_write_failure_keeps_memory(self, tmp_path):
        blocker = tmp_path / "blocked"
        blocker.write_text("a file, not a directory")
        store = RuntimeConfigStore(blocker / "runtime.json")
        with pytest.raises(ConfigPersistenceError):
            store.update(large_text=True)
        assert store.get().large_text is False

    def test_get_returns_copy(self):
        store = RuntimeConfigStore(path=None)
        config = store.get()
        config.high_contrast = True
        assert store.get().high_contrast is False


class TestEnvCredentials:

    def test_missing(self, monkeypatch):
        monkeypatch.delenv("SMARTDISPLAY_HA_URL", raising=False)
        monkeypatch.delenv("SMARTDISPLAY_HA_TOKEN", raising=False)
        assert EnvCredentials().load() is None

    def test_present(self, monkeypatch):
        monkeypatch.setenv("SMARTDISPLAY_HA_URL", "http://ha.local:8123/")
        monkeypatch.setenv("SMARTDISPLAY_HA_TOKEN", "secret-token")
        creds = EnvCredentials().load()
        assert creds.base_url == "http://ha.local:8123"
        assert "secret-token" not in repr(creds)


# =============================================================================
# First-Boot Wizard
# =============================================================================

class TestFirstBootWizard:

    @pytest.fixture
    def wizard(self):
        return FirstBootWizard(RuntimeConfigStore(path=None))

    def test_starts_at_welcome(self, wizard):
        assert wizard.active() is True
        assert wizard.current_step().id == "welcome"
        assert wizard.steps_remaining() == 5

    def test_walk_forward_and_back(self, wizard):
        for _ in range(4):
            assert wizard.next().ok
        assert wizard.current_step().id == "ready"
        result = wizard.next()
        assert result.ok is False
        assert "final" in result.error
        assert wizard.back().ok
        assert wizard.current_step().id == "alarm_role"

    def test_back_at_first_step(self, wizard):
        result = wizard.back()
        assert result.ok is False
        assert "first step" in result.error

    def test_complete_requires_final_step(self, wizard):
        result = wizard.complete()
        assert result.ok is False
        assert wizard.active() is True

    def test_complete_persists(self):
        store = RuntimeConfigStore(path=None)
        wizard = FirstBootWizard(store)
        for _ in range(FINAL_STEP - 1):
            wizard.next()
        assert wizard.complete().ok
        assert wizard.active() is False
        assert wizard.steps_remaining() == 0
        assert store.is_wizard_completed() is True
        assert FirstBootWizard(store).active() is False

    def test_persistence_failure_stays_at_final_step(self):
        wizard = FirstBootWizard(FailingPersistence())
        for _ in range(FINAL_STEP - 1):
            wizard.next()
        result = wizard.complete()
        assert result.ok is False
        assert result.error == "failed to save completion"
        assert wizard.active() is True
        assert wizard.current_step().order == FINAL_STEP

    def test_inactive_rejects_navigation(self):
        wizard = FirstBootWizard(RuntimeConfigStore(path=None, initial=RuntimeConfig(wizard_completed=True)))
        assert wizard.next().ok is False
        assert wizard.back().ok is False

    def test_save_completion_false_reopens(self):
        store = RuntimeConfigStore(path=None, initial=RuntimeConfig(wizard_completed=True))
        wizard = FirstBootWizard(store)
        wizard.save_completion(False)
        assert wizard.active() is True
        assert wizard.current_step().order == 1
        assert store.is_wizard_completed() is False

    def test_status_listing(self, wizard):
        wizard.next()
        status = wizard.all_steps_status()
        assert status["current_step"]["id"] == "language"
        assert [s["completed"] for s in status["steps"]] == [True, False, False, False, False]
        assert [s["current"] for s in status["steps"]] == [False, True, False, False, False]
