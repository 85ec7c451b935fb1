"""
Tests for MonitorSettings and SettingsStore.
"""

import pytest
from pydantic import ValidationError

from camwatch.monitor.settings import MonitorSettings, SettingsStore


class TestMonitorSettings:
    def test_defaults(self):
        settings = MonitorSettings()
        assert settings.mirrored is True
        assert settings.auto_record_enabled is False
        assert settings.notification_volume == 0.8
        assert settings.detection_interval == pytest.approx(0.1)
        assert settings.auto_stop_duration == pytest.approx(30.0)
        assert settings.target_class == "person"

    def test_frozen(self):
        settings = MonitorSettings()
        with pytest.raises(ValidationError):
            settings.mirrored = False

    @pytest.mark.parametrize(
        "changes",
        [
            {"notification_volume": 1.5},
            {"notification_volume": -0.1},
            {"detection_interval_ms": 0},
            {"auto_stop_duration_ms": -5},
            {"target_class": "  "},
        ],
    )
    def test_invalid_values(self, changes):
        with pytest.raises(ValidationError):
            MonitorSettings(**changes)


class TestSettingsStore:
    def test_update_replaces_value(self):
        store = SettingsStore()
        before = store.snapshot()
        after = store.update(notification_volume=0.5, mirrored=False)

        assert store.snapshot() is after
        # Earlier snapshots are untouched
        assert before.notification_volume == 0.8
        assert before.mirrored is True
        assert after.notification_volume == 0.5
        assert after.mirrored is False

    def test_update_validates(self):
        store = SettingsStore()
        with pytest.raises(ValidationError):
            store.update(notification_volume=2.0)
        assert store.snapshot().notification_volume == 0.8

    def test_update_unknown_field(self):
        store = SettingsStore()
        with pytest.raises(KeyError):
            store.update(brightness=3)

    def test_toggle(self):
        store = SettingsStore()
        assert store.toggle("auto_record_enabled") is True
        assert store.snapshot().auto_record_enabled is True
        assert store.toggle("auto_record_enabled") is False

    def test_toggle_non_boolean(self):
        store = SettingsStore()
        with pytest.raises(TypeError):
            store.toggle("notification_volume")

    def test_on_change(self):
        store = SettingsStore()
        seen = []
        store.on_change(seen.append)
        store.update(mirrored=False)
        assert len(seen) == 1
        assert seen[0].mirrored is False
