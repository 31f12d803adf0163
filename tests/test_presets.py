"""Tests for cadence presets."""

import logging
import random
from datetime import datetime

import pytest

from git_retime.core import presets
from git_retime.core.models import CadencePreset
from git_retime.core.presets import BUILTIN_PRESETS, DEFAULT_PRESET, PresetRegistry


class TestBuiltinPresets:
    """Test the built-in preset table."""

    def test_all_presets_present(self):
        """Test that the seven built-in presets exist in menu order."""
        assert list(BUILTIN_PRESETS) == [
            "work-hours", "quick-fix", "deep-work", "irl", "morning", "evening", "night-owl"
        ]
        assert DEFAULT_PRESET == "irl"

    def test_preset_values(self):
        """Test gap ranges and hour windows."""
        assert BUILTIN_PRESETS["work-hours"].hour_window == (9, 17)
        assert BUILTIN_PRESETS["night-owl"].hour_window == (22, 4)
        assert BUILTIN_PRESETS["quick-fix"].hour_window is None
        assert (BUILTIN_PRESETS["deep-work"].gap_min, BUILTIN_PRESETS["deep-work"].gap_max) == (3600, 10800)

    def test_unknown_preset_falls_back(self, caplog):
        """Test that unknown names warn and return the default preset."""
        with caplog.at_level(logging.WARNING):
            preset = presets.get_preset("no-such-preset")
        assert preset.name == DEFAULT_PRESET
        assert "Unknown preset" in caplog.text

    def test_invalid_preset_definition(self):
        """Test that inconsistent presets are rejected."""
        with pytest.raises(ValueError):
            CadencePreset("broken", 100, 50)
        with pytest.raises(ValueError):
            CadencePreset("broken", 10, 50, (9, 9))


class TestApplyPreset:
    """Test timestamp generation from presets."""

    def test_gap_without_window(self):
        """Test that the gap lies in the preset range (seconds rerolled within the minute)."""
        rng = random.Random(10)
        base = 1700000040
        for _ in range(100):
            value = presets.apply_preset("quick-fix", base, rng)
            assert base + 300 - 59 <= value <= base + 900 + 59
            assert value > base

    def test_work_hours_clamps_outside_anchor(self):
        """Test that an anchor outside 9-17 yields a result inside the window."""
        rng = random.Random(11)
        for hour in (0, 3, 6, 18, 21, 23):
            base = int(datetime(2024, 1, 15, hour, 20, 0).timestamp())
            value = presets.apply_preset("work-hours", base, rng)
            assert 9 <= datetime.fromtimestamp(value).hour < 17
            assert value > base

    def test_night_owl_window(self):
        """Test the window that wraps past midnight."""
        rng = random.Random(12)
        base = int(datetime(2024, 1, 15, 13, 0, 0).timestamp())
        for _ in range(20):
            value = presets.apply_preset("night-owl", base, rng)
            hour = datetime.fromtimestamp(value).hour
            assert hour >= 22 or hour < 4
            assert value > base

    def test_sequence_strictly_increasing(self):
        """Test chaining presets always moves forward."""
        rng = random.Random(13)
        for name in BUILTIN_PRESETS:
            previous = int(datetime(2024, 1, 15, 16, 50, 0).timestamp())
            for _ in range(30):
                value = presets.apply_preset(name, previous, rng)
                assert value > previous
                previous = value

    def test_unknown_name_uses_default(self):
        """Test that apply_preset never fails on an unknown name."""
        value = presets.apply_preset("nope", 1700000040, random.Random(14))
        assert value > 1700000040


class TestPresetRegistry:
    """Test built-in plus user-defined presets."""

    def test_custom_preset_from_config(self):
        """Test that config presets are added after the built-ins."""
        registry = PresetRegistry({"standup": {"gap_min": 60, "gap_max": 120,
                                               "hour_window": [10, 11],
                                               "description": "Daily standup"}})
        assert registry.names()[-1] == "standup"
        preset = registry.get("standup")
        assert preset.hour_window == (10, 11)
        assert preset.description == "Daily standup"
        assert "standup" in registry

    def test_unknown_default_reverts(self, caplog):
        """Test that an undefined default falls back to the built-in default."""
        with caplog.at_level(logging.WARNING):
            registry = PresetRegistry(default="missing")
        assert registry.default == DEFAULT_PRESET

    def test_custom_default(self):
        """Test fallback to a configured default preset."""
        registry = PresetRegistry(default="deep-work")
        assert registry.get("missing").name == "deep-work"

    def test_list_presets(self):
        """Test listing built-in presets."""
        assert [p.name for p in presets.list_presets()] == list(BUILTIN_PRESETS)
