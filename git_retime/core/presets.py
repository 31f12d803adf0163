"""Cadence presets: realistic commit spacing for generated rewrite plans."""

import logging
import random
from typing import Any, Dict, List, Mapping, Optional

from .models import CadencePreset, Epoch
from . import timeexpr


logger = logging.getLogger(__name__)

DEFAULT_PRESET = "irl"

BUILTIN_PRESETS: Dict[str, CadencePreset] = {
    preset.name: preset for preset in (
        CadencePreset("work-hours", 1800, 7200, (9, 17), "Business hours (9-5), 30m-2h gaps"),
        CadencePreset("quick-fix", 300, 900, None, "Rapid iterations, 5-15m gaps"),
        CadencePreset("deep-work", 3600, 10800, None, "Focused sessions, 1-3h gaps"),
        CadencePreset("irl", 900, 7200, None, "Realistic simulation, 15m-2h gaps"),
        CadencePreset("morning", 600, 3600, (6, 12), "Early bird, 6am-12pm, 10m-1h gaps"),
        CadencePreset("evening", 900, 5400, (18, 23), "After work, 6pm-11pm, 15m-1.5h gaps"),
        CadencePreset("night-owl", 1200, 4800, (22, 4), "Late night, 10pm-4am, 20m-1.3h gaps"),
    )
}


class PresetRegistry:
    """Built-in presets plus any user-defined ones from configuration."""

    def __init__(self, custom: Optional[Mapping[str, Mapping[str, Any]]] = None,
                 default: str = DEFAULT_PRESET):
        self._presets: Dict[str, CadencePreset] = dict(BUILTIN_PRESETS)
        for name, settings in (custom or {}).items():
            self._presets[name] = preset_from_config(name, settings)
        if default not in self._presets:
            logger.warning(f"Default preset '{default}' is not defined, using '{DEFAULT_PRESET}'")
            default = DEFAULT_PRESET
        self.default = default

    def names(self) -> List[str]:
        return list(self._presets)

    def __contains__(self, name: str) -> bool:
        return name in self._presets

    def get(self, name: str) -> CadencePreset:
        """Look up a preset, falling back to the default for unknown names."""
        preset = self._presets.get(name)
        if preset is None:
            logger.warning(f"Unknown preset: {name} (using '{self.default}')")
            return self._presets[self.default]
        return preset

    def apply(self, name: str, base_epoch: Epoch, rng: Optional[random.Random] = None) -> Epoch:
        return next_epoch(self.get(name), base_epoch, rng)


def preset_from_config(name: str, settings: Mapping[str, Any]) -> CadencePreset:
    """Build a preset from a ``presets:`` config entry."""
    window = settings.get('hour_window')
    return CadencePreset(
        name=name,
        gap_min=int(settings.get('gap_min', 900)),
        gap_max=int(settings.get('gap_max', 7200)),
        hour_window=tuple(int(h) for h in window) if window else None,
        description=str(settings.get('description', 'Custom preset')),
    )


def next_epoch(preset: CadencePreset, base_epoch: Epoch,
               rng: Optional[random.Random] = None) -> Epoch:
    """Generate the timestamp following ``base_epoch`` under ``preset``.

    Args:
        preset: Cadence to follow
        base_epoch: Timestamp of the previous commit
        rng: Optional random source

    Returns:
        New epoch inside the preset's hour window (if any), seconds randomized
    """
    r = rng if rng is not None else random
    new_epoch = base_epoch + r.randint(preset.gap_min, preset.gap_max)

    if preset.hour_window is not None:
        start, end = preset.hour_window
        new_epoch = timeexpr.clamp_to_hour_window(new_epoch, start, end, rng)

    new_epoch = timeexpr.randomize_seconds(new_epoch, rng)
    # Clamping may land on an earlier day; move whole days forward instead.
    while new_epoch <= base_epoch:
        new_epoch = timeexpr.day_after(new_epoch)
    return new_epoch


_registry = PresetRegistry()


def get_preset(name: str) -> CadencePreset:
    """Return a built-in preset; unknown names warn and fall back to the default."""
    return _registry.get(name)


def apply_preset(name: str, base_epoch: Epoch, rng: Optional[random.Random] = None) -> Epoch:
    """Generate the next timestamp after ``base_epoch`` using a built-in preset."""
    return _registry.apply(name, base_epoch, rng)


def list_presets() -> List[CadencePreset]:
    return list(BUILTIN_PRESETS.values())
