"""Configuration management for git-retime."""

import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, asdict, field

from .interfaces import IConfigManager
from .presets import BUILTIN_PRESETS, DEFAULT_PRESET


DEFAULT_PROTECTED_BRANCHES = ["main", "master", "develop", "production", "staging"]


@dataclass
class TimestampConfig:
    """Time engine configuration."""
    min_gap_seconds: int = 60
    default_preset: str = DEFAULT_PRESET


@dataclass
class SafetyConfig:
    """Backup and protected-branch configuration."""
    protected_branches: List[str] = field(default_factory=lambda: list(DEFAULT_PROTECTED_BRANCHES))
    backup_ref_prefix: str = "refs/retime-backup"
    confirm_protected: bool = True


@dataclass
class DisplayConfig:
    """Display and UI configuration."""
    use_fzf: bool = True
    ascii_glyphs: bool = False
    show_tabs: bool = True


@dataclass
class RetimeConfig:
    """Complete configuration for git-retime."""
    timestamps: TimestampConfig
    safety: SafetyConfig
    display: DisplayConfig

    def __init__(self):
        self.timestamps = TimestampConfig()
        self.safety = SafetyConfig()
        self.display = DisplayConfig()


class ConfigManager(IConfigManager):
    """Manages configuration loading, saving, and validation."""

    CONFIG_DIR_NAME = ".git-retime"
    DEFAULT_CONFIG_NAME = "config.yml"

    def __init__(self, project_root: Optional[Path] = None):
        self.project_root = project_root or Path.cwd()
        self.config_dir = self.project_root / self.CONFIG_DIR_NAME
        self.config_path = self.config_dir / self.DEFAULT_CONFIG_NAME

    def load_config(self, config_path: Optional[Path] = None) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        path = config_path or self.config_path

        if not path.exists():
            return self.get_default_config()

        try:
            with open(path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}

            # Merge with defaults to ensure all keys are present
            return self._merge_configs(self.get_default_config(), config_data)
        except (OSError, yaml.YAMLError) as e:
            print(f"Warning: Failed to load config from {path}: {e}")
            return self.get_default_config()

    def save_config(self, config: Dict[str, Any], config_path: Optional[Path] = None) -> bool:
        """Save configuration to YAML file."""
        path = config_path or self.config_path

        try:
            path.parent.mkdir(parents=True, exist_ok=True)

            with open(path, 'w', encoding='utf-8') as f:
                yaml.dump(config, f, default_flow_style=False, indent=2)

            return True
        except OSError as e:
            print(f"Error: Failed to save config to {path}: {e}")
            return False

    def get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values."""
        default_config = RetimeConfig()
        return {
            'timestamps': asdict(default_config.timestamps),
            'safety': asdict(default_config.safety),
            'display': asdict(default_config.display),
            'presets': {},
        }

    def validate_config(self, config: Dict[str, Any]) -> List[str]:
        """Validate configuration and return any errors."""
        errors = []

        presets = config.get('presets') or {}
        if not isinstance(presets, dict):
            errors.append("presets must be a mapping of name to preset settings")
            presets = {}

        # Validate timestamp config
        timestamps = config.get('timestamps', {})
        min_gap = timestamps.get('min_gap_seconds', 60)
        if not isinstance(min_gap, int) or isinstance(min_gap, bool) or min_gap < 1:
            errors.append("timestamps.min_gap_seconds must be a positive integer")

        default_preset = timestamps.get('default_preset', DEFAULT_PRESET)
        if default_preset not in BUILTIN_PRESETS and default_preset not in presets:
            errors.append(f"timestamps.default_preset is not a known preset: {default_preset}")

        # Validate safety config
        safety = config.get('safety', {})
        protected = safety.get('protected_branches', [])
        if not isinstance(protected, list) or not all(isinstance(b, str) for b in protected):
            errors.append("safety.protected_branches must be a list of branch names")

        prefix = safety.get('backup_ref_prefix', 'refs/retime-backup')
        if not isinstance(prefix, str) or not prefix.startswith('refs/'):
            errors.append("safety.backup_ref_prefix must start with 'refs/'")

        # Validate user presets
        for name, settings in presets.items():
            if not isinstance(settings, dict):
                errors.append(f"presets.{name} must be a mapping")
                continue
            gap_min = settings.get('gap_min', 0)
            gap_max = settings.get('gap_max', 0)
            if not isinstance(gap_min, int) or not isinstance(gap_max, int) or gap_min < 0:
                errors.append(f"presets.{name}.gap_min/gap_max must be non-negative integers")
            elif gap_max < gap_min:
                errors.append(f"presets.{name}.gap_max must be >= gap_min")

            window = settings.get('hour_window')
            if window is not None:
                if (not isinstance(window, list) or len(window) != 2
                        or not all(isinstance(h, int) and 0 <= h <= 23 for h in window)
                        or window[0] == window[1]):
                    errors.append(f"presets.{name}.hour_window must be two different hours in 0-23")

        return errors

    def _merge_configs(self, default: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge user config with default config."""
        result = default.copy()

        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def create_default_config_file(self) -> bool:
        """Create a default configuration file."""
        return self.save_config(self.get_default_config())

    def get_config_path(self) -> Path:
        """Get the path to the configuration file."""
        return self.config_path
