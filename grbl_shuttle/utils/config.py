"""Pendant configuration management.

This module handles loading, saving, and validating the pendant
configuration with atomic file operations and automatic backup.
"""

import copy
import json
import os
import sys
import shutil
import logging
from typing import Dict, Any, List, Optional
from pathlib import Path

from .constants import (
    AXES,
    BAUD_DEFAULT,
    CONFIG_BACKUP_SUFFIX,
    CONFIG_DIR_ENV,
    CONFIG_FILENAME,
    CONFIG_TEMP_SUFFIX,
    HARD_MAX_ACC,
    HARD_MAX_FEED,
    HOLD_MS_DEFAULT,
    LATENCY_DEFAULT,
    PLANNER_BLOCKS_DEFAULT,
    STATUS_POLL_DEFAULT,
    STOPPING_BONUS_DEFAULT,
)
from .exceptions import (
    ConfigLoadError,
    ConfigSaveError,
    ConfigValidationError,
    InvalidParameterError,
)
from .validation import (
    validate_baud_rate,
    validate_button_role,
    validate_non_negative,
    validate_positive,
    validate_step_distances,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "baud_rate": BAUD_DEFAULT,
    "buttons": {
        "0": "X",
        "1": "Y",
        "2": "Z",
        "3": "step",
        "4": "probe",
    },
    "fine_probe_feedrate": 20.0,
    "hard_max_acc": dict(HARD_MAX_ACC),
    "hard_max_feed": dict(HARD_MAX_FEED),
    "hold_ms": HOLD_MS_DEFAULT,
    "joystick": {
        "index": 0,
        "jog_axis": 1,
        "shuttle_axis": 0,
    },
    "latency": LATENCY_DEFAULT,
    "planner_blocks": PLANNER_BLOCKS_DEFAULT,
    "plate_thickness": 10.0,
    "port": "",
    "probe_feedrate": 100.0,
    "reverse_x": False,
    "reverse_y": False,
    "reverse_z": False,
    "status_poll_interval": STATUS_POLL_DEFAULT,
    "step_distances": [0.01, 0.1, 1.0, 10.0],
    "stopping_bonus": STOPPING_BONUS_DEFAULT,
}


# Mappings a saved file replaces outright instead of merging into the defaults
_REPLACED_KEYS = frozenset({"buttons"})


def _deep_merge_defaults(defaults: Dict[str, Any], loaded: Dict[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    for key, default_val in defaults.items():
        if key in loaded:
            loaded_val = loaded[key]
            if (
                isinstance(default_val, dict)
                and isinstance(loaded_val, dict)
                and key not in _REPLACED_KEYS
            ):
                merged[key] = _deep_merge_defaults(default_val, loaded_val)
            else:
                merged[key] = loaded_val
        else:
            merged[key] = copy.deepcopy(default_val)
    for key, loaded_val in loaded.items():
        if key not in merged:
            merged[key] = loaded_val
    return merged


def get_default_config_dir() -> str:
    """Get default directory for configuration storage.

    Returns:
        Path to configuration directory
    """
    env_dir = os.getenv(CONFIG_DIR_ENV)
    if env_dir:
        return env_dir

    if sys.platform.startswith("win"):
        base = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA")
    else:
        base = os.getenv("XDG_CONFIG_HOME")

    if not base:
        base = os.path.expanduser("~")

    return os.path.join(base, "GrblShuttle")


def get_config_path() -> str:
    """Get path to the configuration file.

    Creates the directory if it doesn't exist and falls back to the home
    directory when creation fails.

    Returns:
        Full path to configuration file
    """
    base_dir = get_default_config_dir()

    try:
        os.makedirs(base_dir, exist_ok=True)
    except OSError as e:
        logger.warning(f"Failed to create config directory: {e}")
        base_dir = os.path.join(os.path.expanduser("~"), ".grbl_shuttle")
        try:
            os.makedirs(base_dir, exist_ok=True)
        except OSError:
            base_dir = os.getcwd()

    return os.path.join(base_dir, CONFIG_FILENAME)


class PendantConfig:
    """Pendant configuration manager.

    Example:
        config = PendantConfig()
        config.load()
        config.set("reverse_z", True)
        config.save()
    """

    def __init__(self, filepath: Optional[str] = None):
        self.filepath = filepath or get_config_path()
        self.data: Dict[str, Any] = self._get_defaults()
        logger.info(f"Config file: {self.filepath}")

    def _get_defaults(self) -> Dict[str, Any]:
        return copy.deepcopy(DEFAULT_CONFIG)

    def load(self) -> bool:
        """Load configuration from file.

        Returns:
            True if loaded successfully, False if no file exists

        Raises:
            ConfigLoadError: If the file exists but cannot be read or parsed
        """
        if not os.path.exists(self.filepath):
            logger.info("No config file found, using defaults")
            return False

        try:
            with open(self.filepath, "r", encoding="utf-8") as f:
                loaded_data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in config file: {e}")
            raise ConfigLoadError(f"Invalid JSON: {e}")
        except OSError as e:
            logger.error(f"Failed to read config file: {e}")
            raise ConfigLoadError(f"Failed to read file: {e}")

        if not isinstance(loaded_data, dict):
            raise ConfigLoadError("Config file must contain a JSON object")

        self.data = _deep_merge_defaults(self._get_defaults(), loaded_data)
        logger.info("Config loaded successfully")
        return True

    def save(self) -> None:
        """Save configuration to file atomically.

        Raises:
            ConfigSaveError: If save fails
        """
        filepath = Path(self.filepath)
        temp_path = Path(str(filepath) + CONFIG_TEMP_SUFFIX)
        backup_path = Path(str(filepath) + CONFIG_BACKUP_SUFFIX)

        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)

            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(self.data, f, indent=2, sort_keys=True)

            if filepath.exists():
                try:
                    shutil.copy2(filepath, backup_path)
                except OSError as e:
                    logger.warning(f"Failed to create backup: {e}")

            temp_path.replace(filepath)
            logger.info("Config saved successfully")

        except OSError as e:
            logger.error(f"Failed to write config: {e}")
            if backup_path.exists():
                try:
                    shutil.copy2(backup_path, filepath)
                    logger.info("Config restored from backup")
                except OSError:
                    pass
            raise ConfigSaveError(f"Failed to save: {e}")

        finally:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError:
                    pass

    def get(self, key: str, default: Any = None) -> Any:
        """Get config value.

        Args:
            key: Config key (supports dot notation for nested keys)
            default: Default value if key not found
        """
        value: Any = self.data
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """Set config value (dot notation creates nested dicts)."""
        keys = key.split(".")
        current = self.data
        for k in keys[:-1]:
            if k not in current or not isinstance(current[k], dict):
                current[k] = {}
            current = current[k]
        current[keys[-1]] = value

    def reset_to_defaults(self) -> None:
        self.data = self._get_defaults()
        logger.info("Config reset to defaults")

    # ------------------------------------------------------------------
    # Typed accessors used by the pendant components
    # ------------------------------------------------------------------

    @property
    def step_distances(self) -> List[float]:
        return [float(v) for v in self.data["step_distances"]]

    @property
    def latency(self) -> float:
        return float(self.data["latency"])

    @property
    def stopping_bonus(self) -> float:
        return float(self.data["stopping_bonus"])

    @property
    def hold_ms(self) -> int:
        return int(self.data["hold_ms"])

    @property
    def planner_blocks(self) -> int:
        return int(self.data["planner_blocks"])

    def reversed_axes(self) -> Dict[str, bool]:
        return {axis: bool(self.data.get(f"reverse_{axis.lower()}", False)) for axis in AXES}

    def hard_max_feed(self) -> Dict[str, float]:
        return {axis: float(self.data["hard_max_feed"][axis]) for axis in AXES}

    def hard_max_acc(self) -> Dict[str, float]:
        return {axis: float(self.data["hard_max_acc"][axis]) for axis in AXES}

    def button_roles(self) -> Dict[str, str]:
        return {str(button): role for button, role in self.data["buttons"].items()}

    def validate(self) -> bool:
        """Validate current configuration.

        Returns:
            True if valid

        Raises:
            ConfigValidationError: If validation fails
        """
        try:
            validate_step_distances(self.data.get("step_distances"))
            validate_positive("latency", self.data.get("latency"))
            validate_non_negative("stopping_bonus", self.data.get("stopping_bonus"))
            validate_positive("hold_ms", self.data.get("hold_ms"))
            validate_positive("planner_blocks", self.data.get("planner_blocks"))
            validate_positive("probe_feedrate", self.data.get("probe_feedrate"))
            validate_positive("fine_probe_feedrate", self.data.get("fine_probe_feedrate"))
            validate_non_negative("plate_thickness", self.data.get("plate_thickness"))
            validate_positive("status_poll_interval", self.data.get("status_poll_interval"))
            validate_baud_rate(self.data.get("baud_rate"))
            for table in ("hard_max_feed", "hard_max_acc"):
                caps = self.data.get(table)
                if not isinstance(caps, dict):
                    raise InvalidParameterError(table, caps, "must be a mapping of axis to value")
                for axis in AXES:
                    validate_positive(f"{table}.{axis}", caps.get(axis))
            buttons = self.data.get("buttons")
            if not isinstance(buttons, dict):
                raise InvalidParameterError("buttons", buttons, "must be a mapping of button id to role")
            for role in buttons.values():
                validate_button_role(role)
        except InvalidParameterError as e:
            raise ConfigValidationError(str(e)) from e
        return True
