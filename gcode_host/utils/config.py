"""Application settings management.

This module handles loading, saving, and managing application settings
with atomic file operations and automatic backup. Serial link parameters
are fixed constants and deliberately absent from the settings file.
"""

import json
import os
import sys
import shutil
import logging
from typing import Dict, Any, Optional
from pathlib import Path

from .constants import (
    EXTRUDE_FEED_DEFAULT,
    JOG_FEED_DEFAULT,
    JOG_STEP_DEFAULT,
    POLL_INTERVAL_DEFAULT,
    POLL_INTERVAL_MIN,
    POSITION_QUERY,
    SETTINGS_DIRNAME,
    SETTINGS_FILENAME,
    SETTINGS_BACKUP_SUFFIX,
    SETTINGS_TEMP_SUFFIX,
    TEMPERATURE_QUERY,
)
from .exceptions import (
    SettingsLoadError,
    SettingsSaveError,
    SettingsValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, Any] = {
    "console_echo_tx": True,
    "extruder_feed": EXTRUDE_FEED_DEFAULT,
    "jog_feed": JOG_FEED_DEFAULT,
    "jog_step": JOG_STEP_DEFAULT,
    "last_port": "",
    "poll": {
        "enabled": True,
        "interval": POLL_INTERVAL_DEFAULT,
        "temperature_command": TEMPERATURE_QUERY,
        "position_command": POSITION_QUERY,
    },
}

def _deep_merge_defaults(defaults: Dict[str, Any], loaded: Dict[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    for key, default_val in defaults.items():
        if key in loaded:
            loaded_val = loaded[key]
            if isinstance(default_val, dict) and isinstance(loaded_val, dict):
                merged[key] = _deep_merge_defaults(default_val, loaded_val)
            else:
                merged[key] = loaded_val
        else:
            merged[key] = default_val
    for key, loaded_val in loaded.items():
        if key not in merged:
            merged[key] = loaded_val
    return merged


def get_default_settings_dir() -> str:
    """Get default directory for settings storage.
    
    Returns:
        Path to settings directory
    """
    # Check environment variable first
    env_dir = os.getenv("GCODE_HOST_CONFIG_DIR")
    if env_dir:
        return env_dir
    
    # Platform-specific defaults
    if sys.platform.startswith("win"):
        base = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA")
    else:
        base = os.getenv("XDG_CONFIG_HOME")
    
    if not base:
        base = os.path.expanduser("~")
    
    return os.path.join(base, SETTINGS_DIRNAME)


def get_settings_path() -> str:
    """Get path to settings file.
    
    Creates directory if it doesn't exist.
    Falls back to a dot-directory in home if creation fails.
    
    Returns:
        Full path to settings file
    """
    base_dir = get_default_settings_dir()
    
    try:
        os.makedirs(base_dir, exist_ok=True)
    except OSError as e:
        logger.warning(f"Failed to create settings directory: {e}")
        fallback_dir = os.path.join(os.path.expanduser("~"), ".gcode_host")
        try:
            os.makedirs(fallback_dir, exist_ok=True)
            base_dir = fallback_dir
        except OSError:
            # Last resort - current directory
            base_dir = os.getcwd()
    
    return os.path.join(base_dir, SETTINGS_FILENAME)


class Settings:
    """Application settings manager.
    
    Example:
        settings = Settings()
        settings.load()
        settings.set("last_port", "/dev/ttyACM0")
        settings.save()
    """
    
    def __init__(self, filepath: Optional[str] = None):
        """Initialize settings manager.
        
        Args:
            filepath: Optional custom settings file path
        """
        self.filepath = filepath or get_settings_path()
        self.data: Dict[str, Any] = self._get_defaults()
        logger.debug(f"Settings file: {self.filepath}")
    
    def _get_defaults(self) -> Dict[str, Any]:
        return json.loads(json.dumps(DEFAULT_SETTINGS))
    
    def load(self) -> bool:
        """Load settings from file.
        
        Returns:
            True if loaded successfully, False if no file exists
            
        Raises:
            SettingsLoadError: If the file exists but cannot be read or parsed
        """
        if not os.path.exists(self.filepath):
            logger.info("No settings file found, using defaults")
            return False
        
        try:
            with open(self.filepath, "r", encoding="utf-8") as f:
                loaded_data = json.load(f)
            
            if not isinstance(loaded_data, dict):
                raise SettingsLoadError("Settings file must contain a JSON object")
            
            # Merge with defaults (in case new settings were added)
            self.data = _deep_merge_defaults(self._get_defaults(), loaded_data)
            
            logger.info("Settings loaded successfully")
            return True
            
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in settings file: {e}")
            raise SettingsLoadError(f"Invalid JSON: {e}")
            
        except IOError as e:
            logger.error(f"Failed to read settings file: {e}")
            raise SettingsLoadError(f"Failed to read file: {e}")
    
    def save(self) -> None:
        """Save settings to file atomically.
        
        Writes a temporary file, backs up the current file and then
        renames the temporary file into place.
        
        Raises:
            SettingsSaveError: If save fails
        """
        filepath = Path(self.filepath)
        temp_path = Path(str(filepath) + SETTINGS_TEMP_SUFFIX)
        backup_path = Path(str(filepath) + SETTINGS_BACKUP_SUFFIX)
        
        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(self.data, f, indent=2, sort_keys=True)
            
            if filepath.exists():
                try:
                    shutil.copy2(filepath, backup_path)
                except IOError as e:
                    logger.warning(f"Failed to create backup: {e}")
            
            temp_path.replace(filepath)
            
            logger.info("Settings saved successfully")
            
        except (IOError, TypeError, ValueError) as e:
            logger.error(f"Failed to write settings: {e}")
            
            if backup_path.exists() and not filepath.exists():
                try:
                    shutil.copy2(backup_path, filepath)
                    logger.info("Settings restored from backup")
                except IOError as restore_error:
                    logger.warning(f"Failed to restore backup: {restore_error}")
            
            raise SettingsSaveError(f"Failed to save: {e}")
            
        finally:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError:
                    pass
    
    def get(self, key: str, default: Any = None) -> Any:
        """Get setting value.
        
        Args:
            key: Setting key (supports dot notation for nested keys)
            default: Default value if key not found
            
        Returns:
            Setting value or default
        """
        keys = key.split(".")
        value = self.data
        
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        
        return value
    
    def set(self, key: str, value: Any) -> None:
        """Set setting value.
        
        Args:
            key: Setting key (supports dot notation for nested keys, e.g. "poll.interval")
            value: Value to set
        """
        keys = key.split(".")
        
        if len(keys) == 1:
            self.data[key] = value
        else:
            current = self.data
            for k in keys[:-1]:
                if k not in current or not isinstance(current[k], dict):
                    current[k] = {}
                current = current[k]
            current[keys[-1]] = value
    
    def get_all(self) -> Dict[str, Any]:
        """Get a copy of all settings."""
        return json.loads(json.dumps(self.data))
    
    def reset_to_defaults(self) -> None:
        """Reset all settings to defaults."""
        self.data = self._get_defaults()
        logger.info("Settings reset to defaults")
    
    def validate(self) -> bool:
        """Validate current settings.
        
        Returns:
            True if valid
            
        Raises:
            SettingsValidationError: If validation fails
        """
        if not isinstance(self.data, dict):
            raise SettingsValidationError("Settings must be a dictionary")
        
        interval = self.get("poll.interval")
        if (
            isinstance(interval, bool)
            or not isinstance(interval, (int, float))
            or interval < POLL_INTERVAL_MIN
        ):
            raise SettingsValidationError(f"Invalid poll interval: {interval}")
        
        for key in ("poll.temperature_command", "poll.position_command"):
            command = self.get(key)
            if not isinstance(command, str) or not command.strip() or "\n" in command:
                raise SettingsValidationError(f"Invalid {key}: {command!r}")
        
        for key in ("jog_feed", "extruder_feed", "jog_step"):
            value = self.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise SettingsValidationError(f"Invalid {key}: {value}")
        
        if not isinstance(self.get("last_port"), str):
            raise SettingsValidationError("last_port must be a string")
        
        return True
