"""
Settings loading and management.

The settings file is stored at {mend_home}/config.yaml. mend_home defaults
to ~/.mend and can be moved with the MEND_HOME environment variable.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from .schemas import RepairSettings


CONFIG_FILENAME = "config.yaml"

load_dotenv()


def default_home() -> Path:
    return Path(os.getenv("MEND_HOME", "~/.mend")).expanduser()


class SettingsManager:
    """
    Manages the settings file.

    Usage:
        manager = SettingsManager()
        settings = manager.load()   # Returns RepairSettings
        manager.save(settings)      # Persists to disk
    """

    def __init__(self, home: Optional[Path] = None):
        self.home = Path(home).expanduser() if home else default_home()
        self.config_path = self.home / CONFIG_FILENAME

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()

    def load(self) -> RepairSettings:
        """
        Load settings from disk.

        Returns RepairSettings with defaults if the file doesn't exist.
        """
        if not self.config_path.exists():
            settings = RepairSettings()
        else:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            settings = RepairSettings.model_validate(data)

        if settings.log_dir is None:
            settings.log_dir = self.home / "logs"
        return settings

    def save(self, settings: RepairSettings) -> None:
        """
        Save settings to disk.

        Creates the home directory if needed.
        """
        self.home.mkdir(parents=True, exist_ok=True)

        data = settings.model_dump(mode="json", exclude_none=True)
        # log_dir under home is implied; keep the file portable
        if data.get("log_dir") == str(self.home / "logs"):
            data.pop("log_dir")

        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    def update(self, updates: Dict[str, Any]) -> RepairSettings:
        """
        Update specific fields in the settings file.

        Args:
            updates: Dict of field -> value (validated by RepairSettings)

        Returns:
            Updated RepairSettings
        """
        settings = self.load()
        data = settings.model_dump()
        data.update(updates)

        new_settings = RepairSettings.model_validate(data)
        self.save(new_settings)
        return new_settings


def load_settings(home: Optional[Path] = None) -> RepairSettings:
    """
    Convenience function to load settings.

    Args:
        home: Settings home directory (default: MEND_HOME or ~/.mend)

    Returns:
        RepairSettings instance
    """
    return SettingsManager(home).load()
