"""
Configuration management for mend.

Settings live in {mend_home}/config.yaml (default ~/.mend/config.yaml);
.env files are loaded on import so ${GEMINI_API_KEY} style references
resolve the same way from a shell or a project directory.

Usage:
    from infra.config import SettingsManager

    manager = SettingsManager()
    settings = manager.load()
    api_key = settings.resolve_api_key()
"""

from .schemas import (
    RepairSettings,
    resolve_env_vars,
)

from .settings_config import (
    SettingsManager,
    load_settings,
    default_home,
)


__all__ = [
    "RepairSettings",
    "resolve_env_vars",
    "SettingsManager",
    "load_settings",
    "default_home",
]
