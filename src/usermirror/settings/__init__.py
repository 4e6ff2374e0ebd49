from .manager import SettingsManager, default_db_path, default_settings_path
from .schema import DEFAULT_SETTINGS, SETTINGS_SCHEMA, merge_with_defaults

__all__ = [
    "DEFAULT_SETTINGS",
    "SETTINGS_SCHEMA",
    "SettingsManager",
    "default_db_path",
    "default_settings_path",
    "merge_with_defaults",
]
