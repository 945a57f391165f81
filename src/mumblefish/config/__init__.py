"""Configuration and settings management."""

from .settings import Settings, get_app_data_dir, load_settings, save_settings, update_settings

__all__ = ["Settings", "get_app_data_dir", "load_settings", "save_settings", "update_settings"]
