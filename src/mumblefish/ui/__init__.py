"""UI components."""

from .tray import SystemTray

__all__ = ["SystemTray"]
