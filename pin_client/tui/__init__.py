"""Terminal status monitor for the PIN client."""

from .app import PinMonitorApp

__all__ = ["PinMonitorApp"]
