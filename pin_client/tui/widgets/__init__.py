"""TUI widgets for the PIN monitor."""

from .status_panel import StatusPanel, describe_snapshot

__all__ = ["StatusPanel", "describe_snapshot"]
