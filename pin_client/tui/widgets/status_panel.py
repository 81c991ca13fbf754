"""Status panel widget displaying session status lines and activity log."""

from datetime import datetime, timezone
from typing import Optional

from textual.containers import Vertical
from textual.widgets import Static, RichLog
from rich.text import Text
from rich.markup import escape
from rich.style import Style

from ...state import StateSnapshot
from ..styles import CYAN, GREEN, YELLOW, RED, FG, FG_DIM

# Line id -> label, in display order
STATUS_LINES = {
    "connection": "Connection",
    "operator": "Operator",
    "heartbeat": "Last heartbeat",
    "models": "Models",
    "load": "Current load",
    "requests": "Total requests",
}


def _format_heartbeat(when: Optional[datetime], now: Optional[datetime] = None) -> str:
    if when is None:
        return "never"
    now = now or datetime.now(timezone.utc)
    age = max(int((now - when).total_seconds()), 0)
    return f"{when.astimezone().strftime('%H:%M:%S')} ({age}s ago)"


def describe_snapshot(
    snapshot: StateSnapshot, now: Optional[datetime] = None
) -> dict[str, tuple[str, str]]:
    """Map a snapshot to {line_id: (value, status)} for the panel."""
    if snapshot.connected:
        connection = ("Connected", "success")
    elif snapshot.session_state in ("connecting", "authenticating"):
        connection = (snapshot.session_state.capitalize() + "...", "warning")
    else:
        connection = ("Disconnected", "error")

    models = ", ".join(snapshot.models) if snapshot.models else "none reported"

    return {
        "connection": connection,
        "operator": (snapshot.operator_id or "-", "info" if snapshot.operator_id else "normal"),
        "heartbeat": (_format_heartbeat(snapshot.last_heartbeat, now), "normal"),
        "models": (models, "normal"),
        "load": (str(snapshot.current_load), "warning" if snapshot.current_load else "normal"),
        "requests": (str(snapshot.total_requests), "normal"),
    }


class StatusLine(Static):
    """A single status line with label and value."""

    def __init__(self, label: str, value: str = "", status: str = "normal") -> None:
        super().__init__()
        self._label = label
        self._value = value
        self._status = status

    def render(self) -> Text:
        """Render the status line."""
        text = Text()
        text.append(f"{self._label}: ", style=Style(color=FG_DIM))

        # Color based on status
        color = FG
        if self._status == "success":
            color = GREEN
        elif self._status == "warning":
            color = YELLOW
        elif self._status == "error":
            color = RED
        elif self._status == "info":
            color = CYAN

        text.append(self._value, style=Style(color=color))
        return text

    def set_value(self, value: str, status: str = "normal") -> None:
        """Update the value and status."""
        if (value, status) == (self._value, self._status):
            return
        self._value = value
        self._status = status
        self.refresh()


class StatusPanel(Vertical):
    """Panel displaying session status lines and an activity log."""

    def __init__(self) -> None:
        super().__init__()
        self._status_lines: dict[str, StatusLine] = {}

    def compose(self):
        """Compose the status panel."""
        for line_id, label in STATUS_LINES.items():
            self._status_lines[line_id] = StatusLine(label, "-")
            yield self._status_lines[line_id]
        yield Static("")  # Spacer
        yield RichLog(id="activity-log", highlight=True, markup=True)

    def show_snapshot(self, snapshot: StateSnapshot) -> None:
        """Refresh every status line from a state snapshot."""
        for line_id, (value, status) in describe_snapshot(snapshot).items():
            self._status_lines[line_id].set_value(value, status)

    def write_log(self, message: str, level: str = "info") -> None:
        """Add a message to the activity log."""
        log_widget = self.query_one("#activity-log", RichLog)

        # Format based on level
        prefix = ""
        if level == "error":
            prefix = f"[{RED}]ERROR:[/] "
        elif level in ("warning", "warn"):
            prefix = f"[{YELLOW}]WARN:[/] "
        elif level == "success":
            prefix = f"[{GREEN}]OK:[/] "
        elif level == "info":
            prefix = f"[{CYAN}]INFO:[/] "

        log_widget.write(f"{prefix}{escape(message)}")
