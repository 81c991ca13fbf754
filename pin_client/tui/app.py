"""PIN client status monitor using the Textual framework."""

import logging
from typing import Optional

from textual.app import App, ComposeResult, ScreenStackError
from textual.binding import Binding
from textual.css.query import NoMatches
from textual.widgets import Footer, Static

from ..cli import build_manager
from ..config import PinConfig
from ..credentials import CredentialStore, resolve_identity
from ..errors import PinClientError
from ..session import SessionHandle, SessionManager
from ..state import StateStore
from .styles import PIN_CSS
from .widgets import StatusPanel


class PanelLogHandler(logging.Handler):
    """Mirror pin_client log records into the activity log (verbose mode)."""

    def __init__(self, app: "PinMonitorApp"):
        super().__init__(level=logging.DEBUG)
        self.app = app

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = "error" if record.levelno >= logging.ERROR else "warn" if record.levelno >= logging.WARNING else "debug"
            self.app.post_log(self.format(record), level)
        except Exception:
            self.handleError(record)


class PinMonitorApp(App):
    """Shows the session status and lets the user connect or disconnect."""

    CSS = PIN_CSS

    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        Binding("c", "connect", "Connect"),
        Binding("d", "disconnect", "Disconnect"),
        Binding("ctrl+c", "quit", "Quit", show=True, priority=True),
    ]

    def __init__(
        self,
        verbose: bool = False,
        state: Optional[StateStore] = None,
        manager: Optional[SessionManager] = None,
        config: Optional[PinConfig] = None,
        credentials: Optional[CredentialStore] = None,
    ):
        super().__init__()
        self.verbose = verbose
        self.store = state or StateStore()
        self.config = config or PinConfig.load()
        self.credentials = credentials or CredentialStore()
        self.manager = manager or build_manager(self.store, self.config, log_callback=self.post_log)
        self._handle: Optional[SessionHandle] = None
        self._log_handler: Optional[PanelLogHandler] = None

    def compose(self) -> ComposeResult:
        yield Static("PIN client", id="title")
        yield StatusPanel()
        yield Footer()

    def on_mount(self) -> None:
        if self.verbose:
            self._log_handler = PanelLogHandler(self)
            logging.getLogger("pin_client").addHandler(self._log_handler)
            logging.getLogger("pin_client").setLevel(logging.DEBUG)
        self.refresh_status()
        self.set_interval(1.0, self.refresh_status)
        if not self.config.client_id:
            self.post_log("No client ID configured. Run: pin-client --client-id ID --secret SECRET", "warn")

    async def on_unmount(self) -> None:
        if self._log_handler is not None:
            logging.getLogger("pin_client").removeHandler(self._log_handler)
        await self.manager.close()

    def refresh_status(self) -> None:
        """Pull a fresh snapshot from the state store."""
        self.query_one(StatusPanel).show_snapshot(self.store.snapshot())

    def post_log(self, message: str, level: str = "info") -> None:
        """Session log callback; writes to the activity log.

        Dropped once the panel is gone (the session may still log while the
        app shuts down).
        """
        try:
            panel = self.query_one(StatusPanel)
        except (NoMatches, ScreenStackError):
            return
        panel.write_log(message, level)

    async def action_connect(self) -> None:
        if self._handle is not None and not self._handle.done:
            self.post_log("Already connected", "warn")
            return
        try:
            identity = resolve_identity(self.config.client_id, self.credentials)
            self._handle = await self.manager.connect(
                self.config.resolved_server_url(),
                identity,
                self.config.resolved_backend_url(),
            )
        except PinClientError as e:
            self.post_log(str(e), "error")
        self.refresh_status()

    def action_disconnect(self) -> None:
        if self._handle is None or self._handle.done:
            self.post_log("Not connected", "warn")
            return
        self.manager.disconnect(self._handle)
