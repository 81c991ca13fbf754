"""Error taxonomy for the PIN client session layer.

Nothing here is process-fatal: the CLI or monitor decides what to show the
user. See SessionManager for which errors end a session and which are only
logged.
"""


class PinClientError(Exception):
    """Base class for all PIN client errors."""


class ConfigError(PinClientError):
    """No identity configured, or the credential lookup failed."""


class SessionBusyError(ConfigError):
    """connect() was called while another session is still live."""


class TransportError(PinClientError):
    """WebSocket connect, read or write failed, or the server closed on us."""


class ProtocolError(PinClientError):
    """A frame could not be decoded. Logged and dropped, never fatal."""

    def __init__(self, message: str, frame: object = None):
        super().__init__(message)
        self.frame = frame


class RemoteError(PinClientError):
    """The dispatch service sent an ERROR frame."""


class BackendError(PinClientError):
    """The local model backend failed to list models or run a chat."""
