"""PIN client: relay inference work from a dispatch service to a local model backend."""

from .errors import (
    BackendError,
    ConfigError,
    PinClientError,
    ProtocolError,
    RemoteError,
    SessionBusyError,
    TransportError,
)
from .session import Identity, SessionHandle, SessionManager, SessionState
from .state import StateSnapshot, StateStore

__all__ = [
    "BackendError",
    "ConfigError",
    "Identity",
    "PinClientError",
    "ProtocolError",
    "RemoteError",
    "SessionBusyError",
    "SessionHandle",
    "SessionManager",
    "SessionState",
    "StateSnapshot",
    "StateStore",
    "TransportError",
]
