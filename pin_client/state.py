"""Shared status snapshot for observers (CLI stats, monitor, runtime.json).

The store is owned by whoever creates the SessionManager and handed to it
explicitly, so the monitor and the session see the same instance without a
module-level singleton. Writers take an exclusive lock; readers get a frozen
copy and never hold the lock while they work with it.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Iterator, Optional


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Writers are preferred: once a writer is waiting, new readers queue behind
    it so a steady stream of snapshots cannot starve the session.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class StateSnapshot:
    """Immutable copy of the client status handed to readers."""
    connected: bool = False
    operator_id: Optional[str] = None
    last_heartbeat: Optional[datetime] = None
    models: tuple[str, ...] = ()
    current_load: int = 0
    total_requests: int = 0
    session_state: str = "disconnected"

    def to_dict(self) -> dict:
        """JSON-friendly form used by runtime.json and `pin-client status`."""
        return {
            "connected": self.connected,
            "operator_id": self.operator_id,
            "last_heartbeat": self.last_heartbeat.isoformat() if self.last_heartbeat else None,
            "models": list(self.models),
            "current_load": self.current_load,
            "total_requests": self.total_requests,
            "session_state": self.session_state,
        }


@dataclass
class _MutableState:
    connected: bool = False
    operator_id: Optional[str] = None
    last_heartbeat: Optional[datetime] = None
    models: list[str] = field(default_factory=list)
    current_load: int = 0
    total_requests: int = 0
    session_state: str = "disconnected"


class StateStore:
    """Lock-guarded status shared between the session and its observers."""

    def __init__(self):
        self._lock = ReadWriteLock()
        self._state = _MutableState()

    def snapshot(self) -> StateSnapshot:
        """Return a frozen copy of the current state."""
        with self._lock.read():
            s = self._state
            return StateSnapshot(
                connected=s.connected,
                operator_id=s.operator_id,
                last_heartbeat=s.last_heartbeat,
                models=tuple(s.models),
                current_load=s.current_load,
                total_requests=s.total_requests,
                session_state=s.session_state,
            )

    @contextmanager
    def write(self) -> Iterator[_MutableState]:
        """Exclusive access to the live state. Keep the block short."""
        with self._lock.write():
            yield self._state

    # -- Mutations used by the session layer --

    def mark_connected(self, operator_id: str) -> None:
        with self.write() as s:
            s.connected = True
            s.operator_id = operator_id

    def mark_disconnected(self) -> None:
        """Session ended. Counters survive; total_requests never resets."""
        with self.write() as s:
            s.connected = False
            s.session_state = "disconnected"

    def set_session_state(self, name: str) -> None:
        with self.write() as s:
            s.session_state = name

    def set_models(self, models: Iterable[str]) -> None:
        """Replace the model list; the latest listing wins."""
        with self.write() as s:
            s.models = list(models)

    def record_heartbeat(self, now: Optional[datetime] = None) -> datetime:
        """Stamp last_heartbeat, never moving it backwards."""
        if now is None:
            now = datetime.now(timezone.utc)
        with self.write() as s:
            if s.last_heartbeat is None or now > s.last_heartbeat:
                s.last_heartbeat = now
            return s.last_heartbeat

    def begin_request(self) -> None:
        with self.write() as s:
            s.current_load += 1
            s.total_requests += 1

    def end_request(self) -> None:
        with self.write() as s:
            s.current_load = max(s.current_load - 1, 0)

