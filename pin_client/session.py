"""WebSocket session with the PIN dispatch service.

This is the core of the client. It:
1. Opens the WebSocket and sends a signed AUTH frame
2. Waits for AUTH_SUCCESS, then announces the backend's models
3. Feeds every inbound frame to the MessageRouter
4. Writes all outbound frames through one serialized writer
5. Marks the shared state disconnected however the session ends

State machine: DISCONNECTED -> CONNECTING -> AUTHENTICATING -> ACTIVE -> DISCONNECTED.
There is no reconnect: once a session ends the caller has to connect() again.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

import websockets
from rich.console import Console

from .backend import BackendClient
from .config import DEFAULT_BACKEND_URL
from .errors import (
    ConfigError,
    PinClientError,
    ProtocolError,
    RemoteError,
    SessionBusyError,
    TransportError,
)
from .messages import (
    Auth,
    AuthSuccess,
    OutboundMessage,
    ServerError,
    decode_frame,
    encode_frame,
)
from .router import LogCallback, MessageRouter
from .signer import compute_signature, current_timestamp
from .state import StateStore

logger = logging.getLogger(__name__)
console = Console()

AUTH_TIMEOUT = 10.0
SEND_TIMEOUT = 5.0

Connector = Callable[[str], Awaitable[Any]]


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    ACTIVE = "active"


@dataclass
class Identity:
    """Client identity. The secret is only ever used to sign AUTH."""
    client_id: str
    secret: str = field(repr=False)


@dataclass
class Session:
    server_url: str
    backend_url: str
    state: SessionState = SessionState.DISCONNECTED
    operator_id: Optional[str] = None


async def open_websocket(url: str):
    """Default connector: a plain WebSocket client with keep-alive pings."""
    return await websockets.connect(url, ping_interval=30, ping_timeout=10)


class SessionHandle:
    """
    Returned by SessionManager.connect().

    Keep it to stop the session (``SessionManager.disconnect(handle)``) and to
    find out how it ended (``await handle.wait()``).
    """

    def __init__(self, session: Session):
        self.session = session
        self.cause: Optional[PinClientError] = None
        self._stop = asyncio.Event()
        self._finished = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def done(self) -> bool:
        return self._finished.is_set()

    def request_stop(self) -> None:
        self._stop.set()

    def _fail(self, cause: PinClientError) -> None:
        """Record why the session ends and wake the receive loop."""
        if self.cause is None:
            self.cause = cause
        self._stop.set()

    async def wait(self) -> Optional[PinClientError]:
        """Wait for the session to end; returns None if it was asked to stop."""
        await self._finished.wait()
        return self.cause


class FrameWriter:
    """Single writer for a session's outbound frames.

    Sends are serialized by a lock so frames leave in the order they were
    produced. A failed or timed-out send ends the session; anything sent after
    that (or after close()) is dropped.
    """

    def __init__(
        self,
        ws: Any,
        timeout: float = SEND_TIMEOUT,
        on_failure: Optional[Callable[[PinClientError], None]] = None,
    ):
        self._ws = ws
        self._lock = asyncio.Lock()
        self.timeout = timeout
        self.on_failure = on_failure

    @property
    def closed(self) -> bool:
        return self._ws is None

    def close(self) -> None:
        self._ws = None

    async def send(self, message: OutboundMessage) -> bool:
        async with self._lock:
            # Capture reference; close() may run while we wait for the lock
            ws = self._ws
            if ws is None:
                logger.debug("Dropping %s: transport closed", type(message).__name__)
                return False
            try:
                await asyncio.wait_for(ws.send(encode_frame(message)), timeout=self.timeout)
                return True
            except asyncio.TimeoutError:
                logger.error(f"WebSocket send timed out after {self.timeout}s - connection may be blocked")
                self._failed(TransportError(f"Send timed out after {self.timeout}s"))
            except (websockets.exceptions.WebSocketException, OSError) as e:
                logger.error(f"Send error: {e}")
                self._failed(TransportError(f"Send failed: {e}"))
            return False

    def _failed(self, error: TransportError) -> None:
        self._ws = None
        if self.on_failure:
            self.on_failure(error)


class SessionManager:
    """
    Owns the connection to the dispatch service.

    Only one session may be live at a time; connect() refuses a second one
    instead of silently replacing the first.
    """

    def __init__(
        self,
        state: StateStore,
        backend: Optional[BackendClient] = None,
        connector: Optional[Connector] = None,
        auth_timeout: float = AUTH_TIMEOUT,
        send_timeout: float = SEND_TIMEOUT,
        concurrent_requests: bool = False,
        log_callback: Optional[LogCallback] = None,
    ):
        self.state = state
        self.backend = backend or BackendClient()
        self.connector = connector or open_websocket
        self.auth_timeout = auth_timeout
        self.send_timeout = send_timeout
        self.concurrent_requests = concurrent_requests
        self.log_callback = log_callback

        self._handle: Optional[SessionHandle] = None
        self.router: Optional[MessageRouter] = None

    def _log(self, message: str, level: str = "info"):
        """Log a message through callback or fallback to console."""
        if self.log_callback:
            self.log_callback(message, level)
        else:
            color_map = {
                "info": "cyan",
                "success": "green",
                "error": "red",
                "warn": "yellow",
            }
            color = color_map.get(level, "white")
            console.print(f"[{color}]{message}[/{color}]")

    @property
    def session(self) -> Optional[Session]:
        return self._handle.session if self._handle else None

    @property
    def session_state(self) -> SessionState:
        session = self.session
        return session.state if session else SessionState.DISCONNECTED

    def _set_state(self, session: Session, new_state: SessionState) -> None:
        logger.debug("Session %s -> %s", session.state.value, new_state.value)
        session.state = new_state
        self.state.set_session_state(new_state.value)

    async def connect(
        self,
        server_url: str,
        identity: Optional[Identity],
        backend_url: str = DEFAULT_BACKEND_URL,
    ) -> SessionHandle:
        """Open the transport, send AUTH and start the receive loop.

        Raises:
            ConfigError: identity missing or incomplete
            SessionBusyError: a session is already live
            TransportError: the WebSocket could not be opened or AUTH not sent
        """
        if identity is None or not identity.client_id:
            raise ConfigError("No client ID configured")
        if not identity.secret:
            raise ConfigError(f"No API secret available for client {identity.client_id}")
        if self._handle is not None and not self._handle.done:
            raise SessionBusyError("A session is already running; disconnect it first")

        session = Session(server_url=server_url, backend_url=backend_url)
        handle = SessionHandle(session)
        self._handle = handle
        self._set_state(session, SessionState.CONNECTING)
        self._log(f"Connecting to {server_url}...", "warn")

        try:
            ws = await self.connector(server_url)
        except (websockets.exceptions.WebSocketException, OSError, asyncio.TimeoutError) as e:
            self._abort(handle, TransportError(f"Failed to connect to {server_url}: {e}"))
            raise handle.cause from e

        timestamp = current_timestamp()
        auth = Auth(
            client_id=identity.client_id,
            timestamp=timestamp,
            signature=compute_signature(identity.client_id, timestamp, identity.secret),
        )
        try:
            await asyncio.wait_for(ws.send(encode_frame(auth)), timeout=self.send_timeout)
        except (websockets.exceptions.WebSocketException, OSError, asyncio.TimeoutError) as e:
            await self._close_transport(ws)
            self._abort(handle, TransportError(f"Failed to send AUTH: {e!r}"))
            raise handle.cause from e
        logger.info("Sent AUTH message for client %s", identity.client_id)

        writer = FrameWriter(ws, timeout=self.send_timeout, on_failure=handle._fail)
        self.router = MessageRouter(
            state=self.state,
            backend=self.backend,
            backend_url=backend_url,
            emit=writer.send,
            concurrent_requests=self.concurrent_requests,
            log_callback=self._log,
        )
        self._set_state(session, SessionState.AUTHENTICATING)
        handle._task = asyncio.create_task(self._run(handle, ws, writer, self.router))
        return handle

    def disconnect(self, handle: SessionHandle) -> None:
        """Ask the session behind ``handle`` to stop.

        A frame already being processed finishes first; an in-flight backend
        call is not aborted and its result is dropped once the transport is
        gone.
        """
        if handle.done:
            return
        handle.request_stop()
        self._log("Disconnect requested", "warn")

    async def close(self) -> None:
        """Stop any live session and release the backend client.

        In-flight inference tasks are allowed to finish (their results are
        dropped) before the backend client is closed.
        """
        handle = self._handle
        if handle is not None and not handle.done:
            self.disconnect(handle)
            await handle.wait()
        if self.router is not None:
            await self.router.drain()
        await self.backend.close()

    def _abort(self, handle: SessionHandle, cause: PinClientError) -> None:
        """End a session that never reached the receive loop."""
        handle.cause = cause
        self._log(str(cause), "error")
        self._finish(handle)

    def _finish(self, handle: SessionHandle) -> None:
        session = handle.session
        session.state = SessionState.DISCONNECTED
        session.operator_id = None
        self.state.mark_disconnected()
        handle._finished.set()

    async def _close_transport(self, ws: Any) -> None:
        try:
            await ws.close()
        except Exception as e:
            logger.debug(f"Error closing WebSocket: {e}")

    async def _run(self, handle: SessionHandle, ws: Any, writer: FrameWriter, router: MessageRouter):
        """Receive loop. Races each read against the stop signal."""
        session = handle.session
        loop = asyncio.get_running_loop()
        auth_deadline = loop.time() + self.auth_timeout
        stop_wait = asyncio.ensure_future(handle._stop.wait())

        try:
            while True:
                timeout = None
                if session.state is SessionState.AUTHENTICATING:
                    timeout = max(auth_deadline - loop.time(), 0)

                recv = asyncio.ensure_future(ws.recv())
                done, _ = await asyncio.wait(
                    {recv, stop_wait},
                    timeout=timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if stop_wait in done or not done:
                    if recv.done() and not recv.cancelled():
                        # Frame raced the stop signal; stop wins
                        recv.exception()
                    recv.cancel()
                    if not done:
                        handle._fail(TransportError("Authentication timed out (no response from server)"))
                    break

                try:
                    raw = recv.result()
                except websockets.exceptions.ConnectionClosed as e:
                    handle._fail(TransportError(f"Connection closed: {e}"))
                    break
                except (websockets.exceptions.WebSocketException, OSError) as e:
                    handle._fail(TransportError(f"WebSocket error: {e}"))
                    break

                try:
                    await self._handle_frame(session, router, raw)
                except RemoteError as e:
                    handle._fail(e)
                    break

        finally:
            stop_wait.cancel()
            writer.close()
            await self._close_transport(ws)
            self._finish(handle)
            if handle.cause is None:
                self._log("Disconnected from server", "warn")
            else:
                self._log(f"Session ended: {handle.cause}", "error")

    async def _handle_frame(self, session: Session, router: MessageRouter, raw: Union[str, bytes]):
        """Decode and dispatch one frame. Only RemoteError escapes."""
        try:
            message = decode_frame(raw)
        except ProtocolError as e:
            logger.warning("Dropping malformed frame: %s", e)
            return

        if session.state is SessionState.AUTHENTICATING:
            if isinstance(message, AuthSuccess):
                session.operator_id = message.operator_id
                self._set_state(session, SessionState.ACTIVE)
            elif not isinstance(message, ServerError):
                logger.warning("Ignoring %s received before authentication", type(message).__name__)
                return
        elif isinstance(message, AuthSuccess):
            session.operator_id = message.operator_id

        try:
            await router.route(message)
        except RemoteError:
            raise
        except Exception as e:
            logger.exception("Error processing message")
            self._log(f"Error processing message: {e}", "error")
