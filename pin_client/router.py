"""Inbound frame dispatch and inference orchestration.

The router keeps no state of its own beyond the StateStore it is given: each
call to ``route()`` turns one decoded frame into outbound frames (written via
the session's ``emit``) and status mutations.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from .backend import BackendClient
from .errors import BackendError, RemoteError
from .messages import (
    AuthSuccess,
    HeartbeatAck,
    InboundMessage,
    InferenceError,
    InferenceRequest,
    InferenceResponse,
    ModelList,
    ModelListAck,
    OutboundMessage,
    Ping,
    Pong,
    ServerError,
    Unrecognized,
)
from .state import StateStore

logger = logging.getLogger(__name__)

Emit = Callable[[OutboundMessage], Awaitable[bool]]
LogCallback = Callable[[str, str], None]


class InferenceDispatcher:
    """Runs one INFERENCE_REQUEST against the backend with load accounting."""

    def __init__(self, backend: BackendClient, state: StateStore, backend_url: str):
        self.backend = backend
        self.state = state
        self.backend_url = backend_url

    async def dispatch(self, request: InferenceRequest) -> InferenceResponse | InferenceError:
        payload = request.payload
        if payload.stream:
            logger.debug("Request %s asked for streaming; serving it whole", request.request_id)

        self.state.begin_request()
        start_time = time.time()
        try:
            result = await self.backend.chat_completion(
                self.backend_url,
                payload.model,
                payload.messages,
                stream=False,
            )
        except BackendError as e:
            logger.warning("Inference %s failed: %s", request.request_id, e)
            return InferenceError(request_id=request.request_id, error=str(e))
        except Exception as e:
            logger.exception("Inference handling error")
            return InferenceError(request_id=request.request_id, error=f"Internal error: {e}")
        finally:
            self.state.end_request()

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "Inference %s done (%s, %dms, %s tokens)",
            request.request_id, payload.model, elapsed_ms, result.eval_count,
        )
        return InferenceResponse(request_id=request.request_id, result=result.to_dict())


class MessageRouter:
    """
    Dispatch decoded inbound frames.

    By default inference requests are awaited inline, so the receive loop does
    not read the next frame until the response has been written. With
    ``concurrent_requests`` each request runs as its own task; ordering of
    outbound frames is then whatever order ``emit`` is called in, and ``emit``
    is expected to serialize writes.
    """

    def __init__(
        self,
        state: StateStore,
        backend: BackendClient,
        backend_url: str,
        emit: Emit,
        concurrent_requests: bool = False,
        log_callback: Optional[LogCallback] = None,
    ):
        self.state = state
        self.backend = backend
        self.backend_url = backend_url
        self.emit = emit
        self.concurrent_requests = concurrent_requests
        self.log_callback = log_callback
        self.dispatcher = InferenceDispatcher(backend, state, backend_url)
        self._tasks: set[asyncio.Task] = set()

    def _log(self, message: str, level: str = "info"):
        if self.log_callback:
            self.log_callback(message, level)

    async def route(self, message: InboundMessage) -> None:
        """Handle one frame. Raises RemoteError when the server sends ERROR."""
        if isinstance(message, AuthSuccess):
            self.state.mark_connected(message.operator_id)
            self._log(f"Authenticated as {message.operator_id}: {message.message}", "success")
            await self.publish_models()

        elif isinstance(message, ServerError):
            self.state.mark_disconnected()
            self._log(f"Server error: {message.message}", "error")
            raise RemoteError(message.message)

        elif isinstance(message, Ping):
            await self.emit(Pong())
            self.state.record_heartbeat()

        elif isinstance(message, (HeartbeatAck, ModelListAck)):
            logger.debug("Received %s", type(message).__name__)

        elif isinstance(message, InferenceRequest):
            self._log(
                f"Inference request {message.request_id} for model {message.payload.model}",
                "info",
            )
            if self.concurrent_requests:
                task = asyncio.create_task(self._serve(message))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
            else:
                await self._serve(message)

        elif isinstance(message, Unrecognized):
            logger.warning("Ignoring unknown message type: %r", message.type)

        else:
            logger.warning("Ignoring unhandled message: %r", message)

    async def _serve(self, request: InferenceRequest) -> None:
        outcome = await self.dispatcher.dispatch(request)
        if isinstance(outcome, InferenceError):
            self._log(f"Request {request.request_id} failed: {outcome.error}", "error")
        if not await self.emit(outcome):
            logger.info("Result for %s dropped; transport is closed", request.request_id)

    async def publish_models(self) -> bool:
        """List backend models and announce them. Failures are swallowed."""
        try:
            models = await self.backend.list_models(self.backend_url)
        except BackendError as e:
            logger.warning("Could not list backend models: %s", e)
            return False

        self.state.set_models(models)
        await self.emit(ModelList(models=tuple(models)))
        return True

    async def drain(self) -> None:
        """Wait for inference tasks spawned in concurrent mode."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
