"""Wire frames exchanged with the dispatch service.

Every frame is a flat JSON object with a ``type`` discriminator. Inbound
frames decode into one of a closed set of dataclasses; any type we do not know
becomes ``Unrecognized`` so callers always have a fallback arm to handle.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Union

from .backend import ChatMessage
from .errors import ProtocolError


# =============================================================================
# Inbound (server -> client)
# =============================================================================

@dataclass(frozen=True)
class AuthSuccess:
    operator_id: str
    message: str = ""


@dataclass(frozen=True)
class ServerError:
    message: str


@dataclass(frozen=True)
class Ping:
    pass


@dataclass(frozen=True)
class HeartbeatAck:
    pass


@dataclass(frozen=True)
class ModelListAck:
    pass


@dataclass(frozen=True)
class InferencePayload:
    model: str
    messages: tuple[ChatMessage, ...]
    stream: bool = False


@dataclass(frozen=True)
class InferenceRequest:
    request_id: str
    payload: InferencePayload


@dataclass(frozen=True)
class Unrecognized:
    """A well-formed frame whose ``type`` this client does not handle."""
    type: Any
    frame: dict = field(default_factory=dict)


InboundMessage = Union[
    AuthSuccess,
    ServerError,
    Ping,
    HeartbeatAck,
    ModelListAck,
    InferenceRequest,
    Unrecognized,
]


def _require_str(frame: dict, key: str) -> str:
    value = frame.get(key)
    if not isinstance(value, str):
        raise ProtocolError(f"{frame.get('type')} frame missing string field '{key}'", frame)
    return value


def _decode_inference(frame: dict) -> InferenceRequest:
    request_id = _require_str(frame, "request_id")
    payload = frame.get("payload")
    if not isinstance(payload, dict):
        raise ProtocolError("INFERENCE_REQUEST frame missing 'payload' object", frame)

    model = payload.get("model")
    raw_messages = payload.get("messages")
    stream = payload.get("stream", False)
    if not isinstance(model, str):
        raise ProtocolError("INFERENCE_REQUEST payload missing 'model'", frame)
    if not isinstance(raw_messages, list):
        raise ProtocolError("INFERENCE_REQUEST payload missing 'messages' list", frame)
    if not isinstance(stream, bool):
        raise ProtocolError("INFERENCE_REQUEST payload 'stream' must be a boolean", frame)

    try:
        messages = tuple(ChatMessage.from_dict(m) for m in raw_messages)
    except ValueError as e:
        raise ProtocolError(f"INFERENCE_REQUEST has a bad message: {e}", frame) from e

    return InferenceRequest(
        request_id=request_id,
        payload=InferencePayload(model=model, messages=messages, stream=stream),
    )


def decode_frame(raw: Union[str, bytes]) -> InboundMessage:
    """Decode one text frame.

    Raises ProtocolError for binary frames, invalid JSON, non-object JSON and
    known types with missing fields. Unknown types decode to Unrecognized.
    """
    if not isinstance(raw, str):
        raise ProtocolError("Binary frames are not part of the protocol", raw)
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Invalid JSON: {e}", raw) from e
    if not isinstance(frame, dict):
        raise ProtocolError("Frame is not a JSON object", raw)

    msg_type = frame.get("type")

    if msg_type == "AUTH_SUCCESS":
        return AuthSuccess(
            operator_id=_require_str(frame, "operator_id"),
            message=frame.get("message") or "",
        )
    elif msg_type == "ERROR":
        return ServerError(message=_require_str(frame, "message"))
    elif msg_type == "PING":
        return Ping()
    elif msg_type == "HEARTBEAT_ACK":
        return HeartbeatAck()
    elif msg_type == "MODEL_LIST_ACK":
        return ModelListAck()
    elif msg_type == "INFERENCE_REQUEST":
        return _decode_inference(frame)
    else:
        return Unrecognized(type=msg_type, frame=frame)


# =============================================================================
# Outbound (client -> server)
# =============================================================================

@dataclass(frozen=True)
class Auth:
    client_id: str
    timestamp: str
    signature: str

    def to_frame(self) -> dict:
        return {
            "type": "AUTH",
            "client_id": self.client_id,
            "timestamp": self.timestamp,
            "signature": self.signature,
        }


@dataclass(frozen=True)
class Pong:
    def to_frame(self) -> dict:
        return {"type": "PONG"}


@dataclass(frozen=True)
class ModelList:
    models: tuple[str, ...]

    def to_frame(self) -> dict:
        return {"type": "MODEL_LIST", "models": list(self.models)}


@dataclass(frozen=True)
class InferenceResponse:
    request_id: str
    result: dict

    def to_frame(self) -> dict:
        return {
            "type": "INFERENCE_RESPONSE",
            "request_id": self.request_id,
            "result": self.result,
        }


@dataclass(frozen=True)
class InferenceError:
    request_id: str
    error: str

    def to_frame(self) -> dict:
        return {
            "type": "INFERENCE_ERROR",
            "request_id": self.request_id,
            "error": self.error,
        }


OutboundMessage = Union[Auth, Pong, ModelList, InferenceResponse, InferenceError]


def encode_frame(message: OutboundMessage) -> str:
    """Serialize an outbound message to a JSON text frame."""
    return json.dumps(message.to_frame())
