"""Tests for frame decoding and encoding."""

import json

import pytest

from pin_client.backend import ChatMessage
from pin_client.errors import ProtocolError
from pin_client.messages import (
    Auth,
    AuthSuccess,
    HeartbeatAck,
    InferenceError,
    InferenceRequest,
    InferenceResponse,
    ModelList,
    ModelListAck,
    Ping,
    Pong,
    ServerError,
    Unrecognized,
    decode_frame,
    encode_frame,
)


class TestDecodeFrame:

    def test_auth_success(self):
        msg = decode_frame('{"type":"AUTH_SUCCESS","operator_id":"op1","message":"welcome"}')
        assert msg == AuthSuccess(operator_id="op1", message="welcome")

    def test_error(self):
        assert decode_frame('{"type":"ERROR","message":"bad signature"}') == ServerError("bad signature")

    @pytest.mark.parametrize("raw, expected", [
        ('{"type":"PING"}', Ping()),
        ('{"type":"HEARTBEAT_ACK"}', HeartbeatAck()),
        ('{"type":"MODEL_LIST_ACK"}', ModelListAck()),
    ])
    def test_bodyless_frames(self, raw, expected):
        assert decode_frame(raw) == expected

    def test_inference_request(self):
        raw = json.dumps({
            "type": "INFERENCE_REQUEST",
            "request_id": "r1",
            "payload": {
                "model": "llama2",
                "messages": [
                    {"role": "system", "content": "be brief"},
                    {"role": "user", "content": "hi"},
                ],
                "stream": False,
            },
        })
        msg = decode_frame(raw)
        assert isinstance(msg, InferenceRequest)
        assert msg.request_id == "r1"
        assert msg.payload.model == "llama2"
        assert msg.payload.messages == (
            ChatMessage("system", "be brief"),
            ChatMessage("user", "hi"),
        )
        assert msg.payload.stream is False

    def test_inference_stream_defaults_to_false(self):
        raw = '{"type":"INFERENCE_REQUEST","request_id":"r1","payload":{"model":"m","messages":[]}}'
        assert decode_frame(raw).payload.stream is False

    def test_unknown_type_is_unrecognized(self):
        msg = decode_frame('{"type":"SOMETHING_NEW","x":1}')
        assert isinstance(msg, Unrecognized)
        assert msg.type == "SOMETHING_NEW"
        assert msg.frame["x"] == 1

    def test_missing_type_is_unrecognized(self):
        assert isinstance(decode_frame('{"hello":"world"}'), Unrecognized)

    @pytest.mark.parametrize("raw", [
        "not json",
        "[1, 2, 3]",
        '"PING"',
        b'{"type":"PING"}',
        '{"type":"AUTH_SUCCESS"}',
        '{"type":"ERROR"}',
        '{"type":"INFERENCE_REQUEST","payload":{"model":"m","messages":[]}}',
        '{"type":"INFERENCE_REQUEST","request_id":"r1"}',
        '{"type":"INFERENCE_REQUEST","request_id":"r1","payload":{"messages":[]}}',
        '{"type":"INFERENCE_REQUEST","request_id":"r1","payload":{"model":"m","messages":[{"role":"user"}]}}',
        '{"type":"INFERENCE_REQUEST","request_id":"r1","payload":{"model":"m","messages":[],"stream":"yes"}}',
    ])
    def test_malformed_frames_raise(self, raw):
        with pytest.raises(ProtocolError):
            decode_frame(raw)


class TestEncodeFrame:

    def test_auth(self):
        frame = json.loads(encode_frame(Auth(client_id="c1", timestamp="1000", signature="ab")))
        assert frame == {"type": "AUTH", "client_id": "c1", "timestamp": "1000", "signature": "ab"}

    def test_pong(self):
        assert json.loads(encode_frame(Pong())) == {"type": "PONG"}

    def test_model_list(self):
        frame = json.loads(encode_frame(ModelList(models=("llama2", "mistral"))))
        assert frame == {"type": "MODEL_LIST", "models": ["llama2", "mistral"]}

    def test_inference_response(self):
        frame = json.loads(encode_frame(InferenceResponse(request_id="r1", result={"done": True})))
        assert frame == {"type": "INFERENCE_RESPONSE", "request_id": "r1", "result": {"done": True}}

    def test_inference_error(self):
        frame = json.loads(encode_frame(InferenceError(request_id="r1", error="timed out")))
        assert frame == {"type": "INFERENCE_ERROR", "request_id": "r1", "error": "timed out"}
