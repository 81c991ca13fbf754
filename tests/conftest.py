"""Shared fixtures: a scriptable model backend and an isolated data dir."""

import asyncio

import pytest

from pin_client.backend import ChatMessage, ChatResponse
from pin_client.errors import BackendError
from pin_client.state import StateStore


class FakeBackend:
    """Stands in for BackendClient. Configure by setting attributes."""

    def __init__(self, store: StateStore):
        self.store = store
        self.models = ["llama2", "mistral"]
        self.reply = "hello there"
        self.chat_error: str | None = None
        self.models_error: str | None = None
        self.gate: asyncio.Event | None = None
        self.calls: list[dict] = []
        self.loads_seen: list[int] = []
        self.closed = False

    async def list_models(self, backend_url: str) -> list[str]:
        if self.models_error:
            raise BackendError(self.models_error)
        return list(self.models)

    async def chat_completion(self, backend_url, model, messages, stream=False) -> ChatResponse:
        self.calls.append({
            "backend_url": backend_url,
            "model": model,
            "messages": list(messages),
            "stream": stream,
        })
        self.loads_seen.append(self.store.snapshot().current_load)
        if self.gate is not None:
            await self.gate.wait()
        if self.chat_error:
            raise BackendError(self.chat_error)
        return ChatResponse(
            model=model,
            message=ChatMessage(role="assistant", content=self.reply),
            done=True,
            total_duration=1200,
            prompt_eval_count=4,
            eval_count=3,
        )

    async def close(self):
        self.closed = True


@pytest.fixture
def store() -> StateStore:
    return StateStore()


@pytest.fixture
def backend(store) -> FakeBackend:
    return FakeBackend(store)


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point the client's data directory at a temp dir."""
    monkeypatch.setenv("PIN_CLIENT_HOME", str(tmp_path))
    return tmp_path
