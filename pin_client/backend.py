"""Client for the local model-serving backend (Ollama-compatible API).

Only the two calls the session needs:
- GET  {base}/api/tags -> {"models": [{"name": ...}, ...]}
- POST {base}/api/chat -> {"model", "message": {"role", "content"}, "done", ...}

Every failure is reported as a single BackendError; nothing is retried.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

import httpx

from .errors import BackendError

logger = logging.getLogger(__name__)

LIST_MODELS_TIMEOUT = 10.0
CHAT_TIMEOUT = 120.0


@dataclass(frozen=True)
class ChatMessage:
    """One turn of a chat history."""
    role: str
    content: str

    @classmethod
    def from_dict(cls, data: Any) -> "ChatMessage":
        if not isinstance(data, dict):
            raise ValueError(f"chat message must be an object, got {type(data).__name__}")
        role = data.get("role")
        content = data.get("content")
        if not isinstance(role, str) or not isinstance(content, str):
            raise ValueError("chat message needs string 'role' and 'content'")
        return cls(role=role, content=content)

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ChatResponse:
    """Assistant reply plus the optional counters the backend reports."""
    model: str
    message: ChatMessage
    done: bool
    total_duration: Optional[int] = None
    prompt_eval_count: Optional[int] = None
    eval_count: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ChatResponse":
        if not isinstance(data, dict):
            raise ValueError("chat response must be a JSON object")
        model = data.get("model")
        done = data.get("done")
        if not isinstance(model, str) or not isinstance(done, bool):
            raise ValueError("chat response needs 'model' and 'done'")
        return cls(
            model=model,
            message=ChatMessage.from_dict(data.get("message")),
            done=done,
            total_duration=data.get("total_duration"),
            prompt_eval_count=data.get("prompt_eval_count"),
            eval_count=data.get("eval_count"),
        )

    def to_dict(self) -> dict:
        return {
            "model": self.model,
            "message": self.message.to_dict(),
            "done": self.done,
            "total_duration": self.total_duration,
            "prompt_eval_count": self.prompt_eval_count,
            "eval_count": self.eval_count,
        }


def _api_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}{path}"


class BackendClient:
    """
    Thin async wrapper around the backend's HTTP API.

    One pooled httpx client is reused across calls; each call passes its own
    timeout so model listing stays short while chat completions can run long.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        list_timeout: float = LIST_MODELS_TIMEOUT,
        chat_timeout: float = CHAT_TIMEOUT,
    ):
        self.list_timeout = list_timeout
        self.chat_timeout = chat_timeout
        self.client = client or httpx.AsyncClient(
            limits=httpx.Limits(
                max_keepalive_connections=5,
                max_connections=10,
                keepalive_expiry=30.0,
            ),
        )

    async def close(self):
        """Close the HTTP client. Call on shutdown."""
        await self.client.aclose()

    async def list_models(self, backend_url: str) -> list[str]:
        """Return the names of the models the backend has available."""
        api_url = _api_url(backend_url, "/api/tags")
        try:
            response = await self.client.get(api_url, timeout=self.list_timeout)
        except httpx.TimeoutException as e:
            raise BackendError(f"Backend timed out listing models: {e}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise BackendError(f"Failed to connect to backend: {e}") from e

        if not response.is_success:
            raise BackendError(f"Backend returned status: {response.status_code}")

        try:
            data = response.json()
            models = [entry["name"] for entry in data["models"]]
        except (ValueError, KeyError, TypeError) as e:
            raise BackendError(f"Failed to parse response: {e}") from e

        if not all(isinstance(name, str) for name in models):
            raise BackendError("Failed to parse response: model names must be strings")

        logger.info("Found %d models at %s", len(models), backend_url)
        return models

    async def chat_completion(
        self,
        backend_url: str,
        model: str,
        messages: Iterable[ChatMessage],
        stream: bool = False,
    ) -> ChatResponse:
        """Run one non-incremental chat completion."""
        api_url = _api_url(backend_url, "/api/chat")
        request = {
            "model": model,
            "messages": [m.to_dict() for m in messages],
            "stream": stream,
        }
        logger.debug("Chat request: model=%s, %d messages", model, len(request["messages"]))

        try:
            response = await self.client.post(api_url, json=request, timeout=self.chat_timeout)
        except httpx.TimeoutException as e:
            raise BackendError(f"Backend request timed out after {self.chat_timeout:.0f}s") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise BackendError(f"Backend request failed: {e}") from e

        if not response.is_success:
            raise BackendError(f"Backend error {response.status_code}: {response.text}")

        try:
            return ChatResponse.from_dict(response.json())
        except ValueError as e:
            raise BackendError(f"Failed to parse backend response: {e}") from e
