from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it receives."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return responder(request)

        super().__init__(handler)


def completion_body(content: Optional[str] = "ok", model: str = "grok-4") -> Dict[str, Any]:
    """Minimal OpenAI-style chat completion body."""
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "model": model,
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
    }


def reply_with(status_code: int = 200, json: Any = None) -> Callable[[httpx.Request], httpx.Response]:
    def responder(request: httpx.Request) -> httpx.Response:
        if json is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, json=json)

    return responder


@pytest.fixture
def upstream_ok():
    return RecordingTransport(reply_with(200, completion_body("X4A PRICING Response: SOL/USDC $140.25")))
