"""Upstream double and shared data for the relay tests."""
import json

import httpx

from chatrelay.core.config import Settings

UPSTREAM_BASE_URL = "https://upstream.test/v1"

COMPLETION = {
    "id": "chatcmpl-123",
    "object": "chat.completion",
    "model": "gpt-4o-mini",
    "choices": [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "Hello there!"},
            "finish_reason": "stop",
        }
    ],
    "usage": {"prompt_tokens": 5, "completion_tokens": 3, "total_tokens": 8},
}

SSE_CHUNKS = [
    b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n',
    b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\n',
    b'data: {"choices":[{"delta":{"content":"lo"}}]}\n\n',
    b"data: [DONE]\n\n",
]


class RecordingStream(httpx.AsyncByteStream):
    """Upstream SSE body that remembers whether it was closed."""

    def __init__(self, chunks, error: Exception | None = None):
        self.chunks = list(chunks)
        self.error = error
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self):
        self.closed = True


class UpstreamDouble:
    """Stands in for the chat-completion API behind an httpx.MockTransport."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.json_body: dict = COMPLETION
        self.raw_body: bytes | None = None
        self.sse_chunks = SSE_CHUNKS
        self.stream_error: Exception | None = None
        self.transport_error: Exception | None = None
        self.streams: list[RecordingStream] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def payload(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.transport_error is not None:
            raise self.transport_error

        if self.raw_body is not None:
            return httpx.Response(
                self.status_code,
                headers={"content-type": "application/json"},
                content=self.raw_body,
            )

        if json.loads(request.content).get("stream") and self.status_code < 400:
            stream = RecordingStream(self.sse_chunks, self.stream_error)
            self.streams.append(stream)
            return httpx.Response(
                self.status_code,
                headers={"content-type": "text/event-stream"},
                stream=stream,
            )

        return httpx.Response(self.status_code, json=self.json_body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def make_settings(**overrides) -> Settings:
    values = {"OPENAI_API_KEY": "sk-test", "UPSTREAM_BASE_URL": UPSTREAM_BASE_URL}
    values.update(overrides)
    return Settings(**values)

