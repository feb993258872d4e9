"""
Upstream forwarding for /chat.

The non-streaming path returns the upstream body and status untouched. The
streaming path opens the upstream response, checks its status before any
downstream header is committed, then pipes the byte stream through.
"""
from contextlib import AsyncExitStack
from dataclasses import dataclass

import anyio
import httpx
from fastapi.responses import Response, StreamingResponse
from loguru import logger
from openai import APIStatusError, AsyncOpenAI, OpenAIError
from starlette.types import Receive, Scope, Send

from chatrelay.core.config import Settings
from chatrelay.core.errors import (
    ConfigurationError,
    UpstreamStatusError,
    UpstreamTransportError,
)
from chatrelay.llm.utils import build_openai_client
from chatrelay.schemas.chat import ChatRequest

SSE_MEDIA_TYPE = "text/event-stream; charset=utf-8"
SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    # Ask nginx-style proxies not to buffer the stream
    "X-Accel-Buffering": "no",
}


@dataclass(frozen=True)
class UpstreamReply:
    status_code: int
    body: bytes
    media_type: str


class UpstreamStream:
    """A live upstream SSE body. Consumed once, closed on every exit path."""

    def __init__(self, response, stack: AsyncExitStack):
        self.status_code = response.status_code
        self._response = response
        self._stack = stack
        self._closed = False
        self.bytes_relayed = 0

    async def chunks(self):
        try:
            async for chunk in self._response.iter_bytes():
                if not chunk:
                    continue
                self.bytes_relayed += len(chunk)
                yield chunk
        except Exception as e:
            # Headers are already sent; the connection can only be dropped
            logger.error(
                f"Upstream stream failed after {self.bytes_relayed} bytes: {e!r}"
            )
            raise
        finally:
            await self.aclose()
        logger.info(f"Upstream stream finished, {self.bytes_relayed} bytes relayed")

    async def aclose(self):
        if self._closed:
            return
        self._closed = True
        with anyio.CancelScope(shield=True):
            await self._stack.aclose()

    @property
    def closed(self) -> bool:
        return self._closed


class RelayStreamingResponse(StreamingResponse):
    """StreamingResponse that releases the upstream connection however it ends."""

    def __init__(self, upstream: UpstreamStream):
        super().__init__(
            upstream.chunks(),
            status_code=200,
            headers=SSE_HEADERS,
            media_type=SSE_MEDIA_TYPE,
        )
        self.upstream = upstream

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            if not self.upstream.closed:
                logger.info("Downstream went away, closing upstream stream")
            with anyio.CancelScope(shield=True):
                await self.body_iterator.aclose()
                await self.upstream.aclose()


def _transport_failure(e: Exception) -> UpstreamTransportError:
    detail = str(e)
    if e.__cause__ is not None:
        detail = f"{detail} {e.__cause__}".strip()
    return UpstreamTransportError(f"Upstream request failed: {detail}")


class ChatRelay:
    """Forwards chat requests to the upstream chat-completion API."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None):
        self.settings = settings
        self._http_client = http_client
        self._client: AsyncOpenAI | None = None

    def ensure_configured(self):
        if not self.settings.has_credential:
            raise ConfigurationError("OPENAI_API_KEY missing")

    @property
    def client(self) -> AsyncOpenAI:
        self.ensure_configured()
        if self._client is None:
            self._client = build_openai_client(self.settings, self._http_client)
        return self._client

    async def complete(self, chat_request: ChatRequest) -> UpstreamReply:
        """Single upstream call; the full body comes back with its status."""
        client = self.client
        try:
            raw = await client.chat.completions.with_raw_response.create(
                **chat_request.to_upstream_payload()
            )
            http_response = raw.http_response
        except APIStatusError as e:
            http_response = e.response
        except OpenAIError as e:
            raise _transport_failure(e) from e

        return UpstreamReply(
            status_code=http_response.status_code,
            body=http_response.content,
            media_type=http_response.headers.get("content-type", "application/json"),
        )

    async def open_stream(self, chat_request: ChatRequest) -> UpstreamStream:
        """Open the upstream SSE response; fails before any downstream commit."""
        client = self.client
        stack = AsyncExitStack()
        try:
            response = await stack.enter_async_context(
                client.chat.completions.with_streaming_response.create(
                    **chat_request.to_upstream_payload()
                )
            )
        except APIStatusError as e:
            await stack.aclose()
            raise UpstreamStatusError(
                e.status_code, e.response.content, e.response.headers.get("content-type")
            ) from e
        except OpenAIError as e:
            await stack.aclose()
            raise _transport_failure(e) from e

        return UpstreamStream(response, stack)

    async def relay(self, chat_request: ChatRequest) -> Response:
        logger.info(
            f"Relaying chat request: model={chat_request.model} "
            f"stream={chat_request.stream} messages={len(chat_request.messages)}"
        )
        if not chat_request.stream:
            reply = await self.complete(chat_request)
            return Response(
                content=reply.body,
                status_code=reply.status_code,
                media_type=reply.media_type,
            )

        upstream = await self.open_stream(chat_request)
        return RelayStreamingResponse(upstream)

    async def aclose(self):
        if self._client is not None:
            await self._client.close()
            self._client = None
