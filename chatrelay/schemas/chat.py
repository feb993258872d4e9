import json
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from chatrelay.core.errors import PayloadTooLarge, RequestValidationFailed


class ChatRequest(BaseModel):
    messages: list[dict[str, Any]]
    stream: bool = False
    model: str = "gpt-4o-mini"
    max_tokens: int = Field(default=512, gt=0)
    temperature: float = 0.7

    @field_validator("messages")
    @classmethod
    def check_messages(cls, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if not messages:
            raise ValueError("messages required")
        for msg in messages:
            if "role" not in msg or "content" not in msg:
                raise ValueError("each message must have 'role' and 'content' fields")
        return messages

    def to_upstream_payload(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": self.messages,
            "stream": self.stream,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }


class ErrorDetail(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """Error envelope returned for every relay-side failure."""

    error: ErrorDetail


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or "body"
    if field == "messages":
        if first["type"] == "missing":
            return "messages required"
        if first["type"] == "value_error":
            return str(first["ctx"]["error"])
    return f"{field}: {first['msg']}"


def parse_chat_request(raw: bytes, max_bytes: int) -> ChatRequest:
    """
    Parse an inbound /chat body into a ChatRequest.

    JSON and text/plain bodies are handled the same way: the bytes are
    decoded as JSON text. Raises RequestValidationFailed for anything that
    is not a JSON object with valid fields, PayloadTooLarge past max_bytes.
    """
    if len(raw) > max_bytes:
        raise PayloadTooLarge(f"request body exceeds {max_bytes} bytes")

    if not raw.strip():
        raise RequestValidationFailed("messages required")

    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise RequestValidationFailed(f"invalid JSON body: {e}") from e

    if not isinstance(data, dict):
        raise RequestValidationFailed("request body must be a JSON object")

    try:
        return ChatRequest.model_validate(data)
    except ValidationError as e:
        raise RequestValidationFailed(_describe(e)) from e
