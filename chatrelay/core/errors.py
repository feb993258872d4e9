"""Relay error taxonomy and the handler that turns it into HTTP responses."""
from fastapi import Request, status
from fastapi.responses import JSONResponse, Response
from loguru import logger


class RelayError(Exception):
    """Base class for failures that end a request with a terminal response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(RelayError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class RequestValidationFailed(RelayError):
    status_code = status.HTTP_400_BAD_REQUEST


class PayloadTooLarge(RelayError):
    status_code = 413


class UpstreamTransportError(RelayError):
    status_code = status.HTTP_502_BAD_GATEWAY


class UpstreamStatusError(RelayError):
    """Upstream answered a streaming request with a non-success status.

    Headers have not been committed yet, so the upstream status and body
    are forwarded as-is.
    """

    def __init__(self, status_code: int, body: bytes, media_type: str | None):
        super().__init__(f"Upstream responded with status {status_code}")
        self.status_code = status_code
        self.body = body or b"Upstream error"
        self.media_type = media_type if body else "text/plain; charset=utf-8"


def error_envelope(message: str) -> dict:
    return {"error": {"message": message}}


async def relay_error_handler(request: Request, exc: RelayError) -> Response:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")

    if isinstance(exc, UpstreamStatusError):
        return Response(
            content=exc.body, status_code=exc.status_code, media_type=exc.media_type
        )

    return JSONResponse(status_code=exc.status_code, content=error_envelope(exc.message))
