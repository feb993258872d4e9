"""Request logging for the relay."""
import time

from fastapi import Request
from loguru import logger

IGNORE_PATHS = ("/health", "/docs", "/openapi.json", "/favicon.ico")


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


async def log_request(request: Request, call_next):
    if request.url.path in IGNORE_PATHS:
        return await call_next(request)

    start_time = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = round((time.perf_counter() - start_time) * 1000, 2)

    # For streams this is time to first byte, not total duration
    message = (
        f"{request.method} {request.url.path} {response.status_code} "
        f"{elapsed_ms}ms client={_client_ip(request)}"
    )
    if response.status_code >= 500:
        logger.error(message)
    elif response.status_code >= 400:
        logger.warning(message)
    else:
        logger.info(message)
    return response
