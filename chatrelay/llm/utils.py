import httpx
from openai import AsyncOpenAI

from chatrelay.core.config import Settings


def build_openai_client(
    settings: Settings, http_client: httpx.AsyncClient | None = None
) -> AsyncOpenAI:
    """
    Build the upstream client for the relay.

    Retries are disabled: every request gets exactly one upstream attempt.
    Reads are bounded by UPSTREAM_TIMEOUT, the handshake by
    UPSTREAM_CONNECT_TIMEOUT.
    """
    return AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.UPSTREAM_BASE_URL,
        max_retries=0,
        timeout=httpx.Timeout(
            settings.UPSTREAM_TIMEOUT, connect=settings.UPSTREAM_CONNECT_TIMEOUT
        ),
        http_client=http_client,
    )
