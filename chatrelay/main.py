import sys
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from chatrelay.api.middleware import log_request
from chatrelay.api.routes import chat, health
from chatrelay.core.config import Settings, get_settings
from chatrelay.core.errors import RelayError, relay_error_handler
from chatrelay.services.relay_service import ChatRelay


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    if not app.state.settings.has_credential:
        logger.warning("OPENAI_API_KEY is not set; /chat will answer 500")
    yield
    # Shutdown: release the upstream connection pool
    await app.state.relay.aclose()


def create_app(
    settings: Settings | None = None, http_client: httpx.AsyncClient | None = None
) -> FastAPI:
    """Create and configure the relay application."""
    settings = settings or get_settings()

    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)
    app.state.settings = settings
    app.state.relay = ChatRelay(settings, http_client=http_client)

    app.add_exception_handler(RelayError, relay_error_handler)

    app.middleware("http")(log_request)

    # Configure CORS (outermost, so preflights never reach the routes)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.CORS_ORIGINS),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # Include routers
    app.include_router(health.router, tags=["health"])
    app.include_router(chat.router, tags=["chat"])

    return app


app = create_app()


def run():
    settings = get_settings()
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL.upper())
    logger.info(f"AI proxy listening on :{settings.PORT}")
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level="warning")


if __name__ == "__main__":
    run()
