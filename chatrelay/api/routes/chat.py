from fastapi import APIRouter, Depends, Request, Response, status

from chatrelay.api.dependencies import get_relay
from chatrelay.core.errors import PayloadTooLarge
from chatrelay.schemas.chat import ErrorResponse, parse_chat_request
from chatrelay.services.relay_service import ChatRelay

router = APIRouter()


async def read_body(request: Request, max_bytes: int) -> bytes:
    """Read the request body, giving up as soon as it passes max_bytes."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes:
        raise PayloadTooLarge(f"request body exceeds {max_bytes} bytes")

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > max_bytes:
            raise PayloadTooLarge(f"request body exceeds {max_bytes} bytes")
    return bytes(body)


@router.post(
    "/chat",
    responses={
        400: {"model": ErrorResponse, "description": "Missing or invalid messages"},
        413: {"model": ErrorResponse, "description": "Request body too large"},
        500: {"model": ErrorResponse, "description": "Upstream credential missing"},
        502: {"model": ErrorResponse, "description": "Upstream unreachable"},
    },
)
async def chat(request: Request, relay: ChatRelay = Depends(get_relay)) -> Response:
    """
    Forward a chat-completion request upstream.

    Body: { messages: [...], stream?, model?, max_tokens?, temperature? }
    sent as application/json or text/plain.

    Returns:
    - stream=false: the upstream JSON body with the upstream status code
    - stream=true: the upstream text/event-stream passed through as it arrives
    """
    # Credential first: a missing key is a 500 whatever the body looks like
    relay.ensure_configured()

    raw = await read_body(request, max_bytes=relay.settings.MAX_BODY_BYTES)
    chat_request = parse_chat_request(raw, max_bytes=relay.settings.MAX_BODY_BYTES)
    return await relay.relay(chat_request)


@router.options("/{path:path}", include_in_schema=False)
async def preflight(path: str) -> Response:
    # Real CORS preflights are answered by CORSMiddleware before reaching here
    return Response(status_code=status.HTTP_204_NO_CONTENT)
