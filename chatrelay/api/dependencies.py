from fastapi import Request

from chatrelay.services.relay_service import ChatRelay


def get_relay(request: Request) -> ChatRelay:
    """The relay built by create_app for this process."""
    return request.app.state.relay
