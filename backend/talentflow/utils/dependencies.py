from fastapi import Request

from ..services.transport import UnreliableTransport


def get_transport(request: Request) -> UnreliableTransport:
    """The app-wide transport; every endpoint reaches the store through it."""
    return request.app.state.transport
