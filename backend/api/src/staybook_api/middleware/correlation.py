"""Request correlation for the booking API.

Every HTTP request is tagged with an id taken from ``X-Correlation-ID`` or
minted on arrival. The id is bound to the logging context for the lifetime
of the request, stored on ``request.state.correlation_id`` and echoed back
on the response so callers can quote it when reporting a failed payment.
"""

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from staybook.utils.logging import clear_correlation_id, set_correlation_id

CORRELATION_ID_HEADER = "X-Correlation-ID"


def _incoming_id(scope: Scope) -> str | None:
    wanted = CORRELATION_ID_HEADER.lower().encode("latin-1")
    for name, value in scope.get("headers", []):
        if name == wanted and value:
            return value.decode("latin-1")
    return None


class CorrelationIdMiddleware:
    """Plain ASGI middleware; non-HTTP scopes pass straight through."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = set_correlation_id(_incoming_id(scope))
        scope.setdefault("state", {})["correlation_id"] = request_id

        async def send_with_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)[CORRELATION_ID_HEADER] = request_id
            await send(message)

        try:
            await self.app(scope, receive, send_with_id)
        finally:
            clear_correlation_id()
