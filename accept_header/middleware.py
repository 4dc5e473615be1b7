"""
ASGI middleware negotiating the response media type from the 'Accept' header.
"""
import logging
import re
from typing import Sequence

from starlette.datastructures import Headers, MutableHeaders
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .headers import Alternative, MalformedRangeError, negotiate

logger = logging.getLogger(__name__)


class AcceptMiddleware:
    """
    Negotiates the request's 'Accept' header against the media types the
    application can produce and stores the winning tag as
    ``request.state.accepted``.

    Requests without an 'Accept' header are negotiated as ``default_accept``.
    If nothing is acceptable, the middleware answers 406 Not Acceptable,
    unless ``not_acceptable`` is False, in which case the application is
    called with ``request.state.accepted`` set to None.
    """

    def __init__(
        self,
        app: ASGIApp,
        alternatives: Sequence[Alternative],
        default_accept: str = "*/*",
        not_acceptable: bool = True,
        excluded_handlers: Sequence[str] | None = None,
    ) -> None:
        self.app = app
        self.alternatives = tuple(alternatives)
        self.default_accept = default_accept
        self.not_acceptable = not_acceptable
        if excluded_handlers:
            self.excluded_handlers = [re.compile(path) for path in excluded_handlers]
        else:
            self.excluded_handlers = []

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self._is_handler_excluded(scope):
            await self.app(scope, receive, send)
            return

        accept = Headers(scope=scope).get("Accept", self.default_accept)
        try:
            accepted = negotiate(accept, self.alternatives)
        except MalformedRangeError as e:
            logger.info("Rejected malformed Accept header %r: %s", accept, e)
            response = PlainTextResponse(f"Bad Request: {e}", status_code=400)
            await response(scope, receive, send)
            return

        if accepted is None and self.not_acceptable:
            logger.info(
                "No acceptable media type for %s (Accept: %r)",
                scope.get("path", ""),
                accept,
            )
            response = PlainTextResponse(
                "Not Acceptable", status_code=406, headers={"Vary": "Accept"}
            )
            await response(scope, receive, send)
            return

        logger.debug("Negotiated %r for Accept: %r", accepted, accept)
        Request(scope).state.accepted = accepted

        async def send_with_vary(message: Message) -> None:
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                MutableHeaders(scope=message).add_vary_header("Accept")
            await send(message)

        await self.app(scope, receive, send_with_vary)

    def _is_handler_excluded(self, scope: Scope) -> bool:
        handler = scope.get("path", "")
        return any(pattern.search(handler) for pattern in self.excluded_handlers)
