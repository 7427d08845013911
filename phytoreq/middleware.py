"""
ASGI middleware: request context for logging, and a JSON 500 boundary.
"""

import json
import traceback

from phytoreq.logging_config import (
    CORRELATION_HEADER,
    generate_correlation_id,
    get_correlation_id,
    get_logger,
    is_production,
    set_acting_user,
    set_correlation_id,
)
from phytoreq.registry.identity import USER_ID_HEADER

logger = get_logger("middleware")

_CID_HEADER = CORRELATION_HEADER.encode("latin-1")
_USER_HEADER = USER_ID_HEADER.encode("latin-1")


class CorrelationIdMiddleware:
    """Binds the correlation id and acting user id to the logging context.

    The correlation id comes from the request header when present, otherwise
    a new one is generated; it is echoed back on every response.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers") or [])
        cid = headers.get(_CID_HEADER, b"").decode("latin-1") or generate_correlation_id()
        set_correlation_id(cid)
        set_acting_user(headers.get(_USER_HEADER, b"").decode("latin-1"))

        async def send_with_cid(message):
            if message["type"] == "http.response.start":
                message = {
                    **message,
                    "headers": [*message.get("headers", []), (_CID_HEADER, cid.encode("latin-1"))],
                }
            await send(message)

        await self.app(scope, receive, send_with_cid)


class ErrorBoundaryMiddleware:
    """Turns an unhandled exception into a JSON 500 with the correlation id.

    Outside production the body also carries the exception text and trace.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = False

        async def tracking_send(message):
            nonlocal started
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        try:
            await self.app(scope, receive, tracking_send)
        except Exception as exc:
            logger.error(f"Unhandled error on {scope.get('method')} {scope.get('path')}: {exc}", exc_info=True)
            if started:
                raise

            body = {
                "error": "internal_error",
                "message": "Internal server error",
                "correlationId": get_correlation_id(),
            }
            if not is_production():
                body["message"] = str(exc)
                body["stackTrace"] = traceback.format_exc()

            await send({
                "type": "http.response.start",
                "status": 500,
                "headers": [(b"content-type", b"application/json")],
            })
            await send({"type": "http.response.body", "body": json.dumps(body).encode("utf-8")})
