"""Request ID middleware for log correlation.

Assigns a ULID to every incoming request (or keeps the one supplied by
a gateway in ``X-Request-ID``) and stores it in the request context and
in ``structlog.contextvars`` so that every log line emitted during the
request automatically includes ``req_id``.

The ID is also returned in the ``X-Request-ID`` response header so
clients can correlate logs.
"""

from typing import Callable, Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from reqlog.context import activate, deactivate, ensure_request_context
from reqlog.ids import IdentifierProvider, MonotonicULIDProvider, resolve_request_id

REQUEST_ID_HEADER = "X-Request-ID"

logger = structlog.get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to every HTTP request.

    1. Reads ``X-Request-ID`` from the incoming request (if provided by a
       gateway or test harness), otherwise generates a new ULID.
    2. Stores it in the request context so ``RequestLoggerMiddleware``
       and handlers see the same value.
    3. Binds the ID to structlog context vars for the request scope.
    4. Adds ``X-Request-ID`` to the response headers.
    """

    def __init__(
        self,
        app: ASGIApp,
        id_provider: Optional[IdentifierProvider] = None,
        header_name: str = REQUEST_ID_HEADER,
    ) -> None:
        super().__init__(app)
        self.id_provider = id_provider or MonotonicULIDProvider()
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        ctx = ensure_request_context(request.scope)
        if not ctx.request_id:
            ctx.request_id = resolve_request_id(
                request.headers.get(self.header_name), self.id_provider
            )
        request_id = ctx.request_id

        # Bind to structlog context for this request scope
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(req_id=request_id)

        # Store on request state so route handlers can access it
        request.state.request_id = request_id

        token = activate(ctx)
        try:
            response = await call_next(request)
        finally:
            deactivate(token)

        response.headers[self.header_name] = request_id
        return response
