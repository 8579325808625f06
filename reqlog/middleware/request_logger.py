"""Structured access logging middleware.

Emits two log lines per HTTP request through a structlog logger:

- ``request started`` as soon as the request arrives, carrying the
  request id, scheme, protocol, method, remote address (with GeoIP
  fields when available), user agent and full URI;
- ``request complete`` once the app returns, adding the response
  status, body size and latency, or ``request panicked`` with the stack
  trace when the app raises. The exception is always re-raised.

Handlers can add fields to the final line through ``reqlog.context``.

Usage::

    app.add_middleware(
        RequestLoggerMiddleware,
        geo_db=open_geo_database(config.geoip_db_path),
        id_provider=provider,
    )
"""

import time
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from reqlog.context import activate, deactivate, ensure_request_context
from reqlog.entry import Failure, LogEntry, Success
from reqlog.geo import FORWARDED_FOR_HEADER, GeoDatabase, GeoEnricher, get_remote_addr
from reqlog.ids import IdentifierProvider, MonotonicULIDProvider, resolve_request_id
from reqlog.middleware.request_id import REQUEST_ID_HEADER
from reqlog.utils.logging import ACCESS_LOGGER_NAME

# RFC 3339, UTC, second precision
TS_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def _http_proto(http_version: str) -> str:
    """Protocol as written on the request line, e.g. ``HTTP/2.0``.

    ASGI servers report HTTP/2 and HTTP/3 as a bare major version.
    """
    if "." not in http_version:
        http_version += ".0"
    return f"HTTP/{http_version}"


def _request_target(scope: Scope) -> str:
    """Path and query string as the client sent them."""
    raw_path = scope.get("raw_path")
    if raw_path:
        target = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        target = scope.get("root_path", "") + scope.get("path", "")
    query = scope.get("query_string", b"")
    if query:
        target += "?" + query.decode("latin-1")
    return target


class RequestLoggerMiddleware:
    """Pure ASGI middleware writing one log entry per HTTP request.

    Args:
        app: The wrapped ASGI application.
        logger: Structlog logger to write to. Defaults to ``reqlog.access``.
        geo_db: Optional GeoIP database for the remote address fields.
        id_provider: Generates ids for requests that arrive without one.
        request_id_header: Inbound correlation header.
        forwarded_for_header: Header holding the client address chain.
    """

    def __init__(
        self,
        app: ASGIApp,
        logger: Any = None,
        geo_db: Optional[GeoDatabase] = None,
        id_provider: Optional[IdentifierProvider] = None,
        request_id_header: str = REQUEST_ID_HEADER,
        forwarded_for_header: str = FORWARDED_FOR_HEADER,
    ) -> None:
        self.app = app
        self.logger = logger if logger is not None else structlog.get_logger(ACCESS_LOGGER_NAME)
        self.geo = GeoEnricher(geo_db)
        self.id_provider = id_provider or MonotonicULIDProvider()
        self.request_id_header = request_id_header
        self.forwarded_for_header = forwarded_for_header

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        conn = HTTPConnection(scope)
        ctx = ensure_request_context(scope)
        if not ctx.request_id:
            ctx.request_id = resolve_request_id(
                conn.headers.get(self.request_id_header), self.id_provider
            )

        entry = LogEntry(self.logger, self.build_fields(conn, ctx.request_id))
        ctx.log_entry = entry
        token = activate(ctx)

        status_code = 0
        bytes_written = 0

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code, bytes_written
            if message["type"] == "http.response.start":
                status_code = message["status"]
            elif message["type"] == "http.response.body":
                bytes_written += len(message.get("body", b""))
            await send(message)

        start = time.perf_counter_ns()
        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            entry.finalize(Failure(error=exc, stack=traceback.format_exc()))
            raise
        else:
            entry.finalize(
                Success(
                    status=status_code,
                    bytes_written=bytes_written,
                    elapsed_ns=time.perf_counter_ns() - start,
                )
            )
        finally:
            deactivate(token)

    def build_fields(self, conn: HTTPConnection, request_id: str) -> dict[str, Any]:
        """Collect the fields logged with "request started"."""
        scope = conn.scope
        fields: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).strftime(TS_FORMAT),
        }
        if request_id:
            fields["req_id"] = request_id

        scheme = "https" if scope.get("scheme") == "https" else "http"
        fields["http_scheme"] = scheme
        fields["http_proto"] = _http_proto(scope.get("http_version", "1.1"))
        fields["http_method"] = scope.get("method", "")

        geo_fields, _ = self.geo.enrich(get_remote_addr(conn, self.forwarded_for_header))
        fields.update(geo_fields)

        fields["user_agent"] = conn.headers.get("user-agent", "")

        host = conn.headers.get("host")
        if not host and scope.get("server"):
            server_host, server_port = scope["server"]
            host = f"{server_host}:{server_port}" if server_port else server_host
        fields["uri"] = f"{scheme}://{host or ''}{_request_target(scope)}"
        return fields
