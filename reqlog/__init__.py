"""Request-scoped structured logging for ASGI applications."""

from reqlog.context import (
    RequestContext,
    get_log_entry,
    get_request_context,
    get_request_id,
    set_field,
    set_fields,
)
from reqlog.entry import Failure, LogEntry, RequestOutcome, Success
from reqlog.geo import GeoDatabase, GeoEnricher, GeoRecord, MaxMindGeoDatabase, open_geo_database
from reqlog.ids import MonotonicULIDProvider, resolve_request_id
from reqlog.middleware import RequestIDMiddleware, RequestLoggerMiddleware

__version__ = "0.1.0"

__all__ = [
    "Failure",
    "GeoDatabase",
    "GeoEnricher",
    "GeoRecord",
    "LogEntry",
    "MaxMindGeoDatabase",
    "MonotonicULIDProvider",
    "RequestContext",
    "RequestIDMiddleware",
    "RequestLoggerMiddleware",
    "RequestOutcome",
    "Success",
    "get_log_entry",
    "get_request_context",
    "get_request_id",
    "open_geo_database",
    "resolve_request_id",
    "set_field",
    "set_fields",
]
